# tests/conftest.py

import pytest
from factories import container_id, pod_id

from kubefeed.models.cluster import ResourceKind
from kubefeed.storage.cluster_state import ClusterState


@pytest.fixture(autouse=True)
def mock_settings_env_vars(monkeypatch):
    """
    Keeps tests isolated from the developer's environment.
    """
    monkeypatch.delenv("PROMETHEUS_URL", raising=False)
    monkeypatch.setenv("OTEL_SDK_DISABLED", "true")


@pytest.fixture(autouse=True)
def clear_factory_caches():
    from kubefeed.core import factory

    cached = (
        factory.get_cluster_state,
        factory.get_oom_observer,
        factory.get_eviction_watcher,
        factory.get_pod_restart_watcher,
        factory.get_history_provider,
        factory.get_feeder,
    )
    for func in cached:
        func.cache_clear()
    yield
    for func in cached:
        func.cache_clear()


@pytest.fixture
def cluster_state():
    return ClusterState()


@pytest.fixture
def populated_state(cluster_state):
    """A state holding pod default/web-1 with container 'app'."""
    cluster_state.add_or_update_pod(pod_id(), {"app": "web"}, "Running")
    cluster_state.add_or_update_container(container_id(), {ResourceKind.CPU: 100})
    return cluster_state
