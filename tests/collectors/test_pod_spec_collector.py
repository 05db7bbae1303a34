# tests/collectors/test_pod_spec_collector.py

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from kubernetes_asyncio.client import models as k8s
from kubernetes_asyncio.client.rest import ApiException

from kubefeed.collectors.pod_collector import POD_FIELD_SELECTOR, PodSpecCollector
from kubefeed.core.exceptions import CollectionError
from kubefeed.models.cluster import PodID, ResourceKind


@pytest.fixture
def mock_k8s_api():
    """Mock of the Kubernetes CoreV1Api."""
    mock_api = MagicMock()

    resources_1 = k8s.V1ResourceRequirements(requests={"cpu": "500m", "memory": "1Gi"})
    resources_2 = k8s.V1ResourceRequirements(requests={"cpu": "100m"})
    resources_3 = k8s.V1ResourceRequirements(requests=None)

    container_1 = k8s.V1Container(name="app", image="nginx:1.25", resources=resources_1)
    container_2 = k8s.V1Container(name="sidecar", image="envoy:1.29", resources=resources_2)
    container_3 = k8s.V1Container(name="worker", image="worker:latest", resources=resources_3)

    pod_1 = k8s.V1Pod(
        metadata=k8s.V1ObjectMeta(name="web-1", namespace="prod", labels={"app": "web"}),
        spec=k8s.V1PodSpec(containers=[container_1, container_2]),
        status=k8s.V1PodStatus(phase="Running"),
    )
    pod_2 = k8s.V1Pod(
        metadata=k8s.V1ObjectMeta(name="worker-1", namespace="dev"),
        spec=k8s.V1PodSpec(containers=[container_3]),
        status=None,
    )

    mock_api.list_pod_for_all_namespaces = AsyncMock(return_value=k8s.V1PodList(items=[pod_1, pod_2]))
    mock_api.api_client.close = AsyncMock()
    return mock_api


@pytest.mark.asyncio
@patch("kubefeed.collectors.pod_collector.get_core_v1_api")
async def test_pod_spec_collector_success(mock_get_api, mock_k8s_api):
    mock_get_api.return_value = mock_k8s_api

    collector = PodSpecCollector()
    specs = await collector.collect()

    mock_k8s_api.list_pod_for_all_namespaces.assert_awaited_once_with(field_selector=POD_FIELD_SELECTOR, watch=False)
    assert [s.pod_id for s in specs] == [
        PodID(namespace="prod", pod_name="web-1"),
        PodID(namespace="dev", pod_name="worker-1"),
    ]

    web = specs[0]
    assert web.labels == {"app": "web"}
    assert web.phase == "Running"
    app, sidecar = web.containers
    assert app.container_id.container_name == "app"
    assert app.image == "nginx:1.25"
    assert app.request == {ResourceKind.CPU: 500, ResourceKind.MEMORY: 1073741824}
    assert sidecar.request == {ResourceKind.CPU: 100}

    worker = specs[1]
    assert worker.labels == {}
    assert worker.phase == "Unknown"
    assert worker.containers[0].request == {}


@pytest.mark.asyncio
@patch("kubefeed.collectors.pod_collector.get_core_v1_api")
async def test_pod_spec_collector_api_error_raises(mock_get_api, mock_k8s_api):
    mock_k8s_api.list_pod_for_all_namespaces.side_effect = ApiException(status=403, reason="Forbidden")
    mock_get_api.return_value = mock_k8s_api

    with pytest.raises(CollectionError, match="Forbidden"):
        await PodSpecCollector().collect()


@pytest.mark.asyncio
@patch("kubefeed.collectors.pod_collector.get_core_v1_api")
async def test_pod_spec_collector_without_client_raises(mock_get_api):
    mock_get_api.return_value = None

    with pytest.raises(CollectionError):
        await PodSpecCollector().collect()


@pytest.mark.asyncio
@patch("kubefeed.collectors.pod_collector.get_core_v1_api")
async def test_pod_spec_collector_close(mock_get_api, mock_k8s_api):
    mock_get_api.return_value = mock_k8s_api
    collector = PodSpecCollector()
    await collector.collect()

    await collector.close()

    mock_k8s_api.api_client.close.assert_awaited_once()
    assert collector._api is None
