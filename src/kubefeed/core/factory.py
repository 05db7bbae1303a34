# src/kubefeed/core/factory.py
"""
Factory functions wiring the feeder and its collaborators from the
configuration. Each factory is cached so the process shares one instance.
"""

import logging
from functools import lru_cache
from typing import Optional

from ..collectors.base_collector import HistoryProvider
from ..collectors.history_provider import PrometheusHistoryProvider
from ..collectors.metrics_collector import ContainerMetricsCollector
from ..collectors.namespace_collector import NamespaceCollector
from ..collectors.oom_observer import OomObserver
from ..collectors.pod_collector import PodSpecCollector
from ..collectors.selector_fetcher import LegacySelectorFetcher, TargetRefSelectorFetcher
from ..collectors.target_collector import TargetCollector
from ..core.config import config
from ..storage.checkpoint_repository import KubernetesCheckpointRepository
from ..storage.cluster_state import ClusterState
from .checkpoints import CheckpointCoordinator
from .feeder import ClusterStateFeeder
from .ingestor import SampleIngestor
from .selector import SelectorResolver
from .targets import TargetSynchronizer
from .watcher import EvictionWatcher, PodRestartWatcher
from .workloads import WorkloadSynchronizer

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_cluster_state() -> ClusterState:
    return ClusterState()


@lru_cache(maxsize=1)
def get_oom_observer() -> OomObserver:
    return OomObserver(maxsize=config.OOM_QUEUE_MAXSIZE)


@lru_cache(maxsize=1)
def get_eviction_watcher() -> EvictionWatcher:
    return EvictionWatcher(get_oom_observer())


@lru_cache(maxsize=1)
def get_pod_restart_watcher() -> PodRestartWatcher:
    return PodRestartWatcher(get_oom_observer())


@lru_cache(maxsize=1)
def get_history_provider() -> Optional[HistoryProvider]:
    """The Prometheus history provider, or None when PROMETHEUS_URL is unset."""
    if not config.PROMETHEUS_URL:
        return None
    logger.info("Using Prometheus history provider at %s.", config.PROMETHEUS_URL)
    return PrometheusHistoryProvider(config)


@lru_cache(maxsize=1)
def get_feeder() -> ClusterStateFeeder:
    """
    Instantiates the feeder with the Kubernetes backed collectors and the
    shared cluster state.
    """
    logger.info("Initializing collectors and cluster state feeder...")
    cluster_state = get_cluster_state()

    pod_collector = PodSpecCollector()
    target_collector = TargetCollector(config.VPA_GROUP, config.VPA_VERSION)
    metrics_collector = ContainerMetricsCollector(config.METRICS_GROUP, config.METRICS_VERSION)
    namespace_collector = NamespaceCollector()
    selector_fetcher = TargetRefSelectorFetcher()
    checkpoint_repository = KubernetesCheckpointRepository(config.VPA_GROUP, config.VPA_VERSION)

    resolver = SelectorResolver(LegacySelectorFetcher(), selector_fetcher)
    target_synchronizer = TargetSynchronizer(cluster_state, target_collector, resolver)

    return ClusterStateFeeder(
        cluster_state=cluster_state,
        workload_synchronizer=WorkloadSynchronizer(cluster_state, pod_collector),
        target_synchronizer=target_synchronizer,
        checkpoint_coordinator=CheckpointCoordinator(
            cluster_state, target_synchronizer, checkpoint_repository, namespace_collector
        ),
        sample_ingestor=SampleIngestor(cluster_state, metrics_collector, get_oom_observer()),
        closeables=[
            pod_collector,
            target_collector,
            metrics_collector,
            namespace_collector,
            selector_fetcher,
            checkpoint_repository,
        ],
    )
