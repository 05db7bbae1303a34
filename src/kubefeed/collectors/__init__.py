from .history_provider import PrometheusHistoryProvider
from .metrics_collector import ContainerMetricsCollector
from .namespace_collector import NamespaceCollector
from .oom_observer import OomObserver
from .pod_collector import PodSpecCollector
from .selector_fetcher import LegacySelectorFetcher, TargetRefSelectorFetcher
from .target_collector import TargetCollector

__all__ = [
    "ContainerMetricsCollector",
    "LegacySelectorFetcher",
    "NamespaceCollector",
    "OomObserver",
    "PodSpecCollector",
    "PrometheusHistoryProvider",
    "TargetCollector",
    "TargetRefSelectorFetcher",
]
