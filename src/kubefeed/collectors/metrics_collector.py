# src/kubefeed/collectors/metrics_collector.py
"""
Collects real-time container usage from the metrics.k8s.io API.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from kubernetes_asyncio.client.rest import ApiException

from ..core.config import config
from ..core.exceptions import CollectionError
from ..core.k8s_client import get_custom_objects_api
from ..models.cluster import ContainerID, PodID, ResourceKind
from ..models.specs import ContainerMetricsSnapshot
from ..utils.date_utils import ensure_utc
from ..utils.k8s_utils import parse_cpu_request, parse_memory_request
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)

_GO_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_GO_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def _parse_go_duration(value: Optional[str]) -> timedelta:
    """Parses durations such as '30s' or '1m0s' as emitted by metrics-server."""
    if not value:
        return timedelta(0)
    parts = _GO_DURATION_PART.findall(value)
    if not parts or "".join(n + u for n, u in parts) != value:
        raise ValueError(f"Invalid duration: '{value}'")
    return timedelta(seconds=sum(float(n) * _GO_DURATION_UNITS[u] for n, u in parts))


class ContainerMetricsCollector(BaseCollector):
    """Lists PodMetrics objects and flattens them into per-container snapshots."""

    def __init__(self, group: str = None, version: str = None):
        self.group = group or config.METRICS_GROUP
        self.version = version or config.METRICS_VERSION
        self._api = None

    async def _ensure_client(self):
        """Lazily initialize the Kubernetes Client."""
        if self._api:
            return self._api

        self._api = await get_custom_objects_api()
        if not self._api:
            logger.warning("ContainerMetricsCollector could not initialize Kubernetes client.")
        return self._api

    async def collect(self) -> List[ContainerMetricsSnapshot]:
        api = await self._ensure_client()
        if not api:
            raise CollectionError("Kubernetes client not configured; cannot read container metrics.")

        try:
            response = await api.list_cluster_custom_object(group=self.group, version=self.version, plural="pods")
        except ApiException as e:
            raise CollectionError(f"Metrics API error while listing pod metrics: {e.reason}") from e
        except Exception as e:
            raise CollectionError(f"Unexpected error while listing pod metrics: {e}") from e

        snapshots: List[ContainerMetricsSnapshot] = []
        malformed = 0
        for item in response.get("items", []):
            try:
                snapshots.extend(self._parse_pod_metrics(item))
            except (KeyError, TypeError, ValueError) as e:
                malformed += 1
                logger.debug("Skipping malformed pod metrics item %s: %s", item.get("metadata"), e)

        if malformed:
            logger.warning("Skipped %d malformed pod metrics item(s).", malformed)
        logger.debug("Collected %d container metrics snapshots.", len(snapshots))
        return snapshots

    @staticmethod
    def _parse_pod_metrics(item: dict) -> List[ContainerMetricsSnapshot]:
        metadata = item["metadata"]
        pod_id = PodID(namespace=metadata["namespace"], pod_name=metadata["name"])
        timestamp = item.get("timestamp")
        snapshot_time = ensure_utc(timestamp) if timestamp else datetime.now(timezone.utc)
        snapshot_window = _parse_go_duration(item.get("window"))

        snapshots = []
        for container in item.get("containers") or []:
            usage = container.get("usage") or {}
            parsed = {}
            if "cpu" in usage:
                parsed[ResourceKind.CPU] = parse_cpu_request(usage["cpu"])
            if "memory" in usage:
                parsed[ResourceKind.MEMORY] = parse_memory_request(usage["memory"])
            snapshots.append(
                ContainerMetricsSnapshot(
                    container_id=ContainerID(pod_id=pod_id, container_name=container["name"]),
                    snapshot_time=snapshot_time,
                    snapshot_window=snapshot_window,
                    usage=parsed,
                )
            )
        return snapshots

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._api:
            await self._api.api_client.close()
            logger.debug("ContainerMetricsCollector Kubernetes client closed.")
            self._api = None
