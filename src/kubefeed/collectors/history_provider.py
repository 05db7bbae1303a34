# src/kubefeed/collectors/history_provider.py

"""
PrometheusHistoryProvider reads archived container usage and pod labels from
Prometheus. It is used once at startup to seed the cluster state.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import Config, parse_duration_seconds
from ..core.exceptions import CollectionError
from ..models.cluster import ContainerID, PodID, ResourceKind, UsageSample
from ..models.specs import PodHistory
from ..utils.http_client import get_async_http_client
from .base_collector import HistoryProvider

logger = logging.getLogger(__name__)

CONTAINER_SELECTOR = '{pod!="",container!="",container!="POD"}'


class PrometheusHistoryProvider(HistoryProvider):
    """
    Builds PodHistory records from Prometheus range queries.
    """

    def __init__(self, settings: Config):
        self.base_url = settings.PROMETHEUS_URL.rstrip("/")
        self.verify = getattr(settings, "PROMETHEUS_VERIFY_CERTS", True)
        self.bearer_token = getattr(settings, "PROMETHEUS_BEARER_TOKEN", None)
        self.history_length = timedelta(seconds=parse_duration_seconds(settings.HISTORY_LENGTH))
        self.resolution = settings.HISTORY_RESOLUTION
        self.step_seconds = parse_duration_seconds(settings.HISTORY_RESOLUTION)
        self.pod_label_prefix = settings.POD_LABEL_PREFIX

        self.cpu_query = f"rate(container_cpu_usage_seconds_total{CONTAINER_SELECTOR}[{self.resolution}])"
        self.memory_query = f"container_memory_working_set_bytes{CONTAINER_SELECTOR}"
        self.labels_query = "kube_pod_labels"

    async def get_cluster_history(self) -> Dict[PodID, PodHistory]:
        if not self.base_url:
            raise CollectionError("PROMETHEUS_URL is not configured.")

        end = datetime.now(timezone.utc)
        start = end - self.history_length
        headers = {}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"

        history: Dict[PodID, PodHistory] = defaultdict(PodHistory)
        async with get_async_http_client(verify=self.verify, headers=headers) as http_client:
            cpu_series = await self._query_range(http_client, self.cpu_query, start, end)
            memory_series = await self._query_range(http_client, self.memory_query, start, end)
            label_series = await self._query_range(http_client, self.labels_query, start, end)

        cpu_count = self._add_samples(history, cpu_series, ResourceKind.CPU, lambda v: int(v * 1000))
        memory_count = self._add_samples(history, memory_series, ResourceKind.MEMORY, int)
        self._add_labels(history, label_series)

        logger.info(
            "Loaded history for %d pod(s): %d cpu and %d memory sample(s).",
            len(history),
            cpu_count,
            memory_count,
        )
        return dict(history)

    async def _query_range(
        self, http_client: httpx.AsyncClient, query: str, start: datetime, end: datetime
    ) -> List[Dict[str, Any]]:
        """
        Runs a range query and returns the 'result' list of the response.

        Raises:
            CollectionError: On transport errors or a non-success payload.
        """
        params = {
            "query": query,
            "start": start.timestamp(),
            "end": end.timestamp(),
            "step": self.step_seconds,
        }
        url = f"{self.base_url}/api/v1/query_range"
        try:
            logger.debug("Querying Prometheus range at %s: %s", url, query)
            response = await http_client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise CollectionError(f"Prometheus query failed for '{query}': {e}") from e
        except ValueError as e:
            raise CollectionError(f"Prometheus returned invalid JSON for '{query}': {e}") from e

        if data.get("status") != "success":
            raise CollectionError(f"Prometheus returned non-success status for '{query}': {data.get('error')}")
        return data.get("data", {}).get("result", [])

    @staticmethod
    def _pod_id(metric: Dict[str, str]) -> Optional[PodID]:
        namespace, pod = metric.get("namespace"), metric.get("pod")
        if not namespace or not pod:
            return None
        return PodID(namespace=namespace, pod_name=pod)

    def _add_samples(self, history, series, resource: ResourceKind, convert) -> int:
        count = 0
        skipped = 0
        for item in series:
            metric = item.get("metric", {})
            pod_id = self._pod_id(metric)
            container_name = metric.get("container")
            if pod_id is None or not container_name:
                skipped += 1
                continue
            container_id = ContainerID(pod_id=pod_id, container_name=container_name)
            samples = history[pod_id].samples.setdefault(container_name, [])
            for timestamp, value in item.get("values", []):
                try:
                    usage = convert(float(value))
                except (TypeError, ValueError):
                    continue
                samples.append(
                    UsageSample(
                        container_id=container_id,
                        resource=resource,
                        measure_start=datetime.fromtimestamp(float(timestamp), tz=timezone.utc),
                        usage=usage,
                    )
                )
                count += 1
        if skipped:
            logger.debug("Skipped %d %s series without pod/container labels.", skipped, resource.value)
        return count

    def _add_labels(self, history, series) -> None:
        for item in series:
            metric = item.get("metric", {})
            pod_id = self._pod_id(metric)
            values = item.get("values", [])
            if pod_id is None or not values:
                continue
            last_seen = datetime.fromtimestamp(float(values[-1][0]), tz=timezone.utc)
            pod_history = history[pod_id]
            if pod_history.last_seen is not None and pod_history.last_seen > last_seen:
                continue
            pod_history.last_seen = last_seen
            pod_history.last_labels = {
                key[len(self.pod_label_prefix) :]: value
                for key, value in metric.items()
                if key.startswith(self.pod_label_prefix)
            }
