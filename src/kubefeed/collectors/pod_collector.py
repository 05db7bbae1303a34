# src/kubefeed/collectors/pod_collector.py
"""
Collects the specification (labels, phase, container requests) of every
non-pending pod from the Kubernetes API.
"""

import logging
from typing import List

from kubernetes_asyncio.client.rest import ApiException

from ..core.exceptions import CollectionError
from ..core.k8s_client import get_core_v1_api
from ..models.cluster import ContainerID, PodID, ResourceKind
from ..models.specs import BasicContainerSpec, BasicPodSpec
from ..utils.k8s_utils import parse_cpu_request, parse_memory_request
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)

# Pending pods have not been scheduled yet and carry no usage.
POD_FIELD_SELECTOR = "status.phase!=Pending"


class PodSpecCollector(BaseCollector):
    """
    Connects to the K8s API to build a BasicPodSpec for every pod.
    """

    def __init__(self):
        self._api = None

    async def _ensure_client(self):
        """Lazily initialize the Kubernetes Client."""
        if self._api:
            return self._api

        self._api = await get_core_v1_api()
        if self._api:
            logger.debug("PodSpecCollector initialized with centralized config.")
        else:
            logger.warning("PodSpecCollector could not initialize Kubernetes client.")

        return self._api

    async def collect(self) -> List[BasicPodSpec]:
        """
        Fetches all pods and extracts their labels, phase and container requests.
        """
        api = await self._ensure_client()
        if not api:
            raise CollectionError("Kubernetes client not configured; cannot list pods.")

        try:
            pod_list = await api.list_pod_for_all_namespaces(field_selector=POD_FIELD_SELECTOR, watch=False)
        except ApiException as e:
            raise CollectionError(f"Kubernetes API error while listing pods: {e.reason}") from e
        except Exception as e:
            raise CollectionError(f"Unexpected error while listing pods: {e}") from e

        pod_specs: List[BasicPodSpec] = []
        for pod in pod_list.items:
            pod_id = PodID(namespace=pod.metadata.namespace, pod_name=pod.metadata.name)
            phase = (pod.status.phase if pod.status else None) or "Unknown"

            containers = []
            for container in (pod.spec.containers if pod.spec else None) or []:
                containers.append(
                    BasicContainerSpec(
                        container_id=ContainerID(pod_id=pod_id, container_name=container.name),
                        image=container.image or "",
                        request=self._container_request(container),
                    )
                )

            pod_specs.append(
                BasicPodSpec(
                    pod_id=pod_id,
                    labels=dict(pod.metadata.labels or {}),
                    phase=phase,
                    containers=containers,
                )
            )

        logger.debug(f"Collected {len(pod_specs)} pod specs.")
        return pod_specs

    @staticmethod
    def _container_request(container) -> dict:
        requests = (container.resources.requests if container.resources else None) or {}
        request = {}
        if "cpu" in requests:
            request[ResourceKind.CPU] = parse_cpu_request(requests["cpu"])
        if "memory" in requests:
            request[ResourceKind.MEMORY] = parse_memory_request(requests["memory"])
        return request

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._api:
            await self._api.api_client.close()
            logger.debug("PodSpecCollector Kubernetes client closed.")
            self._api = None
