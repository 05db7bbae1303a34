# src/kubefeed/collectors/namespace_collector.py

import logging
from typing import List

from kubernetes_asyncio.client.rest import ApiException

from ..core.exceptions import CollectionError
from ..core.k8s_client import get_core_v1_api
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)


class NamespaceCollector(BaseCollector):
    """Lists the names of all namespaces in the cluster."""

    def __init__(self):
        self._api = None

    async def _ensure_client(self):
        if self._api:
            return self._api

        self._api = await get_core_v1_api()
        return self._api

    async def collect(self) -> List[str]:
        api = await self._ensure_client()
        if not api:
            raise CollectionError("Kubernetes client not configured; cannot list namespaces.")

        try:
            namespaces = await api.list_namespace(watch=False)
        except ApiException as e:
            raise CollectionError(f"Kubernetes API error while listing namespaces: {e.reason}") from e
        except Exception as e:
            raise CollectionError(f"Unexpected error while listing namespaces: {e}") from e

        return [ns.metadata.name for ns in namespaces.items]

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._api:
            await self._api.api_client.close()
            logger.debug("NamespaceCollector Kubernetes client closed.")
            self._api = None
