# src/kubefeed/collectors/target_collector.py
"""
Lists VerticalPodAutoscaler objects from the cluster and parses them into
TargetObject models.
"""

import logging
from typing import List, Optional

from kubernetes_asyncio.client.rest import ApiException
from pydantic import ValidationError

from ..core.config import config
from ..core.exceptions import CollectionError
from ..core.k8s_client import get_custom_objects_api
from ..models.specs import TargetObject, TargetReference
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)

VPA_PLURAL = "verticalpodautoscalers"


class TargetCollector(BaseCollector):
    """Lists autoscaling target objects in all namespaces."""

    def __init__(self, group: str = None, version: str = None):
        self.group = group or config.VPA_GROUP
        self.version = version or config.VPA_VERSION
        self._api = None

    async def _ensure_client(self):
        """Lazily initialize the Kubernetes Client."""
        if self._api:
            return self._api

        self._api = await get_custom_objects_api()
        if not self._api:
            logger.warning("TargetCollector could not initialize Kubernetes client.")
        return self._api

    async def collect(self) -> List[TargetObject]:
        api = await self._ensure_client()
        if not api:
            raise CollectionError("Kubernetes client not configured; cannot list targets.")

        try:
            response = await api.list_cluster_custom_object(group=self.group, version=self.version, plural=VPA_PLURAL)
        except ApiException as e:
            raise CollectionError(f"Kubernetes API error while listing targets: {e.reason}") from e
        except Exception as e:
            raise CollectionError(f"Unexpected error while listing targets: {e}") from e

        targets: List[TargetObject] = []
        for item in response.get("items", []):
            target = self._parse_target(item)
            if target is not None:
                targets.append(target)
        logger.debug("Collected %d target objects.", len(targets))
        return targets

    @staticmethod
    def _parse_target(item: dict) -> Optional[TargetObject]:
        metadata = item.get("metadata") or {}
        spec = item.get("spec") or {}
        try:
            target_ref = None
            raw_ref = spec.get("targetRef")
            if raw_ref:
                target_ref = TargetReference(
                    api_version=raw_ref.get("apiVersion", ""),
                    kind=raw_ref.get("kind"),
                    name=raw_ref.get("name"),
                )
            return TargetObject(
                namespace=metadata.get("namespace"),
                name=metadata.get("name"),
                uid=metadata.get("uid"),
                target_ref=target_ref,
                label_selector=spec.get("selector"),
                update_mode=(spec.get("updatePolicy") or {}).get("updateMode"),
            )
        except ValidationError as e:
            logger.warning(
                "Skipping malformed target %s/%s: %s",
                metadata.get("namespace"),
                metadata.get("name"),
                e,
            )
            return None

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._api:
            await self._api.api_client.close()
            logger.debug("TargetCollector Kubernetes client closed.")
            self._api = None
