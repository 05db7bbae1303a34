# src/kubefeed/storage/checkpoint_repository.py
"""
Checkpoint store backed by VerticalPodAutoscalerCheckpoint custom objects.
"""

import logging
from typing import List

from kubernetes_asyncio.client.rest import ApiException

from ..core.config import config
from ..core.exceptions import CollectionError
from ..core.k8s_client import get_custom_objects_api
from ..models.specs import Checkpoint
from .base_repository import CheckpointRepository

logger = logging.getLogger(__name__)

CHECKPOINT_PLURAL = "verticalpodautoscalercheckpoints"


class KubernetesCheckpointRepository(CheckpointRepository):
    """Lists and deletes checkpoints through the CustomObjectsApi."""

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
            logger.warning("KubernetesCheckpointRepository could not initialize Kubernetes client.")
        return self._api

    async def list_checkpoints(self, namespace: str) -> List[Checkpoint]:
        api = await self._ensure_client()
        if not api:
            raise CollectionError("Kubernetes client not configured; cannot list checkpoints.")

        try:
            response = await api.list_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=namespace,
                plural=CHECKPOINT_PLURAL,
            )
        except ApiException as e:
            raise CollectionError(f"Cannot list checkpoints in namespace {namespace}: {e.reason}") from e
        except Exception as e:
            raise CollectionError(f"Cannot list checkpoints in namespace {namespace}: {e}") from e

        checkpoints: List[Checkpoint] = []
        for item in response.get("items", []):
            checkpoint = self._parse_checkpoint(item, namespace)
            if checkpoint is not None:
                checkpoints.append(checkpoint)
        logger.debug("Listed %d checkpoint(s) in namespace %s.", len(checkpoints), namespace)
        return checkpoints

    async def delete_checkpoint(self, namespace: str, name: str) -> None:
        api = await self._ensure_client()
        if not api:
            raise CollectionError("Kubernetes client not configured; cannot delete checkpoints.")

        try:
            await api.delete_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=namespace,
                plural=CHECKPOINT_PLURAL,
                name=name,
            )
        except ApiException as e:
            raise CollectionError(f"Cannot delete checkpoint {namespace}/{name}: {e.reason}") from e
        except Exception as e:
            raise CollectionError(f"Cannot delete checkpoint {namespace}/{name}: {e}") from e

    @staticmethod
    def _parse_checkpoint(item: dict, namespace: str):
        metadata = item.get("metadata") or {}
        spec = item.get("spec") or {}
        name = metadata.get("name")
        if not name:
            logger.warning("Skipping checkpoint without a name in namespace %s", namespace)
            return None
        # A checkpoint without a target name resolves to no target, so garbage collection removes it.
        target_name = spec.get("vpaObjectName") or ""
        container_name = spec.get("containerName") or ""
        return Checkpoint(
            namespace=metadata.get("namespace") or namespace,
            name=name,
            target_name=target_name,
            container_name=container_name,
            status=item.get("status") or {},
        )

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._api:
            await self._api.api_client.close()
            logger.debug("KubernetesCheckpointRepository Kubernetes client closed.")
            self._api = None
