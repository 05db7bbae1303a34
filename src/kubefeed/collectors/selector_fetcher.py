# src/kubefeed/collectors/selector_fetcher.py
"""
Selector fetchers derive the pod selector governing a target object. The
legacy fetcher reads the deprecated label selector stored on the target; the
target-reference fetcher reads the selector of the controller the target
points at.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from kubernetes_asyncio.client.rest import ApiException
from pydantic import ValidationError

from ..core.exceptions import SelectorFetchError
from ..core.k8s_client import get_apps_v1_api, get_batch_v1_api, get_core_v1_api
from ..models.selector import LabelSelector
from ..models.specs import TargetObject

logger = logging.getLogger(__name__)


class BaseSelectorFetcher(ABC):
    @abstractmethod
    async def fetch(self, target: TargetObject) -> Optional[LabelSelector]:
        """
        Returns the selector for the target, or None when this mechanism is not configured.

        Raises:
            SelectorFetchError: If the selector cannot be derived.
        """
        pass

    async def close(self):
        pass


class LegacySelectorFetcher(BaseSelectorFetcher):
    """Reads the deprecated label selector (spec.selector) of a target."""

    async def fetch(self, target: TargetObject) -> Optional[LabelSelector]:
        if target.label_selector is None:
            return None
        try:
            return LabelSelector.from_k8s(target.label_selector)
        except (ValidationError, TypeError) as e:
            raise SelectorFetchError(
                f"invalid label selector on {target.namespace}/{target.name}: {e}"
            ) from e


class TargetRefSelectorFetcher(BaseSelectorFetcher):
    """
    Resolves spec.targetRef to the referenced controller and returns its pod selector.
    """

    _APPS_READERS = {
        "Deployment": "read_namespaced_deployment",
        "StatefulSet": "read_namespaced_stateful_set",
        "DaemonSet": "read_namespaced_daemon_set",
        "ReplicaSet": "read_namespaced_replica_set",
    }

    def __init__(self):
        self._apps_api = None
        self._batch_api = None
        self._core_api = None

    async def _ensure_clients(self):
        """Lazily initialize the Kubernetes Clients."""
        if self._apps_api is None:
            self._apps_api = await get_apps_v1_api()
        if self._batch_api is None:
            self._batch_api = await get_batch_v1_api()
        if self._core_api is None:
            self._core_api = await get_core_v1_api()
        if not (self._apps_api and self._batch_api and self._core_api):
            raise SelectorFetchError("Kubernetes client not configured; cannot read targetRef.")

    async def fetch(self, target: TargetObject) -> Optional[LabelSelector]:
        ref = target.target_ref
        if ref is None:
            raise SelectorFetchError("targetRef not defined")

        await self._ensure_clients()
        try:
            if ref.kind in self._APPS_READERS:
                reader = getattr(self._apps_api, self._APPS_READERS[ref.kind])
                controller = await reader(name=ref.name, namespace=target.namespace)
                return self._from_selector(controller.spec.selector, ref)
            if ref.kind == "Job":
                job = await self._batch_api.read_namespaced_job(name=ref.name, namespace=target.namespace)
                return self._from_selector(job.spec.selector, ref)
            if ref.kind == "CronJob":
                cron_job = await self._batch_api.read_namespaced_cron_job(name=ref.name, namespace=target.namespace)
                template = cron_job.spec.job_template.spec.template
                labels = (template.metadata.labels if template.metadata else None) or {}
                return LabelSelector(match_labels=dict(labels))
            if ref.kind == "ReplicationController":
                rc = await self._core_api.read_namespaced_replication_controller(
                    name=ref.name, namespace=target.namespace
                )
                return LabelSelector(match_labels=dict(rc.spec.selector or {}))
        except ApiException as e:
            raise SelectorFetchError(f"cannot read {ref.kind} {target.namespace}/{ref.name}: {e.reason}") from e

        raise SelectorFetchError(f"unhandled targetRef {ref.api_version}/{ref.kind}/{ref.name}")

    @staticmethod
    def _from_selector(selector, ref) -> LabelSelector:
        if selector is None:
            raise SelectorFetchError(f"{ref.kind} {ref.name} has no pod selector")
        try:
            return LabelSelector.from_k8s(selector)
        except ValidationError as e:
            raise SelectorFetchError(f"{ref.kind} {ref.name} has an invalid pod selector: {e}") from e

    async def close(self):
        """Close the Kubernetes API clients if they exist."""
        for api in (self._apps_api, self._batch_api, self._core_api):
            if api:
                await api.api_client.close()
        self._apps_api = self._batch_api = self._core_api = None
        logger.debug("TargetRefSelectorFetcher Kubernetes clients closed.")
