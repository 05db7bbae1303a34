# src/kubefeed/core/watcher.py
"""
Background watches feeding the OOM observer: eviction events and pod updates.
A subscription is re-opened from the last seen resource version whenever the
API server closes it, and retried with capped, jittered exponential backoff
whenever it fails.
"""

import asyncio
import logging
import random
from typing import Dict, Optional

from kubernetes_asyncio import watch
from kubernetes_asyncio.client.rest import ApiException

from ..collectors.oom_observer import OomObserver
from ..core.config import config
from ..core.exceptions import CollectionError
from ..core.k8s_client import get_core_v1_api
from ..models.cluster import PodID

logger = logging.getLogger(__name__)

# The API server answers a watch from an expired resource version with 410 Gone.
RESOURCE_VERSION_EXPIRED = 410


class ResourceWatcher:
    """
    Keeps one watch subscription open for the lifetime of the process.

    Subclasses name the list call to watch and decide what to do with each
    event; this class owns resumption, backoff and the background task.
    """

    kind = "resource"

    def __init__(
        self,
        observer: OomObserver,
        timeout_seconds: int = None,
        backoff_base: float = None,
        backoff_max: float = None,
        jitter: float = None,
    ):
        self.observer = observer
        self.timeout_seconds = timeout_seconds or config.WATCH_TIMEOUT_SECONDS
        self.backoff_base = backoff_base or config.WATCH_BACKOFF_BASE_SECONDS
        self.backoff_max = backoff_max or config.WATCH_BACKOFF_MAX_SECONDS
        self.jitter = config.WATCH_BACKOFF_JITTER if jitter is None else jitter
        self.resource_version: Optional[str] = None
        self._api = None
        self._task: Optional[asyncio.Task] = None

    async def _ensure_client(self):
        """Lazily initialize the Kubernetes Client."""
        if self._api:
            return self._api

        self._api = await get_core_v1_api()
        return self._api

    def _list_func(self, api):
        raise NotImplementedError

    def _stream_kwargs(self) -> dict:
        return {"timeout_seconds": self.timeout_seconds}

    def handle_event(self, event_type: str, obj) -> bool:
        """Processes one watch event. Returns True if it was forwarded to the observer."""
        raise NotImplementedError

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based), never above backoff_max."""
        delay = min(self.backoff_max, self.backoff_base * (2**attempt))
        delay = delay * (1.0 + random.random() * self.jitter)
        return min(self.backoff_max, delay)

    async def _subscribe(self, api):
        w = watch.Watch()
        kwargs = self._stream_kwargs()
        if self.resource_version:
            kwargs["resource_version"] = self.resource_version
        try:
            async with w.stream(self._list_func(api), **kwargs) as stream:
                async for event in stream:
                    yield event
        finally:
            self.resource_version = getattr(w, "resource_version", None) or self.resource_version

    async def watch_once(self) -> int:
        """
        Consumes one subscription until the server closes it.

        Returns:
            int: The number of events forwarded to the observer.

        Raises:
            CollectionError: If no Kubernetes client is configured.
        """
        api = await self._ensure_client()
        if not api:
            raise CollectionError(f"Kubernetes client not configured; cannot watch {self.kind} events.")

        forwarded = 0
        try:
            async for event in self._subscribe(api):
                if self.handle_event(event.get("type"), event.get("object")):
                    forwarded += 1
        except ApiException as e:
            if e.status == RESOURCE_VERSION_EXPIRED:
                logger.info("Resource version of the %s watch expired; re-listing.", self.kind)
                self.resource_version = None
            raise
        logger.debug("%s event stream closed after %d forwarded event(s).", self.kind.capitalize(), forwarded)
        return forwarded

    async def run(self):
        """Watches forever; only cancellation stops it."""
        attempt = 0
        while True:
            try:
                await self.watch_once()
                attempt = 0
            except asyncio.CancelledError:
                logger.info("%s watcher cancelled.", self.kind.capitalize())
                raise
            except Exception as e:
                delay = self.backoff_delay(attempt)
                attempt += 1
                logger.error("Cannot watch %s events. Reason: %s. Retrying in %.2fs", self.kind, e, delay)
                await asyncio.sleep(delay)

    def start(self) -> asyncio.Task:
        """Schedules `run` on the running loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
            logger.info("%s watcher started.", self.kind.capitalize())
        return self._task

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self._api:
            await self._api.api_client.close()
            self._api = None


class EvictionWatcher(ResourceWatcher):
    """Forwards ADDED eviction events to an OomObserver."""

    kind = "eviction"

    def __init__(self, observer: OomObserver, field_selector: str = None, **kwargs):
        super().__init__(observer, **kwargs)
        self.field_selector = field_selector or config.EVICTION_FIELD_SELECTOR

    def _list_func(self, api):
        return api.list_event_for_all_namespaces

    def _stream_kwargs(self) -> dict:
        return {"field_selector": self.field_selector, **super()._stream_kwargs()}

    def handle_event(self, event_type: str, obj) -> bool:
        if event_type != "ADDED":
            return False
        self.observer.on_event(obj)
        return True


class PodRestartWatcher(ResourceWatcher):
    """
    Remembers the last seen version of every pod and hands each new version,
    together with the previous one, to the OomObserver so OOM-killed restarts
    are detected. A pod listed again after a re-list counts as an update.
    """

    kind = "pod"

    def __init__(self, observer: OomObserver, **kwargs):
        super().__init__(observer, **kwargs)
        self.pods: Dict[PodID, object] = {}

    def _list_func(self, api):
        return api.list_pod_for_all_namespaces

    def handle_event(self, event_type: str, obj) -> bool:
        metadata = getattr(obj, "metadata", None)
        if metadata is None:
            return False
        pod_id = PodID(namespace=metadata.namespace, pod_name=metadata.name)

        if event_type == "DELETED":
            self.pods.pop(pod_id, None)
            return False
        if event_type not in ("ADDED", "MODIFIED"):
            return False

        previous = self.pods.get(pod_id)
        self.pods[pod_id] = obj
        if previous is None:
            return False
        self.observer.on_pod_update(previous, obj)
        return True
