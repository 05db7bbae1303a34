# src/kubefeed/collectors/oom_observer.py
"""
Turns eviction events and OOM-killed container restarts into OomEvents and
buffers them for the metrics ingestion pass. The buffer is bounded: when it
is full the oldest event is dropped and counted.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List

from ..core.config import config
from ..core.telemetry import oom_events_dropped
from ..models.cluster import ContainerID, OomEvent, PodID
from ..utils.date_utils import ensure_utc
from ..utils.k8s_utils import parse_memory_request, parse_quantity

logger = logging.getLogger(__name__)

EVICTED_REASON = "Evicted"
OOM_KILLED_REASON = "OOMKilled"
OFFENDING_CONTAINERS_KEY = "offending_containers"
OFFENDING_CONTAINERS_USAGE_KEY = "offending_containers_usage"
STARVED_RESOURCE_KEY = "starved_resource"


def parse_eviction_event(event) -> List[OomEvent]:
    """
    Extracts memory-starved containers from a kubelet eviction event.

    The kubelet annotates eviction events with comma separated lists of the
    offending containers, their usage and the starved resource; the three
    lists must have the same length or the event is ignored.
    """
    if getattr(event, "reason", None) != EVICTED_REASON:
        return []
    involved = getattr(event, "involved_object", None)
    if involved is None or involved.kind != "Pod":
        return []

    metadata = getattr(event, "metadata", None)
    annotations = (metadata.annotations if metadata else None) or {}

    def _split(key):
        value = annotations.get(key)
        return value.split(",") if value else []

    containers = _split(OFFENDING_CONTAINERS_KEY)
    usages = _split(OFFENDING_CONTAINERS_USAGE_KEY)
    starved = _split(STARVED_RESOURCE_KEY)
    if len(containers) != len(usages) or len(containers) != len(starved):
        logger.debug("Ignoring eviction event with inconsistent annotations: %s", annotations)
        return []

    created = metadata.creation_timestamp if metadata else None
    timestamp = ensure_utc(created) if created else datetime.now(timezone.utc)
    pod_id = PodID(namespace=involved.namespace, pod_name=involved.name)

    events = []
    for container_name, usage, resource in zip(containers, usages, starved):
        if resource != "memory":
            continue
        try:
            memory = int(parse_quantity(usage))
        except (ValueError, ArithmeticError):
            logger.debug("Ignoring unparsable memory usage '%s' for %s/%s", usage, pod_id, container_name)
            continue
        events.append(
            OomEvent(
                container_id=ContainerID(pod_id=pod_id, container_name=container_name),
                timestamp=timestamp,
                memory=memory,
            )
        )
    return events


def parse_pod_update(old_pod, new_pod) -> List[OomEvent]:
    """
    Finds containers that were restarted after an OOM kill between two
    versions of the same pod.

    A container counts when its restart count grew and its last termination
    reason is OOMKilled. The memory recorded is the container's memory request
    in the old spec, and the timestamp is the time the killed container finished.
    """
    new_status = getattr(new_pod, "status", None)
    old_status = getattr(old_pod, "status", None)
    statuses = (new_status.container_statuses if new_status else None) or []
    previous = {s.name: s for s in (old_status.container_statuses if old_status else None) or []}
    old_spec = getattr(old_pod, "spec", None)
    containers = {c.name: c for c in (old_spec.containers if old_spec else None) or []}
    pod_id = PodID(namespace=new_pod.metadata.namespace, pod_name=new_pod.metadata.name)

    events = []
    for status in statuses:
        terminated = status.last_state.terminated if status.last_state else None
        if not status.restart_count or terminated is None or terminated.reason != OOM_KILLED_REASON:
            continue
        old = previous.get(status.name)
        if old is None or status.restart_count <= (old.restart_count or 0):
            continue
        container = containers.get(status.name)
        if container is None:
            continue

        requests = (container.resources.requests if container.resources else None) or {}
        finished = terminated.finished_at
        events.append(
            OomEvent(
                container_id=ContainerID(pod_id=pod_id, container_name=status.name),
                timestamp=ensure_utc(finished) if finished else datetime.now(timezone.utc),
                memory=parse_memory_request(requests.get("memory")),
            )
        )
    return events


class OomObserver:
    """Buffers OomEvents produced by the eviction and pod watchers."""

    def __init__(self, maxsize: int = None):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or config.OOM_QUEUE_MAXSIZE)
        self.dropped_count = 0

    def on_event(self, event) -> int:
        """Parses an eviction event and enqueues the OOMs found. Returns how many were enqueued."""
        ooms = parse_eviction_event(event)
        for oom in ooms:
            self.put(oom)
        return len(ooms)

    def on_pod_update(self, old_pod, new_pod) -> int:
        """Enqueues the OOM kills revealed by a pod update. Returns how many were enqueued."""
        ooms = parse_pod_update(old_pod, new_pod)
        for oom in ooms:
            self.put(oom)
        return len(ooms)

    def put(self, oom: OomEvent) -> None:
        """Enqueues without blocking, discarding the oldest event when full."""
        if self.queue.full():
            try:
                dropped = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                dropped = None
            if dropped is not None:
                self.dropped_count += 1
                oom_events_dropped.add(1)
                logger.warning("OOM event queue full; dropped oldest event for %s", dropped.container_id)
        self.queue.put_nowait(oom)
        logger.debug("OOM observed for %s (%d bytes)", oom.container_id, oom.memory)
