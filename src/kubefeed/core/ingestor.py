# src/kubefeed/core/ingestor.py

import asyncio
import logging
from typing import List

from ..collectors.base_collector import BaseCollector
from ..collectors.oom_observer import OomObserver
from ..core.exceptions import CollectionError, ContainerNotFoundError
from ..core.telemetry import samples_ingested
from ..models.cluster import UsageSample
from ..models.specs import ContainerMetricsSnapshot
from ..storage.cluster_state import ClusterState

logger = logging.getLogger(__name__)


def samples_from_snapshot(snapshot: ContainerMetricsSnapshot) -> List[UsageSample]:
    """One UsageSample per resource in the snapshot, measured at the snapshot time."""
    return [
        UsageSample(
            container_id=snapshot.container_id,
            resource=resource,
            measure_start=snapshot.snapshot_time,
            usage=amount,
        )
        for resource, amount in snapshot.usage.items()
    ]


class SampleIngestor:
    """
    Feeds real-time usage and buffered OOM events into the cluster state.
    """

    def __init__(self, cluster_state: ClusterState, metrics_collector: BaseCollector, oom_observer: OomObserver):
        self.cluster_state = cluster_state
        self.metrics_collector = metrics_collector
        self.oom_observer = oom_observer

    async def ingest_metrics(self) -> bool:
        """
        Records a usage sample per container and resource of the current
        snapshot, then drains pending OOM events without waiting for new ones.

        Returns:
            bool: Whether the metrics snapshot could be fetched.
        """
        fetched = True
        try:
            snapshots = await self.metrics_collector.collect()
        except CollectionError as e:
            logger.error("Cannot get container metrics snapshot. Reason: %s", e)
            snapshots = []
            fetched = False

        recorded = 0
        unknown = 0
        for snapshot in snapshots:
            for sample in samples_from_snapshot(snapshot):
                try:
                    self.cluster_state.add_sample(sample)
                    recorded += 1
                except ContainerNotFoundError:
                    unknown += 1
        if recorded:
            samples_ingested.add(recorded)
        if unknown:
            logger.debug("Skipped %d sample(s) for containers not in the cluster state.", unknown)
        logger.info("Cluster state fed with %d usage sample(s) for %d container(s).", recorded, len(snapshots))

        self.drain_oom_events()
        return fetched

    def drain_oom_events(self) -> int:
        """Records every OOM event already queued and returns how many were recorded."""
        queue = self.oom_observer.queue
        recorded = 0
        while True:
            try:
                oom = queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            logger.debug("OOM detected %s", oom)
            try:
                self.cluster_state.record_oom(oom.container_id, oom.timestamp, oom.memory)
                recorded += 1
            except ContainerNotFoundError as e:
                logger.error("Cannot record OOM event. Reason: %s", e)
        return recorded
