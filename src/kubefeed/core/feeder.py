# src/kubefeed/core/feeder.py
"""
The ClusterStateFeeder is the single entry point through which the control
loop refreshes the cluster state. It owns no logic of its own beyond history
initialization and delegates every reconciliation pass to a dedicated
synchronizer. Entry points hold a shared lock, so the periodic jobs never
interleave their reads and writes of the cluster state.
"""

import asyncio
import functools
import logging

from ..collectors.base_collector import HistoryProvider
from ..core.exceptions import CollectionError, KubeFeedError
from ..core.telemetry import tracer
from ..storage.cluster_state import ClusterState
from .checkpoints import CheckpointCoordinator
from .ingestor import SampleIngestor
from .targets import TargetSynchronizer
from .workloads import WorkloadSynchronizer

logger = logging.getLogger(__name__)


def _serialized(method):
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        async with self._lock:
            return await method(self, *args, **kwargs)

    return wrapper


class ClusterStateFeeder:
    def __init__(
        self,
        cluster_state: ClusterState,
        workload_synchronizer: WorkloadSynchronizer,
        target_synchronizer: TargetSynchronizer,
        checkpoint_coordinator: CheckpointCoordinator,
        sample_ingestor: SampleIngestor,
        closeables=None,
    ):
        self.cluster_state = cluster_state
        self.workload_synchronizer = workload_synchronizer
        self.target_synchronizer = target_synchronizer
        self.checkpoint_coordinator = checkpoint_coordinator
        self.sample_ingestor = sample_ingestor
        self._closeables = list(closeables or [])
        self._lock = asyncio.Lock()

    @_serialized
    async def init_from_history_provider(self, provider: HistoryProvider) -> bool:
        """
        Seeds the cluster state with archived pods, containers and usage samples.

        Returns:
            bool: False if the history could not be fetched.
        """
        logger.info("Initializing cluster state from history provider")
        try:
            history = await provider.get_cluster_history()
        except CollectionError as e:
            logger.error("Cannot get cluster history. Reason: %s", e)
            return False

        sample_count = 0
        for pod_id, pod_history in history.items():
            logger.debug("Adding pod %s with labels %s", pod_id, pod_history.last_labels)
            self.cluster_state.add_or_update_pod(pod_id, pod_history.last_labels, "Unknown")
            for container_name, samples in pod_history.samples.items():
                for sample in samples:
                    try:
                        if self.cluster_state.get_container(sample.container_id) is None:
                            self.cluster_state.add_or_update_container(sample.container_id, {})
                        self.cluster_state.add_sample(sample)
                        sample_count += 1
                    except KubeFeedError as e:
                        logger.warning("Error adding metric sample for container %s: %s", container_name, e)

        logger.info("Loaded %d historical sample(s) for %d pod(s).", sample_count, len(history))
        return True

    @_serialized
    async def init_from_checkpoints(self) -> int:
        return await self.checkpoint_coordinator.load_checkpoints()

    @_serialized
    async def load_targets(self) -> bool:
        return await self.target_synchronizer.sync_targets()

    @_serialized
    async def load_pods(self) -> bool:
        return await self.workload_synchronizer.sync_workloads()

    @_serialized
    async def load_real_time_metrics(self) -> bool:
        return await self.sample_ingestor.ingest_metrics()

    @_serialized
    async def garbage_collect_checkpoints(self) -> int:
        return await self.checkpoint_coordinator.garbage_collect_checkpoints()

    @_serialized
    async def run_update_cycle(self) -> None:
        """One scheduled refresh: targets first, then pods, then usage."""
        with tracer.start_as_current_span("update_cycle"):
            await self.target_synchronizer.sync_targets()
            await self.workload_synchronizer.sync_workloads()
            await self.sample_ingestor.ingest_metrics()

    async def close(self):
        """Closes the API clients held by the collaborators."""
        for closeable in self._closeables:
            try:
                await closeable.close()
            except Exception as e:
                logger.warning("Error closing %s: %s", type(closeable).__name__, e)
