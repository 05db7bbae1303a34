# src/kubefeed/core/checkpoints.py
"""
Loads persisted checkpoints into the targets of the cluster state and removes
checkpoints whose target no longer exists.
"""

import logging

from ..collectors.base_collector import BaseCollector
from ..core.exceptions import CheckpointDecodeError, CollectionError, TargetNotFoundError
from ..core.telemetry import checkpoints_deleted
from ..models.checkpoint import AggregateContainerState
from ..models.cluster import TargetID
from ..models.specs import Checkpoint
from ..storage.base_repository import CheckpointRepository
from ..storage.cluster_state import ClusterState
from .targets import TargetSynchronizer

logger = logging.getLogger(__name__)


class CheckpointCoordinator:
    def __init__(
        self,
        cluster_state: ClusterState,
        target_synchronizer: TargetSynchronizer,
        checkpoint_repository: CheckpointRepository,
        namespace_collector: BaseCollector,
    ):
        self.cluster_state = cluster_state
        self.target_synchronizer = target_synchronizer
        self.checkpoint_repository = checkpoint_repository
        self.namespace_collector = namespace_collector

    def apply_checkpoint(self, checkpoint: Checkpoint) -> None:
        """
        Decodes a checkpoint into its target's initial aggregate state,
        replacing any previous entry for the same container.

        Raises:
            TargetNotFoundError: If the checkpoint's target is not in the cluster state.
            CheckpointDecodeError: If the checkpoint names no container or its status cannot be decoded.
        """
        target_id = TargetID(namespace=checkpoint.namespace, target_name=checkpoint.target_name)
        record = self.cluster_state.targets.get(target_id)
        if record is None:
            raise TargetNotFoundError(f"cannot load checkpoint to missing target {target_id}")
        if not checkpoint.container_name:
            raise CheckpointDecodeError(f"checkpoint {checkpoint.namespace}/{checkpoint.name} names no container")

        state = AggregateContainerState.from_checkpoint(checkpoint.status)
        record.containers_initial_aggregate_state[checkpoint.container_name] = state

    async def load_checkpoints(self) -> int:
        """
        Refreshes the targets, then loads the checkpoints of every namespace
        holding at least one target.

        Returns:
            int: The number of checkpoints applied.
        """
        logger.info("Initializing targets from checkpoints")
        await self.target_synchronizer.sync_targets()

        namespaces = sorted({target_id.namespace for target_id in self.cluster_state.targets})
        applied = 0
        for namespace in namespaces:
            logger.debug("Fetching checkpoints from namespace %s", namespace)
            try:
                checkpoints = await self.checkpoint_repository.list_checkpoints(namespace)
            except CollectionError as e:
                logger.error("Cannot list checkpoints from namespace %s. Reason: %s", namespace, e)
                continue

            for checkpoint in checkpoints:
                logger.debug(
                    "Loading checkpoint %s/%s for container %s",
                    checkpoint.namespace,
                    checkpoint.target_name,
                    checkpoint.container_name,
                )
                try:
                    self.apply_checkpoint(checkpoint)
                    applied += 1
                except (TargetNotFoundError, CheckpointDecodeError) as e:
                    logger.error("Error while loading checkpoint %s/%s. Reason: %s", namespace, checkpoint.name, e)

        logger.info("Loaded %d checkpoint(s) from %d namespace(s).", applied, len(namespaces))
        return applied

    async def garbage_collect_checkpoints(self) -> int:
        """
        Refreshes the targets, then deletes every checkpoint in every namespace
        whose target is not in the cluster state. The sweep is skipped when the
        target listing fails, so a transient error cannot orphan live checkpoints.

        Returns:
            int: The number of checkpoints deleted.
        """
        logger.info("Starting garbage collection of checkpoints")
        if not await self.target_synchronizer.sync_targets():
            logger.warning("Skipping checkpoint garbage collection: targets could not be refreshed.")
            return 0

        try:
            namespaces = await self.namespace_collector.collect()
        except CollectionError as e:
            logger.error("Cannot list namespaces. Reason: %s", e)
            return 0

        deleted = 0
        for namespace in namespaces:
            try:
                checkpoints = await self.checkpoint_repository.list_checkpoints(namespace)
            except CollectionError as e:
                logger.error("Cannot list checkpoints from namespace %s. Reason: %s", namespace, e)
                continue

            for checkpoint in checkpoints:
                target_id = TargetID(namespace=checkpoint.namespace, target_name=checkpoint.target_name)
                if target_id in self.cluster_state.targets:
                    continue
                try:
                    await self.checkpoint_repository.delete_checkpoint(namespace, checkpoint.name)
                except CollectionError as e:
                    logger.error("Cannot delete checkpoint %s/%s. Reason: %s", namespace, checkpoint.name, e)
                    continue
                deleted += 1
                checkpoints_deleted.add(1)
                logger.info("Orphaned checkpoint cleanup - deleted %s/%s.", namespace, checkpoint.name)

        logger.info("Checkpoint garbage collection finished; deleted %d checkpoint(s).", deleted)
        return deleted
