# src/kubefeed/core/targets.py

import logging
from typing import Set

from ..collectors.base_collector import BaseCollector
from ..core.exceptions import CollectionError, TargetRejectedError
from ..models.cluster import TargetID
from ..storage.cluster_state import ClusterState
from .selector import SelectorResolver

logger = logging.getLogger(__name__)


class TargetSynchronizer:
    """Reconciles the targets of the cluster state with the target objects listed from the cluster."""

    def __init__(self, cluster_state: ClusterState, target_collector: BaseCollector, resolver: SelectorResolver):
        self.cluster_state = cluster_state
        self.target_collector = target_collector
        self.resolver = resolver

    async def sync_targets(self) -> bool:
        """
        Upserts every listed target with its resolved selector and conditions,
        deletes targets that were not accepted in this pass and records the
        listing as the observed targets.

        Returns:
            bool: True if the pass completed, False if the listing failed.
        """
        try:
            target_objects = await self.target_collector.collect()
        except CollectionError as e:
            logger.error("Cannot list targets. Reason: %s", e)
            return False
        logger.info("Fetched %d target(s).", len(target_objects))

        live: Set[TargetID] = set()
        for target in target_objects:
            try:
                resolution = await self.resolver.resolve(target)
                record = self.cluster_state.add_or_update_target(target, resolution.selector)
            except TargetRejectedError as e:
                logger.warning("Target %s/%s rejected: %s", target.namespace, target.name, e)
                continue
            except Exception as e:
                logger.error("Failed to process target %s/%s: %s", target.namespace, target.name, e, exc_info=True)
                continue

            live.add(record.target_id)
            record.is_legacy_api = resolution.legacy_present
            for change in resolution.conditions:
                if change.delete:
                    record.clear_condition(change.condition_type)
                else:
                    record.set_condition(change.condition_type, change.message)

        for target_id in list(self.cluster_state.targets):
            if target_id not in live:
                logger.info("Deleting target %s", target_id)
                self.cluster_state.delete_target(target_id)

        self.cluster_state.observed_targets = list(target_objects)
        return True
