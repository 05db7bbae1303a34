# src/kubefeed/core/workloads.py

import logging
from typing import List

from ..collectors.base_collector import BaseCollector
from ..core.exceptions import CollectionError
from ..models.cluster import PodID
from ..storage.cluster_state import ClusterState

logger = logging.getLogger(__name__)


class WorkloadSynchronizer:
    """Keeps the pods and containers of the cluster state in line with the observed pod specs."""

    def __init__(self, cluster_state: ClusterState, pod_collector: BaseCollector):
        self.cluster_state = cluster_state
        self.pod_collector = pod_collector
        # Observed pods no target selected in the last completed pass.
        self.unmatched_pods: List[PodID] = []

    async def sync_workloads(self) -> bool:
        """
        Deletes pods that are no longer observed, then upserts every observed pod
        and its containers, and finally attributes each observed pod to the
        targets selecting it. A failed fetch leaves the cluster state untouched.

        Returns:
            bool: True if the pass completed, False if the fetch failed.
        """
        try:
            pod_specs = await self.pod_collector.collect()
        except CollectionError as e:
            logger.error("Cannot get pod specs. Reason: %s", e)
            return False

        observed = {spec.pod_id: spec for spec in pod_specs}

        for pod_id in list(self.cluster_state.pods):
            if pod_id not in observed:
                logger.debug("Deleting pod %s", pod_id)
                self.cluster_state.delete_pod(pod_id)

        for spec in observed.values():
            try:
                self.cluster_state.add_or_update_pod(spec.pod_id, spec.labels, spec.phase)
                for container in spec.containers:
                    self.cluster_state.add_or_update_container(container.container_id, container.request)
            except Exception as e:
                logger.warning("Failed to update pod %s: %s", spec.pod_id, e, exc_info=True)

        self.unmatched_pods = []
        for pod_id in observed:
            target_ids = self.cluster_state.matching_targets(pod_id)
            if target_ids:
                logger.debug("Pod %s is selected by %s", pod_id, ", ".join(str(t) for t in target_ids))
            else:
                self.unmatched_pods.append(pod_id)

        logger.info(
            "Synchronized %d pod(s); %d not selected by any target.", len(observed), len(self.unmatched_pods)
        )
        return True
