# src/kubefeed/storage/cluster_state.py
"""
In-memory cluster state consumed by the recommender. It performs no locking:
callers are expected to run reconciliation passes one at a time.
"""

import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from ..core.exceptions import ContainerNotFoundError, PodNotFoundError, TargetRejectedError
from ..models.cluster import (
    ContainerID,
    ContainerRecord,
    OomEvent,
    PodID,
    PodRecord,
    ResourceKind,
    TargetID,
    TargetRecord,
    UsageSample,
)
from ..models.selector import LabelSelector
from ..models.specs import TargetObject

logger = logging.getLogger(__name__)

SUPPORTED_UPDATE_MODES = ("Off", "Initial", "Recreate", "Auto")


class ClusterState:
    """Pods, containers and targets known to the recommender, plus the usage facts fed to it."""

    def __init__(self):
        self.pods: Dict[PodID, PodRecord] = {}
        self.targets: Dict[TargetID, TargetRecord] = {}
        self.observed_targets: List[TargetObject] = []
        self.samples: List[UsageSample] = []
        self.oom_events: List[OomEvent] = []

    # --- Pods and containers ---

    def add_or_update_pod(self, pod_id: PodID, labels: Optional[Mapping[str, str]], phase: str) -> PodRecord:
        """Replaces the pod record. Containers must be re-added by the caller."""
        record = PodRecord(pod_id=pod_id, labels=dict(labels or {}), phase=phase)
        self.pods[pod_id] = record
        return record

    def delete_pod(self, pod_id: PodID) -> None:
        self.pods.pop(pod_id, None)

    def add_or_update_container(
        self, container_id: ContainerID, request: Mapping[ResourceKind, int]
    ) -> ContainerRecord:
        pod = self.pods.get(container_id.pod_id)
        if pod is None:
            raise PodNotFoundError(f"pod {container_id.pod_id} is not in the cluster state")
        record = ContainerRecord(container_id=container_id, request=dict(request or {}))
        pod.containers[container_id.container_name] = record
        return record

    def get_container(self, container_id: ContainerID) -> Optional[ContainerRecord]:
        pod = self.pods.get(container_id.pod_id)
        if pod is None:
            return None
        return pod.containers.get(container_id.container_name)

    def add_sample(self, sample: UsageSample) -> None:
        if self.get_container(sample.container_id) is None:
            raise ContainerNotFoundError(f"container {sample.container_id} is not in the cluster state")
        self.samples.append(sample)

    def record_oom(self, container_id: ContainerID, timestamp: datetime, memory: int) -> OomEvent:
        if self.get_container(container_id) is None:
            raise ContainerNotFoundError(f"container {container_id} is not in the cluster state")
        event = OomEvent(container_id=container_id, timestamp=timestamp, memory=memory)
        self.oom_events.append(event)
        return event

    # --- Targets ---

    def add_or_update_target(self, target: TargetObject, selector: LabelSelector) -> TargetRecord:
        """
        Inserts or updates the target keyed by (namespace, name).
        Existing conditions and initial aggregate state are preserved.

        Raises:
            TargetRejectedError: If the target's update mode is not supported.
        """
        if target.update_mode is not None and target.update_mode not in SUPPORTED_UPDATE_MODES:
            raise TargetRejectedError(
                f"target {target.namespace}/{target.name} has unsupported update mode '{target.update_mode}'"
            )

        target_id = TargetID(namespace=target.namespace, target_name=target.name)
        record = self.targets.get(target_id)
        if record is None:
            record = TargetRecord(target_id=target_id)
            self.targets[target_id] = record
        record.selector = selector
        record.update_mode = target.update_mode
        return record

    def delete_target(self, target_id: TargetID) -> None:
        self.targets.pop(target_id, None)

    def matching_targets(self, pod_id: PodID) -> List[TargetID]:
        """Targets in the pod's namespace whose selector matches the pod's labels."""
        pod = self.pods.get(pod_id)
        if pod is None:
            return []
        return [
            target_id
            for target_id, record in self.targets.items()
            if target_id.namespace == pod_id.namespace and record.selector.matches(pod.labels)
        ]
