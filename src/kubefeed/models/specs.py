# src/kubefeed/models/specs.py
"""
Pydantic models for the objects observed from external sources, before they
are merged into the cluster state.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .cluster import ContainerID, PodID, ResourceKind, UsageSample


class BasicContainerSpec(BaseModel):
    container_id: ContainerID
    image: str = ""
    request: Dict[ResourceKind, int] = Field(default_factory=dict)


class BasicPodSpec(BaseModel):
    """The parts of a pod specification the cluster state cares about."""

    pod_id: PodID
    labels: Dict[str, str] = Field(default_factory=dict)
    phase: str = "Unknown"
    containers: List[BasicContainerSpec] = Field(default_factory=list)


class ContainerMetricsSnapshot(BaseModel):
    """Real-time usage of one container as reported by the metrics API."""

    container_id: ContainerID
    snapshot_time: datetime
    snapshot_window: timedelta = timedelta(0)
    usage: Dict[ResourceKind, int] = Field(default_factory=dict)


class TargetReference(BaseModel):
    api_version: str = ""
    kind: str
    name: str


class TargetObject(BaseModel):
    """A VerticalPodAutoscaler object as listed from the cluster."""

    namespace: str
    name: str
    uid: Optional[str] = None
    target_ref: Optional[TargetReference] = None
    label_selector: Optional[Dict[str, Any]] = Field(
        None, description="Deprecated spec.selector of the v1beta1 API, raw camelCase."
    )
    update_mode: Optional[str] = None


class Checkpoint(BaseModel):
    """A VerticalPodAutoscalerCheckpoint object as listed from the cluster."""

    namespace: str
    name: str
    target_name: str
    container_name: str
    status: Dict[str, Any] = Field(default_factory=dict)


class PodHistory(BaseModel):
    """Archived usage of one pod, keyed by container name."""

    last_labels: Dict[str, str] = Field(default_factory=dict)
    last_seen: Optional[datetime] = None
    samples: Dict[str, List[UsageSample]] = Field(default_factory=dict)
