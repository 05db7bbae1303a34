# src/kubefeed/models/cluster.py
"""
Pydantic models for the canonical in-memory cluster state: entity
identities, the records kept per pod, container and target, and the
append-only usage and OOM facts fed to the recommender.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .checkpoint import AggregateContainerState
from .selector import LabelSelector


class ResourceKind(str, Enum):
    """Resources tracked per container. CPU is in millicores, memory in bytes."""

    CPU = "cpu"
    MEMORY = "memory"


class PodID(BaseModel):
    model_config = ConfigDict(frozen=True)

    namespace: str
    pod_name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.pod_name}"


class ContainerID(BaseModel):
    model_config = ConfigDict(frozen=True)

    pod_id: PodID
    container_name: str

    def __str__(self) -> str:
        return f"{self.pod_id}/{self.container_name}"


class TargetID(BaseModel):
    model_config = ConfigDict(frozen=True)

    namespace: str
    target_name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.target_name}"


class ConditionType(str, Enum):
    """Status conditions surfaced on a target to report configuration problems."""

    CONFIG_UNSUPPORTED = "ConfigUnsupported"
    CONFIG_DEPRECATED = "ConfigDeprecated"


class Condition(BaseModel):
    type: ConditionType
    status: bool = True
    message: str = ""
    last_transition_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ContainerRecord(BaseModel):
    container_id: ContainerID
    request: Dict[ResourceKind, int] = Field(default_factory=dict)


class PodRecord(BaseModel):
    pod_id: PodID
    labels: Dict[str, str] = Field(default_factory=dict)
    phase: str = "Unknown"
    containers: Dict[str, ContainerRecord] = Field(default_factory=dict)


class TargetRecord(BaseModel):
    """
    The model's view of one autoscaling target object.

    `containers_initial_aggregate_state` is keyed by container name and is only
    written by checkpoint loads; upserting the target never clears it.
    """

    target_id: TargetID
    selector: LabelSelector = Field(default_factory=LabelSelector.nothing)
    is_legacy_api: bool = False
    update_mode: Optional[str] = None
    conditions: Dict[ConditionType, Condition] = Field(default_factory=dict)
    containers_initial_aggregate_state: Dict[str, AggregateContainerState] = Field(default_factory=dict)

    def set_condition(self, condition_type: ConditionType, message: str = "") -> None:
        """Adds the condition or replaces its message."""
        existing = self.conditions.get(condition_type)
        if existing is not None and existing.status and existing.message == message:
            return
        self.conditions[condition_type] = Condition(type=condition_type, status=True, message=message)

    def clear_condition(self, condition_type: ConditionType) -> None:
        self.conditions.pop(condition_type, None)


class UsageSample(BaseModel):
    """A single usage measurement. Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    container_id: ContainerID
    resource: ResourceKind
    measure_start: datetime
    usage: int


class OomEvent(BaseModel):
    """A container killed for exceeding its memory bound."""

    model_config = ConfigDict(frozen=True)

    container_id: ContainerID
    timestamp: datetime
    memory: int = Field(
        ..., description="Bytes attributed to the kill: usage for evictions, the memory request for OOM restarts."
    )
