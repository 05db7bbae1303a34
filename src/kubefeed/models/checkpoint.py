# src/kubefeed/models/checkpoint.py
"""
Decoded form of a VerticalPodAutoscalerCheckpoint status. Only the fields
needed to warm-start a container's aggregated state are modelled.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core.exceptions import CheckpointDecodeError

SUPPORTED_CHECKPOINT_VERSION = "v3"


class HistogramCheckpoint(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    reference_timestamp: Optional[datetime] = None
    bucket_weights: Dict[int, int] = Field(default_factory=dict)
    total_weight: float = 0.0


class AggregateContainerState(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: str
    last_update_time: Optional[datetime] = None
    cpu_histogram: HistogramCheckpoint = Field(default_factory=HistogramCheckpoint)
    memory_histogram: HistogramCheckpoint = Field(default_factory=HistogramCheckpoint)
    first_sample_start: Optional[datetime] = None
    last_sample_start: Optional[datetime] = None
    total_samples_count: int = 0

    @classmethod
    def from_checkpoint(cls, status: Dict[str, Any]) -> "AggregateContainerState":
        """
        Decodes a checkpoint status payload.

        Raises:
            CheckpointDecodeError: On unsupported version or invalid payload.
        """
        if not isinstance(status, dict):
            raise CheckpointDecodeError("checkpoint status is missing")
        version = status.get("version")
        if version != SUPPORTED_CHECKPOINT_VERSION:
            raise CheckpointDecodeError(
                f"unsupported checkpoint version '{version}', expected '{SUPPORTED_CHECKPOINT_VERSION}'"
            )
        try:
            return cls.model_validate(status)
        except ValidationError as e:
            raise CheckpointDecodeError(f"invalid checkpoint status: {e}") from e
