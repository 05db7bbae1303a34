# src/kubefeed/models/selector.py
"""
Label selector model shared by targets, selector fetchers and the cluster state.
Mirrors the semantics of Kubernetes' metav1.LabelSelector, plus an explicit
"matches nothing" selector used when a target's configuration is unusable.
"""

from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field, model_validator


class LabelSelectorRequirement(BaseModel):
    """A single set-based requirement (key, operator, values)."""

    key: str
    operator: Literal["In", "NotIn", "Exists", "DoesNotExist"]
    values: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_values(self):
        if self.operator in ("In", "NotIn") and not self.values:
            raise ValueError(f"operator '{self.operator}' requires at least one value")
        if self.operator in ("Exists", "DoesNotExist") and self.values:
            raise ValueError(f"operator '{self.operator}' does not accept values")
        return self

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.operator == "In":
            return self.key in labels and labels[self.key] in self.values
        if self.operator == "NotIn":
            return self.key not in labels or labels[self.key] not in self.values
        if self.operator == "Exists":
            return self.key in labels
        return self.key not in labels

    def __str__(self) -> str:
        if self.operator == "Exists":
            return self.key
        if self.operator == "DoesNotExist":
            return f"!{self.key}"
        op = "in" if self.operator == "In" else "notin"
        return f"{self.key} {op} ({','.join(sorted(self.values))})"


class LabelSelector(BaseModel):
    """
    A label query over pods. An empty selector matches every pod, while
    `LabelSelector.nothing()` matches none.
    """

    match_labels: Dict[str, str] = Field(default_factory=dict)
    match_expressions: List[LabelSelectorRequirement] = Field(default_factory=list)
    matches_nothing: bool = False

    @classmethod
    def nothing(cls) -> "LabelSelector":
        return cls(matches_nothing=True)

    @classmethod
    def from_k8s(cls, obj: Any) -> Optional["LabelSelector"]:
        """
        Builds a selector from a kubernetes_asyncio V1LabelSelector or from the
        camelCase dict found in custom objects. Returns None for None.

        Raises:
            pydantic.ValidationError: If the requirements are malformed.
        """
        if obj is None:
            return None
        if isinstance(obj, dict):
            match_labels = obj.get("matchLabels", obj.get("match_labels")) or {}
            expressions = obj.get("matchExpressions", obj.get("match_expressions")) or []
        else:
            match_labels = getattr(obj, "match_labels", None) or {}
            expressions = getattr(obj, "match_expressions", None) or []

        requirements = []
        for expr in expressions:
            if isinstance(expr, dict):
                requirements.append(LabelSelectorRequirement(**expr))
            else:
                requirements.append(
                    LabelSelectorRequirement(key=expr.key, operator=expr.operator, values=expr.values or [])
                )
        return cls(match_labels=dict(match_labels), match_expressions=requirements)

    def matches(self, labels: Optional[Mapping[str, str]]) -> bool:
        if self.matches_nothing:
            return False
        labels = labels or {}
        for key, value in self.match_labels.items():
            if labels.get(key) != value:
                return False
        return all(requirement.matches(labels) for requirement in self.match_expressions)

    def __str__(self) -> str:
        if self.matches_nothing:
            return "<none>"
        parts = [f"{k}={v}" for k, v in sorted(self.match_labels.items())]
        parts.extend(str(r) for r in self.match_expressions)
        return ",".join(parts) if parts else "<everything>"
