"""Inference Models.

Runtime (non-persisted) models of the inference engine:
- ObservedValue: closed variant {absent, boolean, number, text} produced once
  per observation value and consumed by every type-aware comparison
- InferenceResult: one ranked node with its score and explanation
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union

from domain.clinical_models import KnowledgeNode, Modality, Syndrome


class ValueKind(str, Enum):
    """Kind of a normalized observation value."""
    ABSENT = "absent"
    BOOLEAN = "boolean"
    NUMBER = "number"
    TEXT = "text"


class ConceptValueType(str, Enum):
    """Declared value type of a concept, used by the presence rule."""
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    TEXT = "text"


@dataclass(frozen=True)
class ObservedValue:
    """Normalized observation value."""
    kind: ValueKind
    value: Union[bool, float, str, None] = None

    @classmethod
    def absent(cls) -> "ObservedValue":
        return cls(ValueKind.ABSENT)

    @classmethod
    def boolean(cls, value: bool) -> "ObservedValue":
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def number(cls, value: float) -> "ObservedValue":
        return cls(ValueKind.NUMBER, value)

    @classmethod
    def text(cls, value: str) -> "ObservedValue":
        return cls(ValueKind.TEXT, value)

    @property
    def is_absent(self) -> bool:
        return self.kind == ValueKind.ABSENT


@dataclass
class InferenceResult:
    """A node ranked against an observation, with the reasons for its score."""
    node: KnowledgeNode
    score: float
    active_modalities: List[Modality] = field(default_factory=list)
    active_syndromes: List[Syndrome] = field(default_factory=list)
    reasoning_path: List[str] = field(default_factory=list)
    matched_concepts: List[str] = field(default_factory=list)
    unmatched_concepts: List[str] = field(default_factory=list)
    observation_keys: List[str] = field(default_factory=list)

    @property
    def node_id(self) -> str:
        return self.node.node_id

    def to_dict(self) -> dict:
        """Summary for display and JSON output."""
        return {
            "node_id": self.node.node_id,
            "label": self.node.display_label,
            "node_kind": self.node.node_kind.value,
            "score": self.score,
            "active_modalities": [m.label for m in self.active_modalities],
            "active_syndromes": [s.label for s in self.active_syndromes],
            "reasoning_path": list(self.reasoning_path),
            "matched_concepts": list(self.matched_concepts),
            "unmatched_concepts": list(self.unmatched_concepts),
        }

