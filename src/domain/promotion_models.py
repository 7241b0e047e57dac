"""Promotion Models for the Concept Learning Loop.

Defines the runtime models of the concept admission pipeline:
- AdmissionOutcome: what the gate decided for a proposed label
- AdmissionDecision: the decision with its reason and resulting ids
- PromotionRecord / PromotionStats: consolidation results

Used by:
- ConceptAdmissionGate: screens proposed labels
- LearningLoop: quarantines, reinforces and promotes temporary concepts
- KnowledgeGraphService: skips elements that were not admitted
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class AdmissionOutcome(str, Enum):
    """Outcome of gating a proposed concept label.

    - ADMITTED: passed the strict gate
    - AUTO_APPROVED: failed the strict gate but passed auto-approval
    - KNOWN: already a first-class concept
    - PROMOTED: quarantined then promoted by the immediate consolidation
    - QUARANTINED: diverted into temporary memory, element skipped
    - DISCARDED: empty after cleaning, nothing recorded
    """
    ADMITTED = "admitted"
    AUTO_APPROVED = "auto_approved"
    KNOWN = "known"
    PROMOTED = "promoted"
    QUARANTINED = "quarantined"
    DISCARDED = "discarded"


ACCEPTED_OUTCOMES = frozenset({
    AdmissionOutcome.ADMITTED,
    AdmissionOutcome.AUTO_APPROVED,
    AdmissionOutcome.KNOWN,
    AdmissionOutcome.PROMOTED,
})


@dataclass
class AdmissionDecision:
    """Decision of the learning loop for one proposed label."""
    label: str
    outcome: AdmissionOutcome
    reason: str = ""
    concept_id: Optional[str] = None
    temporary_concept_id: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.outcome in ACCEPTED_OUTCOMES


@dataclass
class PromotionRecord:
    """A temporary concept promoted to a first-class concept."""
    temporary_concept_id: str
    label: str
    concept_id: str
    reason: str  # "frequency", "auto_approvable" or "manual"
    promoted_at: datetime = field(default_factory=datetime.now)


@dataclass
class PromotionStats:
    """Running counters of the learning loop."""
    total_gated: int = 0
    total_admitted: int = 0
    total_quarantined: int = 0
    total_promoted: int = 0
    total_rejected: int = 0
    promotions: List[PromotionRecord] = field(default_factory=list)

    @property
    def admission_rate(self) -> float:
        """Share of gated labels that were accepted."""
        if self.total_gated == 0:
            return 0.0
        return self.total_admitted / self.total_gated
