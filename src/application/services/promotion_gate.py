"""Concept Promotion Gate Service.

Screens newly extracted concept labels before they become first-class
concepts. Acts as a gatekeeper between best-effort extraction output and
the concept store.

Key Features:
- Strict admission gate (is_admissible): rejects anatomical qualifiers,
  bare modifiers and unqualified single words
- Permissive auto-approval (is_auto_approvable): lets whitelisted findings,
  laboratory vocabulary, head nouns and clinical suffixes bypass quarantine
- Quarantine in temporary memory with reinforcement counters
- Consolidation: promotes quarantined labels seen repeatedly or that now
  pass auto-approval
- Manual review of quarantined labels (validate / reject)

Admission Flow:
- Known concept → admitted as is
- Admissible or auto-approvable → admitted, registered in the vocabulary
- Otherwise → quarantined, then an immediate consolidation pass runs
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from domain.clinical_lexicon import (
    BLOCKED_SINGLE_TOKENS,
    CLINICAL_SUFFIXES,
    CONTEXTUAL_DISCARDS,
    GENERIC_BODY_PARTS,
    LAB_KEYWORDS,
    MEDICAL_HEAD_NOUNS,
    STANDALONE_CLINICAL_ENTITIES,
)
from domain.clinical_models import ElementType, TemporaryConcept, TemporaryConceptStatus
from domain.knowledge_store import KnowledgeStore
from domain.promotion_models import (
    AdmissionDecision,
    AdmissionOutcome,
    PromotionRecord,
    PromotionStats,
)
from config.knowledge_config import LearningConfig
from application.services.concept_store import ConceptStore
from application.services.semantic_normalizer import (
    capitalize_label,
    clean_clinical_term,
    normalize_label,
)
from application.services.vocabulary_registry import VocabularyRegistry

logger = logging.getLogger(__name__)

LENIENT_TYPES = (ElementType.MEASURE, ElementType.PARACLINICAL_SIGN)


class ConceptAdmissionGate:
    """
    Stateless screening rules for proposed concept labels.

    Both checks work on the normalized label and its space-separated tokens.
    """

    def is_blocked(self, normalized: str) -> bool:
        """Explicit block lists, applied before any acceptance rule."""
        return (
            normalized in BLOCKED_SINGLE_TOKENS
            or normalized in CONTEXTUAL_DISCARDS
            or normalized in GENERIC_BODY_PARTS
        )

    def is_admissible(self, label: str, element_type: ElementType) -> bool:
        """
        Strict concept integrity gate.

        Args:
            label: Proposed label
            element_type: Declared type of the element

        Returns:
            True if the label is specific enough to become a concept
        """
        normalized = normalize_label(label)
        if not normalized:
            return False
        parts = normalized.split(" ")

        if normalized in CONTEXTUAL_DISCARDS:
            return False

        # "Liver" is noise as a finding but valid as a measured organ
        if normalized in GENERIC_BODY_PARTS:
            return element_type == ElementType.MEASURE

        if normalized in BLOCKED_SINGLE_TOKENS:
            return False

        if len(parts) == 1:
            if element_type in LENIENT_TYPES:
                return True
            return normalized in STANDALONE_CLINICAL_ENTITIES

        if any(p in MEDICAL_HEAD_NOUNS for p in parts):
            return True
        if normalized in STANDALONE_CLINICAL_ENTITIES:
            return True

        # Three or more words describe a specific finding; two words without
        # a head noun look like "direction + anatomy"
        return len(parts) > 2

    def is_auto_approvable(self, label: str, element_type: ElementType) -> bool:
        """
        Permissive check that bypasses quarantine.

        Returns:
            True if the label is safe to admit without review
        """
        normalized = normalize_label(label)
        if not normalized or self.is_blocked(normalized):
            return False
        parts = normalized.split(" ")

        if normalized in STANDALONE_CLINICAL_ENTITIES:
            return True

        if any(k in normalized for k in LAB_KEYWORDS):
            return True
        if element_type in LENIENT_TYPES and len(parts) > 1:
            return True

        if any(p in MEDICAL_HEAD_NOUNS for p in parts):
            return True

        return normalized.endswith(CLINICAL_SUFFIXES)


class LearningLoop:
    """
    Admission pipeline for new vocabulary.

    Writes concepts, vocabulary elements and temporary concepts into the
    knowledge store it was created with.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        concepts: ConceptStore,
        vocabulary: VocabularyRegistry,
        gate: Optional[ConceptAdmissionGate] = None,
        config: Optional[LearningConfig] = None,
    ):
        """
        Initialize the learning loop.

        Args:
            store: Knowledge store snapshot
            concepts: Concept store receiving promoted labels
            vocabulary: Legacy vocabulary kept in step with admitted labels
            gate: Screening rules
            config: Learning loop configuration
        """
        self.store = store
        self.concepts = concepts
        self.vocabulary = vocabulary
        self.gate = gate or ConceptAdmissionGate()
        self.config = config or LearningConfig()
        self._stats = PromotionStats()

    @property
    def stats(self) -> PromotionStats:
        return self._stats

    def admit(
        self,
        label: str,
        element_type: ElementType,
        source_document: Optional[str] = None,
        options: Optional[Sequence[str]] = None,
        unit: Optional[str] = None,
    ) -> AdmissionDecision:
        """
        Decide whether a proposed label may become a concept.

        Args:
            label: Proposed label
            element_type: Declared type
            source_document: Provenance recorded on quarantine
            options: Qualifiers registered as vocabulary options on admission
            unit: Unit registered on the vocabulary element

        Returns:
            AdmissionDecision; decision.accepted tells the caller whether to
            build a concept tree branch for the element
        """
        cleaned = clean_clinical_term((label or "").strip())
        self._stats.total_gated += 1

        if not normalize_label(cleaned):
            return AdmissionDecision(label=label, outcome=AdmissionOutcome.DISCARDED, reason="empty label")

        known = self.concepts.find_direct(label) or self.concepts.find_direct(cleaned)
        if known:
            self._stats.total_admitted += 1
            return AdmissionDecision(
                label=cleaned,
                outcome=AdmissionOutcome.KNOWN,
                reason="existing concept",
                concept_id=known.concept_id,
            )

        if self.gate.is_admissible(cleaned, element_type):
            outcome, reason = AdmissionOutcome.ADMITTED, "passed integrity gate"
        elif self.gate.is_auto_approvable(cleaned, element_type):
            outcome, reason = AdmissionOutcome.AUTO_APPROVED, "auto-approved"
        else:
            return self._divert(cleaned, element_type, source_document)

        self.vocabulary.register(cleaned, element_type, options=options, unit=unit)
        self._stats.total_admitted += 1
        return AdmissionDecision(label=cleaned, outcome=outcome, reason=reason)

    def _divert(
        self,
        label: str,
        element_type: ElementType,
        source_document: Optional[str],
    ) -> AdmissionDecision:
        temp = self.quarantine(label, element_type, source_document)
        logger.warning(f"Blocked incomplete concept '{label}' (seen {temp.count_seen}x), quarantined as {temp.id}")

        # Immediate consolidation: the sighting may have crossed the count threshold
        promoted = next((p for p in self.promote_pending() if p.temporary_concept_id == temp.id), None)
        if promoted:
            self._stats.total_admitted += 1
            return AdmissionDecision(
                label=label,
                outcome=AdmissionOutcome.PROMOTED,
                reason=f"promoted ({promoted.reason})",
                concept_id=promoted.concept_id,
                temporary_concept_id=temp.id,
            )

        self._stats.total_quarantined += 1
        return AdmissionDecision(
            label=label,
            outcome=AdmissionOutcome.QUARANTINED,
            reason="failed integrity gate and auto-approval",
            temporary_concept_id=temp.id,
        )

    def find_temporary(self, label: str) -> Optional[TemporaryConcept]:
        target = normalize_label(label)
        return next((t for t in self.store.temporary_memory if normalize_label(t.raw_label) == target), None)

    def quarantine(
        self,
        label: str,
        element_type: ElementType,
        source_document: Optional[str] = None,
    ) -> TemporaryConcept:
        """
        Create a temporary concept or reinforce the one with the same normalized label.

        Returns:
            The created or reinforced temporary concept
        """
        existing = self.find_temporary(label)
        now = datetime.now()

        if existing:
            existing.count_seen += 1
            existing.last_seen = now
            if source_document:
                existing.sources.add(source_document)
            return existing

        temp = TemporaryConcept(
            id=f"TEMP_{uuid.uuid4().hex[:10]}",
            raw_label=label,
            detected_type_guess=element_type,
            status=TemporaryConceptStatus.PENDING,
            count_seen=1,
            last_seen=now,
            source_document=source_document or "ingestion_gate",
            sources={source_document} if source_document else set(),
        )
        self.store.temporary_memory.append(temp)
        logger.info(f"Quarantined '{label}' as {temp.id}")
        return temp

    def promote_pending(self) -> List[PromotionRecord]:
        """
        Consolidation pass over pending temporary concepts.

        A candidate is promoted when seen at least promotion_min_count times
        or when it now passes auto-approval.

        Returns:
            Promotions performed in this pass
        """
        promotions = []
        pending = [t for t in self.store.temporary_memory if t.status == TemporaryConceptStatus.PENDING]

        for candidate in pending:
            if candidate.count_seen >= self.config.promotion_min_count:
                promotions.append(self._promote(candidate, "frequency"))
            elif self.gate.is_auto_approvable(candidate.raw_label, candidate.detected_type_guess):
                promotions.append(self._promote(candidate, "auto_approvable"))

        if promotions:
            logger.info(f"Consolidation promoted {len(promotions)} temporary concept(s)")
        return promotions

    def _promote(self, temp: TemporaryConcept, reason: str) -> PromotionRecord:
        label = capitalize_label(temp.raw_label)
        concept_id = self.concepts.upsert_concept(label, temp.detected_type_guess)
        self.vocabulary.register(label, temp.detected_type_guess, subsection="Auto-Learned")
        self.store.temporary_memory.remove(temp)

        record = PromotionRecord(
            temporary_concept_id=temp.id,
            label=label,
            concept_id=concept_id,
            reason=reason,
        )
        self._stats.total_promoted += 1
        self._stats.promotions.append(record)
        logger.info(f"Promoted '{label}' to concept {concept_id} ({reason})")
        return record

    def list_pending(self) -> List[TemporaryConcept]:
        return [t for t in self.store.temporary_memory if t.status == TemporaryConceptStatus.PENDING]

    def resolve_temporary_concept(self, temp_id: str, status: TemporaryConceptStatus) -> bool:
        """
        Manually resolve a quarantined concept.

        Args:
            temp_id: Temporary concept id
            status: VALIDATED promotes it to a concept, REJECTED drops it

        Returns:
            True if the temporary concept existed and was resolved
        """
        temp = next((t for t in self.store.temporary_memory if t.id == temp_id), None)
        if temp is None or status == TemporaryConceptStatus.PENDING:
            return False

        if status == TemporaryConceptStatus.VALIDATED:
            self._promote(temp, "manual")
        else:
            self.store.temporary_memory.remove(temp)
            self._stats.total_rejected += 1
            logger.info(f"Rejected temporary concept '{temp.raw_label}' ({temp_id})")
        return True
