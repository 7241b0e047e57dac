"""Unit tests for the concept admission gate and learning loop."""

import pytest

from application.services.promotion_gate import ConceptAdmissionGate
from domain.clinical_models import ElementType, TemporaryConceptStatus
from domain.promotion_models import AdmissionOutcome


@pytest.fixture
def gate():
    return ConceptAdmissionGate()


@pytest.fixture
def loop(services):
    return services.learning


ALL_TYPES = list(ElementType)


class TestIsAdmissible:
    """Test the strict integrity gate."""

    @pytest.mark.parametrize("label", ["Left", "SEVERE", "palmar", "Systolic", "bilateral"])
    @pytest.mark.parametrize("element_type", ALL_TYPES)
    def test_blocked_modifiers_rejected_for_every_type(self, gate, label, element_type):
        """Test bare laterality/severity modifiers are never admitted."""
        assert gate.is_admissible(label, element_type) is False
        assert gate.is_auto_approvable(label, element_type) is False

    @pytest.mark.parametrize("label", ["Fever", "Jaundice", "Hematemesis", "weight loss"])
    @pytest.mark.parametrize("element_type", ALL_TYPES)
    def test_standalone_entities_admitted_for_every_type(self, gate, label, element_type):
        assert gate.is_admissible(label, element_type) is True

    def test_body_part_only_as_measure(self, gate):
        """Test a bare organ is only valid as a measured element."""
        assert gate.is_admissible("Liver", ElementType.MEASURE) is True
        assert gate.is_admissible("Liver", ElementType.CLINICAL_SIGN) is False

    def test_single_token_lenient_types(self, gate):
        assert gate.is_admissible("Ferritin", ElementType.PARACLINICAL_SIGN) is True
        assert gate.is_admissible("Ferritin", ElementType.MEASURE) is True
        assert gate.is_admissible("Ferritin", ElementType.SYMPTOM) is False

    def test_multi_token_rules(self, gate):
        """Test head nouns and length make a phrase specific enough."""
        assert gate.is_admissible("Palmar erythema", ElementType.CLINICAL_SIGN) is True
        assert gate.is_admissible("Epigastric burning sensation", ElementType.SYMPTOM) is True
        assert gate.is_admissible("Left hypochondrium", ElementType.CLINICAL_SIGN) is False

    def test_empty_label(self, gate):
        assert gate.is_admissible("  ", ElementType.SYMPTOM) is False


class TestIsAutoApprovable:
    """Test the permissive secondary check."""

    def test_lab_vocabulary(self, gate):
        assert gate.is_auto_approvable("Serum ferritin", ElementType.SYMPTOM) is True

    def test_multi_token_measure(self, gate):
        assert gate.is_auto_approvable("Waist circumference", ElementType.MEASURE) is True

    def test_clinical_suffix(self, gate):
        """Test morphological suffixes approve single words the strict gate rejects."""
        assert gate.is_admissible("Hepatitis", ElementType.PATHOLOGY) is False
        assert gate.is_auto_approvable("Hepatitis", ElementType.PATHOLOGY) is True
        assert gate.is_auto_approvable("Proteinuria", ElementType.PARACLINICAL_SIGN) is True

    def test_unknown_word(self, gate):
        assert gate.is_auto_approvable("Wobbly", ElementType.SYMPTOM) is False


class TestAdmit:
    """Test the admission flow."""

    def test_admitted_label_registers_vocabulary(self, loop, services):
        decision = loop.admit("Fever", ElementType.SYMPTOM, options=["High"])

        assert decision.outcome == AdmissionOutcome.ADMITTED
        assert decision.accepted
        element = services.vocabulary.find_by_label("Fever")
        assert element is not None
        assert element.mode.options == ["High"]

    def test_auto_approved(self, loop):
        decision = loop.admit("Hepatitis", ElementType.PATHOLOGY)

        assert decision.outcome == AdmissionOutcome.AUTO_APPROVED
        assert decision.accepted

    def test_known_concept_skips_gate(self, loop, services):
        """Test a label that is already a concept is admitted as is."""
        concept_id = services.concepts.upsert_concept("Palmar", ElementType.CLINICAL_SIGN)

        decision = loop.admit("palmar", ElementType.CLINICAL_SIGN)

        assert decision.outcome == AdmissionOutcome.KNOWN
        assert decision.concept_id == concept_id

    def test_rejected_label_is_quarantined(self, loop, services):
        decision = loop.admit("Palmar", ElementType.CLINICAL_SIGN, source_document="doc_1")

        assert decision.outcome == AdmissionOutcome.QUARANTINED
        assert not decision.accepted
        temp = services.store.temporary_memory[0]
        assert temp.id == decision.temporary_concept_id
        assert temp.raw_label == "Palmar"
        assert temp.count_seen == 1
        assert temp.status == TemporaryConceptStatus.PENDING
        assert temp.source_document == "doc_1"
        assert services.concepts.find_direct("Palmar") is None

    def test_second_sighting_promotes(self, loop, services):
        """Test the immediate consolidation promotes on count_seen >= 2."""
        first = loop.admit("Palmar", ElementType.CLINICAL_SIGN)
        second = loop.admit("PALMAR", ElementType.CLINICAL_SIGN)

        assert first.outcome == AdmissionOutcome.QUARANTINED
        assert second.outcome == AdmissionOutcome.PROMOTED
        assert second.accepted
        assert second.concept_id == services.concepts.resolve_to_concept_id("Palmar")
        assert services.store.temporary_memory == []
        assert loop.stats.total_promoted == 1

    def test_stop_words_cleaned_before_gating(self, loop):
        decision = loop.admit("Pain of the abdomen", ElementType.SYMPTOM)

        assert decision.label == "Pain abdomen"
        assert decision.accepted

    def test_empty_label_discarded(self, loop, services):
        decision = loop.admit("the of", ElementType.SYMPTOM)

        assert decision.outcome == AdmissionOutcome.DISCARDED
        assert services.store.temporary_memory == []


class TestQuarantineAndPromotion:
    """Test temporary memory handling."""

    def test_quarantine_reinforces(self, loop, services):
        loop.quarantine("Spider", ElementType.CLINICAL_SIGN, "doc_1")
        temp = loop.quarantine("spider ", ElementType.CLINICAL_SIGN, "doc_2")

        assert len(services.store.temporary_memory) == 1
        assert temp.count_seen == 2
        assert temp.sources == {"doc_1", "doc_2"}

    def test_promote_pending_by_auto_approval(self, loop, services):
        """Test a quarantined label that now passes auto-approval is promoted."""
        loop.quarantine("Hepatitis", ElementType.PATHOLOGY)

        promotions = loop.promote_pending()

        assert [p.reason for p in promotions] == ["auto_approvable"]
        assert services.concepts.find_direct("Hepatitis") is not None
        assert services.vocabulary.find_by_label("Hepatitis").subsection == "Auto-Learned"

    def test_below_threshold_stays_pending(self, loop):
        loop.quarantine("Spider", ElementType.CLINICAL_SIGN)

        assert loop.promote_pending() == []
        assert [t.raw_label for t in loop.list_pending()] == ["Spider"]


class TestResolveTemporaryConcept:
    """Test manual review."""

    def test_validate_promotes(self, loop, services):
        temp = loop.quarantine("Spider", ElementType.CLINICAL_SIGN)

        assert loop.resolve_temporary_concept(temp.id, TemporaryConceptStatus.VALIDATED) is True
        assert services.concepts.find_direct("Spider") is not None
        assert loop.list_pending() == []

    def test_reject_drops(self, loop, services):
        temp = loop.quarantine("Spider", ElementType.CLINICAL_SIGN)

        assert loop.resolve_temporary_concept(temp.id, TemporaryConceptStatus.REJECTED) is True
        assert services.concepts.find_direct("Spider") is None
        assert services.store.temporary_memory == []
        assert loop.stats.total_rejected == 1

    def test_unknown_id(self, loop):
        assert loop.resolve_temporary_concept("TEMP_missing", TemporaryConceptStatus.VALIDATED) is False
