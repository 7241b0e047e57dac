"""Unit tests for the concept store."""

import logging

import pytest

from domain.clinical_models import ElementType, ObservationSection, WidgetType
from domain.inference_models import ConceptValueType


class TestUpsertConcept:
    """Test concept creation and merging."""

    def test_create_boolean_concept(self, services):
        """Test a concept without unit defaults to a boolean widget."""
        concept_id = services.concepts.upsert_concept("Crackles", ElementType.CLINICAL_SIGN)
        concept = services.concepts.get(concept_id)

        assert concept_id.startswith("CPT_")
        assert concept.ui_hint.widget == WidgetType.BOOLEAN
        assert concept.ui_hint.section_default == ObservationSection.PHYSICAL_EXAM

    def test_create_numeric_concept(self, services):
        """Test a concept with a unit defaults to a numeric widget."""
        concept_id = services.concepts.upsert_concept("Hemoglobin", ElementType.PARACLINICAL_SIGN, unit="g/dL")
        concept = services.concepts.get(concept_id)

        assert concept.unit == "g/dL"
        assert concept.ui_hint.widget == WidgetType.NUMERIC

    def test_upsert_merges_instead_of_duplicating(self, services):
        """Test re-upserting merges synonyms and keeps the id."""
        first = services.concepts.upsert_concept("Jaundice", ElementType.CLINICAL_SIGN, synonyms=["Yellowing"])
        second = services.concepts.upsert_concept("JAUNDICE", ElementType.SYMPTOM, synonyms=["yellowing", "Icterus"])

        assert first == second
        concept = services.concepts.get(first)
        assert concept.synonyms == ["Yellowing", "Icterus"]
        assert concept.type == ElementType.CLINICAL_SIGN
        assert len(services.store.concepts) == 1

    def test_unit_backfilled_only_when_absent(self, services):
        concept_id = services.concepts.upsert_concept("Temperature", ElementType.MEASURE)
        services.concepts.upsert_concept("Temperature", ElementType.MEASURE, unit="°C")
        services.concepts.upsert_concept("Temperature", ElementType.MEASURE, unit="°F")

        assert services.concepts.get(concept_id).unit == "°C"

    def test_empty_label_raises(self, services):
        with pytest.raises(ValueError):
            services.concepts.upsert_concept("   ", ElementType.SYMPTOM)


class TestResolveToConceptId:
    """Test label resolution."""

    def test_direct_and_synonym_match(self, services):
        concept_id = services.concepts.upsert_concept("Dyspnea", ElementType.SYMPTOM, synonyms=["Breathlessness"])

        assert services.concepts.resolve_to_concept_id("dyspnéa") == concept_id
        assert services.concepts.resolve_to_concept_id("BREATHLESSNESS") == concept_id

    def test_resolution_through_semantic_links(self, services):
        """Test "Rales" finds the Crackles concept through the seed link."""
        concept_id = services.concepts.upsert_concept("Crackles", ElementType.CLINICAL_SIGN)

        assert services.concepts.resolve_to_concept_id("Rales") == concept_id

    def test_upsert_of_linked_label_reuses_concept(self, services):
        concept_id = services.concepts.upsert_concept("Crackles", ElementType.CLINICAL_SIGN)

        assert services.concepts.upsert_concept("Rales", ElementType.CLINICAL_SIGN) == concept_id

    def test_normalization_trace_is_logged(self, services, caplog):
        concept_id = services.concepts.upsert_concept("Jaundice", ElementType.CLINICAL_SIGN)

        with caplog.at_level(logging.DEBUG, logger="application.services.concept_store"):
            assert services.concepts.resolve_to_concept_id("JAUNDICÉ") == concept_id

        assert "Accents removed: jaundice" in caplog.text
        assert "Final: jaundice" in caplog.text

    def test_unknown_label(self, services):
        assert services.concepts.resolve_to_concept_id("Ascites") is None
        assert services.concepts.resolve_to_concept_id("") is None


class TestValueType:
    """Test declared value types."""

    def test_value_types(self, services):
        boolean_id = services.concepts.upsert_concept("Crackles", ElementType.CLINICAL_SIGN)
        numeric_id = services.concepts.upsert_concept("Heart rate", ElementType.CLINICAL_SIGN, unit="bpm")
        measure_id = services.concepts.upsert_concept("Hb", ElementType.MEASURE)

        assert services.concepts.value_type(boolean_id) == ConceptValueType.BOOLEAN
        assert services.concepts.value_type(numeric_id) == ConceptValueType.NUMERIC
        assert services.concepts.value_type(measure_id) == ConceptValueType.NUMERIC
        assert services.concepts.value_type("missing") is None

    def test_options_widget_is_text(self, services):
        concept_id = services.concepts.upsert_concept("Cough type", ElementType.SYMPTOM)
        services.concepts.get(concept_id).ui_hint.widget = WidgetType.OPTIONS

        assert services.concepts.value_type(concept_id) == ConceptValueType.TEXT


class TestDeleteConcept:
    """Test concept deletion."""

    def test_delete(self, services):
        concept_id = services.concepts.upsert_concept("Crackles", ElementType.CLINICAL_SIGN)

        assert services.concepts.delete_concept(concept_id) is True
        assert services.concepts.get(concept_id) is None
        assert services.concepts.delete_concept(concept_id) is False
