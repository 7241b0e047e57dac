"""
End-to-end clinical scenarios.

Each test drives ingestion and inference through the wired services and
persists through the snapshot repository where the scenario spans several
units of work.
"""

from composition_root import bootstrap_services
from domain.clinical_models import ElementType, LogicalOperator, Observation, ObservationValue
from domain.promotion_models import AdmissionOutcome
from infrastructure.snapshot_repository import SnapshotRepository


def observe(values=None, raw_text=""):
    return Observation(
        values=[ObservationValue(element_id=k, value=v) for k, v in (values or {}).items()],
        raw_text=raw_text,
    )


class TestPivotScenario:
    """Presence, modality and pivot bonus on a single node."""

    def test_pneumonia_with_fever_and_crackles(self, services, make_extraction):
        node = services.graph.ingest_node(make_extraction(
            "Bacterial Pneumonia",
            [("Crackles", "clinical_sign")],
            pivot_terms=["fever"],
        ))
        crackles = services.concepts.resolve_to_concept_id("Crackles")

        results = services.inference.query_graph(observe({crackles: True}, "patient has fever and crackles"))

        top = results[0]
        assert top.node_id == node.node_id
        assert top.score >= 16
        assert top.score == 1 + 4 + 15
        assert "Pivot: fever" in top.reasoning_path


class TestThresholdScenario:
    """Numeric qualifier parsed into a threshold modality."""

    def test_hemoglobin_below_nine(self, services, make_extraction):
        node = services.graph.ingest_node(make_extraction(
            "Iron Deficiency Anemia",
            [("Hemoglobin", "measure", ["Hb < 9 g/dL"], "g/dL")],
        ))
        branch = node.clinical.signs[0]
        condition = branch.modalities[0].condition
        assert condition.operator == LogicalOperator.LT
        assert condition.threshold == 9

        low = services.inference.query_graph(observe({branch.concept_id: 8}))[0]
        normal = services.inference.query_graph(observe({branch.concept_id: 10}))[0]

        assert [m.label for m in low.active_modalities] == ["Hb < 9 g/dL"]
        assert low.score == 1 + 8
        assert normal.active_modalities == []
        assert normal.score == 1


class TestAutoLinkScenario:
    """Jaccard overlap between two ingested nodes."""

    def test_half_overlap_creates_related_to_pair(self, services, make_extraction):
        hepatitis = services.graph.ingest_node(make_extraction(
            "Viral Hepatitis", [("Jaundice", "clinical_sign"), ("Fatigue", "symptom"), ("Nausea", "symptom")]
        ))
        assert services.store.edges == []

        cirrhosis = services.graph.ingest_node(make_extraction(
            "Cirrhosis", [("Jaundice", "clinical_sign"), ("Fatigue", "symptom"), ("Ascites", "clinical_sign")]
        ))

        forward = services.edges.find_edge(cirrhosis.node_id, "related_to", hepatitis.node_id)
        reverse = services.edges.find_edge(hepatitis.node_id, "related_to", cirrhosis.node_id)
        assert forward is not None and reverse is not None
        assert forward.strength == 0.5
        assert cirrhosis.has_link(hepatitis.node_id, "related_to")
        assert hepatitis.has_link(cirrhosis.node_id, "related_to")


class TestLearningScenario:
    """A quarantined label promoted by repetition across units of work."""

    def test_palmar_promoted_on_second_sighting(self, tmp_path, config, make_extraction):
        repository = SnapshotRepository(tmp_path / "kg.json")

        services = bootstrap_services(repository.load(), config)
        first = services.graph.ingest_node(make_extraction(
            "Cirrhosis", [("Palmar", "clinical_sign"), ("Ascites", "clinical_sign")]
        ))
        assert len(first.clinical.signs) == 1
        assert services.concepts.find_direct("Palmar") is None
        repository.save(services.store)

        services = bootstrap_services(repository.load(), config)
        decision = services.learning.admit("Palmar", ElementType.CLINICAL_SIGN)
        assert decision.outcome == AdmissionOutcome.PROMOTED

        palmar = services.concepts.find_direct("Palmar")
        assert palmar is not None
        assert services.store.temporary_memory == []

        node = services.graph.ingest_node(make_extraction(
            "Chronic Liver Disease", [("Palmar", "clinical_sign")]
        ))
        assert [b.concept_id for b in node.clinical.signs] == [palmar.concept_id]

        results = {r.node_id: r for r in services.inference.query_graph(observe({palmar.concept_id: True}))}
        assert results[node.node_id].matched_concepts == [palmar.concept_id]
        assert results[node.node_id].score == 1 + 4

    def test_repeated_ingestion_admits_on_second_occurrence(self, services, make_extraction):
        """Test the element is kept in the same ingestion that promotes it."""
        services.graph.ingest_node(make_extraction("Cirrhosis", [("Palmar", "clinical_sign")]))

        node = services.graph.ingest_node(make_extraction("Alcoholic Hepatitis", [("Palmar", "clinical_sign")]))

        palmar = services.concepts.find_direct("Palmar")
        assert palmar is not None
        assert [b.concept_id for b in node.clinical.signs] == [palmar.concept_id]
        assert services.learning.stats.total_promoted == 1
