"""Unit tests for the clinical knowledge graph models."""

from domain.clinical_models import (
    ClinicalPicture,
    ConceptTreeBranch,
    KnowledgeNode,
    LogicalOperator,
    Modality,
    NodeKind,
)
from domain.inference_models import ObservedValue, ValueKind
from domain.knowledge_store import KnowledgeStore


class TestKnowledgeNode:
    """Test KnowledgeNode helpers."""

    def test_display_label_prefers_title(self):
        """Test guidelines display their title."""
        node = KnowledgeNode(
            node_id="N1",
            pathology="Cirrhosis",
            title="Management of Cirrhosis",
            node_kind=NodeKind.GUIDELINE,
        )
        assert node.display_label == "Management of Cirrhosis"

    def test_concept_ids_cover_symptoms_and_signs(self):
        """Test concept ids are collected from both branch lists."""
        node = KnowledgeNode(
            node_id="N1",
            pathology="Pneumonia",
            clinical=ClinicalPicture(
                symptoms=[ConceptTreeBranch(concept_id="C1")],
                signs=[ConceptTreeBranch(concept_id="C2"), ConceptTreeBranch(concept_id="C1")],
            ),
        )
        assert node.concept_ids() == {"C1", "C2"}

    def test_add_link_is_idempotent(self):
        """Test the same (relation, target) is stored once."""
        node = KnowledgeNode(node_id="N1", pathology="Pneumonia")

        assert node.add_link("related_to", "N2") is True
        assert node.add_link("related_to", "N2") is False
        assert node.add_link("has_protocol", "N2") is True
        assert len(node.links) == 2
        assert node.has_link("N2")
        assert not node.has_link("N3")


class TestModality:
    """Test Modality serialization."""

    def test_class_alias(self):
        """Test the class field accepts its JSON alias and field name."""
        by_alias = Modality.model_validate({"label": "Severe", "class": "M4", "score": 8})
        by_name = Modality(label="Severe", modality_class="M4", score=8)

        assert by_alias.modality_class == "M4"
        assert by_name.modality_class == "M4"
        assert by_alias.condition.operator == LogicalOperator.EQ


class TestSeededStore:
    """Test the seed content of a fresh store."""

    def test_seed_links_are_system_sourced(self):
        """Test every seed link carries the system provenance."""
        store = KnowledgeStore.seeded()

        assert len(store.semantic_links) > 20
        assert all(l.sources == {"system_init"} for l in store.semantic_links)
        assert len({l.link_id for l in store.semantic_links}) == len(store.semantic_links)

    def test_seed_syndrome_and_vocabulary(self):
        """Test the condensation syndrome and legacy vocabulary are present."""
        store = KnowledgeStore.seeded()

        syndrome = store.get_syndrome("SYND_CONDENSATION")
        assert syndrome is not None
        assert syndrome.concept_ids == ["SIG_DULLNESS", "SYM_COUGH"]
        assert store.get_vocabulary_element("MES_TEMP").mode.unit == "°C"
        assert store.nodes == []
        assert store.schema_version == 0


class TestObservedValue:
    """Test the observed value variant."""

    def test_constructors(self):
        assert ObservedValue.absent().is_absent
        assert ObservedValue.boolean(1).value is True
        assert ObservedValue.number(0).kind == ValueKind.NUMBER
        assert not ObservedValue.text("x").is_absent
