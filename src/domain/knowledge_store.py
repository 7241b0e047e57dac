"""Knowledge Store snapshot.

The KnowledgeStore is the single in-memory snapshot every core operation
reads and mutates: it is loaded in full before a unit of work and persisted
in full afterwards by the caller (see infrastructure.snapshot_repository).
There is no hidden module-level state; services receive the store value.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from domain.clinical_models import (
    Concept,
    ElementType,
    ExamMethod,
    GraphEdge,
    KnowledgeNode,
    MedicalIndex,
    ObservationSection,
    SemanticLink,
    Syndrome,
    TemporaryConcept,
    ValueMode,
    VocabularyElement,
    WidgetType,
)
from domain.clinical_lexicon import SEED_SEMANTIC_LINKS


class KnowledgeStore(BaseModel):
    """
    Full snapshot of the clinical knowledge graph.

    Single logical writer: concurrent read-modify-write round trips on the
    same snapshot lose updates.
    """

    schema_version: int = Field(default=0, description="Last applied migration version")
    concepts: List[Concept] = Field(default_factory=list)
    semantic_links: List[SemanticLink] = Field(default_factory=list)
    nodes: List[KnowledgeNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    syndromes: List[Syndrome] = Field(default_factory=list)
    vocabulary: List[VocabularyElement] = Field(default_factory=list)
    temporary_memory: List[TemporaryConcept] = Field(default_factory=list)
    index: MedicalIndex = Field(default_factory=MedicalIndex)

    def get_concept(self, concept_id: str) -> Optional[Concept]:
        return next((c for c in self.concepts if c.concept_id == concept_id), None)

    def get_node(self, node_id: str) -> Optional[KnowledgeNode]:
        return next((n for n in self.nodes if n.node_id == node_id), None)

    def get_syndrome(self, syndrome_id: str) -> Optional[Syndrome]:
        return next((s for s in self.syndromes if s.id == syndrome_id), None)

    def get_vocabulary_element(self, element_id: str) -> Optional[VocabularyElement]:
        return next((e for e in self.vocabulary if e.element_id == element_id), None)

    def edges_from(self, node_id: str) -> List[GraphEdge]:
        return [e for e in self.edges if e.source_id == node_id]

    @classmethod
    def seeded(cls) -> "KnowledgeStore":
        """Create a fresh store holding the seed links, syndrome and vocabulary."""
        now = datetime.now()
        links = [
            SemanticLink(
                link_id=f"LINK_SEED_{i:03d}",
                source_label=source,
                relation=relation,
                target_label=target,
                last_seen=now,
                sources={"system_init"},
            )
            for i, (source, relation, target) in enumerate(SEED_SEMANTIC_LINKS)
        ]
        return cls(
            semantic_links=links,
            syndromes=[
                Syndrome(
                    id="SYND_CONDENSATION",
                    label="Pulmonary Condensation Syndrome",
                    description="Physical signs of densified parenchyma.",
                    concept_ids=["SIG_DULLNESS", "SYM_COUGH"],
                )
            ],
            vocabulary=_seed_vocabulary(),
        )


def _seed_vocabulary() -> List[VocabularyElement]:
    return [
        VocabularyElement(
            element_id="MES_TEMP",
            name="Temperature",
            type=ElementType.MEASURE,
            section=ObservationSection.VITAL_SIGNS,
            subsection="Vital Signs",
            exam_method=ExamMethod.GENERAL,
            synonyms=["T°", "Heat"],
            mode=ValueMode(type=WidgetType.NUMERIC, unit="°C", min=34, max=43),
        ),
        VocabularyElement(
            element_id="MES_SBP",
            name="Systolic BP",
            type=ElementType.MEASURE,
            section=ObservationSection.VITAL_SIGNS,
            subsection="Vital Signs",
            exam_method=ExamMethod.GENERAL,
            synonyms=["Tension"],
            mode=ValueMode(type=WidgetType.NUMERIC, unit="mmHg", min=40, max=250),
        ),
        VocabularyElement(
            element_id="MES_VAS",
            name="Pain Intensity (VAS)",
            type=ElementType.SYMPTOM,
            section=ObservationSection.HISTORY,
            subsection="Pain",
            synonyms=["Visual scale"],
            mode=ValueMode(type=WidgetType.SCALE, min=0, max=10),
        ),
        VocabularyElement(
            element_id="SYM_COUGH",
            name="Cough",
            type=ElementType.SYMPTOM,
            section=ObservationSection.SYMPTOM,
            subsection="Respiratory",
            mode=ValueMode(type=WidgetType.OPTIONS, options=["Dry", "Productive", "Fitful"]),
        ),
        VocabularyElement(
            element_id="SIG_DULLNESS",
            name="Percussion Dullness",
            type=ElementType.CLINICAL_SIGN,
            section=ObservationSection.PHYSICAL_EXAM,
            subsection="Respiratory",
            exam_method=ExamMethod.PERCUSSION,
            mode=ValueMode(type=WidgetType.BOOLEAN),
        ),
    ]
