"""Clinical Knowledge Graph Models.

This module defines the persisted records of the clinical knowledge graph:
- Canonical clinical concepts (concept store)
- Semantic links between free-text labels
- Pathology / syndrome / protocol nodes with their concept trees
- Node-to-node graph edges
- Syndromes and quarantined temporary concepts
- Legacy vocabulary elements used by the observation forms

All identity keys (concept_id, node_id, node_key, link and edge keys) are
stable across save/load cycles of the snapshot.
"""

from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional, Set
from datetime import datetime
from enum import Enum


class ElementType(str, Enum):
    """Declared type of a clinical element."""
    SYMPTOM = "symptom"
    CLINICAL_SIGN = "clinical_sign"
    PARACLINICAL_SIGN = "paraclinical_sign"
    ANTECEDENT = "antecedent"
    MEASURE = "measure"
    PATHOLOGY = "pathology"
    SYNDROME = "syndrome"
    RISK_FACTOR = "risk_factor"
    ANATOMY = "anatomy"
    LESIONAL_CONTEXT = "lesional_context"


class LogicalOperator(str, Enum):
    """Comparison operator of a modality condition."""
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"
    CONTAINS = "contains"


class NodeKind(str, Enum):
    """Kind of knowledge graph node."""
    PATHOLOGY = "pathology"
    SYNDROME = "syndrome"
    PROTOCOL = "protocol"
    GUIDELINE = "guideline"
    REFERENCE = "reference"
    RULE = "rule"


class WidgetType(str, Enum):
    """Input widget used to capture a concept value."""
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    SCALE = "scale"
    OPTIONS = "options"


class ObservationSection(str, Enum):
    """Section of the clinical observation form."""
    HISTORY = "history"
    ANTECEDENT = "antecedent"
    SYMPTOM = "symptom"
    VITAL_SIGNS = "vital_signs"
    PHYSICAL_EXAM = "physical_exam"
    PARACLINICAL = "paraclinical"


class ExamMethod(str, Enum):
    """Physical examination method (inspection, palpation, percussion, auscultation)."""
    INSPECTION = "inspection"
    PALPATION = "palpation"
    PERCUSSION = "percussion"
    AUSCULTATION = "auscultation"
    GENERAL = "general"


class TemporaryConceptStatus(str, Enum):
    """Review status of a quarantined concept."""
    PENDING = "pending"
    VALIDATED = "validated"
    REJECTED = "rejected"


# ========================================
# Concept Store
# ========================================

class ConceptUIHint(BaseModel):
    """How a concept is presented on the observation form."""
    section_default: ObservationSection = Field(default=ObservationSection.HISTORY)
    widget: WidgetType = Field(default=WidgetType.BOOLEAN)
    options: List[str] = Field(default_factory=list)


class Concept(BaseModel):
    """
    Canonical clinical concept.

    A concept is the unit every node branch, observation value and syndrome
    refers to. Labels and synonyms are matched case and accent insensitively.
    """

    concept_id: str = Field(..., description="Stable unique identifier")
    label: str = Field(..., description="Display label")
    type: ElementType = Field(..., description="Declared element type")
    definition: Optional[str] = Field(None, description="Optional definition")
    synonyms: List[str] = Field(default_factory=list, description="Alternative labels")
    negatable: bool = Field(default=True, description="Whether absence is clinically meaningful")
    unit: Optional[str] = Field(None, description="Measurement unit, if any")
    ui_hint: ConceptUIHint = Field(default_factory=ConceptUIHint)

    def all_labels(self) -> List[str]:
        """Label followed by every synonym."""
        return [self.label, *self.synonyms]


# ========================================
# Semantic Link Graph
# ========================================

class SemanticLink(BaseModel):
    """Weighted directed relation between two free-text labels."""
    link_id: str = Field(..., description="Identifier of the link record")
    source_label: str = Field(..., description="Source label as first seen")
    relation: str = Field(..., description="Relation name (synonym_of, is_a, part_of, ...)")
    target_label: str = Field(..., description="Target label as first seen")
    strength: float = Field(default=1.0, ge=1.0, description="Accumulated evidence weight")
    count_seen: int = Field(default=1, ge=1, description="Number of times the link was asserted")
    last_seen: datetime = Field(default_factory=datetime.now)
    sources: Set[str] = Field(default_factory=set, description="Provenance of the assertions")


# ========================================
# Knowledge Graph Nodes
# ========================================

class ModalityCondition(BaseModel):
    """Typed threshold rule over a concept value."""
    operator: LogicalOperator = LogicalOperator.EQ
    threshold: Any = None


class Modality(BaseModel):
    """A qualified presentation of a concept that adds score when satisfied."""
    label: str
    modality_class: str = Field(default="M1", alias="class", description="Ordinal severity tag M1..M5")
    score: float = 0.0
    condition: ModalityCondition = Field(default_factory=ModalityCondition)

    model_config = {"populate_by_name": True}


class ConceptTreeBranch(BaseModel):
    """A node's reference to one concept plus its modalities."""
    concept_id: str
    characteristics: List[str] = Field(default_factory=list)
    modalities: List[Modality] = Field(default_factory=list)


class ClinicalPicture(BaseModel):
    """Concept trees of a node split by symptom/sign plus pivot terms."""
    symptoms: List[ConceptTreeBranch] = Field(default_factory=list)
    signs: List[ConceptTreeBranch] = Field(default_factory=list)
    pivot_terms: List[str] = Field(default_factory=list)

    def branches(self) -> List[ConceptTreeBranch]:
        return [*self.symptoms, *self.signs]


class Epidemiology(BaseModel):
    age_peak: Optional[str] = None
    sex_ratio: Optional[str] = None
    prevalence: Optional[str] = None
    risk_factors: List[str] = Field(default_factory=list)


class LesionalContext(BaseModel):
    typical_sites: List[str] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list)
    anatomical_context: str = ""


class EvidenceExam(BaseModel):
    """Exam that confirms, orients or excludes the node."""
    concept_ref: Optional[str] = None
    label: str
    role: str = Field(default="orientation", description="gold_standard, orientation or exclusion")
    notes: Optional[str] = None


class Management(BaseModel):
    medical: List[str] = Field(default_factory=list)
    surgical: List[str] = Field(default_factory=list)
    monitoring: List[str] = Field(default_factory=list)


class NodeContext(BaseModel):
    """Descriptive (non-scored) context of a node."""
    definition: str = ""
    epidemiology: Epidemiology = Field(default_factory=Epidemiology)
    lesional: LesionalContext = Field(default_factory=LesionalContext)
    evidence_exams: List[EvidenceExam] = Field(default_factory=list)
    management: Management = Field(default_factory=Management)
    teaching_notes: List[str] = Field(default_factory=list)


class NodeLink(BaseModel):
    """Relation stored on the node itself, traversable without the edge store."""
    relation: str
    target_node_id: str


class KnowledgeNode(BaseModel):
    """
    Pathology, syndrome, protocol, guideline or reference entry.

    node_key is derived from (kind, normalized label) and is the upsert
    identity; node_id never changes once assigned.
    """

    node_id: str = Field(..., description="Stable unique identifier")
    node_key: Optional[str] = Field(None, description="Upsert identity derived from kind and label")
    pathology: str = Field(..., description="Display label (title for guidelines/protocols)")
    title: Optional[str] = None
    node_kind: NodeKind = NodeKind.PATHOLOGY
    discipline: str = "General"
    specialty: str = "General"
    context: NodeContext = Field(default_factory=NodeContext)
    clinical: ClinicalPicture = Field(default_factory=ClinicalPicture)
    syndrome_ids: List[str] = Field(default_factory=list)
    links: List[NodeLink] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=datetime.now)

    @property
    def display_label(self) -> str:
        return self.title or self.pathology

    def concept_ids(self) -> Set[str]:
        """Concept ids referenced by the node's concept trees."""
        return {branch.concept_id for branch in self.clinical.branches()}

    def has_link(self, target_node_id: str, relation: Optional[str] = None) -> bool:
        return any(
            link.target_node_id == target_node_id and (relation is None or link.relation == relation)
            for link in self.links
        )

    def add_link(self, relation: str, target_node_id: str) -> bool:
        """Add a link unless the same (relation, target) already exists."""
        if self.has_link(target_node_id, relation):
            return False
        self.links.append(NodeLink(relation=relation, target_node_id=target_node_id))
        return True


class GraphEdge(BaseModel):
    """Weighted directed relation between two nodes."""
    source_id: str
    relation: str
    target_id: str
    strength: float = 1.0
    count_seen: int = 1
    last_seen: datetime = Field(default_factory=datetime.now)
    sources: Set[str] = Field(default_factory=set)


class Syndrome(BaseModel):
    """Group of concepts; active when at least one of them is active."""
    id: str
    label: str
    description: str = ""
    concept_ids: List[str] = Field(default_factory=list)


# ========================================
# Learning Loop
# ========================================

class TemporaryConcept(BaseModel):
    """Quarantined candidate concept awaiting promotion or review."""
    id: str
    raw_label: str
    detected_type_guess: ElementType = ElementType.SYMPTOM
    status: TemporaryConceptStatus = TemporaryConceptStatus.PENDING
    count_seen: int = 1
    last_seen: datetime = Field(default_factory=datetime.now)
    source_document: str = "ingestion_gate"
    context_snippet: str = ""
    sources: Set[str] = Field(default_factory=set)


# ========================================
# Legacy Vocabulary (observation form grammar)
# ========================================

class ValueMode(BaseModel):
    """How a vocabulary element is captured on the form."""
    type: WidgetType = WidgetType.BOOLEAN
    unit: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    options: List[str] = Field(default_factory=list)


class VocabularyElement(BaseModel):
    """Element of the legacy observation vocabulary."""
    element_id: str
    name: str
    type: ElementType = ElementType.SYMPTOM
    section: ObservationSection = ObservationSection.SYMPTOM
    subsection: str = "General"
    exam_method: Optional[ExamMethod] = None
    synonyms: List[str] = Field(default_factory=list)
    mode: ValueMode = Field(default_factory=ValueMode)


# ========================================
# Medical Index
# ========================================

class MedicalIndexNode(BaseModel):
    """Discipline / specialty tree node used for candidate pre-filtering."""
    id: str
    label: str
    children: List["MedicalIndexNode"] = Field(default_factory=list)
    linked_node_ids: List[str] = Field(default_factory=list)

    def child(self, label: str) -> Optional["MedicalIndexNode"]:
        return next((c for c in self.children if c.label == label), None)


MedicalIndexNode.model_rebuild()


def empty_index_root() -> MedicalIndexNode:
    return MedicalIndexNode(id="MEDICINE", label="Medicine")


class MedicalIndex(BaseModel):
    root: MedicalIndexNode = Field(default_factory=empty_index_root)
    trigger_index: Dict[str, List[str]] = Field(default_factory=dict)


# ========================================
# Observation (inference input)
# ========================================

class ObservationValue(BaseModel):
    """Externally supplied value for one element or concept id."""
    element_id: str
    value: Any = None


class Observation(BaseModel):
    """Input to inference: structured values plus the raw narrative."""
    values: List[ObservationValue] = Field(default_factory=list)
    raw_text: str = ""
