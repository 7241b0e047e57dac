"""Extraction Models.

Structured output handed to the knowledge graph by the extraction
collaborator (the language-model step that turns a source document into
candidate concepts). Every field is optional or defaulted: extraction is
best effort and the ingestion routine degrades silently on missing parts.
"""

from pydantic import BaseModel, Field
from typing import List, Optional

from domain.clinical_models import ElementType, NodeContext, NodeKind


class Taxonomy(BaseModel):
    discipline: str = "General"
    specialty: str = "General"


class ExtractedSyndrome(BaseModel):
    """Syndrome described by the source, with the findings it groups."""
    name: str
    description: str = ""
    associated_findings: List[str] = Field(default_factory=list)


class ExtractedElement(BaseModel):
    """
    Candidate clinical element.

    characteristics and values are free-text qualifiers; values such as
    "Hb < 9 g/dL" are parsed into numeric modality conditions.
    """
    root_term: str
    type: ElementType = ElementType.SYMPTOM
    characteristics: List[str] = Field(default_factory=list)
    values: List[str] = Field(default_factory=list)
    unit: Optional[str] = None

    def qualifiers(self) -> List[str]:
        return [*self.characteristics, *self.values]


class ExtractedLink(BaseModel):
    """Relation from the extracted node to another node, by label."""
    relation: str
    target_label: str


class ExtractionResult(BaseModel):
    """Structured knowledge extracted from one source document."""
    pathology: str = ""
    title: Optional[str] = None
    node_kind: NodeKind = NodeKind.PATHOLOGY
    taxonomy: Taxonomy = Field(default_factory=Taxonomy)
    context: NodeContext = Field(default_factory=NodeContext)
    syndromes: List[ExtractedSyndrome] = Field(default_factory=list)
    clinical_elements: List[ExtractedElement] = Field(default_factory=list)
    pivot_terms: List[str] = Field(default_factory=list)
    applies_to: Optional[str] = None
    links: List[ExtractedLink] = Field(default_factory=list)
    source_document: Optional[str] = None

    def applies_to_target(self) -> Optional[str]:
        """Target condition label from applies_to or an applies_to link."""
        if self.applies_to:
            return self.applies_to
        link = next((l for l in self.links if l.relation == "applies_to"), None)
        return link.target_label if link else None
