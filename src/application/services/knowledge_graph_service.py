"""Knowledge Graph Service.

Builds and curates the pathology / syndrome / protocol nodes of the clinical
knowledge graph from structured extraction results.

Ingestion of one extraction, in order:
1. Merge split modifier/noun fragments
2. Gate each clinical element through the learning loop; admitted elements
   become concepts and concept tree branches, the others are skipped
3. Consolidate temporary memory
4. Upsert syndromes and the node itself (matched by node_key, then by
   kind + label for records without a key)
5. Attach applies_to and other extracted links, creating placeholder nodes
   for unknown targets
6. Auto-link the node to similar nodes
7. Rebuild the discipline / specialty index
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from domain.clinical_models import (
    ClinicalPicture,
    ConceptTreeBranch,
    ElementType,
    KnowledgeNode,
    MedicalIndex,
    MedicalIndexNode,
    NodeContext,
    NodeKind,
    Observation,
    Syndrome,
)
from domain.extraction_models import ExtractedSyndrome, ExtractionResult
from domain.knowledge_store import KnowledgeStore
from config.knowledge_config import ModalityConfig
from application.services.auto_linker import AutoLinker, inverse_relation
from application.services.concept_store import ConceptStore
from application.services.fragment_merger import FragmentMerger
from application.services.modality_parser import build_modalities
from application.services.node_edge_service import NodeEdgeService
from application.services.promotion_gate import LearningLoop
from application.services.semantic_link_service import SemanticLinkGraph
from application.services.semantic_normalizer import normalize_label

logger = logging.getLogger(__name__)

# Kinds whose identity is the condition name rather than a document title
CONDITION_KINDS = (NodeKind.PATHOLOGY, NodeKind.SYNDROME)

# Element types filed under the node's symptoms; every other type is a sign
SYMPTOM_TYPES = (ElementType.SYMPTOM, ElementType.ANTECEDENT)

PLACEHOLDER_DEFINITION = "Auto-generated placeholder for guideline target."


def generate_node_key(node_kind: NodeKind, pathology: str = "", title: Optional[str] = None) -> str:
    """
    Upsert identity of a node.

    "pathology:viral hepatitis", "protocol:management of cirrhosis"
    """
    if node_kind in CONDITION_KINDS:
        label = pathology or title or "untitled"
    else:
        label = title or pathology or "untitled"
    return f"{node_kind.value}:{normalize_label(label)}"


def reverse_applies_to(node_kind: NodeKind) -> str:
    return "has_syndrome" if node_kind == NodeKind.SYNDROME else "has_protocol"


def syndrome_id_for(name: str) -> str:
    return "SYN_" + "_".join(name.strip().upper().split())


@dataclass
class IngestionSummary:
    """Result of a batch ingestion."""
    ingested: List[str] = field(default_factory=list)
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.ingested)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


class KnowledgeGraphService:
    """
    Ingestion and curation of knowledge nodes.

    Every mutation is applied to the store value passed at construction; the
    caller persists it.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        links: SemanticLinkGraph,
        concepts: ConceptStore,
        learning: LearningLoop,
        edges: NodeEdgeService,
        auto_linker: AutoLinker,
        merger: Optional[FragmentMerger] = None,
        modality_config: Optional[ModalityConfig] = None,
    ):
        self.store = store
        self.links = links
        self.concepts = concepts
        self.learning = learning
        self.edges = edges
        self.auto_linker = auto_linker
        self.merger = merger or FragmentMerger(links)
        self.modality_config = modality_config or ModalityConfig()

    # ========================================
    # Lookup
    # ========================================

    def find_existing_node(self, node_key: str, node_kind: NodeKind, label: str) -> Optional[KnowledgeNode]:
        """Node with the key, else a keyless-era node of the same kind and label."""
        by_key = next((n for n in self.store.nodes if n.node_key == node_key), None)
        if by_key:
            return by_key
        target = normalize_label(label)
        return next(
            (n for n in self.store.nodes
             if n.node_kind == node_kind and normalize_label(n.display_label) == target),
            None,
        )

    def find_node_by_label(self, label: str, exclude_id: Optional[str] = None) -> Optional[KnowledgeNode]:
        """
        Find a node referenced by label.

        Matches the label part of a node key, the pathology, the title, then
        the semantically resolved label.
        """
        target = normalize_label(label)
        if not target:
            return None
        candidates = [n for n in self.store.nodes if n.node_id != exclude_id]

        for node in candidates:
            key_label = node.node_key.split(":", 1)[-1] if node.node_key else None
            if target in (key_label, normalize_label(node.pathology), normalize_label(node.title or "")):
                return node

        resolved = self.links.resolve_label(target)
        return next((n for n in candidates if normalize_label(n.display_label) == resolved), None)

    # ========================================
    # Ingestion
    # ========================================

    def ingest_node(self, extraction: ExtractionResult) -> KnowledgeNode:
        """
        Create or update the node described by an extraction.

        Args:
            extraction: Structured extraction result

        Returns:
            The created or updated node (already in the store)

        Raises:
            ValueError: If the extraction has neither a pathology nor a title
        """
        label = (extraction.title or extraction.pathology or "").strip()
        if not normalize_label(label):
            raise ValueError("Extraction has no pathology or title to build a node from")

        node_key = generate_node_key(extraction.node_kind, extraction.pathology, extraction.title)
        existing = self.find_existing_node(node_key, extraction.node_kind, label)
        source_document = extraction.source_document or label

        symptoms, signs = self._build_branches(extraction, source_document)
        self.learning.promote_pending()

        syndrome_ids = self._upsert_syndromes(extraction.syndromes)
        if not syndrome_ids and existing:
            syndrome_ids = list(existing.syndrome_ids)

        node = KnowledgeNode(
            node_id=existing.node_id if existing else f"NODE_{uuid.uuid4().hex[:12]}",
            node_key=node_key,
            pathology=label,
            title=extraction.title,
            node_kind=extraction.node_kind,
            discipline=extraction.taxonomy.discipline,
            specialty=extraction.taxonomy.specialty,
            context=extraction.context.model_copy(deep=True),
            clinical=ClinicalPicture(
                symptoms=symptoms,
                signs=signs,
                pivot_terms=[p.strip() for p in extraction.pivot_terms if p and p.strip()],
            ),
            syndrome_ids=syndrome_ids,
            links=list(existing.links) if existing else [],
            last_updated=datetime.now(),
        )

        if existing:
            self.store.nodes[self.store.nodes.index(existing)] = node
            logger.info(f"Updated node '{label}' ({node.node_id})")
        else:
            self.store.nodes.append(node)
            logger.info(f"Created node '{label}' ({node.node_id}, {node.node_kind.value})")

        self._attach_extracted_links(node, extraction)
        self.auto_linker.link_node(node)
        self.rebuild_medical_index()
        return node

    def ingest_many(self, extractions: Iterable[ExtractionResult]) -> IngestionSummary:
        """Ingest a batch; a failing extraction does not stop the others."""
        summary = IngestionSummary()
        for extraction in extractions:
            label = extraction.title or extraction.pathology or "<unnamed>"
            try:
                node = self.ingest_node(extraction)
                summary.ingested.append(node.node_id)
            except ValueError as e:
                logger.error(f"Failed to ingest '{label}': {e}")
                summary.failures.append((label, str(e)))
        return summary

    def _build_branches(
        self,
        extraction: ExtractionResult,
        source_document: str,
    ) -> Tuple[List[ConceptTreeBranch], List[ConceptTreeBranch]]:
        symptoms: List[ConceptTreeBranch] = []
        signs: List[ConceptTreeBranch] = []
        seen = set()

        for element in self.merger.merge(extraction.clinical_elements):
            root_term = element.root_term.strip()
            decision = self.learning.admit(
                root_term,
                element.type,
                source_document=source_document,
                options=element.characteristics,
                unit=element.unit,
            )
            if not decision.accepted:
                continue

            # Known and promoted labels reuse the concept the gate resolved
            known = self.concepts.get(decision.concept_id) if decision.concept_id else None
            label = known.label if known else decision.label
            concept_id = self.concepts.upsert_concept(label, element.type, unit=element.unit)
            if concept_id in seen:
                continue
            seen.add(concept_id)

            branch = ConceptTreeBranch(
                concept_id=concept_id,
                characteristics=list(element.characteristics),
                modalities=build_modalities(element.qualifiers(), self.modality_config),
            )
            if element.type in SYMPTOM_TYPES:
                symptoms.append(branch)
            else:
                signs.append(branch)

        return symptoms, signs

    def _upsert_syndromes(self, extracted: List[ExtractedSyndrome]) -> List[str]:
        ids = []
        for item in extracted:
            if not normalize_label(item.name):
                continue
            concept_ids = []
            for finding in item.associated_findings:
                concept_id = self.concepts.resolve_to_concept_id(finding)
                if concept_id and concept_id not in concept_ids:
                    concept_ids.append(concept_id)

            syndrome = Syndrome(
                id=syndrome_id_for(item.name),
                label=item.name.strip(),
                description=item.description,
                concept_ids=concept_ids,
            )
            existing = self.store.get_syndrome(syndrome.id)
            if existing:
                self.store.syndromes[self.store.syndromes.index(existing)] = syndrome
            else:
                self.store.syndromes.append(syndrome)
                logger.info(f"Created syndrome '{syndrome.label}' ({syndrome.id})")
            if syndrome.id not in ids:
                ids.append(syndrome.id)
        return ids

    def _attach_extracted_links(self, node: KnowledgeNode, extraction: ExtractionResult) -> None:
        target_label = extraction.applies_to_target()
        if target_label:
            target = self.resolve_or_create_target(target_label, exclude_id=node.node_id)
            if target:
                self.edges.link_pair(
                    node, "applies_to", target, reverse_applies_to(node.node_kind),
                    sources={"ingestion"},
                )

        for link in extraction.links:
            relation = normalize_label(link.relation).replace(" ", "_")
            if not relation or relation == "applies_to":
                continue
            target = self.resolve_or_create_target(link.target_label, exclude_id=node.node_id)
            if target:
                self.edges.link_pair(node, relation, target, inverse_relation(relation), sources={"ingestion"})

    def resolve_or_create_target(self, label: str, exclude_id: Optional[str] = None) -> Optional[KnowledgeNode]:
        """Node referenced by label, or a new placeholder pathology node."""
        if not normalize_label(label):
            return None
        target = self.find_node_by_label(label, exclude_id=exclude_id)
        if target:
            return target

        placeholder = KnowledgeNode(
            node_id=f"NODE_{uuid.uuid4().hex[:12]}",
            node_key=generate_node_key(NodeKind.PATHOLOGY, label.strip()),
            pathology=label.strip(),
            node_kind=NodeKind.PATHOLOGY,
            context=NodeContext(definition=PLACEHOLDER_DEFINITION),
        )
        self.store.nodes.append(placeholder)
        logger.info(f"Created placeholder node '{placeholder.pathology}' ({placeholder.node_id})")
        return placeholder

    # ========================================
    # Manual curation
    # ========================================

    def store_node(self, node: KnowledgeNode) -> KnowledgeNode:
        """
        Save a manually edited node.

        Replaces the node with the same id, else the node with the same key or
        kind + label (keeping that node's id), else appends it.
        """
        if not node.node_key:
            node.node_key = generate_node_key(node.node_kind, node.pathology, node.title)
        node.last_updated = datetime.now()

        existing = self.store.get_node(node.node_id) or self.find_existing_node(
            node.node_key, node.node_kind, node.display_label
        )
        if existing:
            node.node_id = existing.node_id
            self.store.nodes[self.store.nodes.index(existing)] = node
        else:
            self.store.nodes.append(node)
        self.rebuild_medical_index()
        return node

    def delete_node(self, node_id: str) -> bool:
        """Delete a node with its edges, inbound node links and index entries."""
        node = self.store.get_node(node_id)
        if not node:
            return False
        self.store.nodes.remove(node)
        removed = self.edges.remove_node_references(node_id)
        self.rebuild_medical_index()
        logger.info(f"Deleted node '{node.display_label}' ({node_id}) and {removed} edge(s)")
        return True

    # ========================================
    # Medical index
    # ========================================

    def rebuild_medical_index(self) -> MedicalIndex:
        """Rebuild the discipline -> specialty -> node tree and the pivot term index."""
        index = MedicalIndex()
        for node in self.store.nodes:
            discipline = index.root.child(node.discipline)
            if discipline is None:
                discipline = MedicalIndexNode(id=f"DISC_{normalize_label(node.discipline)}", label=node.discipline)
                index.root.children.append(discipline)

            specialty = discipline.child(node.specialty)
            if specialty is None:
                specialty = MedicalIndexNode(
                    id=f"SPEC_{normalize_label(node.discipline)}_{normalize_label(node.specialty)}",
                    label=node.specialty,
                )
                discipline.children.append(specialty)
            specialty.linked_node_ids.append(node.node_id)

            for term in node.clinical.pivot_terms:
                key = normalize_label(term)
                if key:
                    index.trigger_index.setdefault(key, []).append(node.node_id)

        self.store.index = index
        return index

    def search_medical_index(self, observation: Observation) -> List[KnowledgeNode]:
        """
        Candidate nodes for an observation.

        Returns every node: a concept -> node inverted index would be needed to
        filter meaningfully at larger volumes.
        """
        return list(self.store.nodes)
