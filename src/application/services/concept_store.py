"""Concept Store Service.

Canonical registry of clinical concepts. It handles:
- Label resolution: exact label/synonym match first, then a retry on the
  label's semantically resolved form (see SemanticLinkGraph)
- Upsert: an existing concept absorbs new synonyms and, if it has none, the
  unit; duplicates are merged rather than rejected
- Declared value type of a concept, used by the inference presence rule
"""

from typing import Iterable, Optional
import uuid
import logging

from domain.clinical_models import Concept, ConceptUIHint, ElementType, WidgetType
from domain.inference_models import ConceptValueType
from domain.knowledge_store import KnowledgeStore
from application.services.clinical_methodology import default_section
from application.services.semantic_link_service import SemanticLinkGraph
from application.services.semantic_normalizer import normalize_label, normalize_with_trace

logger = logging.getLogger(__name__)


class ConceptStore:
    """
    Canonical concept registry backed by the knowledge store.

    Uses the semantic link graph as a second-chance resolver so that
    "Rales" finds the "Crackles" concept.
    """

    def __init__(self, store: KnowledgeStore, links: SemanticLinkGraph):
        """
        Initialize the ConceptStore.

        Args:
            store: Knowledge store snapshot
            links: Semantic link graph used for indirect resolution
        """
        self.store = store
        self.links = links

    def get(self, concept_id: str) -> Optional[Concept]:
        return self.store.get_concept(concept_id)

    def find_direct(self, label: str) -> Optional[Concept]:
        """Concept whose label or a synonym equals the normalized label."""
        target = normalize_label(label)
        if not target:
            return None
        return next(
            (c for c in self.store.concepts
             if any(normalize_label(l) == target for l in c.all_labels())),
            None,
        )

    def resolve_to_concept_id(self, label: str) -> Optional[str]:
        """
        Map a label to a canonical concept id.

        Args:
            label: Raw label, synonym or semantically linked label

        Returns:
            concept_id, or None when neither the label nor its resolved form match
        """
        target, steps = normalize_with_trace(label)
        if not target:
            return None
        logger.debug(f"Normalized concept label: {' -> '.join(steps)}")

        direct = self.find_direct(target)
        if direct:
            return direct.concept_id

        resolved = self.links.resolve_label(target)
        if resolved != target:
            indirect = self.find_direct(resolved)
            if indirect:
                logger.debug(f"Resolved '{label}' to concept {indirect.concept_id} via '{resolved}'")
                return indirect.concept_id

        return None

    def upsert_concept(
        self,
        label: str,
        element_type: ElementType,
        synonyms: Optional[Iterable[str]] = None,
        unit: Optional[str] = None,
    ) -> str:
        """
        Create a concept or enrich the one the label resolves to.

        Args:
            label: Concept label
            element_type: Declared type (used only on creation)
            synonyms: Synonyms to merge
            unit: Measurement unit, backfilled only if the concept has none

        Returns:
            concept_id of the created or existing concept

        Raises:
            ValueError: If the label normalizes to an empty string
        """
        if not normalize_label(label):
            raise ValueError(f"Cannot upsert a concept with an empty label: {label!r}")

        existing_id = self.resolve_to_concept_id(label)
        existing = self.get(existing_id) if existing_id else None

        if existing:
            known = {normalize_label(l) for l in existing.all_labels()}
            for synonym in synonyms or []:
                synonym_norm = normalize_label(synonym)
                if synonym_norm and synonym_norm not in known:
                    existing.synonyms.append(synonym.strip())
                    known.add(synonym_norm)
            if unit and not existing.unit:
                existing.unit = unit
            return existing.concept_id

        concept = Concept(
            concept_id=f"CPT_{uuid.uuid4().hex[:12]}",
            label=label.strip(),
            type=element_type,
            synonyms=[s.strip() for s in synonyms or [] if normalize_label(s)],
            negatable=True,
            unit=unit,
            ui_hint=ConceptUIHint(
                section_default=default_section(element_type),
                widget=WidgetType.NUMERIC if unit else WidgetType.BOOLEAN,
            ),
        )
        self.store.concepts.append(concept)
        logger.info(f"Created concept '{concept.label}' ({concept.concept_id}, {element_type.value})")
        return concept.concept_id

    def delete_concept(self, concept_id: str) -> bool:
        """Remove a concept; node branches keep their dangling reference."""
        concept = self.get(concept_id)
        if not concept:
            return False
        self.store.concepts.remove(concept)
        logger.info(f"Deleted concept '{concept.label}' ({concept_id})")
        return True

    def value_type(self, concept_id: str) -> Optional[ConceptValueType]:
        """
        Declared value type of a concept.

        Returns:
            NUMERIC for numeric/scale widgets, measures and concepts with a
            unit, BOOLEAN for boolean widgets, TEXT otherwise, None if unknown
        """
        concept = self.get(concept_id)
        if not concept:
            return None
        widget = concept.ui_hint.widget
        if widget in (WidgetType.NUMERIC, WidgetType.SCALE) or concept.unit or concept.type == ElementType.MEASURE:
            return ConceptValueType.NUMERIC
        if widget == WidgetType.BOOLEAN:
            return ConceptValueType.BOOLEAN
        return ConceptValueType.TEXT
