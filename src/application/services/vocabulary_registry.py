"""Legacy Vocabulary Registry.

The observation forms predate the concept store and capture values against
vocabulary elements (element ids such as "SYM_COUGH" or "EL_..."). The
registry keeps those elements in step with admitted concepts so that the
inference engine can map an observed element id back to a label, and use
the element's value mode as a fallback type declaration.
"""

from typing import Iterable, List, Optional
import uuid
import logging

from domain.clinical_models import ElementType, ValueMode, VocabularyElement, WidgetType
from domain.knowledge_store import KnowledgeStore
from application.services.clinical_methodology import classify_clinical_concept
from application.services.semantic_normalizer import (
    capitalize_label,
    clean_clinical_term,
    normalize_label,
)

logger = logging.getLogger(__name__)


class VocabularyRegistry:
    """Upserts and looks up legacy vocabulary elements in the store."""

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def get(self, element_id: str) -> Optional[VocabularyElement]:
        return self.store.get_vocabulary_element(element_id)

    def find_by_label(self, label: str) -> Optional[VocabularyElement]:
        target = normalize_label(label)
        if not target:
            return None
        return next(
            (e for e in self.store.vocabulary
             if normalize_label(e.name) == target
             or any(normalize_label(s) == target for s in e.synonyms)),
            None,
        )

    def register(
        self,
        name: str,
        element_type: ElementType,
        options: Optional[Iterable[str]] = None,
        unit: Optional[str] = None,
        subsection: str = "Learned",
    ) -> Optional[VocabularyElement]:
        """
        Register an admitted label, merging options into an existing element.

        Args:
            name: Element name (filler words are removed)
            element_type: Declared type
            options: Qualifiers offered as form options
            unit: Measurement unit (makes a new element numeric)
            subsection: Form subsection of a new element

        Returns:
            The created or updated element, None for an empty name
        """
        cleaned = clean_clinical_term((name or "").strip())
        if not normalize_label(cleaned):
            return None

        final_options: List[str] = []
        for opt in options or []:
            opt_clean = clean_clinical_term(opt)
            if opt_clean:
                opt_label = capitalize_label(opt_clean)
                if opt_label not in final_options:
                    final_options.append(opt_label)

        existing = self.find_by_label(cleaned)
        if existing:
            if final_options:
                merged = list(existing.mode.options)
                merged.extend(o for o in final_options if o not in merged)
                existing.mode.options = merged
                existing.mode.type = WidgetType.OPTIONS
            return existing

        if unit:
            mode = ValueMode(type=WidgetType.NUMERIC, unit=unit, options=final_options)
        elif final_options:
            mode = ValueMode(type=WidgetType.OPTIONS, options=final_options)
        else:
            mode = ValueMode(type=WidgetType.BOOLEAN)

        classification = classify_clinical_concept(element_type, cleaned)
        element = VocabularyElement(
            element_id=f"EL_{uuid.uuid4().hex[:10]}",
            name=capitalize_label(cleaned),
            type=element_type,
            section=classification.section,
            subsection=subsection,
            exam_method=classification.exam_method,
            mode=mode,
        )
        self.store.vocabulary.append(element)
        logger.info(f"Registered vocabulary element '{element.name}' ({element.element_id})")
        return element
