"""Fragment merging pre-pass.

Extraction sometimes splits a compound finding into two elements: a bare
modifier ("Palmar") and the head noun fragment ("Erythema"). Before gating,
known modifier/noun pairs are merged back into one element ("Palmar
erythema") and a part_of semantic link is recorded from the dropped
modifier to the compound label.
"""

import logging
from typing import Dict, List, Optional

from domain.clinical_lexicon import FRAGMENT_MERGE_MAP
from domain.extraction_models import ExtractedElement
from application.services.semantic_link_service import SemanticLinkGraph
from application.services.semantic_normalizer import normalize_label

logger = logging.getLogger(__name__)

MERGE_LINK_SOURCE = "auto_merge_ingestion"


class FragmentMerger:
    """Merges split modifier/noun element pairs of one extraction."""

    def __init__(self, links: SemanticLinkGraph, merge_map: Optional[Dict[str, str]] = None):
        self.links = links
        self.merge_map = FRAGMENT_MERGE_MAP if merge_map is None else merge_map

    def merge(self, elements: List[ExtractedElement]) -> List[ExtractedElement]:
        """
        Merge fragments and return the surviving elements.

        The noun element keeps its position and type; it absorbs the
        modifier's characteristics and values. Input elements are not mutated.
        """
        result = [e.model_copy(deep=True) for e in elements]

        for adjective, noun in self.merge_map.items():
            adj_el = next((e for e in result if normalize_label(e.root_term) == adjective), None)
            if adj_el is None:
                continue

            noun_el = next(
                (e for e in result
                 if e is not adj_el
                 and (normalize_label(e.root_term) == noun or noun in normalize_label(e.root_term))),
                None,
            )
            if noun_el is None:
                continue

            noun_term = noun_el.root_term.strip()
            if adjective in normalize_label(noun_term):
                compound = noun_term
            else:
                compound = f"{adj_el.root_term.strip().capitalize()} {noun_term.lower()}"

            noun_el.root_term = compound
            noun_el.characteristics.extend(c for c in adj_el.characteristics if c not in noun_el.characteristics)
            noun_el.values.extend(v for v in adj_el.values if v not in noun_el.values)
            if not noun_el.unit:
                noun_el.unit = adj_el.unit

            self.links.upsert_link(
                adj_el.root_term,
                "part_of",
                compound,
                strength=1.0,
                sources={MERGE_LINK_SOURCE},
            )
            result.remove(adj_el)
            logger.info(f"Merged fragment '{adj_el.root_term}' into '{compound}'")

        return result
