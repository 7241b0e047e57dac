"""Similarity-based Auto-Linker.

After a node is ingested, compares it with every other node and creates or
reinforces bidirectional edges to the most similar ones.

Similarity signals (added together):
- Jaccard overlap of the two nodes' concept id sets
- Shared high-signal trigger term in both labels (relation same_etiology_as)
- One label contained in the other (relation is_specific_of when this
  node's label contains the other's, is_generalization_of otherwise)

Nodes reaching the similarity threshold, or carrying any trigger/substring
signal, are candidates; the best max_links of them are linked.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from domain.clinical_lexicon import INVERSE_RELATIONS, TRIGGER_TERMS
from domain.clinical_models import KnowledgeNode
from domain.knowledge_store import KnowledgeStore
from config.knowledge_config import AutoLinkConfig
from application.services.node_edge_service import NodeEdgeService
from application.services.semantic_normalizer import normalize_label

logger = logging.getLogger(__name__)

AUTO_LINK_SOURCE = "auto_linker"
DEFAULT_RELATION = "related_to"


@dataclass
class AutoLinkMatch:
    """A node selected for linking, with its combined similarity score."""
    target: KnowledgeNode
    relation: str
    score: float
    jaccard: float = 0.0
    has_trigger: bool = False
    has_substring: bool = False


def jaccard_similarity(first: set, second: set) -> float:
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


def inverse_relation(relation: str) -> str:
    return INVERSE_RELATIONS.get(relation, DEFAULT_RELATION)


class AutoLinker:
    """Grows graph edges between similar nodes."""

    def __init__(
        self,
        store: KnowledgeStore,
        edges: NodeEdgeService,
        config: Optional[AutoLinkConfig] = None,
    ):
        self.store = store
        self.edges = edges
        self.config = config or AutoLinkConfig()

    def score(self, node: KnowledgeNode, other: KnowledgeNode) -> AutoLinkMatch:
        """Combined similarity of two nodes and the relation it implies."""
        jaccard = jaccard_similarity(node.concept_ids(), other.concept_ids())
        match = AutoLinkMatch(target=other, relation=DEFAULT_RELATION, score=jaccard, jaccard=jaccard)

        label = normalize_label(node.display_label)
        other_label = normalize_label(other.display_label)

        if any(term in label and term in other_label for term in TRIGGER_TERMS):
            match.score += self.config.trigger_bonus
            match.relation = "same_etiology_as"
            match.has_trigger = True

        if label and other_label and (other_label in label or label in other_label):
            match.score += self.config.substring_bonus
            match.relation = "is_specific_of" if other_label in label else "is_generalization_of"
            match.has_substring = True

        return match

    def find_matches(self, node: KnowledgeNode) -> List[AutoLinkMatch]:
        """Candidates for linking, best first, at most max_links."""
        candidates = []
        for other in self.store.nodes:
            if other.node_id == node.node_id:
                continue
            match = self.score(node, other)
            if match.score >= self.config.similarity_threshold or match.has_trigger or match.has_substring:
                candidates.append(match)

        candidates.sort(key=lambda m: m.score, reverse=True)
        return candidates[: self.config.max_links]

    def link_node(self, node: KnowledgeNode) -> List[AutoLinkMatch]:
        """
        Create or reinforce edges from a node to its most similar nodes.

        Args:
            node: Node just ingested or updated (must already be in the store)

        Returns:
            Matches that were linked
        """
        matches = self.find_matches(node)
        for match in matches:
            self.edges.link_pair(
                node,
                match.relation,
                match.target,
                inverse_relation(match.relation),
                strength=min(match.score, 1.0),
                sources={AUTO_LINK_SOURCE},
                only_unlinked=True,
            )
            logger.info(
                f"Auto-linked '{node.display_label}' -{match.relation}-> "
                f"'{match.target.display_label}' (score={match.score:.2f})"
            )
        return matches
