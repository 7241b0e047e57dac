"""Semantic Link Graph Service.

Maintains the directed, weighted graph of relations between free-text
labels (synonym_of, is_a, part_of, measures, sign_of, ...) and resolves a
raw label to its canonical label.

Key behaviours:
- Upsert reinforces an existing (source, relation, target) link instead of
  duplicating it: count_seen += 1, strength += the asserted strength
- Self-loops (source == target after normalization) are rejected
- Resolution follows only synonym_of / is_a links, greedily taking the
  single strongest outgoing link per hop (strength, then count_seen), and
  stops on a dead end, the hop limit or a revisited label
"""

from typing import Dict, Iterable, List, Optional, Tuple
from datetime import datetime
import uuid
import logging

from domain.clinical_models import SemanticLink
from domain.clinical_lexicon import RESOLVABLE_RELATIONS
from domain.knowledge_store import KnowledgeStore
from application.services.semantic_normalizer import normalize_label

logger = logging.getLogger(__name__)

LinkKey = Tuple[str, str, str]


def link_key(source: str, relation: str, target: str) -> LinkKey:
    return normalize_label(source), normalize_label(relation), normalize_label(target)


class SemanticLinkGraph:
    """
    Label-level relation graph stored in the knowledge snapshot.

    The graph is only a view over store.semantic_links; every mutation is
    written to the store value passed in.
    """

    def __init__(self, store: KnowledgeStore, max_hops: int = 6):
        """
        Initialize the SemanticLinkGraph.

        Args:
            store: Knowledge store snapshot holding the links
            max_hops: Default hop limit for label resolution
        """
        self.store = store
        self.max_hops = max_hops

    def find_link(self, source: str, relation: str, target: str) -> Optional[SemanticLink]:
        key = link_key(source, relation, target)
        return next(
            (l for l in self.store.semantic_links
             if link_key(l.source_label, l.relation, l.target_label) == key),
            None,
        )

    def upsert_link(
        self,
        source: str,
        relation: str,
        target: str,
        strength: float = 1.0,
        sources: Optional[Iterable[str]] = None,
    ) -> Optional[SemanticLink]:
        """
        Insert a link or reinforce the existing one.

        Args:
            source: Source label
            relation: Relation name
            target: Target label
            strength: Evidence weight of this assertion
            sources: Provenance of this assertion

        Returns:
            The inserted or reinforced link, or None for an empty key or a self-loop
        """
        source_norm, relation_norm, target_norm = link_key(source, relation, target)

        if not source_norm or not relation_norm or not target_norm:
            logger.warning(f"Ignoring semantic link with empty key: '{source}' -{relation}-> '{target}'")
            return None

        if source_norm == target_norm:
            logger.debug(f"Ignoring self-loop semantic link on '{source_norm}'")
            return None

        strength = max(strength or 1.0, 1.0)
        now = datetime.now()
        existing = self.find_link(source, relation, target)

        if existing:
            existing.count_seen += 1
            existing.strength += strength
            existing.last_seen = now
            if sources:
                existing.sources.update(sources)
            logger.debug(
                f"Reinforced link {source_norm} -{relation_norm}-> {target_norm} "
                f"(strength={existing.strength}, count={existing.count_seen})"
            )
            return existing

        link = SemanticLink(
            link_id=f"LINK_{uuid.uuid4().hex[:12]}",
            source_label=source.strip(),
            relation=relation_norm,
            target_label=target.strip(),
            strength=strength,
            count_seen=1,
            last_seen=now,
            sources=set(sources) if sources else {"user_action"},
        )
        self.store.semantic_links.append(link)
        logger.info(f"Added semantic link: {link.source_label} -{link.relation}-> {link.target_label}")
        return link

    def outgoing(self, label: str, relations: Optional[Iterable[str]] = None) -> List[SemanticLink]:
        """Links leaving a label, optionally filtered by relation."""
        label_norm = normalize_label(label)
        wanted = set(relations) if relations is not None else None
        return [
            l for l in self.store.semantic_links
            if normalize_label(l.source_label) == label_norm
            and (wanted is None or normalize_label(l.relation) in wanted)
        ]

    def resolution_path(self, label: str, max_hops: Optional[int] = None) -> List[str]:
        """
        Follow synonym_of / is_a links from a label.

        Returns:
            Normalized labels visited, starting with the label itself
        """
        hops = self.max_hops if max_hops is None else max_hops
        current = normalize_label(label)
        path = [current]
        if not current:
            return path

        by_source: Dict[str, List[SemanticLink]] = {}
        for l in self.store.semantic_links:
            if normalize_label(l.relation) in RESOLVABLE_RELATIONS:
                by_source.setdefault(normalize_label(l.source_label), []).append(l)

        visited = {current}
        for _ in range(hops):
            candidates = by_source.get(current)
            if not candidates:
                break

            best = max(candidates, key=lambda l: (l.strength, l.count_seen))
            nxt = normalize_label(best.target_label)
            if nxt in visited:
                logger.debug(f"Resolution cycle at '{current}' -> '{nxt}', stopping")
                break

            current = nxt
            visited.add(current)
            path.append(current)

        return path

    def resolve_label(self, label: str, max_hops: Optional[int] = None) -> str:
        """
        Resolve a label to its canonical label.

        "Angina" -> "chest pain", "Polypnea" -> "dyspnea"

        Returns:
            Normalized canonical label (the label itself if no link applies)
        """
        return self.resolution_path(label, max_hops)[-1]
