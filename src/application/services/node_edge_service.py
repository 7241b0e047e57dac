"""Node-to-node edges.

Graph edges are the weighted relations between knowledge nodes, keyed by
(source_id, relation, target_id). Re-asserting an edge reinforces it
(count_seen += 1, strength += the asserted strength). Relations are also
mirrored into the nodes' own link lists so callers can traverse without the
edge store.
"""

from typing import Iterable, List, Optional, Tuple
from datetime import datetime
import logging

from domain.clinical_models import GraphEdge, KnowledgeNode
from domain.knowledge_store import KnowledgeStore

logger = logging.getLogger(__name__)

EdgeKey = Tuple[str, str, str]


def edge_key(source_id: str, relation: str, target_id: str) -> EdgeKey:
    return (source_id or "").strip(), (relation or "").strip().lower(), (target_id or "").strip()


class NodeEdgeService:
    """Edge upserts and reciprocal node linking on a knowledge store."""

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def find_edge(self, source_id: str, relation: str, target_id: str) -> Optional[GraphEdge]:
        key = edge_key(source_id, relation, target_id)
        return next(
            (e for e in self.store.edges if edge_key(e.source_id, e.relation, e.target_id) == key),
            None,
        )

    def upsert_edge(
        self,
        source_id: str,
        relation: str,
        target_id: str,
        strength: float = 1.0,
        sources: Optional[Iterable[str]] = None,
    ) -> Optional[GraphEdge]:
        """
        Insert an edge or reinforce the existing one.

        Returns:
            The inserted or reinforced edge, or None for an empty key or a self-edge
        """
        source_id, relation, target_id = edge_key(source_id, relation, target_id)
        if not source_id or not relation or not target_id:
            logger.warning(f"Ignoring graph edge with empty key: '{source_id}' -{relation}-> '{target_id}'")
            return None
        if source_id == target_id:
            logger.debug(f"Ignoring self-edge on node {source_id}")
            return None

        now = datetime.now()
        existing = self.find_edge(source_id, relation, target_id)
        if existing:
            existing.count_seen += 1
            existing.strength += strength
            existing.last_seen = now
            if sources:
                existing.sources.update(sources)
            logger.debug(f"Reinforced edge {source_id} -{relation}-> {target_id} (count={existing.count_seen})")
            return existing

        edge = GraphEdge(
            source_id=source_id,
            relation=relation,
            target_id=target_id,
            strength=strength,
            count_seen=1,
            last_seen=now,
            sources=set(sources) if sources else {"ingestion"},
        )
        self.store.edges.append(edge)
        return edge

    def link_pair(
        self,
        source: KnowledgeNode,
        relation: str,
        target: KnowledgeNode,
        reverse_relation: str,
        strength: float = 1.0,
        sources: Optional[Iterable[str]] = None,
        only_unlinked: bool = False,
    ) -> None:
        """
        Write a forward and a reverse relation as node links and edges.

        Args:
            source: Source node
            relation: Forward relation
            target: Target node
            reverse_relation: Relation written from target back to source
            strength: Edge strength of both edges
            sources: Provenance of both edges
            only_unlinked: Skip a node link when the node already links to the
                other node under any relation
        """
        sources = set(sources) if sources else None
        self.upsert_edge(source.node_id, relation, target.node_id, strength, sources)
        self.upsert_edge(target.node_id, reverse_relation, source.node_id, strength, sources)

        if not (only_unlinked and source.has_link(target.node_id)):
            source.add_link(relation, target.node_id)
        if not (only_unlinked and target.has_link(source.node_id)):
            target.add_link(reverse_relation, source.node_id)

    def remove_node_references(self, node_id: str) -> int:
        """
        Drop every edge and node link touching a node.

        Returns:
            Number of edges removed
        """
        before = len(self.store.edges)
        self.store.edges = [e for e in self.store.edges if e.source_id != node_id and e.target_id != node_id]
        for node in self.store.nodes:
            node.links = [l for l in node.links if l.target_node_id != node_id]
        return before - len(self.store.edges)

    def outgoing(self, node_id: str) -> List[GraphEdge]:
        return self.store.edges_from(node_id)
