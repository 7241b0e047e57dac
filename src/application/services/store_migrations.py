"""Knowledge store migrations.

Each migration upgrades a loaded snapshot by one schema version. They run
once at load time, in order, for every version above store.schema_version;
running them again on an up-to-date store is a no-op.
"""

import logging
import re
from typing import Callable, Dict, List, Tuple

from domain.clinical_lexicon import LEGACY_RELATION_NAMES
from domain.clinical_models import NodeKind, SemanticLink
from domain.knowledge_store import KnowledgeStore
from application.services.knowledge_graph_service import generate_node_key, reverse_applies_to
from application.services.node_edge_service import NodeEdgeService
from application.services.semantic_link_service import SemanticLinkGraph, link_key
from application.services.semantic_normalizer import normalize_label

logger = logging.getLogger(__name__)

PROTOCOL_TITLE_PATTERN = re.compile(r"(?:management|protocol|guideline)\s+(?:of|for)\s+(.+)", re.IGNORECASE)
PROTOCOL_KINDS = (NodeKind.GUIDELINE, NodeKind.PROTOCOL, NodeKind.SYNDROME)


def migrate_relation_names(store: KnowledgeStore) -> int:
    """Rename legacy relation names and fold links that become duplicates."""
    renamed = 0
    merged: Dict[Tuple[str, str, str], SemanticLink] = {}
    kept: List[SemanticLink] = []

    for link in store.semantic_links:
        english = LEGACY_RELATION_NAMES.get(normalize_label(link.relation))
        if english:
            link.relation = english
            renamed += 1

        key = link_key(link.source_label, link.relation, link.target_label)
        first = merged.get(key)
        if first:
            first.strength += link.strength
            first.count_seen += link.count_seen
            first.sources.update(link.sources)
            first.last_seen = max(first.last_seen, link.last_seen)
            continue
        merged[key] = link
        kept.append(link)

    store.semantic_links = kept
    return renamed


def backfill_node_keys(store: KnowledgeStore) -> int:
    count = 0
    for node in store.nodes:
        if not node.node_key:
            node.node_key = generate_node_key(node.node_kind, node.pathology, node.title)
            count += 1
    return count


def link_protocols_by_title(store: KnowledgeStore) -> int:
    """
    Link guideline/protocol/syndrome nodes to the condition named in their title.

    "Management of Cirrhosis" -applies_to-> "Cirrhosis"
    """
    links = SemanticLinkGraph(store)
    edges = NodeEdgeService(store)
    count = 0

    for node in store.nodes:
        if node.node_kind not in PROTOCOL_KINDS:
            continue
        if any(l.relation == "applies_to" for l in node.links):
            continue
        match = PROTOCOL_TITLE_PATTERN.search(node.display_label)
        if not match:
            continue

        target_label = normalize_label(match.group(1))
        resolved = links.resolve_label(target_label)
        target = next(
            (n for n in store.nodes
             if n.node_id != node.node_id
             and normalize_label(n.display_label) in (target_label, resolved)),
            None,
        )
        if target is None:
            continue

        edges.link_pair(node, "applies_to", target, reverse_applies_to(node.node_kind), sources={"migration"})
        logger.info(f"Linked '{node.display_label}' -applies_to-> '{target.display_label}'")
        count += 1
    return count


MIGRATIONS: List[Tuple[int, str, Callable[[KnowledgeStore], int]]] = [
    (1, "relation_names", migrate_relation_names),
    (2, "node_keys", backfill_node_keys),
    (3, "protocol_links", link_protocols_by_title),
]

CURRENT_SCHEMA_VERSION = MIGRATIONS[-1][0]


def apply_migrations(store: KnowledgeStore) -> List[str]:
    """
    Bring a store up to the current schema version.

    Returns:
        Names of the migrations applied
    """
    applied = []
    for version, name, migrate in MIGRATIONS:
        if version <= store.schema_version:
            continue
        changed = migrate(store)
        store.schema_version = version
        applied.append(name)
        logger.info(f"Applied migration {version} ({name}): {changed} record(s) changed")
    return applied
