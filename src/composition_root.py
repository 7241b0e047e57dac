# src/composition_root.py

from dataclasses import dataclass
from typing import Optional

from application.services.auto_linker import AutoLinker
from application.services.concept_store import ConceptStore
from application.services.fragment_merger import FragmentMerger
from application.services.inference_engine import InferenceEngine
from application.services.knowledge_graph_service import KnowledgeGraphService
from application.services.node_edge_service import NodeEdgeService
from application.services.promotion_gate import ConceptAdmissionGate, LearningLoop
from application.services.semantic_link_service import SemanticLinkGraph
from application.services.vocabulary_registry import VocabularyRegistry
from config.knowledge_config import KnowledgeGraphConfig, get_config
from domain.knowledge_store import KnowledgeStore
from infrastructure.snapshot_repository import SnapshotRepository


@dataclass
class KnowledgeGraphServices:
    """All core services wired around one store value."""
    store: KnowledgeStore
    links: SemanticLinkGraph
    concepts: ConceptStore
    vocabulary: VocabularyRegistry
    learning: LearningLoop
    edges: NodeEdgeService
    auto_linker: AutoLinker
    graph: KnowledgeGraphService
    inference: InferenceEngine


# --- Factory Functions ---

def create_snapshot_repository(config: Optional[KnowledgeGraphConfig] = None) -> SnapshotRepository:
    """Creates the snapshot repository at the configured path."""
    config = config or get_config()
    return SnapshotRepository(config.storage.snapshot_path)


def bootstrap_services(
    store: KnowledgeStore,
    config: Optional[KnowledgeGraphConfig] = None,
) -> KnowledgeGraphServices:
    """Builds every service over the given store."""
    config = config or get_config()

    links = SemanticLinkGraph(store, max_hops=config.resolution.max_hops)
    concepts = ConceptStore(store, links)
    vocabulary = VocabularyRegistry(store)
    learning = LearningLoop(store, concepts, vocabulary, ConceptAdmissionGate(), config.learning)
    edges = NodeEdgeService(store)
    auto_linker = AutoLinker(store, edges, config.auto_link)
    graph = KnowledgeGraphService(
        store,
        links,
        concepts,
        learning,
        edges,
        auto_linker,
        merger=FragmentMerger(links),
        modality_config=config.modalities,
    )
    inference = InferenceEngine(
        store,
        links,
        concepts,
        vocabulary,
        config.scoring,
        candidate_provider=graph.search_medical_index,
    )
    return KnowledgeGraphServices(
        store=store,
        links=links,
        concepts=concepts,
        vocabulary=vocabulary,
        learning=learning,
        edges=edges,
        auto_linker=auto_linker,
        graph=graph,
        inference=inference,
    )
