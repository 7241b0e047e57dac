"""Unit tests for knowledge store migrations."""

from application.services.store_migrations import CURRENT_SCHEMA_VERSION, apply_migrations
from domain.clinical_models import KnowledgeNode, NodeKind, SemanticLink
from domain.knowledge_store import KnowledgeStore


def legacy_store():
    """A pre-migration snapshot: French relation names, keyless nodes."""
    return KnowledgeStore(
        semantic_links=[
            SemanticLink(link_id="L1", source_label="Râles", relation="synonyme_de", target_label="Crackles"),
            SemanticLink(link_id="L2", source_label="Rales", relation="synonym_of", target_label="crackles", strength=2),
            SemanticLink(link_id="L3", source_label="Thermometer", relation="mesure", target_label="Fever"),
        ],
        nodes=[
            KnowledgeNode(node_id="N1", pathology="Cirrhosis"),
            KnowledgeNode(
                node_id="N2",
                pathology="Cirrhosis",
                title="Management of Cirrhosis",
                node_kind=NodeKind.PROTOCOL,
            ),
            KnowledgeNode(node_id="N3", pathology="Guideline for Unknown Disease", node_kind=NodeKind.GUIDELINE),
        ],
    )


class TestApplyMigrations:
    """Test the versioned migration runner."""

    def test_applies_all_in_order(self):
        store = legacy_store()

        applied = apply_migrations(store)

        assert applied == ["relation_names", "node_keys", "protocol_links"]
        assert store.schema_version == CURRENT_SCHEMA_VERSION

    def test_rerun_is_noop(self):
        store = legacy_store()
        apply_migrations(store)
        snapshot = store.model_dump()

        assert apply_migrations(store) == []
        assert store.model_dump() == snapshot

    def test_only_newer_versions_run(self):
        store = legacy_store()
        store.schema_version = 2

        assert apply_migrations(store) == ["protocol_links"]
        assert store.semantic_links[0].relation == "synonyme_de"


class TestMigrations:
    """Test individual migrations."""

    def test_relation_names_renamed_and_folded(self):
        store = legacy_store()
        apply_migrations(store)

        relations = {l.link_id: l.relation for l in store.semantic_links}
        assert relations == {"L1": "synonym_of", "L3": "measures"}
        folded = store.semantic_links[0]
        assert folded.count_seen == 2
        assert folded.strength == 3

    def test_node_keys_backfilled(self):
        store = legacy_store()
        apply_migrations(store)

        assert store.get_node("N1").node_key == "pathology:cirrhosis"
        assert store.get_node("N2").node_key == "protocol:management of cirrhosis"

    def test_protocol_linked_by_title(self):
        store = legacy_store()
        apply_migrations(store)

        protocol, condition = store.get_node("N2"), store.get_node("N1")
        assert protocol.has_link("N1", "applies_to")
        assert condition.has_link("N2", "has_protocol")
        assert any(e.source_id == "N2" and e.relation == "applies_to" for e in store.edges)

    def test_unresolvable_title_target_skipped(self):
        store = legacy_store()
        apply_migrations(store)

        assert store.get_node("N3").links == []
