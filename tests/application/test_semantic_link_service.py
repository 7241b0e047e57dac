"""Unit tests for the semantic link graph."""

import pytest

from application.services.semantic_link_service import SemanticLinkGraph
from domain.knowledge_store import KnowledgeStore


@pytest.fixture
def empty_graph():
    """Link graph over an empty store."""
    return SemanticLinkGraph(KnowledgeStore())


@pytest.fixture
def seeded_graph(store):
    """Link graph over the seeded store."""
    return SemanticLinkGraph(store)


class TestUpsertLink:
    """Test link insertion and reinforcement."""

    def test_insert(self, empty_graph):
        """Test a new link is stored with its provenance."""
        link = empty_graph.upsert_link("Rales", "synonym_of", "Crackles", sources={"doc_1"})

        assert link is not None
        assert link.count_seen == 1
        assert link.strength == 1.0
        assert link.sources == {"doc_1"}
        assert len(empty_graph.store.semantic_links) == 1

    def test_reinforcement_sums_strength(self, empty_graph):
        """Test N upserts of the same key give one record with count N."""
        strengths = [1.0, 2.0, 1.5, 3.0]
        for strength in strengths:
            empty_graph.upsert_link("Angina", "synonym_of", "Chest pain", strength=strength)

        assert len(empty_graph.store.semantic_links) == 1
        link = empty_graph.store.semantic_links[0]
        assert link.count_seen == len(strengths)
        assert link.strength == sum(strengths)

    def test_key_is_normalized(self, empty_graph):
        """Test case and accent variants reinforce the same link."""
        empty_graph.upsert_link("Ictère", "Synonym_Of", "Jaundice")
        empty_graph.upsert_link("ICTERE", "synonym_of", " jaundice ")

        assert len(empty_graph.store.semantic_links) == 1
        assert empty_graph.store.semantic_links[0].count_seen == 2

    def test_self_loop_is_noop(self, empty_graph):
        """Test a link whose ends normalize to the same label is rejected."""
        assert empty_graph.upsert_link("Fever", "synonym_of", " FEVER") is None
        assert empty_graph.store.semantic_links == []

    def test_empty_key_is_noop(self, empty_graph):
        """Test an empty end or relation aborts the upsert only."""
        assert empty_graph.upsert_link("", "synonym_of", "Fever") is None
        assert empty_graph.upsert_link("Fever", "  ", "Pyrexia") is None
        assert empty_graph.store.semantic_links == []


class TestResolveLabel:
    """Test transitive resolution."""

    def test_seed_synonym(self, seeded_graph):
        """Test seed synonyms resolve to their canonical label."""
        assert seeded_graph.resolve_label("Rales") == "crackles"
        assert seeded_graph.resolve_label("Angina") == "chest pain"
        assert seeded_graph.resolve_label("Polypnea") == "dyspnea"

    def test_unlinked_label_resolves_to_itself(self, seeded_graph):
        assert seeded_graph.resolve_label("Ascites") == "ascites"

    def test_only_synonym_and_is_a_are_followed(self, seeded_graph):
        """Test measures / sign_of links do not resolve."""
        assert seeded_graph.resolve_label("Thermometer") == "thermometer"
        assert seeded_graph.resolve_label("Crackles") == "crackles"

    def test_transitive_chain(self, empty_graph):
        empty_graph.upsert_link("Febricula", "synonym_of", "Low grade fever")
        empty_graph.upsert_link("Low grade fever", "is_a", "Fever")

        assert empty_graph.resolution_path("Febricula") == ["febricula", "low grade fever", "fever"]

    def test_cycle_terminates(self, empty_graph):
        """Test A synonym_of B, B synonym_of A stops at B."""
        empty_graph.upsert_link("A", "synonym_of", "B")
        empty_graph.upsert_link("B", "synonym_of", "A")

        assert empty_graph.resolve_label("A") == "b"
        assert empty_graph.resolve_label("B") == "a"

    def test_hop_limit(self, empty_graph):
        """Test resolution stops after max_hops."""
        labels = [f"L{i}" for i in range(10)]
        for source, target in zip(labels, labels[1:]):
            empty_graph.upsert_link(source, "is_a", target)

        assert empty_graph.resolve_label("L0") == "l6"
        assert empty_graph.resolve_label("L0", max_hops=2) == "l2"

    def test_greedy_strongest_link(self, empty_graph):
        """Test the strongest outgoing link wins, then the most seen."""
        empty_graph.upsert_link("Pyrexia", "synonym_of", "Hyperthermia")
        empty_graph.upsert_link("Pyrexia", "synonym_of", "Fever", strength=3.0)
        assert empty_graph.resolve_label("Pyrexia") == "fever"

        empty_graph.upsert_link("Dolor", "synonym_of", "Ache", strength=2.0)
        empty_graph.upsert_link("Dolor", "synonym_of", "Pain")
        empty_graph.upsert_link("Dolor", "synonym_of", "Pain")
        # equal strength 2.0, "pain" seen twice
        assert empty_graph.resolve_label("Dolor") == "pain"

    def test_outgoing_filter(self, seeded_graph):
        measures = seeded_graph.outgoing("Thermometer", relations={"measures"})
        assert [l.target_label for l in measures] == ["Fever"]
        assert seeded_graph.outgoing("Thermometer", relations={"synonym_of"}) == []
