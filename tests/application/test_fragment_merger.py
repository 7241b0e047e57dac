"""Unit tests for the fragment merging pre-pass."""

import pytest

from application.services.fragment_merger import MERGE_LINK_SOURCE, FragmentMerger
from domain.clinical_models import ElementType
from domain.extraction_models import ExtractedElement


@pytest.fixture
def merger(services):
    return FragmentMerger(services.links)


def element(term, element_type=ElementType.CLINICAL_SIGN, **kwargs):
    return ExtractedElement(root_term=term, type=element_type, **kwargs)


class TestFragmentMerger:
    """Test modifier/noun merging."""

    def test_merge_split_compound(self, merger, services):
        """Test "Palmar" + "Erythema" become "Palmar erythema"."""
        elements = [
            element("Palmar", characteristics=["bilateral"]),
            element("Erythema"),
            element("Fever", ElementType.SYMPTOM),
        ]

        merged = merger.merge(elements)

        assert [e.root_term for e in merged] == ["Palmar erythema", "Fever"]
        assert merged[0].characteristics == ["bilateral"]
        link = services.links.find_link("Palmar", "part_of", "Palmar erythema")
        assert link is not None
        assert link.sources == {MERGE_LINK_SOURCE}

    def test_noun_already_compound(self, merger):
        """Test a noun element that already carries the modifier keeps its term."""
        merged = merger.merge([element("Spider"), element("Spider angiomas")])

        assert [e.root_term for e in merged] == ["Spider angiomas"]

    def test_noun_contained_in_longer_term(self, merger):
        merged = merger.merge([element("Shifting"), element("Flank dullness")])

        assert [e.root_term for e in merged] == ["Shifting flank dullness"]

    def test_modifier_without_noun_is_kept(self, merger, services):
        merged = merger.merge([element("Palmar"), element("Fever")])

        assert [e.root_term for e in merged] == ["Palmar", "Fever"]
        assert services.links.find_link("Palmar", "part_of", "Palmar erythema") is None

    def test_input_not_mutated(self, merger):
        elements = [element("Palmar"), element("Erythema")]

        merger.merge(elements)

        assert [e.root_term for e in elements] == ["Palmar", "Erythema"]
