"""
Shared fixtures for the clinical knowledge graph tests.

- store: freshly seeded knowledge store (seed links, syndrome, vocabulary)
- services: every core service wired around that store with default config
- make_extraction: builds ExtractionResult payloads with short element specs
"""

import pytest

from composition_root import bootstrap_services
from config.knowledge_config import KnowledgeGraphConfig
from domain.clinical_models import ElementType, NodeKind
from domain.extraction_models import ExtractedElement, ExtractionResult
from domain.knowledge_store import KnowledgeStore


@pytest.fixture
def config():
    """Default configuration (no YAML, no environment)."""
    return KnowledgeGraphConfig()


@pytest.fixture
def store():
    """A freshly seeded knowledge store."""
    return KnowledgeStore.seeded()


@pytest.fixture
def services(store, config):
    """All services over the seeded store."""
    return bootstrap_services(store, config)


@pytest.fixture
def make_extraction():
    """Factory for extraction results.

    Elements are given as (root_term, type) or (root_term, type, [qualifiers])
    or (root_term, type, [qualifiers], unit).
    """

    def _make(pathology, elements=(), node_kind=NodeKind.PATHOLOGY, **kwargs):
        clinical_elements = []
        for element in elements:
            root_term, element_type = element[0], element[1]
            qualifiers = element[2] if len(element) > 2 else []
            unit = element[3] if len(element) > 3 else None
            clinical_elements.append(
                ExtractedElement(
                    root_term=root_term,
                    type=ElementType(element_type),
                    values=list(qualifiers),
                    unit=unit,
                )
            )
        return ExtractionResult(
            pathology=pathology,
            node_kind=node_kind,
            clinical_elements=clinical_elements,
            **kwargs,
        )

    return _make
