"""Common test fixtures for conceptgraph tests."""

import pytest

from conceptgraph.core.config import get_settings
from conceptgraph.graph import (
    Concept,
    ConceptRepository,
    ConceptType,
    GraphStore,
    KnowledgeGraph,
    KnowledgeStateTracker,
    LearningPathEngine,
    SuggestionEngine,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; reset around each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store():
    """Create an in-memory store for testing."""
    return GraphStore(":memory:")


@pytest.fixture
def concepts(store):
    return ConceptRepository(store)


@pytest.fixture
def tracker(store):
    return KnowledgeStateTracker(store)


@pytest.fixture
def engine(store, concepts):
    return LearningPathEngine(store, concepts)


@pytest.fixture
def suggestions(concepts, tracker):
    return SuggestionEngine(concepts, tracker)


@pytest.fixture
def graph(tmp_path):
    """Create a knowledge graph with a temp database."""
    return KnowledgeGraph(tmp_path / "test.db")


@pytest.fixture
def make_concept():
    """Factory for concepts with sensible defaults."""

    def _make(concept_id: str, difficulty: int = 1, prerequisites=None, **kwargs) -> Concept:
        return Concept(
            id=concept_id,
            name=kwargs.pop("name", concept_id.upper()),
            type=kwargs.pop("type", ConceptType.LANGUAGE),
            difficulty=difficulty,
            prerequisites=prerequisites or [],
            **kwargs,
        )

    return _make
