"""KnowledgeGraph - High-level interface for the concept knowledge graph.

Owns one GraphStore and wires the concept, knowledge, path and suggestion
components to it, exposing every graph operation under one object.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from conceptgraph.core.config import Settings, get_settings

from .concepts import ConceptRepository
from .knowledge import KnowledgeStateTracker
from .models import (
    CodeExample,
    Concept,
    ConceptSuggestion,
    ExerciseAttempt,
    GraphData,
    LearningPath,
    Relationship,
    Resource,
    UserKnowledge,
)
from .paths import DEFAULT_MAX_DEPTH, LearningPathEngine
from .store import GraphStore
from .suggestions import DEFAULT_SUGGESTION_COUNT, SuggestionEngine


class KnowledgeGraph:
    """High-level interface for the concept knowledge graph.

    Example:
        graph = KnowledgeGraph("./data/conceptgraph.db")
        graph.add_concept(Concept(id="concept-js", name="JavaScript", type="LANGUAGE", difficulty=3))
        graph.update_user_knowledge("user-1", "concept-js", 7.5)
        path = graph.generate_learning_path("user-1", "concept-react")
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        timeout: Optional[float] = None,
        max_path_depth: Optional[int] = None,
        suggestion_count: Optional[int] = None,
    ):
        """Initialize the knowledge graph.

        Args:
            db_path: Path to SQLite database, or ":memory:" for in-memory.
            timeout: Deadline in seconds for each store session.
            max_path_depth: Prerequisite hops followed when generating paths.
            suggestion_count: Default number of next-concept suggestions.
        """
        self._store = GraphStore(db_path, timeout=timeout)
        self._concepts = ConceptRepository(self._store)
        self._knowledge = KnowledgeStateTracker(self._store)
        self._paths = LearningPathEngine(
            self._store,
            self._concepts,
            max_depth=DEFAULT_MAX_DEPTH if max_path_depth is None else max_path_depth,
        )
        self._suggestions = SuggestionEngine(
            self._concepts,
            self._knowledge,
            default_count=(
                DEFAULT_SUGGESTION_COUNT if suggestion_count is None else suggestion_count
            ),
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "KnowledgeGraph":
        """Build a graph from environment settings, creating the data directory."""
        settings = settings or get_settings()
        settings.db_path.parent.mkdir(parents=True, exist_ok=True)
        return cls(
            settings.db_path,
            timeout=settings.query_timeout,
            max_path_depth=settings.max_path_depth,
            suggestion_count=settings.suggestion_count,
        )

    @property
    def store(self) -> GraphStore:
        """Access the underlying graph store."""
        return self._store

    def verify_connection(self) -> bool:
        """Check that the store is reachable. Never raises."""
        return self._store.verify_connection()

    def counts(self) -> dict[str, int]:
        """Node and relationship counts."""
        return self._store.counts()

    def close(self) -> None:
        """Release store resources. Safe to call more than once."""
        self._store.close()

    # =========================================================================
    # Concept Operations
    # =========================================================================

    def add_concept(self, concept: Concept) -> Concept:
        """Create or update a concept with its prerequisites and attachments."""
        return self._concepts.add_concept(concept)

    def get_concept_by_id(self, concept_id: str) -> Optional[Concept]:
        return self._concepts.get_concept_by_id(concept_id)

    def get_related_concepts(self, concept_id: str) -> list[Concept]:
        return self._concepts.get_related_concepts(concept_id)

    def get_graph_data(self) -> GraphData:
        """Full snapshot of concept nodes and concept-to-concept edges."""
        return self._concepts.get_graph_data()

    def add_code_example(self, concept_id: str, example: CodeExample) -> Optional[CodeExample]:
        return self._concepts.add_code_example(concept_id, example)

    def add_resource(self, concept_id: str, resource: Resource) -> Optional[Resource]:
        return self._concepts.add_resource(concept_id, resource)

    def add_relationship(self, relationship: Relationship) -> Optional[Relationship]:
        return self._concepts.add_relationship(relationship)

    # =========================================================================
    # Knowledge Operations
    # =========================================================================

    def update_user_knowledge(
        self,
        user_id: str,
        concept_id: str,
        proficiency: float,
        last_practiced: Optional[datetime] = None,
        exercise: Optional[ExerciseAttempt] = None,
    ) -> Optional[UserKnowledge]:
        """Record a practice event. Proficiency is clamped to 0-10."""
        return self._knowledge.update_user_knowledge(
            user_id, concept_id, proficiency, last_practiced=last_practiced, exercise=exercise
        )

    def get_user_knowledge(self, user_id: str) -> list[UserKnowledge]:
        return self._knowledge.get_user_knowledge(user_id)

    def get_knowledge(self, user_id: str, concept_id: str) -> Optional[UserKnowledge]:
        return self._knowledge.get_knowledge(user_id, concept_id)

    # =========================================================================
    # Learning Path Operations
    # =========================================================================

    def create_learning_path(
        self, user_id: str, concepts: list[str], path_id: Optional[str] = None
    ) -> Optional[LearningPath]:
        return self._paths.create_learning_path(user_id, concepts, path_id=path_id)

    def generate_learning_path(
        self, user_id: str, goal_concept_id: str, max_depth: Optional[int] = None
    ) -> Optional[LearningPath]:
        """Derive and persist a prerequisite-ordered path ending at the goal."""
        return self._paths.generate_learning_path(user_id, goal_concept_id, max_depth=max_depth)

    def advance_path(self, path: Union[LearningPath, str]) -> Optional[LearningPath]:
        return self._paths.advance_path(path)

    def update_learning_path(self, path: LearningPath) -> Optional[LearningPath]:
        return self._paths.update_learning_path(path)

    def get_learning_path(self, path_id: str) -> Optional[LearningPath]:
        return self._paths.get_learning_path(path_id)

    def get_user_learning_paths(self, user_id: str) -> list[LearningPath]:
        return self._paths.get_user_learning_paths(user_id)

    # =========================================================================
    # Suggestions
    # =========================================================================

    def suggest_next_concepts(self, user_id: str, count: Optional[int] = None) -> list[Concept]:
        """Concepts the user is ready to learn next, best first."""
        return self._suggestions.suggest_next_concepts(user_id, count)

    def rank_next_concepts(
        self, user_id: str, count: Optional[int] = None
    ) -> list[ConceptSuggestion]:
        return self._suggestions.rank_next_concepts(user_id, count)
