"""Concept knowledge graph - models, store, and graph components."""

from .models import (
    # Enums
    ConceptType,
    RelationshipType,
    ResourceType,
    # Node models
    CodeExample,
    Concept,
    ExerciseAttempt,
    LearningPath,
    Relationship,
    Resource,
    UserKnowledge,
    # Query results
    ConceptSuggestion,
    ConceptSummary,
    GraphData,
    GraphLink,
    # Utilities
    compute_progress,
    gen_id,
)
from .store import GraphStore
from .concepts import ConceptRepository
from .knowledge import KnowledgeStateTracker
from .paths import LearningPathEngine, check_prerequisite_cycles, order_prerequisites
from .suggestions import SuggestionEngine
from .knowledge_graph import KnowledgeGraph
from .seed import seed_catalog

__all__ = [
    # Store and components
    "GraphStore",
    "ConceptRepository",
    "KnowledgeStateTracker",
    "LearningPathEngine",
    "SuggestionEngine",
    "KnowledgeGraph",
    # Enums
    "ConceptType",
    "RelationshipType",
    "ResourceType",
    # Node models
    "CodeExample",
    "Concept",
    "ExerciseAttempt",
    "LearningPath",
    "Relationship",
    "Resource",
    "UserKnowledge",
    # Query results
    "ConceptSuggestion",
    "ConceptSummary",
    "GraphData",
    "GraphLink",
    # Utilities
    "compute_progress",
    "gen_id",
    "check_prerequisite_cycles",
    "order_prerequisites",
    "seed_catalog",
]
