"""Pydantic models for the concept knowledge graph.

Node Types:
- Concept: A unit of learnable material (language, framework, pattern, ...)
- CodeExample: Example code attached to a concept
- Resource: External learning material attached to a concept
- LearningPath: An ordered, per-user walk through concepts

Edge Types:
- REQUIRES: Concept → Concept (dependent → prerequisite)
- SIMILAR_TO / IMPLEMENTS / USES / EXTENDS: Concept → Concept
- HAS_EXAMPLE: Concept → CodeExample
- HAS_RESOURCE: Concept → Resource
- KNOWS: User → Concept (proficiency record, one per pair)
- INCLUDES: LearningPath → Concept (positioned)

Field names serialize to camelCase (``relatedConcepts``, ``currentIndex``,
``lastPracticed``) so JSON records match what the UI and HTTP layer expect.
"""

import math
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def gen_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def compute_progress(current_index: int, length: int) -> int:
    """Progress percentage for a path position.

    A one-concept path cannot advance, so it stays at 0.
    """
    if length < 2:
        return 0
    index = min(max(current_index, 0), length - 1)
    return round(index / (length - 1) * 100)


# =============================================================================
# Enums
# =============================================================================


class ConceptType(str, Enum):
    """Kind of concept."""

    LANGUAGE = "LANGUAGE"
    FRAMEWORK = "FRAMEWORK"
    PATTERN = "PATTERN"
    ALGORITHM = "ALGORITHM"
    DATA_STRUCTURE = "DATA_STRUCTURE"
    BEST_PRACTICE = "BEST_PRACTICE"


class ResourceType(str, Enum):
    """Kind of learning resource."""

    ARTICLE = "ARTICLE"
    VIDEO = "VIDEO"
    DOCUMENTATION = "DOCUMENTATION"
    TUTORIAL = "TUTORIAL"
    EXERCISE = "EXERCISE"


class RelationshipType(str, Enum):
    """Types of edges in the knowledge graph."""

    REQUIRES = "REQUIRES"  # Concept → prerequisite Concept
    SIMILAR_TO = "SIMILAR_TO"  # Concept → Concept
    IMPLEMENTS = "IMPLEMENTS"  # Concept → Concept
    USES = "USES"  # Concept → Concept
    EXTENDS = "EXTENDS"  # Concept → Concept
    HAS_EXAMPLE = "HAS_EXAMPLE"  # Concept → CodeExample
    HAS_RESOURCE = "HAS_RESOURCE"  # Concept → Resource
    KNOWS = "KNOWS"  # User → Concept
    INCLUDES = "INCLUDES"  # LearningPath → Concept


# Edge types allowed between two concepts
CONCEPT_RELATIONSHIP_TYPES = (
    RelationshipType.REQUIRES,
    RelationshipType.SIMILAR_TO,
    RelationshipType.IMPLEMENTS,
    RelationshipType.USES,
    RelationshipType.EXTENDS,
)


class GraphModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Concept Models
# =============================================================================


class Resource(GraphModel):
    """External learning material for a concept."""

    id: str = Field(default_factory=gen_id)
    title: str
    url: str
    type: ResourceType
    difficulty: int = Field(default=1, ge=1, le=10)
    effectiveness: float = Field(default=0.5, ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)


class CodeExample(GraphModel):
    """Example code illustrating a concept."""

    id: str = Field(default_factory=gen_id)
    title: Optional[str] = None
    code: str
    explanation: str = ""
    language: str
    tags: list[str] = Field(default_factory=list)


class Concept(GraphModel):
    """A unit of learnable material in the knowledge graph."""

    id: str = Field(default_factory=gen_id, min_length=1)
    name: str
    description: str = ""
    type: ConceptType
    difficulty: int = Field(ge=1, le=10)
    prerequisites: list[str] = Field(default_factory=list)  # ordered concept ids
    related_concepts: list[str] = Field(default_factory=list)
    resources: list[Resource] = Field(default_factory=list)
    examples: list[CodeExample] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_references(self) -> "Concept":
        if self.id in self.prerequisites:
            raise ValueError(f"Concept {self.id} cannot be its own prerequisite")
        if self.id in self.related_concepts:
            raise ValueError(f"Concept {self.id} cannot be related to itself")
        # Keep first occurrence, preserve order
        self.prerequisites = list(dict.fromkeys(self.prerequisites))
        self.related_concepts = list(dict.fromkeys(self.related_concepts))
        return self


class Relationship(GraphModel):
    """A typed, directed edge between two concepts."""

    source: str
    target: str
    type: RelationshipType


# =============================================================================
# Knowledge Models
# =============================================================================


class ExerciseAttempt(GraphModel):
    """One practice attempt recorded against a concept."""

    id: str = Field(default_factory=gen_id)
    exercise_id: str
    completed: bool = False
    score: float = 0.0
    timestamp: datetime = Field(default_factory=utcnow)
    feedback: str = ""


class UserKnowledge(GraphModel):
    """A user's proficiency on one concept (the KNOWS edge)."""

    user_id: str
    concept_id: str
    proficiency: float  # clamped to 0-10
    last_practiced: datetime = Field(default_factory=utcnow)
    exercises: list[ExerciseAttempt] = Field(default_factory=list)

    @field_validator("proficiency")
    @classmethod
    def _clamp_proficiency(cls, value: float) -> float:
        if math.isnan(value):
            raise ValueError("proficiency must be a number")
        return min(max(value, 0.0), 10.0)


# =============================================================================
# Learning Path Model
# =============================================================================


class LearningPath(GraphModel):
    """An ordered sequence of concepts for one user, with progress state."""

    id: str = Field(default_factory=gen_id)
    user_id: str
    concepts: list[str]
    current_index: int = Field(default=0, ge=0)
    progress: int = Field(default=0, ge=0, le=100)
    created: datetime = Field(default_factory=utcnow)
    updated: datetime = Field(default_factory=utcnow)


# =============================================================================
# Query Result Models
# =============================================================================


class ConceptSummary(GraphModel):
    """Concept node as shown by the graph visualization."""

    id: str
    name: str
    type: ConceptType
    difficulty: int


class GraphLink(GraphModel):
    """Concept-to-concept edge as shown by the graph visualization."""

    source: str
    target: str
    type: RelationshipType


class GraphData(GraphModel):
    """Full snapshot of the concept graph."""

    nodes: list[ConceptSummary] = Field(default_factory=list)
    relationships: list[GraphLink] = Field(default_factory=list)


class ConceptSuggestion(GraphModel):
    """A ranked next-concept suggestion."""

    concept: Concept
    score: float  # mean proficiency over known prerequisites
    known_prerequisites: list[str] = Field(default_factory=list)
