"""Error taxonomy for conceptgraph.

Every failure raised by the store or the graph components carries a ``kind``
tag so outer layers (HTTP handlers, the CLI) can report a structured error
without inspecting exception classes. Absent records are not errors: lookups
return ``None`` or an empty list instead.
"""

from typing import Any, Optional


class ConceptGraphError(Exception):
    """Base class for all conceptgraph errors."""

    kind = "error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Structured form of the error: kind tag, message and details."""
        return {"kind": self.kind, "message": self.message, "details": self.details}


class StoreConnectionError(ConceptGraphError, ConnectionError):
    """The graph store could not be reached. Callers may retry with backoff."""

    kind = "connection"


class QueryError(ConceptGraphError):
    """Malformed statement or constraint violation. Not retried automatically."""

    kind = "query"


class RecordDecodeError(QueryError):
    """A store record was missing fields or had mistyped values."""

    kind = "decode"


class QueryTimeoutError(ConceptGraphError, TimeoutError):
    """A store session ran past its deadline or waited too long for a lock."""

    kind = "timeout"


class CycleDetectedError(ConceptGraphError):
    """The prerequisite closure of a goal concept contains a cycle."""

    kind = "cycle_detected"

    def __init__(self, cycle: list[str], goal_id: Optional[str] = None):
        path = " -> ".join(cycle + cycle[:1]) if cycle else "?"
        super().__init__(
            f"Prerequisite cycle detected: {path}",
            details={"cycle": cycle, "goal": goal_id},
        )
        self.cycle = cycle
        self.goal_id = goal_id
