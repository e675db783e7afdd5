"""SQLite graph store for the concept knowledge graph.

Nodes live in typed tables; every relationship (prerequisites, examples,
proficiency records, path inclusions) lives in the single ``edges`` table.
Each operation runs inside one scoped session that is released on every exit
path, and sqlite failures are translated into the typed errors of
``conceptgraph.core.errors`` before they leave the session.
"""

import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Sequence, TypeVar, Union

from pydantic import BaseModel, ValidationError

from conceptgraph.core.errors import (
    ConceptGraphError,
    QueryError,
    QueryTimeoutError,
    RecordDecodeError,
    StoreConnectionError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

Params = Union[Mapping[str, Any], Sequence[Any], None]

DEFAULT_TIMEOUT = 5.0

# VM instructions between deadline checks
PROGRESS_STEPS = 1000


# =============================================================================
# Schema Definition
# =============================================================================

SCHEMA = """
-- Concepts table
CREATE TABLE IF NOT EXISTS concepts (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL,
    difficulty INTEGER NOT NULL CHECK (difficulty BETWEEN 1 AND 10),
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME
);

-- Code examples table
CREATE TABLE IF NOT EXISTS code_examples (
    id TEXT PRIMARY KEY,
    title TEXT,
    code TEXT NOT NULL,
    explanation TEXT NOT NULL DEFAULT '',
    language TEXT NOT NULL,
    tags JSON
);

-- Resources table
CREATE TABLE IF NOT EXISTS resources (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    url TEXT NOT NULL,
    type TEXT NOT NULL,
    difficulty INTEGER NOT NULL DEFAULT 1,
    effectiveness REAL NOT NULL DEFAULT 0.5,
    tags JSON
);

-- Users table
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Learning paths table
CREATE TABLE IF NOT EXISTS learning_paths (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    current_index INTEGER NOT NULL DEFAULT 0,
    progress INTEGER NOT NULL DEFAULT 0,
    created DATETIME NOT NULL,
    updated DATETIME NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id)
);

-- Exercise attempts table (append-only practice history)
CREATE TABLE IF NOT EXISTS exercise_attempts (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    concept_id TEXT NOT NULL,
    exercise_id TEXT NOT NULL,
    completed INTEGER NOT NULL DEFAULT 0,
    score REAL NOT NULL DEFAULT 0,
    timestamp DATETIME NOT NULL,
    feedback TEXT NOT NULL DEFAULT ''
);

-- Edges table
CREATE TABLE IF NOT EXISTS edges (
    id TEXT PRIMARY KEY,
    from_id TEXT NOT NULL,
    from_type TEXT NOT NULL,
    to_id TEXT NOT NULL,
    to_type TEXT NOT NULL,
    edge_type TEXT NOT NULL,
    position INTEGER NOT NULL DEFAULT 0,
    properties JSON,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- One edge per (from, to, type); path inclusions are keyed by slot instead
CREATE UNIQUE INDEX IF NOT EXISTS idx_edges_unique_link
    ON edges(from_type, from_id, to_type, to_id, edge_type)
    WHERE edge_type <> 'INCLUDES';
CREATE UNIQUE INDEX IF NOT EXISTS idx_edges_unique_slot
    ON edges(from_id, edge_type, position)
    WHERE edge_type = 'INCLUDES';

-- Indexes
CREATE INDEX IF NOT EXISTS idx_edges_from ON edges(from_id, edge_type);
CREATE INDEX IF NOT EXISTS idx_edges_to ON edges(to_id, edge_type);
CREATE INDEX IF NOT EXISTS idx_paths_user ON learning_paths(user_id);
CREATE INDEX IF NOT EXISTS idx_exercises_user ON exercise_attempts(user_id, concept_id);
"""

# Conflict target matching idx_edges_unique_link, for upserts
LINK_CONFLICT = (
    "ON CONFLICT (from_type, from_id, to_type, to_id, edge_type) "
    "WHERE edge_type <> 'INCLUDES'"
)

# Conflict target matching idx_edges_unique_slot
SLOT_CONFLICT = "ON CONFLICT (from_id, edge_type, position) WHERE edge_type = 'INCLUDES'"


# =============================================================================
# Record Helpers
# =============================================================================


def decode_record(model: type[T], data: Mapping[str, Any]) -> T:
    """Decode a store record into a validated model.

    Raises:
        RecordDecodeError: If fields are missing or mistyped.
    """
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        raise RecordDecodeError(
            f"Invalid {model.__name__} record: {e.error_count()} error(s)",
            details={
                "model": model.__name__,
                "errors": [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()],
            },
        ) from e


def json_list(values: Sequence[str]) -> str:
    """Encode ids for ``IN (SELECT value FROM json_each(:ids))`` parameters."""
    return json.dumps(list(values))


def load_json(value: Optional[str]) -> Any:
    """Deserialize a JSON column value."""
    if value is None:
        return None
    return json.loads(value)


# =============================================================================
# GraphStore Class
# =============================================================================


class GraphStore:
    """SQLite-based storage for the concept knowledge graph.

    The store is stateless between calls: file databases open a fresh
    connection per session, the in-memory database shares one connection
    guarded by a lock. It is safe to share one instance across threads.
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        timeout: Optional[float] = None,
        create_schema: bool = True,
    ):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory.
            timeout: Default deadline in seconds for each session.
            create_schema: If True, create tables and indexes immediately.
        """
        self.db_path = str(db_path)
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT
        self._is_memory = self.db_path == ":memory:"
        self._lock = threading.RLock()
        self._persistent_conn: Optional[sqlite3.Connection] = None

        # For in-memory DBs, create persistent connection immediately
        if self._is_memory:
            self._persistent_conn = sqlite3.connect(":memory:", check_same_thread=False)
            self._persistent_conn.row_factory = sqlite3.Row

        if create_schema:
            self.ensure_schema()

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        with self.session() as conn:
            conn.executescript(SCHEMA)

    def close(self) -> None:
        """Release the shared in-memory connection, if any."""
        with self._lock:
            if self._persistent_conn is not None:
                self._persistent_conn.close()
                self._persistent_conn = None

    # =========================================================================
    # Sessions
    # =========================================================================

    @contextmanager
    def _acquire(self, budget: float) -> Iterator[sqlite3.Connection]:
        """Acquire a connection for one session and release it afterwards."""
        if self._is_memory:
            if not self._lock.acquire(timeout=budget):
                raise QueryTimeoutError(
                    f"Timed out after {budget:.2f}s waiting for the graph store",
                    details={"timeout": budget},
                )
            try:
                if self._persistent_conn is None:
                    raise StoreConnectionError("In-memory graph store has been closed")
                yield self._persistent_conn
            finally:
                self._lock.release()
        else:
            try:
                conn = sqlite3.connect(self.db_path, timeout=budget)
            except sqlite3.Error as e:
                raise StoreConnectionError(
                    f"Cannot open graph store at {self.db_path}: {e}",
                    details={"db_path": self.db_path},
                ) from e
            conn.row_factory = sqlite3.Row
            try:
                yield conn
            finally:
                conn.close()

    @contextmanager
    def session(self, timeout: Optional[float] = None) -> Iterator[sqlite3.Connection]:
        """Run one unit of work against the store.

        Commits on success, rolls back on failure, and always releases the
        connection. Statements still running when the deadline passes are
        interrupted.

        Args:
            timeout: Deadline in seconds, defaults to the store timeout.

        Raises:
            StoreConnectionError: If the database cannot be opened.
            QueryTimeoutError: If the deadline passes or a lock wait expires.
            QueryError: On malformed statements or constraint violations.
        """
        budget = timeout if timeout is not None else self.timeout
        deadline = time.monotonic() + budget

        with self._acquire(budget) as conn:
            conn.set_progress_handler(lambda: int(time.monotonic() > deadline), PROGRESS_STEPS)
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise self._translate(e, budget) from e
            except BaseException:
                conn.rollback()
                raise
            finally:
                conn.set_progress_handler(None, 0)

    def _translate(self, exc: sqlite3.Error, budget: float) -> ConceptGraphError:
        """Map a sqlite error onto the conceptgraph error taxonomy."""
        message = str(exc)
        lowered = message.lower()
        if isinstance(exc, sqlite3.OperationalError):
            if "interrupted" in lowered:
                return QueryTimeoutError(
                    f"Query exceeded its {budget:.2f}s deadline",
                    details={"timeout": budget},
                )
            if "locked" in lowered or "busy" in lowered:
                return QueryTimeoutError(
                    f"Graph store stayed locked for {budget:.2f}s: {message}",
                    details={"timeout": budget},
                )
            if "unable to open" in lowered or "disk i/o" in lowered:
                return StoreConnectionError(
                    f"Graph store unavailable: {message}",
                    details={"db_path": self.db_path},
                )
        if isinstance(exc, sqlite3.IntegrityError):
            return QueryError(f"Constraint violation: {message}")
        return QueryError(f"Query failed: {message}")

    # =========================================================================
    # Query Execution
    # =========================================================================

    def execute(
        self, query: str, params: Params = None, timeout: Optional[float] = None
    ) -> list[sqlite3.Row]:
        """Execute one parameterized statement in its own session.

        Returns:
            Rows in result order, each addressable by field name.
        """
        with self.session(timeout=timeout) as conn:
            return conn.execute(query, params or {}).fetchall()

    def verify_connection(self) -> bool:
        """Check that the store is reachable. Never raises."""
        try:
            self.execute("SELECT 1")
            return True
        except Exception as e:
            logger.error(f"Graph store connection error: {e}")
            return False

    def counts(self) -> dict[str, int]:
        """Count nodes and relationships, for verifying an initialized store."""
        with self.session() as conn:
            result = {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in ("concepts", "code_examples", "resources", "users", "learning_paths")
            }
            result["relationships"] = conn.execute(
                "SELECT COUNT(*) FROM edges WHERE from_type = 'concept' AND to_type = 'concept'"
            ).fetchone()[0]
        return result
