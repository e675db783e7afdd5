"""Tests for conceptgraph GraphStore."""

import threading

import pytest

from conceptgraph.core.errors import (
    QueryError,
    QueryTimeoutError,
    RecordDecodeError,
    StoreConnectionError,
)
from conceptgraph.graph import Concept, ConceptRepository, GraphStore
from conceptgraph.graph.store import decode_record

INFINITE_QUERY = (
    "WITH RECURSIVE counter(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM counter) "
    "SELECT COUNT(*) FROM counter"
)


def _insert_concept(store, concept_id="c", difficulty=1):
    store.execute(
        "INSERT INTO concepts (id, name, type, difficulty) VALUES (:id, :id, 'LANGUAGE', :difficulty)",
        {"id": concept_id, "difficulty": difficulty},
    )


def _run_in_thread(fn):
    """Run fn in another thread and return (result, exception)."""
    outcome = {}

    def worker():
        try:
            outcome["result"] = fn()
        except Exception as e:
            outcome["error"] = e

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join(timeout=5)
    return outcome.get("result"), outcome.get("error")


class TestGraphStoreInit:
    """Tests for store initialization."""

    def test_creates_schema(self, store):
        with store.session() as conn:
            for table in (
                "concepts",
                "code_examples",
                "resources",
                "users",
                "learning_paths",
                "exercise_attempts",
                "edges",
            ):
                result = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                    (table,),
                ).fetchone()
                assert result is not None, f"Table {table} should exist"

    def test_ensure_schema_is_idempotent(self, store):
        _insert_concept(store)
        store.ensure_schema()
        assert store.counts()["concepts"] == 1

    def test_file_store_persists(self, tmp_path, make_concept):
        db_path = tmp_path / "graph.db"
        ConceptRepository(GraphStore(db_path)).add_concept(make_concept("persisted"))

        reopened = ConceptRepository(GraphStore(db_path))
        assert reopened.get_concept_by_id("persisted") is not None

    def test_counts_empty(self, store):
        assert store.counts() == {
            "concepts": 0,
            "code_examples": 0,
            "resources": 0,
            "users": 0,
            "learning_paths": 0,
            "relationships": 0,
        }


class TestExecute:
    """Tests for single statements and error translation."""

    def test_rows_addressable_by_name(self, store):
        _insert_concept(store, "c1", difficulty=4)
        rows = store.execute("SELECT id, difficulty FROM concepts WHERE id = :id", {"id": "c1"})
        assert len(rows) == 1
        assert rows[0]["id"] == "c1"
        assert rows[0]["difficulty"] == 4

    def test_malformed_statement_raises_query_error(self, store):
        with pytest.raises(QueryError) as exc_info:
            store.execute("SELEC * FROM concepts")
        assert exc_info.value.kind == "query"

    def test_constraint_violation_raises_query_error(self, store):
        with pytest.raises(QueryError, match="Constraint violation"):
            _insert_concept(store, "bad", difficulty=11)

    def test_duplicate_id_raises_query_error(self, store):
        _insert_concept(store, "dup")
        with pytest.raises(QueryError):
            _insert_concept(store, "dup")

    def test_deadline_interrupts_long_query(self, store):
        with pytest.raises(QueryTimeoutError) as exc_info:
            store.execute(INFINITE_QUERY, timeout=0.05)
        assert isinstance(exc_info.value, TimeoutError)
        assert exc_info.value.kind == "timeout"

    def test_store_usable_after_timeout(self, store):
        with pytest.raises(QueryTimeoutError):
            store.execute(INFINITE_QUERY, timeout=0.05)
        assert store.execute("SELECT 1 AS one")[0]["one"] == 1

    def test_file_store_deadline(self, tmp_path):
        store = GraphStore(tmp_path / "graph.db")
        with pytest.raises(QueryTimeoutError):
            store.execute(INFINITE_QUERY, timeout=0.05)


class TestSessions:
    """Tests for session scoping."""

    def test_rolls_back_on_failure(self, store):
        with pytest.raises(RuntimeError):
            with store.session() as conn:
                conn.execute(
                    "INSERT INTO concepts (id, name, type, difficulty) VALUES ('x', 'X', 'LANGUAGE', 1)"
                )
                raise RuntimeError("boom")
        assert store.counts()["concepts"] == 0

    def test_commits_on_success(self, store):
        with store.session() as conn:
            conn.execute(
                "INSERT INTO concepts (id, name, type, difficulty) VALUES ('x', 'X', 'LANGUAGE', 1)"
            )
        assert store.counts()["concepts"] == 1

    def test_released_after_failed_statement(self, store):
        with pytest.raises(QueryError):
            store.execute("SELEC 1")

        result, error = _run_in_thread(lambda: store.execute("SELECT 1 AS one", timeout=1))
        assert error is None
        assert result[0]["one"] == 1

    def test_lock_wait_times_out(self, store):
        with store.session():
            result, error = _run_in_thread(lambda: store.execute("SELECT 1", timeout=0.05))
        assert result is None
        assert isinstance(error, QueryTimeoutError)

    def test_closed_memory_store_raises_connection_error(self):
        store = GraphStore(":memory:")
        store.close()
        store.close()
        with pytest.raises(StoreConnectionError):
            store.execute("SELECT 1")


class TestVerifyConnection:
    """Tests for connectivity checks."""

    def test_reachable(self, store):
        assert store.verify_connection() is True

    def test_unreachable_returns_false(self, tmp_path):
        store = GraphStore(tmp_path / "missing" / "graph.db", create_schema=False)
        assert store.verify_connection() is False

    def test_unreachable_execute_raises(self, tmp_path):
        store = GraphStore(tmp_path / "missing" / "graph.db", create_schema=False)
        with pytest.raises(StoreConnectionError) as exc_info:
            store.execute("SELECT 1")
        assert isinstance(exc_info.value, ConnectionError)


class TestDecodeRecord:
    """Tests for typed decoding of rows."""

    def test_decodes_valid_record(self):
        concept = decode_record(
            Concept, {"id": "c", "name": "C", "type": "LANGUAGE", "difficulty": 2}
        )
        assert concept.difficulty == 2

    def test_wraps_validation_errors(self):
        with pytest.raises(RecordDecodeError) as exc_info:
            decode_record(Concept, {"id": "c", "name": "C"})
        error = exc_info.value
        assert isinstance(error, QueryError)
        assert error.details["model"] == "Concept"
        assert error.details["errors"]
