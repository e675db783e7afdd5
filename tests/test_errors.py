"""Tests for the conceptgraph error taxonomy."""

from conceptgraph.core.errors import (
    ConceptGraphError,
    CycleDetectedError,
    QueryError,
    QueryTimeoutError,
    RecordDecodeError,
    StoreConnectionError,
)


class TestErrorKinds:
    """Each error carries a stable kind tag."""

    def test_kinds(self):
        assert StoreConnectionError("x").kind == "connection"
        assert QueryError("x").kind == "query"
        assert RecordDecodeError("x").kind == "decode"
        assert QueryTimeoutError("x").kind == "timeout"
        assert CycleDetectedError(["a", "b"]).kind == "cycle_detected"

    def test_hierarchy(self):
        assert issubclass(RecordDecodeError, QueryError)
        assert issubclass(StoreConnectionError, ConnectionError)
        assert issubclass(QueryTimeoutError, TimeoutError)
        for cls in (StoreConnectionError, QueryError, QueryTimeoutError, CycleDetectedError):
            assert issubclass(cls, ConceptGraphError)

    def test_to_dict(self):
        error = QueryError("Query failed: boom", details={"statement": "SELEC"})
        assert error.to_dict() == {
            "kind": "query",
            "message": "Query failed: boom",
            "details": {"statement": "SELEC"},
        }

    def test_details_default_empty(self):
        assert StoreConnectionError("down").details == {}


class TestCycleDetectedError:
    """Tests for cycle reporting."""

    def test_message_closes_cycle(self):
        error = CycleDetectedError(["a", "b", "c"], goal_id="a")
        assert str(error) == "Prerequisite cycle detected: a -> b -> c -> a"
        assert error.cycle == ["a", "b", "c"]
        assert error.goal_id == "a"
        assert error.to_dict()["details"] == {"cycle": ["a", "b", "c"], "goal": "a"}
