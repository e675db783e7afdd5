"""Tests for the knowledge state tracker."""

from datetime import datetime, timedelta, timezone

import pytest

from conceptgraph.graph import ExerciseAttempt


@pytest.fixture
def catalog(concepts, make_concept):
    for cid in ("concept-js", "concept-css", "concept-html"):
        concepts.add_concept(make_concept(cid))
    return concepts


class TestUpdateUserKnowledge:
    """Tests for recording practice."""

    def test_creates_record(self, catalog, tracker):
        knowledge = tracker.update_user_knowledge("alice", "concept-js", 7.5)
        assert knowledge is not None
        assert knowledge.user_id == "alice"
        assert knowledge.concept_id == "concept-js"
        assert knowledge.proficiency == 7.5
        assert knowledge.last_practiced.tzinfo is not None

    def test_one_record_per_pair(self, catalog, tracker):
        tracker.update_user_knowledge("alice", "concept-js", 3)
        tracker.update_user_knowledge("alice", "concept-js", 6)
        tracker.update_user_knowledge("alice", "concept-js", 8)

        records = tracker.get_user_knowledge("alice")
        assert len(records) == 1
        assert records[0].proficiency == 8.0

    @pytest.mark.parametrize("given,stored", [(15, 10.0), (-2, 0.0), (10, 10.0)])
    def test_proficiency_clamped(self, catalog, tracker, given, stored):
        knowledge = tracker.update_user_knowledge("alice", "concept-js", given)
        assert knowledge.proficiency == stored
        assert tracker.get_knowledge("alice", "concept-js").proficiency == stored

    def test_unknown_concept_returns_none(self, catalog, tracker):
        assert tracker.update_user_knowledge("alice", "ghost", 5) is None
        assert tracker.get_user_knowledge("alice") == []

    def test_explicit_last_practiced(self, catalog, tracker):
        practiced = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        knowledge = tracker.update_user_knowledge(
            "alice", "concept-js", 4, last_practiced=practiced
        )
        assert knowledge.last_practiced == practiced

    def test_users_are_independent(self, catalog, tracker):
        tracker.update_user_knowledge("alice", "concept-js", 9)
        tracker.update_user_knowledge("bob", "concept-js", 2)
        assert tracker.get_knowledge("alice", "concept-js").proficiency == 9.0
        assert tracker.get_knowledge("bob", "concept-js").proficiency == 2.0

    def test_merges_user_node(self, catalog, tracker):
        tracker.update_user_knowledge("alice", "concept-js", 1)
        tracker.update_user_knowledge("alice", "concept-css", 1)
        assert tracker.store.counts()["users"] == 1


class TestExerciseHistory:
    """Tests for the append-only exercise history."""

    def test_appends_attempts(self, catalog, tracker):
        start = datetime(2024, 5, 1, tzinfo=timezone.utc)
        first = ExerciseAttempt(exercise_id="ex-1", score=0.4, timestamp=start)
        second = ExerciseAttempt(
            exercise_id="ex-2",
            completed=True,
            score=0.9,
            feedback="Nice",
            timestamp=start + timedelta(hours=1),
        )
        tracker.update_user_knowledge("alice", "concept-js", 4, exercise=first)
        knowledge = tracker.update_user_knowledge("alice", "concept-js", 7, exercise=second)

        assert [e.exercise_id for e in knowledge.exercises] == ["ex-1", "ex-2"]
        assert knowledge.exercises[1].completed is True
        assert knowledge.exercises[1].feedback == "Nice"
        assert knowledge.exercises[0].timestamp == start

    def test_same_attempt_recorded_once(self, catalog, tracker):
        attempt = ExerciseAttempt(exercise_id="ex-1")
        tracker.update_user_knowledge("alice", "concept-js", 4, exercise=attempt)
        knowledge = tracker.update_user_knowledge("alice", "concept-js", 4, exercise=attempt)
        assert len(knowledge.exercises) == 1

    def test_history_is_per_concept(self, catalog, tracker):
        tracker.update_user_knowledge(
            "alice", "concept-js", 4, exercise=ExerciseAttempt(exercise_id="js-ex")
        )
        tracker.update_user_knowledge("alice", "concept-css", 4)
        assert tracker.get_knowledge("alice", "concept-css").exercises == []


class TestReads:
    """Tests for reading knowledge records."""

    def test_sorted_by_concept_id(self, catalog, tracker):
        for cid in ("concept-js", "concept-html", "concept-css"):
            tracker.update_user_knowledge("alice", cid, 5)
        records = tracker.get_user_knowledge("alice")
        assert [r.concept_id for r in records] == ["concept-css", "concept-html", "concept-js"]

    def test_unknown_user(self, catalog, tracker):
        assert tracker.get_user_knowledge("nobody") == []

    def test_get_knowledge_unpracticed(self, catalog, tracker):
        tracker.update_user_knowledge("alice", "concept-js", 5)
        assert tracker.get_knowledge("alice", "concept-css") is None
