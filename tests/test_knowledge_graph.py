"""Tests for the KnowledgeGraph interface and the starter catalog."""

import pytest

from conceptgraph.core.config import Settings
from conceptgraph.core.errors import StoreConnectionError
from conceptgraph.graph import (
    CodeExample,
    KnowledgeGraph,
    Relationship,
    RelationshipType,
    Resource,
    ResourceType,
    seed_catalog,
)


class TestEndToEnd:
    """A learner goes from one known concept to a derived path."""

    def test_practice_suggest_path_advance(self, graph, make_concept):
        graph.add_concept(make_concept("B", difficulty=2))
        graph.add_concept(make_concept("A", difficulty=4, prerequisites=["B"]))

        knowledge = graph.update_user_knowledge("u", "B", 7)
        assert knowledge.proficiency == 7.0

        assert [c.id for c in graph.suggest_next_concepts("u")] == ["A"]

        path = graph.generate_learning_path("u", "A")
        assert path.concepts == ["B", "A"]
        assert (path.current_index, path.progress) == (0, 0)

        advanced = graph.advance_path(path)
        assert (advanced.current_index, advanced.progress) == (1, 100)

        again = graph.advance_path(path)
        assert (again.current_index, again.progress) == (1, 100)

        assert [p.id for p in graph.get_user_learning_paths("u")] == [path.id]
        assert graph.get_learning_path(path.id).progress == 100

    def test_known_prerequisite_unlocks_dependent(self, graph, make_concept):
        graph.add_concept(make_concept("A", difficulty=1))
        graph.add_concept(make_concept("B", difficulty=2, prerequisites=["A"]))
        graph.update_user_knowledge("user1", "A", proficiency=8)

        assert [c.id for c in graph.suggest_next_concepts("user1")] == ["B"]

    def test_delegates_concept_operations(self, graph, make_concept):
        graph.add_concept(make_concept("a"))
        graph.add_concept(make_concept("b", prerequisites=["a"]))

        assert graph.add_code_example("a", CodeExample(id="ex", code="1", language="js")) is not None
        assert graph.add_resource(
            "a", Resource(id="r", title="R", url="https://example.com", type=ResourceType.ARTICLE)
        ) is not None
        assert graph.add_relationship(
            Relationship(source="b", target="a", type=RelationshipType.USES)
        ) is not None

        concept = graph.get_concept_by_id("a")
        assert [e.id for e in concept.examples] == ["ex"]
        assert [r.id for r in concept.resources] == ["r"]
        assert [c.id for c in graph.get_related_concepts("a")] == ["b"]
        assert len(graph.get_graph_data().relationships) == 2

    def test_delegates_knowledge_and_path_operations(self, graph, make_concept):
        graph.add_concept(make_concept("a"))
        graph.add_concept(make_concept("b"))
        graph.update_user_knowledge("u", "a", 3)

        assert graph.get_knowledge("u", "a").proficiency == 3.0
        assert [k.concept_id for k in graph.get_user_knowledge("u")] == ["a"]
        assert [s.concept.id for s in graph.rank_next_concepts("u")] == []

        path = graph.create_learning_path("u", ["a", "b"], path_id="p")
        assert graph.update_learning_path(path).progress == 0


class TestLifecycle:
    """Tests for construction and connectivity."""

    def test_verify_connection(self, graph):
        assert graph.verify_connection() is True

    def test_store_property(self, graph):
        assert graph.store.verify_connection() is True

    def test_close_is_safe_to_repeat(self):
        graph = KnowledgeGraph(":memory:")
        graph.close()
        graph.close()
        assert graph.verify_connection() is False
        with pytest.raises(StoreConnectionError):
            graph.get_graph_data()

    def test_file_graph_persists(self, tmp_path, make_concept):
        KnowledgeGraph(tmp_path / "g.db").add_concept(make_concept("kept"))
        assert KnowledgeGraph(tmp_path / "g.db").get_concept_by_id("kept") is not None

    def test_from_settings(self, tmp_path, monkeypatch, make_concept):
        db_path = tmp_path / "nested" / "graph.db"
        monkeypatch.setenv("CONCEPTGRAPH_DB_PATH", str(db_path))
        monkeypatch.setenv("CONCEPTGRAPH_MAX_PATH_DEPTH", "1")
        monkeypatch.setenv("CONCEPTGRAPH_SUGGESTION_COUNT", "1")

        graph = KnowledgeGraph.from_settings()
        assert db_path.parent.is_dir()
        assert graph.store.db_path == str(db_path)

        graph.add_concept(make_concept("c2"))
        graph.add_concept(make_concept("c1", prerequisites=["c2"]))
        graph.add_concept(make_concept("c0", prerequisites=["c1"]))
        graph.add_concept(make_concept("other", prerequisites=["c2"]))
        assert graph.generate_learning_path("u", "c0").concepts == ["c1", "c0"]

        graph.update_user_knowledge("u", "c2", 5)
        assert len(graph.suggest_next_concepts("u")) == 1

    def test_explicit_zero_limits_kept(self, make_concept):
        graph = KnowledgeGraph(":memory:", max_path_depth=0, suggestion_count=0)
        graph.add_concept(make_concept("base"))
        graph.add_concept(make_concept("goal", prerequisites=["base"]))
        graph.update_user_knowledge("u", "base", 6)

        assert graph.generate_learning_path("u", "goal").concepts == ["goal"]
        assert graph.suggest_next_concepts("u") == []
        assert [c.id for c in graph.suggest_next_concepts("u", count=1)] == ["goal"]

    def test_from_explicit_settings(self, tmp_path):
        settings = Settings(_env_file=None, CONCEPTGRAPH_DB_PATH=str(tmp_path / "explicit.db"))
        graph = KnowledgeGraph.from_settings(settings)
        assert graph.store.db_path == str(tmp_path / "explicit.db")


class TestSeedCatalog:
    """Tests for the starter catalog."""

    def test_seed_counts(self):
        graph = KnowledgeGraph(":memory:")
        assert seed_catalog(graph) == 12

        counts = graph.counts()
        assert counts["concepts"] == 12
        assert counts["code_examples"] == 4
        assert counts["resources"] == 3
        assert counts["relationships"] == 20

    def test_seed_is_idempotent(self):
        graph = KnowledgeGraph(":memory:")
        seed_catalog(graph)
        first = graph.counts()
        snapshot = graph.get_graph_data()

        seed_catalog(graph)
        assert graph.counts() == first
        assert graph.get_graph_data() == snapshot

    def test_react_concept(self):
        graph = KnowledgeGraph(":memory:")
        seed_catalog(graph)

        react = graph.get_concept_by_id("concept-react")
        assert react.name == "React"
        assert react.prerequisites == ["concept-javascript", "concept-dom"]
        assert [e.id for e in react.examples] == ["example-react-component"]

        related = {c.id for c in graph.get_related_concepts("concept-react")}
        assert {"concept-javascript", "concept-dom", "concept-virtual-dom", "concept-react-hooks"} <= related
