"""Concept repository: concepts, examples, resources and their relationships.

Writes are merges keyed by id, so re-running ``add_concept`` after a partial
failure repairs the concept instead of duplicating it. The node itself is
always written by a single statement; edges follow as separate statements.
"""

import json
import logging
import sqlite3
from collections import defaultdict
from typing import Optional

from .models import (
    CONCEPT_RELATIONSHIP_TYPES,
    CodeExample,
    Concept,
    ConceptSummary,
    GraphData,
    GraphLink,
    Relationship,
    RelationshipType,
    Resource,
    gen_id,
    utcnow,
)
from .store import (
    LINK_CONFLICT,
    GraphStore,
    decode_record,
    json_list,
    load_json,
)

logger = logging.getLogger(__name__)

_CONCEPT_EDGE_TYPES = tuple(t.value for t in CONCEPT_RELATIONSHIP_TYPES)
_CONCEPT_EDGE_FILTER = "edge_type IN ({})".format(
    ", ".join(f"'{t}'" for t in _CONCEPT_EDGE_TYPES)
)


# =============================================================================
# Statements
# =============================================================================

_UPSERT_CONCEPT = """
INSERT INTO concepts (id, name, description, type, difficulty, created_at, updated_at)
VALUES (:id, :name, :description, :type, :difficulty, :now, :now)
ON CONFLICT (id) DO UPDATE SET
    name = excluded.name,
    description = excluded.description,
    type = excluded.type,
    difficulty = excluded.difficulty,
    updated_at = excluded.updated_at
"""

# Inserts only when both concepts exist; an existing edge takes the new position
_MERGE_CONCEPT_EDGE = f"""
INSERT INTO edges (id, from_id, from_type, to_id, to_type, edge_type, position, properties, created_at)
SELECT :id, :source, 'concept', :target, 'concept', :edge_type, :position, '{{}}', :now
WHERE EXISTS (SELECT 1 FROM concepts WHERE id = :source)
  AND EXISTS (SELECT 1 FROM concepts WHERE id = :target)
{LINK_CONFLICT} DO UPDATE SET position = excluded.position
"""

# Appends a prerequisite after the existing ones, leaving existing edges alone
_APPEND_CONCEPT_EDGE = f"""
INSERT INTO edges (id, from_id, from_type, to_id, to_type, edge_type, position, properties, created_at)
SELECT :id, :source, 'concept', :target, 'concept', :edge_type,
       (SELECT COALESCE(MAX(position) + 1, 0) FROM edges
        WHERE from_type = 'concept' AND from_id = :source AND edge_type = :edge_type),
       '{{}}', :now
WHERE EXISTS (SELECT 1 FROM concepts WHERE id = :source)
  AND EXISTS (SELECT 1 FROM concepts WHERE id = :target)
{LINK_CONFLICT} DO NOTHING
"""

_UPSERT_EXAMPLE = """
INSERT INTO code_examples (id, title, code, explanation, language, tags)
VALUES (:id, :title, :code, :explanation, :language, :tags)
ON CONFLICT (id) DO UPDATE SET
    title = excluded.title,
    code = excluded.code,
    explanation = excluded.explanation,
    language = excluded.language,
    tags = excluded.tags
"""

_UPSERT_RESOURCE = """
INSERT INTO resources (id, title, url, type, difficulty, effectiveness, tags)
VALUES (:id, :title, :url, :type, :difficulty, :effectiveness, :tags)
ON CONFLICT (id) DO UPDATE SET
    title = excluded.title,
    url = excluded.url,
    type = excluded.type,
    difficulty = excluded.difficulty,
    effectiveness = excluded.effectiveness,
    tags = excluded.tags
"""

_ATTACH = f"""
INSERT INTO edges (id, from_id, from_type, to_id, to_type, edge_type, position, properties, created_at)
VALUES (:id, :concept_id, 'concept', :target, :target_type, :edge_type, :position, '{{}}', :now)
{LINK_CONFLICT} DO UPDATE SET position = excluded.position
"""


class ConceptRepository:
    """CRUD and relationship management for concepts.

    Handles:
    - Merging concept nodes and their prerequisite/related edges
    - Attaching code examples and resources
    - Neighbor and full-graph queries for display
    - Prerequisite adjacency lookups for the path and suggestion engines
    """

    def __init__(self, store: GraphStore):
        self.store = store

    # =========================================================================
    # Writes
    # =========================================================================

    def add_concept(self, concept: Concept) -> Concept:
        """Create or update a concept and link it to its prerequisites.

        The node is merged on ``concept.id`` first. Prerequisite, related,
        example and resource links are then written one statement at a time,
        so a failure part-way leaves the node intact and a repeat call
        completes the remaining links.

        Args:
            concept: The concept to persist.

        Returns:
            The concept as given.
        """
        now = utcnow().isoformat()
        self.store.execute(
            _UPSERT_CONCEPT,
            {
                "id": concept.id,
                "name": concept.name,
                "description": concept.description,
                "type": concept.type.value,
                "difficulty": concept.difficulty,
                "now": now,
            },
        )

        for position, prereq_id in enumerate(concept.prerequisites):
            if not self._merge_edge(concept.id, prereq_id, RelationshipType.REQUIRES, position):
                logger.warning(f"Prerequisite {prereq_id} of {concept.id} not found, skipped")

        for position, related_id in enumerate(concept.related_concepts):
            if not self._merge_edge(concept.id, related_id, RelationshipType.SIMILAR_TO, position):
                logger.warning(f"Related concept {related_id} of {concept.id} not found, skipped")

        self._move_unlisted_edges_last(concept.id, RelationshipType.REQUIRES, concept.prerequisites)
        self._move_unlisted_edges_last(concept.id, RelationshipType.SIMILAR_TO, concept.related_concepts)

        for position, example in enumerate(concept.examples):
            self._attach_example(concept.id, example, position)

        for position, resource in enumerate(concept.resources):
            self._attach_resource(concept.id, resource, position)

        logger.info(f"Stored concept {concept.id} ({concept.name})")
        return concept

    def add_code_example(self, concept_id: str, example: CodeExample) -> Optional[CodeExample]:
        """Attach a code example to a concept.

        Returns:
            The example, or None if the concept does not exist.
        """
        if not self._concept_exists(concept_id):
            logger.warning(f"Concept not found: {concept_id}")
            return None
        self._attach_example(concept_id, example, self._next_position(concept_id, RelationshipType.HAS_EXAMPLE))
        return example

    def add_resource(self, concept_id: str, resource: Resource) -> Optional[Resource]:
        """Attach a learning resource to a concept.

        Returns:
            The resource, or None if the concept does not exist.
        """
        if not self._concept_exists(concept_id):
            logger.warning(f"Concept not found: {concept_id}")
            return None
        self._attach_resource(concept_id, resource, self._next_position(concept_id, RelationshipType.HAS_RESOURCE))
        return resource

    def add_relationship(self, relationship: Relationship) -> Optional[Relationship]:
        """Add a typed edge between two existing concepts.

        A REQUIRES edge added here is ordered after the source's existing
        prerequisites. Adding an edge that already exists is a no-op.

        Returns:
            The relationship, or None if either concept does not exist.

        Raises:
            ValueError: For structural edge types or self-loops.
        """
        if relationship.type not in CONCEPT_RELATIONSHIP_TYPES:
            raise ValueError(f"{relationship.type.value} is not a concept-to-concept relationship")
        if relationship.source == relationship.target:
            raise ValueError(f"Concept {relationship.source} cannot be linked to itself")

        with self.store.session() as conn:
            exists = conn.execute(
                "SELECT COUNT(*) FROM concepts WHERE id IN (:source, :target)",
                {"source": relationship.source, "target": relationship.target},
            ).fetchone()[0]
            if exists < 2:
                logger.warning(
                    f"Cannot link {relationship.source} -> {relationship.target}: concept not found"
                )
                return None
            conn.execute(
                _APPEND_CONCEPT_EDGE,
                {
                    "id": gen_id(),
                    "source": relationship.source,
                    "target": relationship.target,
                    "edge_type": relationship.type.value,
                    "now": utcnow().isoformat(),
                },
            )
        return relationship

    def _merge_edge(
        self, source: str, target: str, edge_type: RelationshipType, position: int
    ) -> bool:
        """Merge one concept-to-concept edge. Returns False if an endpoint is missing."""
        with self.store.session() as conn:
            cursor = conn.execute(
                _MERGE_CONCEPT_EDGE,
                {
                    "id": gen_id(),
                    "source": source,
                    "target": target,
                    "edge_type": edge_type.value,
                    "position": position,
                    "now": utcnow().isoformat(),
                },
            )
            return cursor.rowcount > 0

    def _move_unlisted_edges_last(
        self, concept_id: str, edge_type: RelationshipType, listed: list[str]
    ) -> None:
        """Renumber edges missing from ``listed`` to follow it, in their previous order."""
        with self.store.session() as conn:
            rows = conn.execute(
                """
                SELECT id FROM edges
                WHERE from_type = 'concept' AND from_id = :id AND edge_type = :edge_type
                  AND to_type = 'concept'
                  AND to_id NOT IN (SELECT value FROM json_each(:listed))
                ORDER BY position, created_at, to_id
                """,
                {"id": concept_id, "edge_type": edge_type.value, "listed": json_list(listed)},
            ).fetchall()
            for offset, row in enumerate(rows):
                conn.execute(
                    "UPDATE edges SET position = :position WHERE id = :id",
                    {"id": row["id"], "position": len(listed) + offset},
                )

    def _attach_example(self, concept_id: str, example: CodeExample, position: int) -> None:
        with self.store.session() as conn:
            conn.execute(
                _UPSERT_EXAMPLE,
                {
                    "id": example.id,
                    "title": example.title,
                    "code": example.code,
                    "explanation": example.explanation,
                    "language": example.language,
                    "tags": json.dumps(example.tags),
                },
            )
            conn.execute(
                _ATTACH,
                self._attach_params(concept_id, example.id, "example", RelationshipType.HAS_EXAMPLE, position),
            )

    def _attach_resource(self, concept_id: str, resource: Resource, position: int) -> None:
        with self.store.session() as conn:
            conn.execute(
                _UPSERT_RESOURCE,
                {
                    "id": resource.id,
                    "title": resource.title,
                    "url": resource.url,
                    "type": resource.type.value,
                    "difficulty": resource.difficulty,
                    "effectiveness": resource.effectiveness,
                    "tags": json.dumps(resource.tags),
                },
            )
            conn.execute(
                _ATTACH,
                self._attach_params(concept_id, resource.id, "resource", RelationshipType.HAS_RESOURCE, position),
            )

    @staticmethod
    def _attach_params(
        concept_id: str, target: str, target_type: str, edge_type: RelationshipType, position: int
    ) -> dict:
        return {
            "id": gen_id(),
            "concept_id": concept_id,
            "target": target,
            "target_type": target_type,
            "edge_type": edge_type.value,
            "position": position,
            "now": utcnow().isoformat(),
        }

    def _next_position(self, concept_id: str, edge_type: RelationshipType) -> int:
        rows = self.store.execute(
            "SELECT COALESCE(MAX(position) + 1, 0) AS next FROM edges "
            "WHERE from_type = 'concept' AND from_id = :id AND edge_type = :edge_type",
            {"id": concept_id, "edge_type": edge_type.value},
        )
        return rows[0]["next"]

    def _concept_exists(self, concept_id: str) -> bool:
        rows = self.store.execute("SELECT 1 FROM concepts WHERE id = :id", {"id": concept_id})
        return bool(rows)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_concept_by_id(self, concept_id: str) -> Optional[Concept]:
        """Get a concept with its prerequisites, examples and resources.

        Returns:
            The concept, or None if it does not exist.
        """
        with self.store.session() as conn:
            loaded = self._load_concepts(conn, [concept_id])
        return loaded.get(concept_id)

    def get_concepts(self, concept_ids: list[str]) -> list[Concept]:
        """Get several concepts, in the order given. Unknown ids are skipped."""
        if not concept_ids:
            return []
        with self.store.session() as conn:
            loaded = self._load_concepts(conn, concept_ids)
        return [loaded[cid] for cid in concept_ids if cid in loaded]

    def get_related_concepts(self, concept_id: str) -> list[Concept]:
        """Get concepts linked to a concept by any relationship, either direction.

        Returns:
            Related concepts sorted by name, then id.
        """
        with self.store.session() as conn:
            rows = conn.execute(
                f"""
                SELECT DISTINCT CASE WHEN from_id = :id THEN to_id ELSE from_id END AS other_id
                FROM edges
                WHERE from_type = 'concept' AND to_type = 'concept'
                  AND (from_id = :id OR to_id = :id)
                  AND {_CONCEPT_EDGE_FILTER}
                """,
                {"id": concept_id},
            ).fetchall()
            other_ids = [row["other_id"] for row in rows if row["other_id"] != concept_id]
            loaded = self._load_concepts(conn, other_ids)
        return sorted(loaded.values(), key=lambda c: (c.name, c.id))

    def get_graph_data(self) -> GraphData:
        """Get every concept node and every concept-to-concept edge."""
        with self.store.session() as conn:
            node_rows = conn.execute(
                "SELECT id, name, type, difficulty FROM concepts ORDER BY id"
            ).fetchall()
            edge_rows = conn.execute(
                f"""
                SELECT from_id AS source, to_id AS target, edge_type AS type
                FROM edges
                WHERE from_type = 'concept' AND to_type = 'concept' AND {_CONCEPT_EDGE_FILTER}
                ORDER BY from_id, edge_type, position, to_id
                """
            ).fetchall()
        return GraphData(
            nodes=[decode_record(ConceptSummary, row) for row in node_rows],
            relationships=[decode_record(GraphLink, row) for row in edge_rows],
        )

    def get_difficulties(self, concept_ids: list[str]) -> dict[str, int]:
        """Map concept ids to difficulty without loading attached records."""
        if not concept_ids:
            return {}
        rows = self.store.execute(
            "SELECT id, difficulty FROM concepts WHERE id IN (SELECT value FROM json_each(:ids))",
            {"ids": json_list(concept_ids)},
        )
        return {row["id"]: row["difficulty"] for row in rows}

    def get_prerequisite_edges(self, concept_ids: list[str]) -> list[tuple[str, str]]:
        """Find the prerequisites of the given concepts.

        Returns:
            (dependent_id, prerequisite_id) pairs in prerequisite order.
        """
        if not concept_ids:
            return []
        rows = self.store.execute(
            """
            SELECT from_id, to_id FROM edges
            WHERE edge_type = 'REQUIRES' AND from_type = 'concept' AND to_type = 'concept'
              AND from_id IN (SELECT value FROM json_each(:ids))
            ORDER BY from_id, position, to_id
            """,
            {"ids": json_list(concept_ids)},
        )
        return [(row["from_id"], row["to_id"]) for row in rows]

    def get_dependents(self, concept_ids: list[str]) -> list[tuple[str, str]]:
        """Find concepts that require any of the given concepts.

        Returns:
            (dependent_id, prerequisite_id) pairs.
        """
        if not concept_ids:
            return []
        rows = self.store.execute(
            """
            SELECT from_id, to_id FROM edges
            WHERE edge_type = 'REQUIRES' AND from_type = 'concept' AND to_type = 'concept'
              AND to_id IN (SELECT value FROM json_each(:ids))
            ORDER BY from_id, to_id
            """,
            {"ids": json_list(concept_ids)},
        )
        return [(row["from_id"], row["to_id"]) for row in rows]

    def _load_concepts(self, conn: sqlite3.Connection, concept_ids: list[str]) -> dict[str, Concept]:
        """Load and decode concepts with all of their attached records."""
        if not concept_ids:
            return {}
        params = {"ids": json_list(concept_ids)}

        rows = conn.execute(
            "SELECT * FROM concepts WHERE id IN (SELECT value FROM json_each(:ids))", params
        ).fetchall()
        if not rows:
            return {}

        links: dict[str, dict[str, list[str]]] = defaultdict(lambda: defaultdict(list))
        for row in conn.execute(
            """
            SELECT from_id, to_id, edge_type FROM edges
            WHERE from_type = 'concept' AND to_type = 'concept'
              AND edge_type IN ('REQUIRES', 'SIMILAR_TO')
              AND from_id IN (SELECT value FROM json_each(:ids))
            ORDER BY from_id, edge_type, position, created_at, to_id
            """,
            params,
        ):
            links[row["from_id"]][row["edge_type"]].append(row["to_id"])

        examples: dict[str, list[dict]] = defaultdict(list)
        for row in conn.execute(
            """
            SELECT e.from_id AS concept_id, x.* FROM edges e
            JOIN code_examples x ON x.id = e.to_id
            WHERE e.edge_type = 'HAS_EXAMPLE' AND e.from_type = 'concept'
              AND e.from_id IN (SELECT value FROM json_each(:ids))
            ORDER BY e.position, e.created_at, x.id
            """,
            params,
        ):
            record = dict(row)
            record["tags"] = load_json(record["tags"]) or []
            examples[record.pop("concept_id")].append(record)

        resources: dict[str, list[dict]] = defaultdict(list)
        for row in conn.execute(
            """
            SELECT e.from_id AS concept_id, r.* FROM edges e
            JOIN resources r ON r.id = e.to_id
            WHERE e.edge_type = 'HAS_RESOURCE' AND e.from_type = 'concept'
              AND e.from_id IN (SELECT value FROM json_each(:ids))
            ORDER BY e.position, e.created_at, r.id
            """,
            params,
        ):
            record = dict(row)
            record["tags"] = load_json(record["tags"]) or []
            resources[record.pop("concept_id")].append(record)

        result = {}
        for row in rows:
            cid = row["id"]
            result[cid] = decode_record(
                Concept,
                {
                    "id": cid,
                    "name": row["name"],
                    "description": row["description"],
                    "type": row["type"],
                    "difficulty": row["difficulty"],
                    "prerequisites": links[cid]["REQUIRES"],
                    "related_concepts": links[cid]["SIMILAR_TO"],
                    "examples": examples[cid],
                    "resources": resources[cid],
                },
            )
        return result
