"""Learning path engine.

Creates, derives and advances per-user learning paths. Path order is stored
explicitly as a ``position`` on each INCLUDES edge, and ``progress`` is always
recomputed here from ``current_index`` and path length.

Deriving a path from a goal concept:
1. Collect the goal's prerequisite closure by following REQUIRES edges
   outward, at most ``max_depth`` hops (deeper prerequisites are omitted).
2. Order the closure with Kahn's algorithm, emitting ready concepts by
   (difficulty, id) so the result is deterministic. The goal comes last.
3. Reject any cycle passing through a closure concept with CycleDetectedError,
   even when the cycle closes through concepts past the depth bound.
"""

import logging
import sqlite3
from collections import defaultdict
from typing import Optional, Union

import networkx as nx

from conceptgraph.core.errors import CycleDetectedError

from .concepts import ConceptRepository
from .models import LearningPath, compute_progress, gen_id, utcnow
from .store import SLOT_CONFLICT, GraphStore, decode_record, json_list

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5

# Optimistic retries when another caller advances the same path concurrently
ADVANCE_ATTEMPTS = 3


_CLOSURE_CTE = """
WITH RECURSIVE closure(id, depth) AS (
    SELECT :goal_id, 0
    UNION
    SELECT e.to_id, c.depth + 1
    FROM closure c
    JOIN edges e
      ON e.from_id = c.id
     AND e.from_type = 'concept'
     AND e.to_type = 'concept'
     AND e.edge_type = 'REQUIRES'
    WHERE c.depth < :max_depth
)
"""

# Unbounded, deduplicated on id, so it terminates on cyclic graphs
_REACHABLE_CTE = """
WITH RECURSIVE reachable(id) AS (
    SELECT :goal_id
    UNION
    SELECT e.to_id
    FROM reachable r
    JOIN edges e
      ON e.from_id = r.id
     AND e.from_type = 'concept'
     AND e.to_type = 'concept'
     AND e.edge_type = 'REQUIRES'
)
SELECT id FROM reachable
"""

_INSERT_PATH = """
INSERT INTO learning_paths (id, user_id, current_index, progress, created, updated)
VALUES (:id, :user_id, 0, 0, :now, :now)
ON CONFLICT (id) DO NOTHING
"""

_INCLUDE_CONCEPT = f"""
INSERT INTO edges (id, from_id, from_type, to_id, to_type, edge_type, position, properties, created_at)
VALUES (:id, :path_id, 'path', :concept_id, 'concept', 'INCLUDES', :position, '{{}}', :now)
{SLOT_CONFLICT} DO NOTHING
"""


def order_prerequisites(
    goal_id: str,
    requires: list[tuple[str, str]],
    difficulty: dict[str, int],
) -> list[str]:
    """Topologically order a goal's prerequisite closure.

    Args:
        goal_id: The goal concept; it is placed last.
        requires: (dependent_id, prerequisite_id) edges inside the closure.
        difficulty: Difficulty of every concept in the closure.

    Returns:
        Concept ids where every prerequisite precedes the concepts requiring it.

    Raises:
        CycleDetectedError: If the edges contain a cycle.
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(difficulty)
    graph.add_node(goal_id)
    graph.add_edges_from((prereq, dependent) for dependent, prereq in requires)

    try:
        order = list(
            nx.lexicographical_topological_sort(graph, key=lambda n: (difficulty.get(n, 0), n))
        )
    except nx.NetworkXUnfeasible:
        cycle = [u for u, _v in nx.find_cycle(graph)]
        raise CycleDetectedError(cycle, goal_id=goal_id) from None

    # Goal last, even for edges that do not all lead to it
    order.remove(goal_id)
    order.append(goal_id)
    return order


def check_prerequisite_cycles(
    goal_id: str,
    requires: list[tuple[str, str]],
    concept_ids: set[str],
) -> None:
    """Reject prerequisite cycles that pass through any of ``concept_ids``.

    Args:
        goal_id: The goal concept, reported on the error.
        requires: (dependent_id, prerequisite_id) edges, possibly reaching
            beyond ``concept_ids``.
        concept_ids: Concepts that must not lie on a cycle.

    Raises:
        CycleDetectedError: Naming the first offending cycle found.
    """
    graph = nx.DiGraph()
    graph.add_edges_from((prereq, dependent) for dependent, prereq in requires)

    for component in nx.strongly_connected_components(graph):
        if len(component) > 1 and not component.isdisjoint(concept_ids):
            cycle = [u for u, _v in nx.find_cycle(graph.subgraph(component))]
            raise CycleDetectedError(cycle, goal_id=goal_id)


class LearningPathEngine:
    """Creates and advances ordered learning paths."""

    def __init__(
        self,
        store: GraphStore,
        concepts: ConceptRepository,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.store = store
        self.concepts = concepts
        self.max_depth = max_depth

    # =========================================================================
    # Creation
    # =========================================================================

    def create_learning_path(
        self, user_id: str, concepts: list[str], path_id: Optional[str] = None
    ) -> Optional[LearningPath]:
        """Create a learning path over an explicit concept sequence.

        The path node is written first, then one positioned INCLUDES edge per
        concept. Passing the same ``path_id`` again completes a partially
        written path instead of creating a second one.

        Args:
            user_id: The learner the path belongs to.
            concepts: Concept ids in learning order.
            path_id: Optional id, for retry-safe creation.

        Returns:
            The path at index 0 with progress 0, or None if any concept is unknown.

        Raises:
            ValueError: If the sequence is empty or repeats a concept.
        """
        if not concepts:
            raise ValueError("A learning path needs at least one concept")
        if len(set(concepts)) != len(concepts):
            raise ValueError("A learning path cannot include the same concept twice")

        rows = self.store.execute(
            "SELECT id FROM concepts WHERE id IN (SELECT value FROM json_each(:ids))",
            {"ids": json_list(concepts)},
        )
        found = {row["id"] for row in rows}
        missing = [cid for cid in concepts if cid not in found]
        if missing:
            logger.warning(f"Cannot create path for {user_id}, unknown concepts: {missing}")
            return None

        path_id = path_id or gen_id()
        now = utcnow().isoformat()
        with self.store.session() as conn:
            conn.execute(
                "INSERT INTO users (id, created_at) VALUES (:user_id, :now) ON CONFLICT (id) DO NOTHING",
                {"user_id": user_id, "now": now},
            )
            conn.execute(_INSERT_PATH, {"id": path_id, "user_id": user_id, "now": now})

        for position, concept_id in enumerate(concepts):
            self.store.execute(
                _INCLUDE_CONCEPT,
                {
                    "id": gen_id(),
                    "path_id": path_id,
                    "concept_id": concept_id,
                    "position": position,
                    "now": now,
                },
            )

        logger.info(f"Created learning path {path_id} for {user_id} ({len(concepts)} concepts)")
        return self.get_learning_path(path_id)

    def generate_learning_path(
        self, user_id: str, goal_concept_id: str, max_depth: Optional[int] = None
    ) -> Optional[LearningPath]:
        """Derive a learning path that ends at a goal concept.

        Args:
            user_id: The learner the path belongs to.
            goal_concept_id: The concept the learner wants to reach.
            max_depth: Prerequisite hops to follow (defaults to the engine setting).

        Returns:
            The persisted path, or None if the goal concept does not exist.

        Raises:
            CycleDetectedError: If a prerequisite cycle passes through any
                concept in the bounded closure.
        """
        depth = self.max_depth if max_depth is None else max_depth
        params = {"goal_id": goal_concept_id, "max_depth": depth}

        closure = self.store.execute(
            _CLOSURE_CTE
            + """
            SELECT k.id AS id, k.difficulty AS difficulty
            FROM concepts k
            WHERE k.id IN (SELECT id FROM closure)
            """,
            params,
        )
        difficulty = {row["id"]: row["difficulty"] for row in closure}
        if goal_concept_id not in difficulty:
            logger.warning(f"Goal concept not found: {goal_concept_id}")
            return None

        reachable = [
            row["id"] for row in self.store.execute(_REACHABLE_CTE, {"goal_id": goal_concept_id})
        ]
        edges = self.concepts.get_prerequisite_edges(reachable)
        check_prerequisite_cycles(goal_concept_id, edges, set(difficulty))

        # Edges leaving the depth limit are dropped along with their targets
        requires = [
            (dependent, prereq)
            for dependent, prereq in edges
            if dependent in difficulty and prereq in difficulty
        ]

        order = order_prerequisites(goal_concept_id, requires, difficulty)
        logger.info(f"Derived path to {goal_concept_id} for {user_id}: {order}")
        return self.create_learning_path(user_id, order)

    # =========================================================================
    # Progress
    # =========================================================================

    def advance_path(self, path: Union[LearningPath, str]) -> Optional[LearningPath]:
        """Move a path to its next concept.

        Only the path id is taken from the argument; index and progress are
        read from the store and recomputed here. Advancing a path that is
        already at its last concept leaves it unchanged.

        Returns:
            The updated path, or None if the path does not exist.
        """
        path_id = path.id if isinstance(path, LearningPath) else path

        for _attempt in range(ADVANCE_ATTEMPTS):
            current = self.get_learning_path(path_id)
            if current is None:
                logger.warning(f"Learning path not found: {path_id}")
                return None

            length = len(current.concepts)
            if current.current_index >= length - 1:
                logger.debug(f"Path {path_id} already at its last concept")
                return current

            new_index = current.current_index + 1
            progress = compute_progress(new_index, length)
            updated = utcnow()
            with self.store.session() as conn:
                cursor = conn.execute(
                    """
                    UPDATE learning_paths
                    SET current_index = :new_index, progress = :progress, updated = :updated
                    WHERE id = :id AND current_index = :old_index
                    """,
                    {
                        "id": path_id,
                        "new_index": new_index,
                        "old_index": current.current_index,
                        "progress": progress,
                        "updated": updated.isoformat(),
                    },
                )
            if cursor.rowcount == 1:
                return current.model_copy(
                    update={"current_index": new_index, "progress": progress, "updated": updated}
                )
            logger.info(f"Path {path_id} advanced concurrently, retrying")

        return self.get_learning_path(path_id)

    def update_learning_path(self, path: LearningPath) -> Optional[LearningPath]:
        """Re-derive and persist a path's progress.

        Client-supplied ``current_index`` and ``progress`` are ignored; the
        stored index is kept (clamped to the path length) and progress is
        recomputed from it.

        Returns:
            The persisted path, or None if the path does not exist.
        """
        current = self.get_learning_path(path.id)
        if current is None:
            logger.warning(f"Learning path not found: {path.id}")
            return None

        length = len(current.concepts)
        index = min(current.current_index, max(length - 1, 0))
        progress = compute_progress(index, length)
        if path.current_index != index or path.progress != progress:
            logger.warning(
                f"Ignoring client state for path {path.id}: "
                f"index={path.current_index} progress={path.progress}, "
                f"stored index={index} progress={progress}"
            )

        self.store.execute(
            """
            UPDATE learning_paths
            SET current_index = :index, progress = :progress, updated = :updated
            WHERE id = :id
            """,
            {"id": path.id, "index": index, "progress": progress, "updated": utcnow().isoformat()},
        )
        return self.get_learning_path(path.id)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_learning_path(self, path_id: str) -> Optional[LearningPath]:
        """Get a path with its concepts in stored order, or None."""
        with self.store.session() as conn:
            rows = conn.execute(
                "SELECT * FROM learning_paths WHERE id = :id", {"id": path_id}
            ).fetchall()
            paths = self._hydrate(conn, rows)
        return paths[0] if paths else None

    def get_user_learning_paths(self, user_id: str) -> list[LearningPath]:
        """Get all of a user's paths, most recently created first."""
        with self.store.session() as conn:
            rows = conn.execute(
                "SELECT * FROM learning_paths WHERE user_id = :user_id ORDER BY created DESC, rowid DESC",
                {"user_id": user_id},
            ).fetchall()
            return self._hydrate(conn, rows)

    def _hydrate(self, conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[LearningPath]:
        """Attach each path's ordered concept sequence and decode it."""
        if not rows:
            return []
        sequences: dict[str, list[str]] = defaultdict(list)
        for edge in conn.execute(
            """
            SELECT from_id, to_id FROM edges
            WHERE edge_type = 'INCLUDES' AND from_type = 'path'
              AND from_id IN (SELECT value FROM json_each(:ids))
            ORDER BY from_id, position
            """,
            {"ids": json_list([row["id"] for row in rows])},
        ):
            sequences[edge["from_id"]].append(edge["to_id"])

        return [
            decode_record(LearningPath, {**dict(row), "concepts": sequences[row["id"]]})
            for row in rows
        ]
