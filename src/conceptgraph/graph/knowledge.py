"""Per-user proficiency tracking.

Each (user, concept) pair has exactly one KNOWS edge; practice events update
it in place. Exercise attempts are kept as an append-only history next to it.
"""

import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional

from .models import ExerciseAttempt, UserKnowledge, gen_id, utcnow
from .store import LINK_CONFLICT, GraphStore, decode_record

logger = logging.getLogger(__name__)


_MERGE_USER = """
INSERT INTO users (id, created_at) VALUES (:user_id, :now)
ON CONFLICT (id) DO NOTHING
"""

_UPSERT_KNOWS = f"""
INSERT INTO edges (id, from_id, from_type, to_id, to_type, edge_type, position, properties, created_at)
VALUES (:id, :user_id, 'user', :concept_id, 'concept', 'KNOWS', 0, json(:properties), :now)
{LINK_CONFLICT} DO UPDATE SET properties = excluded.properties
"""

_INSERT_EXERCISE = """
INSERT INTO exercise_attempts (
    id, user_id, concept_id, exercise_id, completed, score, timestamp, feedback
) VALUES (:id, :user_id, :concept_id, :exercise_id, :completed, :score, :timestamp, :feedback)
ON CONFLICT (id) DO NOTHING
"""

_SELECT_KNOWS = """
SELECT
    e.from_id AS user_id,
    e.to_id AS concept_id,
    json_extract(e.properties, '$.proficiency') AS proficiency,
    json_extract(e.properties, '$.last_practiced') AS last_practiced
FROM edges e
WHERE e.edge_type = 'KNOWS' AND e.from_type = 'user' AND e.from_id = :user_id
"""


class KnowledgeStateTracker:
    """Reads and writes user proficiency records."""

    def __init__(self, store: GraphStore):
        self.store = store

    def update_user_knowledge(
        self,
        user_id: str,
        concept_id: str,
        proficiency: float,
        last_practiced: Optional[datetime] = None,
        exercise: Optional[ExerciseAttempt] = None,
    ) -> Optional[UserKnowledge]:
        """Record a practice event for a user on a concept.

        Upserts the user's KNOWS edge to the concept. Repeated calls for the
        same pair update the one record in place. Proficiency is clamped to
        the 0-10 range.

        Args:
            user_id: The user who practiced.
            concept_id: The concept practiced.
            proficiency: New proficiency score.
            last_practiced: When the practice happened (defaults to now).
            exercise: Optional attempt to append to the practice history.

        Returns:
            The stored knowledge record, or None if the concept does not exist.
        """
        knowledge = UserKnowledge(
            user_id=user_id,
            concept_id=concept_id,
            proficiency=proficiency,
            last_practiced=last_practiced or utcnow(),
        )
        now = utcnow().isoformat()

        with self.store.session() as conn:
            if conn.execute("SELECT 1 FROM concepts WHERE id = :id", {"id": concept_id}).fetchone() is None:
                logger.warning(f"Concept not found: {concept_id}")
                return None

            conn.execute(_MERGE_USER, {"user_id": user_id, "now": now})
            conn.execute(
                _UPSERT_KNOWS,
                {
                    "id": gen_id(),
                    "user_id": user_id,
                    "concept_id": concept_id,
                    "properties": json.dumps(
                        {
                            "proficiency": knowledge.proficiency,
                            "last_practiced": knowledge.last_practiced.isoformat(),
                        }
                    ),
                    "now": now,
                },
            )
            if exercise is not None:
                conn.execute(
                    _INSERT_EXERCISE,
                    {
                        "id": exercise.id,
                        "user_id": user_id,
                        "concept_id": concept_id,
                        "exercise_id": exercise.exercise_id,
                        "completed": int(exercise.completed),
                        "score": exercise.score,
                        "timestamp": exercise.timestamp.isoformat(),
                        "feedback": exercise.feedback,
                    },
                )

        logger.debug(f"User {user_id} proficiency on {concept_id}: {knowledge.proficiency}")
        return self.get_knowledge(user_id, concept_id)

    def get_user_knowledge(self, user_id: str) -> list[UserKnowledge]:
        """Get all proficiency records for a user, sorted by concept id."""
        return self._load(user_id)

    def get_knowledge(self, user_id: str, concept_id: str) -> Optional[UserKnowledge]:
        """Get one proficiency record, or None if the user never practiced it."""
        records = self._load(user_id, concept_id)
        return records[0] if records else None

    def _load(self, user_id: str, concept_id: Optional[str] = None) -> list[UserKnowledge]:
        params = {"user_id": user_id, "concept_id": concept_id}
        concept_filter = " AND e.to_id = :concept_id" if concept_id else ""
        exercise_filter = " AND concept_id = :concept_id" if concept_id else ""

        with self.store.session() as conn:
            rows = conn.execute(
                _SELECT_KNOWS + concept_filter + " ORDER BY e.to_id", params
            ).fetchall()
            attempt_rows = conn.execute(
                "SELECT * FROM exercise_attempts WHERE user_id = :user_id"
                + exercise_filter
                + " ORDER BY timestamp, id",
                params,
            ).fetchall()

        history: dict[str, list[dict]] = defaultdict(list)
        for row in attempt_rows:
            record = dict(row)
            record["completed"] = bool(record["completed"])
            history[record.pop("concept_id")].append(record)

        return [
            decode_record(UserKnowledge, {**dict(row), "exercises": history[row["concept_id"]]})
            for row in rows
        ]
