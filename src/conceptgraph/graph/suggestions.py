"""Next-concept suggestions from observed proficiency.

A concept is suggested to a user when it requires at least one concept the
user knows and the user does not know it yet. Candidates are ranked by the
user's mean proficiency over the prerequisites they know, then by difficulty
(easier first), then by id.
"""

import logging
from collections import defaultdict
from statistics import fmean
from typing import Optional

from .concepts import ConceptRepository
from .knowledge import KnowledgeStateTracker
from .models import Concept, ConceptSuggestion

logger = logging.getLogger(__name__)

DEFAULT_SUGGESTION_COUNT = 5


class SuggestionEngine:
    """Ranks concepts a user is ready to learn next."""

    def __init__(
        self,
        concepts: ConceptRepository,
        tracker: KnowledgeStateTracker,
        default_count: int = DEFAULT_SUGGESTION_COUNT,
    ):
        self.concepts = concepts
        self.tracker = tracker
        self.default_count = default_count

    def rank_next_concepts(
        self, user_id: str, count: Optional[int] = None
    ) -> list[ConceptSuggestion]:
        """Rank candidate concepts for a user, with their scores.

        Args:
            user_id: The learner.
            count: Maximum number of suggestions (defaults to the engine setting).

        Returns:
            Up to ``count`` suggestions, best first. Empty for a user with no
            knowledge records or when ``count`` is zero or negative.
        """
        limit = self.default_count if count is None else count
        if limit <= 0:
            return []

        proficiency = {
            record.concept_id: record.proficiency
            for record in self.tracker.get_user_knowledge(user_id)
        }
        if not proficiency:
            logger.debug(f"No knowledge recorded for {user_id}, nothing to suggest")
            return []

        known_prereqs: dict[str, list[str]] = defaultdict(list)
        for dependent, prereq in self.concepts.get_dependents(list(proficiency)):
            if dependent not in proficiency:
                known_prereqs[dependent].append(prereq)

        difficulty = self.concepts.get_difficulties(sorted(known_prereqs))
        scores = {
            cid: fmean(proficiency[p] for p in known_prereqs[cid]) for cid in difficulty
        }
        ranked = sorted(scores, key=lambda cid: (-scores[cid], difficulty[cid], cid))
        logger.debug(f"{len(ranked)} candidate concepts for {user_id}")

        # Only the kept candidates are loaded in full
        return [
            ConceptSuggestion(
                concept=concept,
                score=scores[concept.id],
                known_prerequisites=known_prereqs[concept.id],
            )
            for concept in self.concepts.get_concepts(ranked[:limit])
        ]

    def suggest_next_concepts(self, user_id: str, count: Optional[int] = None) -> list[Concept]:
        """Suggest the concepts a user should learn next, best first."""
        return [s.concept for s in self.rank_next_concepts(user_id, count)]
