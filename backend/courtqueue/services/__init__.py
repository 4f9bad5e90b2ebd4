"""Queue, court and match services (database-backed, caller commits)."""

from .fairness import fairness_score, entry_score
from .queue import enqueue, reorder, remove, list_queue
from .suggest import suggest_match, Suggestion
from .lifecycle import (
    start_match,
    end_match,
    cancel_match,
    correct_result,
    UNSET,
)
from .stats import rank_players, rotation_rankings

__all__ = [
    "fairness_score",
    "entry_score",
    "enqueue",
    "reorder",
    "remove",
    "list_queue",
    "suggest_match",
    "Suggestion",
    "start_match",
    "end_match",
    "cancel_match",
    "correct_result",
    "UNSET",
    "rank_players",
    "rotation_rankings",
]
