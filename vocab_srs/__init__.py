"""SM-2 spaced repetition vocabulary trainer."""

from .card_state import Card, MemoryState, initial_progress
from .review_service import SessionController, SessionState, restore_session
from .sm2_scheduler import pick_next, update

__all__ = [
    "Card",
    "MemoryState",
    "SessionController",
    "SessionState",
    "initial_progress",
    "pick_next",
    "restore_session",
    "update",
]
