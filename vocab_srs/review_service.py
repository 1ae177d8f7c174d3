"""High level helpers that orchestrate SM-2 reviews and persistence."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from vocab_srs import category_filter
from vocab_srs.card_state import Card, MemoryState, cards_from_records, initial_progress
from vocab_srs.deck_loader import FALLBACK_CARDS, DeckError, cards_to_json
from vocab_srs.sm2_scheduler import (
    FAIL_GRADE,
    PASS_GRADE,
    Chooser,
    describe_due,
    due_count,
    pick_next,
    update,
)
from vocab_srs.state_store import STATE_VERSION, JsonStateStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class SessionState:
    """The whole working set of a study session."""

    cards: List[Card]
    progress: List[MemoryState]
    last_index: Optional[int] = None
    selected_categories: List[str] = field(default_factory=list)

    def to_storage_dict(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "cards": [card.to_storage_dict() for card in self.cards],
            "progress": [state.to_storage_dict() for state in self.progress],
            "last_index": self.last_index,
            "selected_categories": list(self.selected_categories),
        }


@dataclass
class SessionSummary:
    selected_count: int
    active_count: int
    due_count: int
    card_due: Optional[str]

    @property
    def has_matches(self) -> bool:
        return self.active_count > 0


def fresh_session(
    cards: Sequence[Card],
    saved_categories: Optional[Iterable[object]] = None,
    now: Optional[datetime] = None,
) -> SessionState:
    """Start a new session on *cards* with every card due immediately."""

    deck = list(cards)
    return SessionState(
        cards=deck,
        progress=initial_progress(deck, now),
        last_index=None,
        selected_categories=category_filter.resolve_selection(deck, saved=saved_categories),
    )


def _restore_last_index(value: Any, size: int) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    index = int(value)
    if index != value or not 0 <= index < size:
        return None
    return index


def restore_session(
    payload: Optional[Mapping[str, Any]],
    saved_categories: Optional[Iterable[object]] = None,
    *,
    fallback_cards: Sequence[Card] = FALLBACK_CARDS,
    now: Optional[datetime] = None,
) -> SessionState:
    """Rebuild a session from a stored snapshot, repairing what is damaged.

    Only the broken part is regenerated: a bad progress field takes its
    default, a progress table of the wrong shape is rebuilt, and a snapshot
    without usable cards restarts on *fallback_cards*.
    """

    now = now or _utc_now()
    if not isinstance(payload, Mapping):
        if payload is not None:
            logger.warning("Stored session is not an object; starting fresh")
        return fresh_session(fallback_cards, saved_categories, now)

    cards = cards_from_records(payload.get("cards"))
    if not cards:
        logger.warning("Stored session has no usable cards; using the built-in deck")
        return fresh_session(fallback_cards, saved_categories, now)

    raw_progress = payload.get("progress")
    if not isinstance(raw_progress, list) or len(raw_progress) != len(cards):
        logger.warning(
            "Progress table does not match %d cards; regenerating it", len(cards)
        )
        progress = initial_progress(cards, now)
    else:
        progress = [MemoryState.from_storage(entry, now) for entry in raw_progress]

    last_index = _restore_last_index(
        payload.get("last_index", payload.get("lastIndex")), len(cards)
    )
    selected = category_filter.resolve_selection(
        cards,
        saved=saved_categories,
        session=payload.get("selected_categories", payload.get("selectedTypes")),
    )
    return SessionState(
        cards=cards,
        progress=progress,
        last_index=last_index,
        selected_categories=selected,
    )


class SessionController:
    """Drive a study session: pick cards, apply grades and persist the result."""

    def __init__(
        self,
        store: JsonStateStore,
        *,
        clock: Callable[[], datetime] = _utc_now,
        choice: Chooser = random.choice,
        fallback_cards: Sequence[Card] = FALLBACK_CARDS,
    ) -> None:
        self.store = store
        self.clock = clock
        self.choice = choice
        self.fallback_cards = list(fallback_cards)
        self.state = fresh_session(self.fallback_cards, now=clock())
        self.current_index: Optional[int] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, autoload_cards: Optional[Sequence[Card]] = None) -> Optional[int]:
        """Restore the stored session and pick the first card.

        When *autoload_cards* differ from the stored deck they replace it.
        """

        self.state = restore_session(
            self.store.load(),
            self.store.load_selected_categories(),
            fallback_cards=self.fallback_cards,
            now=self.clock(),
        )
        if autoload_cards and list(autoload_cards) != self.state.cards:
            return self.replace_deck(autoload_cards)

        self._persist()
        self.current_index = self._pick(self.state.last_index)
        return self.current_index

    def _persist(self) -> None:
        self.store.save(self.state.to_storage_dict())

    def _active(self) -> List[int]:
        return category_filter.active_indices(
            self.state.cards, self.state.selected_categories
        )

    def _pick(self, last_index: Optional[int]) -> Optional[int]:
        return pick_next(
            self._active(),
            self.state.progress,
            self.clock(),
            last_index,
            choice=self.choice,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def current_card(self) -> Optional[Card]:
        if self.current_index is None:
            return None
        return self.state.cards[self.current_index]

    @property
    def current_state(self) -> Optional[MemoryState]:
        if self.current_index is None:
            return None
        return self.state.progress[self.current_index]

    def categories(self) -> List[str]:
        return category_filter.unique_categories(self.state.cards)

    def summary(self) -> SessionSummary:
        active = self._active()
        now = self.clock()
        current = self.current_state
        return SessionSummary(
            selected_count=len(self.state.selected_categories),
            active_count=len(active),
            due_count=due_count(active, self.state.progress, now),
            card_due=describe_due(current, now) if current is not None else None,
        )

    # ------------------------------------------------------------------
    # Learner actions
    # ------------------------------------------------------------------
    def grade(self, value: int) -> Optional[MemoryState]:
        """Apply *value* to the current card and move on to the next one."""

        index = self.current_index
        if index is None:
            return None
        updated = update(self.state.progress[index], value, now=self.clock())
        self.state.progress[index] = updated
        self.state.last_index = index
        self.current_index = self._pick(index)
        self._persist()
        return updated

    def grade_pass(self) -> Optional[MemoryState]:
        return self.grade(PASS_GRADE)

    def grade_fail(self) -> Optional[MemoryState]:
        return self.grade(FAIL_GRADE)

    def reset_progress(self) -> Optional[int]:
        """Forget all progress while keeping the deck and category filter."""

        self.state.progress = initial_progress(self.state.cards, self.clock())
        self.state.last_index = None
        self._persist()
        self.current_index = self._pick(None)
        logger.info("Progress reset for %d cards", len(self.state.cards))
        return self.current_index

    def change_category_filter(self, labels: Iterable[object]) -> Optional[int]:
        """Restrict study to *labels*; an empty choice is refused unchanged."""

        selection = category_filter.validate_selection(labels)
        self.state.selected_categories = selection
        self.store.save_selected_categories(selection)
        self._persist()
        self.current_index = self._pick(self.state.last_index)
        return self.current_index

    def replace_deck(self, cards: Sequence[Card]) -> Optional[int]:
        """Swap in a new deck, starting its progress from scratch."""

        deck = list(cards)
        if not deck:
            raise DeckError("Cannot study an empty deck.")
        self.state = fresh_session(
            deck, self.store.load_selected_categories(), self.clock()
        )
        self.store.save_selected_categories(self.state.selected_categories)
        self._persist()
        self.current_index = self._pick(None)
        logger.info("Loaded new deck with %d cards", len(deck))
        return self.current_index

    def export_deck(self) -> str:
        return cards_to_json(self.state.cards)


__all__ = [
    "SessionController",
    "SessionState",
    "SessionSummary",
    "fresh_session",
    "restore_session",
]
