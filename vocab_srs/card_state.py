"""Domain model for vocabulary cards and their SM-2 memory state.

This module defines :class:`Card`, the immutable vocabulary record shown to the
learner, and :class:`MemoryState`, the per-card scheduling state that the SM-2
update rule mutates after each grading.  Both provide helpers for serialising
to and from the JSON records the rest of the application persists to disk.
Parsing is tolerant: malformed fields fall back to their defaults instead of
raising, so a damaged save file never stops a session from starting.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

DEFAULT_CATEGORY = "other"
DEFAULT_EASE = 2.5
MIN_EASE = 1.3
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
LATEST = datetime.max.replace(tzinfo=timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _ensure_utc(value: datetime) -> datetime:
    """Normalise *value* to a UTC timezone aware datetime."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Convert an ISO-8601 JSON field into a UTC :class:`datetime` if possible.

    Epoch numbers are not accepted here; only the legacy ``dueMs`` field
    carries one and it is read through :func:`due_after`.
    """

    if isinstance(value, datetime):
        return _ensure_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            if text.endswith("Z"):
                return _ensure_utc(datetime.fromisoformat(text[:-1]))
            return _ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def due_after(start: datetime, **offset: float) -> datetime:
    """Return *start* moved forward by *offset*, capped at :data:`LATEST`."""

    try:
        return start + timedelta(**offset)
    except OverflowError:
        return LATEST


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    """Serialise a datetime in ISO-8601 format (UTC) for JSON storage."""

    if value is None:
        return None
    return _ensure_utc(value).isoformat().replace("+00:00", "Z")


def _finite_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalise_category(value: Any) -> str:
    """Return the lower-cased category label, ``"other"`` when blank."""

    label = _text(value).lower()
    return label or DEFAULT_CATEGORY


def _first_present(payload: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in payload and payload[key] not in (None, ""):
            return payload[key]
    return None


TERM_KEYS = ("term", "de")
TRANSLATION_KEYS = ("translation", "en")
CATEGORY_KEYS = ("category", "type")
EXAMPLE_SOURCE_KEYS = ("example_source", "example")
EXAMPLE_TRANSLATION_KEYS = ("example_translation", "example_en")


@dataclass(frozen=True)
class Card:
    """A vocabulary item, identified by its position in the deck.

    Parameters
    ----------
    term:
        The word or phrase shown on the front of the card.
    translation:
        The meaning revealed on the back.
    category:
        Lower-cased grouping label used by the category filter.
    example_source / example_translation:
        Optional example sentence and its translation.
    """

    term: str
    translation: str
    category: str = DEFAULT_CATEGORY
    example_source: str = ""
    example_translation: str = ""

    def __post_init__(self) -> None:
        if not self.term or not self.translation:
            raise ValueError("Card requires a non-empty term and translation")
        object.__setattr__(self, "category", normalise_category(self.category))

    @classmethod
    def from_storage(cls, payload: Mapping[str, Any]) -> Optional["Card"]:
        """Create a card from a JSON/CSV record, or ``None`` if it is unusable.

        Both the canonical field names and the short export names
        (``de``, ``en``, ``type``, ``example``, ``example_en``) are accepted.
        """

        if not isinstance(payload, Mapping):
            return None
        term = _text(_first_present(payload, TERM_KEYS))
        translation = _text(_first_present(payload, TRANSLATION_KEYS))
        if not term or not translation:
            return None
        return cls(
            term=term,
            translation=translation,
            category=normalise_category(_first_present(payload, CATEGORY_KEYS)),
            example_source=_text(_first_present(payload, EXAMPLE_SOURCE_KEYS)),
            example_translation=_text(_first_present(payload, EXAMPLE_TRANSLATION_KEYS)),
        )

    def to_storage_dict(self) -> Dict[str, str]:
        return {
            "term": self.term,
            "translation": self.translation,
            "category": self.category,
            "example_source": self.example_source,
            "example_translation": self.example_translation,
        }

    def to_export_dict(self) -> Dict[str, str]:
        """Return the record in the short-key deck exchange format."""

        return {
            "de": self.term,
            "en": self.translation,
            "type": self.category,
            "example": self.example_source,
            "example_en": self.example_translation,
        }

    @property
    def has_example(self) -> bool:
        return bool(self.example_source or self.example_translation)


@dataclass
class MemoryState:
    """SM-2 scheduling state for one card."""

    repetitions: int = 0
    interval_days: float = 0
    ease_factor: float = DEFAULT_EASE
    due_at: Optional[datetime] = None

    @classmethod
    def fresh(cls, now: Optional[datetime] = None) -> "MemoryState":
        """Initial state for a card that has never been graded: due immediately."""

        return cls(due_at=_ensure_utc(now) if now else _utc_now())

    @classmethod
    def from_storage(
        cls, payload: Any, now: Optional[datetime] = None
    ) -> "MemoryState":
        """Rebuild a state from JSON, repairing each field independently.

        Accepts the legacy ``reps``/``intervalDays``/``ease``/``dueMs`` keys,
        where ``dueMs`` is epoch milliseconds.
        """

        current = _ensure_utc(now) if now else _utc_now()
        if not isinstance(payload, Mapping):
            return cls.fresh(current)

        reps = _finite_number(payload.get("repetitions", payload.get("reps")))
        interval = _finite_number(
            payload.get("interval_days", payload.get("intervalDays"))
        )
        ease = _finite_number(payload.get("ease_factor", payload.get("ease")))

        if "due_at" in payload:
            due = _parse_datetime(payload.get("due_at"))
        else:
            due_ms = _finite_number(payload.get("dueMs"))
            due = (
                due_after(EPOCH, milliseconds=due_ms)
                if due_ms is not None and due_ms >= 0
                else None
            )

        return cls(
            repetitions=max(int(reps), 0) if reps is not None else 0,
            interval_days=max(interval, 0) if interval is not None else 0,
            ease_factor=max(MIN_EASE, ease) if ease is not None else DEFAULT_EASE,
            due_at=due or current,
        )

    def to_storage_dict(self) -> Dict[str, Any]:
        return {
            "repetitions": self.repetitions,
            "interval_days": self.interval_days,
            "ease_factor": self.ease_factor,
            "due_at": _format_datetime(self.due_at),
        }

    def replace(self, **changes: Any) -> "MemoryState":
        """Return a new instance with *changes* applied."""

        return replace(self, **changes)


def initial_progress(
    cards: Sequence[Card], now: Optional[datetime] = None
) -> List[MemoryState]:
    """Return a fresh progress table aligned with *cards*, all due at *now*."""

    current = _ensure_utc(now) if now else _utc_now()
    return [MemoryState.fresh(current) for _ in cards]


def cards_from_records(records: Any) -> List[Card]:
    """Parse a sequence of card records, silently skipping unusable entries."""

    if not isinstance(records, Sequence) or isinstance(records, (str, bytes)):
        return []
    cards: List[Card] = []
    for entry in records:
        card = Card.from_storage(entry)
        if card is not None:
            cards.append(card)
    return cards


__all__ = [
    "Card",
    "DEFAULT_CATEGORY",
    "DEFAULT_EASE",
    "MIN_EASE",
    "MemoryState",
    "cards_from_records",
    "due_after",
    "initial_progress",
    "normalise_category",
]
