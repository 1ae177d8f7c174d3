"""Category filter helpers.

A selection is a list of lower-cased category labels.  Two kinds of empty
selection exist: an empty *stored* selection means the learner never chose
one and falls back to every category in the deck, while an empty *interactive*
choice is refused by :func:`validate_selection`.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from vocab_srs.card_state import Card, normalise_category


class EmptyCategorySelection(ValueError):
    """Raised when the learner tries to study with no category selected."""

    def __init__(self, message: str = "Select at least one category (or Select all).") -> None:
        super().__init__(message)


def unique_categories(cards: Sequence[Card]) -> List[str]:
    return sorted({normalise_category(card.category) for card in cards})


def normalise_selection(labels: Optional[Iterable[object]]) -> List[str]:
    """Strip and lower-case *labels*, dropping blanks and duplicates."""

    if labels is None or isinstance(labels, (str, bytes)):
        return []
    selection: List[str] = []
    for label in labels:
        if not isinstance(label, str):
            continue
        value = label.strip().lower()
        if value and value not in selection:
            selection.append(value)
    return selection


def active_indices(cards: Sequence[Card], selected: Iterable[str]) -> List[int]:
    chosen = set(normalise_selection(selected))
    return [
        index
        for index, card in enumerate(cards)
        if normalise_category(card.category) in chosen
    ]


def resolve_selection(
    cards: Sequence[Card],
    saved: Optional[Iterable[object]] = None,
    session: Optional[Iterable[object]] = None,
) -> List[str]:
    """Pick the filter to use for *cards*.

    The independently saved selection wins when non-empty, then the selection
    stored with the session; otherwise every category of the deck is used.
    """

    for candidate in (saved, session):
        selection = normalise_selection(candidate)
        if selection:
            return selection
    return unique_categories(cards)


def validate_selection(labels: Optional[Iterable[object]]) -> List[str]:
    selection = normalise_selection(labels)
    if not selection:
        raise EmptyCategorySelection()
    return selection


__all__ = [
    "EmptyCategorySelection",
    "active_indices",
    "normalise_selection",
    "resolve_selection",
    "unique_categories",
    "validate_selection",
]
