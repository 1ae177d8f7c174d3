"""Utilities for loading vocabulary decks from CSV, Excel and JSON sources."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from vocab_srs.card_state import (
    CATEGORY_KEYS,
    EXAMPLE_SOURCE_KEYS,
    EXAMPLE_TRANSLATION_KEYS,
    TERM_KEYS,
    TRANSLATION_KEYS,
    Card,
    cards_from_records,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Paths and constants
# ---------------------------------------------------------------------------
DEFAULT_CSV_FILENAME = os.environ.get(
    "VOCAB_SRS_AUTOLOAD_CSV", "flashcard_final_with_examples.csv"
)

FALLBACK_CARDS: Sequence[Card] = (
    Card(
        term="Hallo",
        translation="Hello",
        category="other",
        example_source="Hallo! Wie geht's?",
        example_translation="Hello! How are you?",
    ),
    Card(
        term="Danke",
        translation="Thanks",
        category="other",
        example_source="Danke für deine Hilfe.",
        example_translation="Thanks for your help.",
    ),
)

CsvSource = Union[str, Path, Any]


class DeckError(ValueError):
    """Raised when a deck source cannot be read or holds no valid cards."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _find_column(columns: Dict[str, Any], names: Sequence[str]) -> Any:
    for name in names:
        if name in columns:
            return columns[name]
    return None


def frame_to_cards(frame: pd.DataFrame) -> List[Card]:
    """Map the rows of *frame* to cards.

    Headers are matched case-insensitively.  Without recognisable term and
    translation headers the first two columns are used.  Rows missing a term
    or a translation are dropped.
    """

    frame = frame.fillna("")
    columns = {str(name).strip().lower(): name for name in frame.columns}
    positional = list(frame.columns)

    term_col = _find_column(columns, TERM_KEYS)
    if term_col is None and positional:
        term_col = positional[0]
    translation_col = _find_column(columns, TRANSLATION_KEYS)
    if translation_col is None and len(positional) > 1:
        translation_col = positional[1]
    category_col = _find_column(columns, CATEGORY_KEYS)
    example_col = _find_column(columns, EXAMPLE_SOURCE_KEYS)
    example_en_col = _find_column(columns, EXAMPLE_TRANSLATION_KEYS)

    if term_col is None or translation_col is None:
        return []

    cards: List[Card] = []
    for _, row in frame.iterrows():
        record = {
            "term": row[term_col],
            "translation": row[translation_col],
            "category": row[category_col] if category_col is not None else "",
            "example_source": row[example_col] if example_col is not None else "",
            "example_translation": row[example_en_col] if example_en_col is not None else "",
        }
        card = Card.from_storage(record)
        if card is not None:
            cards.append(card)
    return cards


def _require_cards(cards: List[Card], source: object) -> List[Card]:
    if not cards:
        raise DeckError(f"No valid cards found in {source}.")
    logger.info("Loaded %d cards from %s", len(cards), source)
    return cards


# ---------------------------------------------------------------------------
# Deck import
# ---------------------------------------------------------------------------

def load_cards_from_csv(source: CsvSource) -> List[Card]:
    """Load cards from a CSV path, URL or open file object."""

    try:
        frame = pd.read_csv(source, dtype=str, keep_default_na=False)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise DeckError(f"Could not parse CSV {source}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise DeckError(f"CSV fetch failed for {source}: {exc}") from exc
    return _require_cards(frame_to_cards(frame), source)


def load_cards_from_excel(path: Union[str, Path]) -> List[Card]:
    """Load cards from the first sheet of an Excel workbook."""

    try:
        frame = pd.read_excel(path, dtype=str)
    except (OSError, ValueError, ImportError) as exc:
        raise DeckError(f"Could not read spreadsheet {path}: {exc}") from exc
    return _require_cards(frame_to_cards(frame), path)


def load_cards_from_file(path: Union[str, Path]) -> List[Card]:
    """Dispatch on the file suffix: Excel workbooks, JSON exports, else CSV."""

    suffix = Path(path).suffix.lower()
    if suffix in {".xlsx", ".xls"}:
        return load_cards_from_excel(path)
    if suffix == ".json":
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise DeckError(f"Could not read {path}: {exc}") from exc
        return cards_from_json(text)
    return load_cards_from_csv(path)


def cards_from_json(text: str) -> List[Card]:
    """Parse the ``{"cards": [...]}`` deck exchange format."""

    try:
        payload = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise DeckError(f"Import failed: {exc}") from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("cards"), list):
        raise DeckError("Missing cards array")
    cards = cards_from_records(payload["cards"])
    if not cards:
        raise DeckError("No valid cards found")
    return cards


def cards_to_json(cards: Sequence[Card]) -> str:
    payload = {"cards": [card.to_export_dict() for card in cards]}
    return json.dumps(payload, indent=2, ensure_ascii=False)


def try_autoload(path: Optional[Union[str, Path]] = None) -> Optional[List[Card]]:
    """Return the cards of the local default deck, or ``None`` when unavailable."""

    candidate = Path(path or DEFAULT_CSV_FILENAME)
    if not candidate.exists():
        return None
    try:
        return load_cards_from_file(candidate)
    except DeckError as exc:
        logger.warning("Skipping autoload of %s: %s", candidate, exc)
        return None


__all__ = [
    "DEFAULT_CSV_FILENAME",
    "DeckError",
    "FALLBACK_CARDS",
    "cards_from_json",
    "cards_to_json",
    "frame_to_cards",
    "load_cards_from_csv",
    "load_cards_from_excel",
    "load_cards_from_file",
    "try_autoload",
]
