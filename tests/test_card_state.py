import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vocab_srs.card_state import LATEST, Card, MemoryState, cards_from_records, initial_progress

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_card_from_short_export_keys():
    card = Card.from_storage(
        {"de": " Hund ", "en": "dog", "type": " Noun ", "example": "Der Hund bellt.", "example_en": ""}
    )

    assert card == Card("Hund", "dog", "noun", "Der Hund bellt.", "")
    assert card.has_example


def test_card_category_defaults_to_other():
    assert Card.from_storage({"term": "ja", "translation": "yes"}).category == "other"


@pytest.mark.parametrize("payload", [{"term": "", "translation": "x"}, {"de": "x"}, "not a record"])
def test_unusable_card_records_are_skipped(payload):
    assert Card.from_storage(payload) is None
    assert cards_from_records([payload]) == []


def test_card_rejects_empty_term():
    with pytest.raises(ValueError):
        Card(term="", translation="nothing")


def test_initial_progress_is_due_now():
    cards = [Card("a", "b"), Card("c", "d")]
    progress = initial_progress(cards, NOW)

    assert len(progress) == 2
    assert all(state == MemoryState(0, 0, 2.5, NOW) for state in progress)


def test_memory_state_round_trip_through_storage():
    state = MemoryState(repetitions=3, interval_days=15, ease_factor=2.36, due_at=NOW + timedelta(days=15))
    record = state.to_storage_dict()

    assert record["due_at"] == "2024-01-16T00:00:00Z"
    assert MemoryState.from_storage(record, NOW) == state


def test_memory_state_repairs_bad_fields():
    restored = MemoryState.from_storage(
        {"repetitions": "lots", "interval_days": float("nan"), "ease_factor": 0.5, "due_at": "garbage"},
        NOW,
    )

    assert restored == MemoryState(0, 0, 1.3, NOW)


def test_memory_state_reads_legacy_keys():
    due = NOW + timedelta(days=6)
    restored = MemoryState.from_storage(
        {"reps": 2, "intervalDays": 6, "ease": 2.5, "dueMs": due.timestamp() * 1000},
        NOW,
    )

    assert restored == MemoryState(2, 6, 2.5, due)


def test_memory_state_from_non_mapping_is_fresh():
    assert MemoryState.from_storage(None, NOW) == MemoryState.fresh(NOW)


def test_memory_state_saturates_far_future_due_ms():
    restored = MemoryState.from_storage({"reps": 20, "intervalDays": 1e9, "ease": 2.5, "dueMs": 1e20}, NOW)

    assert restored.due_at == LATEST
    assert MemoryState.from_storage(restored.to_storage_dict(), NOW) == restored


def test_memory_state_ignores_negative_due_ms():
    assert MemoryState.from_storage({"dueMs": -5}, NOW).due_at == NOW
