import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vocab_srs.card_state import Card, MemoryState
from vocab_srs.category_filter import EmptyCategorySelection
from vocab_srs.deck_loader import FALLBACK_CARDS, DeckError
from vocab_srs.review_service import SessionController, restore_session
from vocab_srs.state_store import JsonStateStore

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

DECK = [
    Card("Hund", "dog", "noun"),
    Card("laufen", "to run", "verb"),
    Card("Katze", "cat", "noun"),
]


def first(pool):
    return pool[0]


def make_controller(tmp_path, choice=first):
    store = JsonStateStore(tmp_path)
    return SessionController(store, clock=lambda: NOW, choice=choice)


def stored_session(cards=DECK, progress=None, **extra):
    payload = {
        "cards": [card.to_storage_dict() for card in cards],
        "progress": progress
        if progress is not None
        else [MemoryState.fresh(NOW).to_storage_dict() for _ in cards],
    }
    payload.update(extra)
    return payload


# ----------------------------------------------------------------------
# Restoring stored sessions
# ----------------------------------------------------------------------
def test_restore_without_payload_uses_fallback_deck():
    state = restore_session(None, now=NOW)

    assert state.cards == list(FALLBACK_CARDS)
    assert len(state.progress) == len(FALLBACK_CARDS)
    assert state.last_index is None
    assert state.selected_categories == ["other"]


def test_restore_with_empty_cards_uses_fallback_deck():
    assert restore_session({"cards": []}, now=NOW).cards == list(FALLBACK_CARDS)


def test_restore_regenerates_progress_on_length_mismatch():
    reviewed = MemoryState(2, 6, 2.5, NOW + timedelta(days=6)).to_storage_dict()
    state = restore_session(stored_session(progress=[reviewed]), now=NOW)

    assert state.cards == DECK
    assert len(state.progress) == len(DECK)
    assert all(entry.due_at <= NOW for entry in state.progress)
    assert all(entry.repetitions == 0 for entry in state.progress)


def test_restore_repairs_single_fields():
    progress = [
        MemoryState(2, 6, 2.5, NOW + timedelta(days=6)).to_storage_dict(),
        {"repetitions": 1, "interval_days": 1, "ease_factor": None, "due_at": None},
        "junk",
    ]
    state = restore_session(stored_session(progress=progress, last_index=7), now=NOW)

    assert state.progress[0] == MemoryState(2, 6, 2.5, NOW + timedelta(days=6))
    assert state.progress[1] == MemoryState(1, 1, 2.5, NOW)
    assert state.progress[2] == MemoryState.fresh(NOW)
    assert state.last_index is None


def test_restore_empty_persisted_filter_falls_back_to_all_categories():
    state = restore_session(stored_session(selected_categories=[]), [], now=NOW)
    assert state.selected_categories == ["noun", "verb"]


def test_restore_prefers_independent_filter_slot():
    state = restore_session(
        stored_session(selected_categories=["noun"], last_index=1), ["verb"], now=NOW
    )
    assert state.selected_categories == ["verb"]
    assert state.last_index == 1


# ----------------------------------------------------------------------
# Controller actions
# ----------------------------------------------------------------------
def test_start_persists_and_picks_card(tmp_path):
    controller = make_controller(tmp_path)
    controller.store.save(stored_session(last_index=0))

    assert controller.start() == 1
    assert controller.current_card == DECK[1]
    assert controller.store.load()["last_index"] == 0


def test_start_with_changed_autoload_replaces_deck(tmp_path):
    controller = make_controller(tmp_path)
    controller.store.save(stored_session())
    new_deck = [Card("ja", "yes"), Card("nein", "no")]

    controller.start(new_deck)

    assert controller.state.cards == new_deck
    assert controller.store.load_selected_categories() == ["other"]


def test_start_with_same_autoload_keeps_progress(tmp_path):
    controller = make_controller(tmp_path)
    reviewed = MemoryState(2, 6, 2.5, NOW + timedelta(days=6)).to_storage_dict()
    fresh = MemoryState.fresh(NOW).to_storage_dict()
    controller.store.save(stored_session(progress=[reviewed, fresh, fresh]))

    controller.start(list(DECK))

    assert controller.state.progress[0].repetitions == 2


def test_grade_updates_progress_and_moves_on(tmp_path):
    controller = make_controller(tmp_path)
    controller.start()
    assert controller.current_index == 0

    updated = controller.grade_pass()

    assert updated == MemoryState(1, 1, 2.5, NOW + timedelta(days=1))
    assert controller.state.progress[0] == updated
    assert controller.state.last_index == 0
    assert controller.current_index == 1

    saved = controller.store.load()
    assert saved["progress"][0]["repetitions"] == 1
    assert saved["last_index"] == 0


def test_grade_fail_schedules_short_relearning(tmp_path):
    controller = make_controller(tmp_path)
    controller.start()

    updated = controller.grade_fail()

    assert updated.repetitions == 0
    assert updated.due_at == NOW + timedelta(minutes=5)
    assert updated.ease_factor == pytest.approx(2.3)


def test_grade_without_current_card_is_noop(tmp_path):
    controller = make_controller(tmp_path)
    controller.store.save_selected_categories(["adjective"])
    controller.store.save(stored_session())
    controller.start()

    assert controller.current_index is None
    assert controller.grade(5) is None
    summary = controller.summary()
    assert not summary.has_matches
    assert summary.card_due is None


def test_change_category_filter(tmp_path):
    controller = make_controller(tmp_path)
    controller.store.save(stored_session())
    controller.start()

    assert controller.change_category_filter(["Verb"]) == 1
    assert controller.state.selected_categories == ["verb"]
    assert controller.store.load_selected_categories() == ["verb"]


def test_empty_category_filter_is_rejected(tmp_path):
    controller = make_controller(tmp_path)
    controller.start()
    before = list(controller.state.selected_categories)

    with pytest.raises(EmptyCategorySelection):
        controller.change_category_filter([])

    assert controller.state.selected_categories == before


def test_reset_progress_keeps_deck_and_filter(tmp_path):
    controller = make_controller(tmp_path)
    controller.store.save(stored_session())
    controller.start()
    controller.change_category_filter(["noun"])
    controller.grade_pass()

    controller.reset_progress()

    assert controller.state.cards == DECK
    assert controller.state.selected_categories == ["noun"]
    assert controller.state.last_index is None
    assert all(entry == MemoryState.fresh(NOW) for entry in controller.state.progress)


def test_replace_deck_regenerates_progress(tmp_path):
    controller = make_controller(tmp_path)
    controller.start()
    controller.grade_pass()
    new_deck = [Card("ja", "yes", "particle"), Card("rot", "red", "adjective")]

    controller.replace_deck(new_deck)

    assert controller.state.cards == new_deck
    assert len(controller.state.progress) == len(new_deck)
    assert all(entry.due_at <= NOW for entry in controller.state.progress)
    assert controller.state.selected_categories == ["adjective", "particle"]


def test_replace_deck_keeps_saved_filter(tmp_path):
    controller = make_controller(tmp_path)
    controller.start()
    controller.change_category_filter(["noun"])

    controller.replace_deck([Card("Tisch", "table", "noun"), Card("rot", "red", "adjective")])

    assert controller.state.selected_categories == ["noun"]
    assert controller.current_index == 0


def test_replace_deck_rejects_empty_deck(tmp_path):
    controller = make_controller(tmp_path)
    controller.start()

    with pytest.raises(DeckError):
        controller.replace_deck([])

    assert controller.state.cards == list(FALLBACK_CARDS)


def test_summary_counts_due_cards(tmp_path):
    controller = make_controller(tmp_path)
    controller.store.save(stored_session())
    controller.start()
    controller.grade_pass()

    summary = controller.summary()

    assert summary.selected_count == 2
    assert summary.active_count == 3
    assert summary.due_count == 2
    assert summary.card_due == "due now"


def test_export_deck_round_trips(tmp_path):
    controller = make_controller(tmp_path)
    controller.start()

    assert '"de": "Hallo"' in controller.export_deck()


def test_many_right_answers_keep_the_session_running(tmp_path):
    controller = make_controller(tmp_path)
    controller.start()

    for _ in range(80):
        assert controller.grade_pass() is not None

    assert all(entry.repetitions == 40 for entry in controller.state.progress)
    reloaded = restore_session(controller.store.load(), now=NOW)
    assert reloaded.progress == controller.state.progress
