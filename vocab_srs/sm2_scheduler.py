"""SM-2 spaced repetition scheduling.

The update rule follows the classic SM-2 formulation: failed reviews reset the
repetition streak and put the card on a short five minute leash, successful
reviews grow the interval 1 -> 6 -> ``interval * ease`` days while nudging the
ease factor according to the grade.  :func:`pick_next` chooses which card of
the active subset to present next, preferring cards that are due.
"""

from __future__ import annotations

import math
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from vocab_srs.card_state import MIN_EASE, MemoryState, due_after

__all__ = [
    "FAIL_GRADE",
    "LEARNING_STEP",
    "PASS_GRADE",
    "PASS_THRESHOLD",
    "clamp",
    "describe_due",
    "due_count",
    "due_indices",
    "is_due",
    "pick_next",
    "update",
]

MIN_GRADE = 0
MAX_GRADE = 5
PASS_THRESHOLD = 3
PASS_GRADE = 4
FAIL_GRADE = 2
EASE_PENALTY = 0.2
LEARNING_STEP = timedelta(minutes=5)
FIRST_INTERVAL = 1
SECOND_INTERVAL = 6

Chooser = Callable[[Sequence[int]], int]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def update(
    state: MemoryState, grade: int, now: Optional[datetime] = None
) -> MemoryState:
    """Return the memory state that results from grading *state* with *grade*.

    Grades outside ``0..5`` are clamped rather than rejected.  Grades below 3
    count as a failed recall.  The input state is left untouched.
    """

    now = now or _utc_now()
    quality = int(clamp(int(grade), MIN_GRADE, MAX_GRADE))

    if quality < PASS_THRESHOLD:
        return MemoryState(
            repetitions=0,
            interval_days=0,
            ease_factor=max(MIN_EASE, state.ease_factor - EASE_PENALTY),
            due_at=due_after(now, seconds=LEARNING_STEP.total_seconds()),
        )

    repetitions = state.repetitions + 1
    if repetitions == 1:
        interval = FIRST_INTERVAL
    elif repetitions == 2:
        interval = SECOND_INTERVAL
    else:
        interval = _round_half_up(state.interval_days * state.ease_factor)

    miss = MAX_GRADE - quality
    ease = state.ease_factor + (0.1 - miss * (0.08 + miss * 0.02))
    ease = max(MIN_EASE, ease)

    return MemoryState(
        repetitions=repetitions,
        interval_days=interval,
        ease_factor=ease,
        due_at=due_after(now, days=interval),
    )


def is_due(state: MemoryState, now: Optional[datetime] = None) -> bool:
    now = now or _utc_now()
    return state.due_at is None or state.due_at <= now


def due_indices(
    active: Sequence[int],
    progress: Sequence[MemoryState],
    now: Optional[datetime] = None,
) -> List[int]:
    now = now or _utc_now()
    return [index for index in active if is_due(progress[index], now)]


def due_count(
    active: Sequence[int],
    progress: Sequence[MemoryState],
    now: Optional[datetime] = None,
) -> int:
    return len(due_indices(active, progress, now))


def _without_repeat(pool: Sequence[int], last_index: Optional[int]) -> Sequence[int]:
    if last_index is None or len(pool) < 2:
        return pool
    choices = [index for index in pool if index != last_index]
    return choices or pool


def pick_next(
    active: Sequence[int],
    progress: Sequence[MemoryState],
    now: Optional[datetime] = None,
    last_index: Optional[int] = None,
    *,
    choice: Chooser = random.choice,
) -> Optional[int]:
    """Pick the index of the next card to present.

    A random due card is preferred; when nothing is due any active card is
    chosen instead so the session never stalls.  ``last_index`` is avoided
    whenever the pool holds an alternative.  Returns ``None`` only when
    *active* is empty.
    """

    if not active:
        return None
    now = now or _utc_now()
    due = due_indices(active, progress, now)
    pool = due if due else list(active)
    return choice(_without_repeat(pool, last_index))


def describe_due(state: MemoryState, now: Optional[datetime] = None) -> str:
    """Return a short human readable description of when the card is due."""

    now = now or _utc_now()
    if state.due_at is None:
        return "due now"
    seconds = (state.due_at - now).total_seconds()
    if seconds <= 0:
        return "due now"

    minutes = _round_half_up(seconds / 60)
    if minutes < 60:
        return f"due in ~{minutes}m"
    hours = _round_half_up(minutes / 60)
    if hours < 36:
        return f"due in ~{hours}h"
    days = _round_half_up(hours / 24)
    return f"due in ~{days}d"
