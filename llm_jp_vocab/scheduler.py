import random
import time
from typing import Callable, Dict, List, Optional, Sequence

from .structured import LearningRecord, Word

# Ebbinghaus review intervals in minutes:
# 30 min, 12 h, 1 d, 2 d, 4 d, 7 d, 15 d, 30 d
REVIEW_INTERVALS: Sequence[int] = (
    30,
    12 * 60,
    24 * 60,
    2 * 24 * 60,
    4 * 24 * 60,
    7 * 24 * 60,
    15 * 24 * 60,
    30 * 24 * 60,
)

MINUTE_MS = 60 * 1000

ACTION_VIEW = "view"
ACTION_MASTER = "master"
ACTION_TOGGLE_FAVORITE = "toggle_favorite"
ACTIONS = (ACTION_VIEW, ACTION_MASTER, ACTION_TOGGLE_FAVORITE)

Shuffle = Callable[[List[Word]], List[Word]]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def random_shuffle(items: List[Word]) -> List[Word]:
    return random.sample(items, len(items))


def next_review_time(level: int, now: int, intervals: Sequence[int] = REVIEW_INTERVALS) -> int:
    """Timestamp (ms) of the next review for a word at ``level``.

    The level is clamped to the last entry of ``intervals``.
    """
    level = max(0, min(level, len(intervals) - 1))
    return now + intervals[level] * MINUTE_MS


def is_due(record: LearningRecord, now: int) -> bool:
    return record.next_review_time <= now and not record.is_mastered


def select_next_batch(
    words: Sequence[Word],
    records: Sequence[LearningRecord],
    count: int,
    now: int,
    shuffle: Optional[Shuffle] = None,
) -> List[Word]:
    """
    Pick the next batch of words to display.

    Tiers, filled in order until ``count`` words are chosen:
      1. Due reviews   – not mastered, next_review_time <= now, most overdue
                         first (ties keep record order)
      2. New words     – words without any record, shuffled
      3. Fallback      – every other word not yet chosen, shuffled, whether
                         mastered or not yet due

    The result holds ``min(count, len(words))`` distinct words; the screen is
    never left empty while words remain. ``shuffle`` receives a list and must
    return a permutation of it.
    """
    if count <= 0 or not words:
        return []
    shuffle = shuffle or random_shuffle

    by_id: Dict[str, Word] = {}
    for word in words:
        by_id.setdefault(word.id, word)

    result: List[Word] = []
    chosen: set = set()

    def take(word: Word) -> bool:
        if word.id not in chosen:
            chosen.add(word.id)
            result.append(word)
        return len(result) >= count

    # Tier 1: sorted() is stable, so equal timestamps keep record order
    due = sorted((r for r in records if is_due(r, now)), key=lambda r: r.next_review_time)
    for record in due:
        word = by_id.get(record.word_id)
        if word is not None and take(word):
            return result

    # Tier 2
    known_ids = {r.word_id for r in records}
    new_words = [w for w in by_id.values() if w.id not in known_ids and w.id not in chosen]
    for word in shuffle(new_words):
        if take(word):
            return result

    # Tier 3
    remaining = [w for w in by_id.values() if w.id not in chosen]
    for word in shuffle(remaining):
        if take(word):
            return result

    return result


def apply_action(
    word_id: str,
    records: Sequence[LearningRecord],
    action: str,
    now: int,
    intervals: Sequence[int] = REVIEW_INTERVALS,
) -> List[LearningRecord]:
    """
    Apply a user action to the record of ``word_id``.

    Returns a new list of records; ``records`` itself is left untouched.

    A word without a record gets one on its first action, whatever the
    action: level 0, show_count 1, review due after the first interval,
    plus is_mastered / is_favorite set for ``master`` / ``toggle_favorite``.

    On an existing record:
      view            – show_count + 1, level + 1 (clamped), review time
                        recomputed from the new level
      master          – is_mastered = True, nothing else changes
      toggle_favorite – is_favorite flipped, nothing else changes
    """
    if action not in ACTIONS:
        raise ValueError(f"Unknown action: {action!r}")

    new_records = list(records)
    index = next((i for i, r in enumerate(new_records) if r.word_id == word_id), None)

    if index is None:
        new_records.append(LearningRecord(
            word_id=word_id,
            next_review_time=next_review_time(0, now, intervals),
            interval_level=0,
            is_mastered=action == ACTION_MASTER,
            show_count=1,
            is_favorite=action == ACTION_TOGGLE_FAVORITE,
        ))
        return new_records

    record = new_records[index]
    if action == ACTION_VIEW:
        level = min(record.interval_level + 1, len(intervals) - 1)
        record = LearningRecord(
            word_id=record.word_id,
            next_review_time=next_review_time(level, now, intervals),
            interval_level=level,
            is_mastered=record.is_mastered,
            show_count=record.show_count + 1,
            is_favorite=record.is_favorite,
        )
    elif action == ACTION_MASTER:
        record = LearningRecord(
            word_id=record.word_id,
            next_review_time=record.next_review_time,
            interval_level=record.interval_level,
            is_mastered=True,
            show_count=record.show_count,
            is_favorite=record.is_favorite,
        )
    else:
        record = LearningRecord(
            word_id=record.word_id,
            next_review_time=record.next_review_time,
            interval_level=record.interval_level,
            is_mastered=record.is_mastered,
            show_count=record.show_count,
            is_favorite=not record.is_favorite,
        )
    new_records[index] = record
    return new_records


def view_batch(
    batch: Sequence[Word],
    records: Sequence[LearningRecord],
    now: int,
    intervals: Sequence[int] = REVIEW_INTERVALS,
) -> List[LearningRecord]:
    """Apply ``view`` to every word of a freshly selected batch."""
    updated = list(records)
    for word in batch:
        updated = apply_action(word.id, updated, ACTION_VIEW, now, intervals)
    return updated
