"""Tests for batch selection and record updates."""
import random

import pytest

from llm_jp_vocab.scheduler import (
    REVIEW_INTERVALS,
    MINUTE_MS,
    apply_action,
    next_review_time,
    select_next_batch,
    view_batch,
)
from llm_jp_vocab.structured import LearningRecord, Word

from conftest import T, identity_shuffle, make_words


def reversed_shuffle(items):
    return list(reversed(items))


# ── Batch selection ───────────────────────────────────────────────

def test_single_word_pool_bounds_result():
    w1 = Word(id="w1", kanji="猫", kana="ねこ")
    assert select_next_batch([w1], [], 3, T) == [w1]


def test_new_words_only_returns_requested_count():
    words = make_words(5)
    batch = select_next_batch(words, [], 3, T)
    assert len(batch) == 3
    assert len({w.id for w in batch}) == 3
    assert all(w in words for w in batch)


def test_due_record_selected_first():
    words = make_words(3)
    records = [LearningRecord(word_id="w2", next_review_time=T - 1, interval_level=2,
                              is_mastered=False, show_count=4)]
    assert select_next_batch(words, records, 1, T) == [words[2]]


def test_due_reviews_ordered_most_overdue_first():
    words = make_words(4)
    records = [
        LearningRecord(word_id="w0", next_review_time=T - 100),
        LearningRecord(word_id="w1", next_review_time=T - 500),
        LearningRecord(word_id="w2", next_review_time=T - 500),
        LearningRecord(word_id="w3", next_review_time=T),
    ]
    batch = select_next_batch(words, records, 4, T, shuffle=reversed_shuffle)
    # w1 and w2 tie; record order wins
    assert [w.id for w in batch] == ["w1", "w2", "w0", "w3"]


def test_due_before_new_before_fallback():
    words = make_words(4)
    records = [
        LearningRecord(word_id="w0", next_review_time=T + 10_000),  # not due
        LearningRecord(word_id="w1", next_review_time=T - 1),       # due
    ]
    batch = select_next_batch(words, records, 4, T, shuffle=identity_shuffle)
    assert [w.id for w in batch] == ["w1", "w2", "w3", "w0"]


def test_new_words_use_injected_shuffle():
    words = make_words(4)
    batch = select_next_batch(words, [], 2, T, shuffle=reversed_shuffle)
    assert [w.id for w in batch] == ["w3", "w2"]


def test_mastered_word_not_selected_as_due():
    words = make_words(2)
    records = [LearningRecord(word_id="w0", next_review_time=T - 1, is_mastered=True)]
    assert select_next_batch(words, records, 1, T, shuffle=identity_shuffle) == [words[1]]


def test_fallback_fills_with_mastered_and_not_due_words():
    words = make_words(3)
    records = [
        LearningRecord(word_id="w0", next_review_time=T - 1, is_mastered=True),
        LearningRecord(word_id="w1", next_review_time=T + 60_000),
        LearningRecord(word_id="w2", next_review_time=T + 120_000),
    ]
    batch = select_next_batch(words, records, 3, T)
    assert sorted(w.id for w in batch) == ["w0", "w1", "w2"]


def test_orphan_due_record_is_skipped():
    words = make_words(2)
    records = [LearningRecord(word_id="ghost", next_review_time=T - 1)]
    batch = select_next_batch(words, records, 2, T, shuffle=identity_shuffle)
    assert [w.id for w in batch] == ["w0", "w1"]


@pytest.mark.parametrize("count", [0, -1, -5])
def test_non_positive_count_returns_empty(count):
    assert select_next_batch(make_words(3), [], count, T) == []


def test_empty_word_set_returns_empty():
    records = [LearningRecord(word_id="w0", next_review_time=T - 1)]
    assert select_next_batch([], records, 3, T) == []


def test_duplicate_records_do_not_duplicate_words():
    words = make_words(2)
    records = [
        LearningRecord(word_id="w0", next_review_time=T - 2),
        LearningRecord(word_id="w0", next_review_time=T - 1),
    ]
    batch = select_next_batch(words, records, 2, T, shuffle=identity_shuffle)
    assert [w.id for w in batch] == ["w0", "w1"]


def test_random_states_never_duplicate_and_respect_count():
    rng = random.Random(1234)
    for _ in range(200):
        words = make_words(rng.randint(0, 10))
        records = []
        for word in words:
            if rng.random() < 0.6:
                records.append(LearningRecord(
                    word_id=word.id,
                    next_review_time=T + rng.randint(-10_000, 10_000),
                    interval_level=rng.randint(0, 7),
                    is_mastered=rng.random() < 0.3,
                    show_count=rng.randint(1, 9),
                ))
        if rng.random() < 0.3:
            records.append(LearningRecord(word_id="orphan", next_review_time=T - 5))
        count = rng.randint(0, 8)

        batch = select_next_batch(words, records, count, T)

        ids = [w.id for w in batch]
        assert len(ids) == len(set(ids))
        assert len(batch) == min(count, len(words))

        # due words come first, most overdue first
        due_times = {r.word_id: r.next_review_time for r in records
                     if r.next_review_time <= T and not r.is_mastered}
        due_prefix = [due_times[i] for i in ids if i in due_times]
        assert due_prefix == sorted(due_prefix)


# ── Record updates ────────────────────────────────────────────────

def test_view_advances_due_record():
    records = [LearningRecord(word_id="w2", next_review_time=T - 1, interval_level=2,
                              is_mastered=False, show_count=4)]
    updated = apply_action("w2", records, "view", T)
    record = updated[0]
    assert record.interval_level == 3
    assert record.show_count == 5
    assert record.next_review_time == T + REVIEW_INTERVALS[3] * 60000


def test_master_new_word_creates_seeded_record():
    updated = apply_action("w3", [], "master", T)
    assert [r.to_dict() for r in updated] == [{
        "wordId": "w3",
        "isMastered": True,
        "showCount": 1,
        "intervalLevel": 0,
        "nextReviewTime": T + 1800000,
        "isFavorite": False,
    }]


def test_view_new_word_creates_level_zero_record():
    record = apply_action("w1", [], "view", T)[0]
    assert record == LearningRecord(word_id="w1", next_review_time=T + 30 * MINUTE_MS,
                                    interval_level=0, is_mastered=False, show_count=1, is_favorite=False)


def test_toggle_favorite_new_word_creates_favorite_record():
    record = apply_action("w1", [], "toggle_favorite", T)[0]
    assert record.is_favorite is True
    assert record.is_mastered is False
    assert record.show_count == 1
    assert record.interval_level == 0
    assert record.next_review_time == T + 30 * MINUTE_MS


def test_show_count_increases_by_one_per_view():
    records = []
    for i in range(1, 6):
        records = apply_action("w1", records, "view", T + i)
        assert records[0].show_count == i


def test_interval_level_clamps_at_last_entry():
    records = []
    last_view = T
    for i in range(12):
        last_view = T + i * 1000
        records = apply_action("w1", records, "view", last_view)
    record = records[0]
    assert record.interval_level == 7
    assert record.next_review_time == last_view + 43200 * 60 * 1000


def test_view_keeps_mastery_and_favorite():
    records = [LearningRecord(word_id="w1", next_review_time=T, interval_level=1,
                              is_mastered=True, show_count=2, is_favorite=True)]
    record = apply_action("w1", records, "view", T)[0]
    assert record.is_mastered is True
    assert record.is_favorite is True
    assert record.interval_level == 2


def test_master_is_idempotent():
    records = apply_action("w1", [], "view", T)
    once = apply_action("w1", records, "master", T + 5)
    twice = apply_action("w1", once, "master", T + 10)
    assert once == twice
    assert once[0].is_mastered is True
    assert once[0].next_review_time == records[0].next_review_time


def test_toggle_favorite_twice_restores_record():
    records = apply_action("w1", [], "view", T)
    flipped = apply_action("w1", records, "toggle_favorite", T + 1)
    assert flipped[0].is_favorite is True
    restored = apply_action("w1", flipped, "toggle_favorite", T + 2)
    assert restored == records


def test_apply_action_does_not_mutate_input():
    original = LearningRecord(word_id="w1", next_review_time=T, interval_level=1, show_count=2)
    records = [original]
    updated = apply_action("w1", records, "view", T)
    assert records == [original]
    assert updated is not records
    new = apply_action("w9", records, "view", T)
    assert len(records) == 1
    assert len(new) == 2


def test_other_records_untouched():
    records = [
        LearningRecord(word_id="w0", next_review_time=T, show_count=3),
        LearningRecord(word_id="w1", next_review_time=T, show_count=1),
    ]
    updated = apply_action("w1", records, "view", T)
    assert updated[0] is records[0]


def test_unknown_action_rejected():
    with pytest.raises(ValueError):
        apply_action("w1", [], "forget", T)


def test_custom_interval_table():
    intervals = [1, 2]
    records = apply_action("w1", [], "view", T, intervals=intervals)
    assert records[0].next_review_time == T + 1 * MINUTE_MS
    for _ in range(3):
        records = apply_action("w1", records, "view", T, intervals=intervals)
    assert records[0].interval_level == 1
    assert records[0].next_review_time == T + 2 * MINUTE_MS


def test_next_review_time_clamps_level():
    assert next_review_time(99, T) == T + REVIEW_INTERVALS[-1] * MINUTE_MS
    assert next_review_time(0, T) == T + 30 * MINUTE_MS


def test_view_batch_views_every_word():
    words = make_words(3)
    records = view_batch(words, [], T)
    assert [r.word_id for r in records] == ["w0", "w1", "w2"]
    assert all(r.show_count == 1 for r in records)
