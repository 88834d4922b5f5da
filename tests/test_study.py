"""Tests for the records view and the refresh cooldown."""
import threading
import time

import pytest

from llm_jp_vocab.structured import LearningRecord
from llm_jp_vocab.study import RefreshCooldown, sorted_word_progress

from conftest import T, make_words


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_progress_caps_at_one():
    words = make_words(2)
    records = [LearningRecord(word_id="w1", next_review_time=T, show_count=14, is_favorite=True)]
    entries = sorted_word_progress(words, records, "original")
    assert [e["showCount"] for e in entries] == [0, 14]
    assert entries[1]["progress"] == 1.0
    assert entries[1]["isFavorite"] is True
    assert entries[0]["isMastered"] is False


def test_show_count_sort_is_stable():
    words = make_words(3)
    records = [
        LearningRecord(word_id="w2", next_review_time=T, show_count=1),
        LearningRecord(word_id="w1", next_review_time=T, show_count=1),
    ]
    entries = sorted_word_progress(words, records, "showCount")
    assert [e["word"]["id"] for e in entries] == ["w1", "w2", "w0"]


def test_unknown_sort_mode():
    with pytest.raises(ValueError):
        sorted_word_progress(make_words(1), [], "random")


def test_cooldown_blocks_rapid_triggers():
    clock = FakeClock()
    cooldown = RefreshCooldown(800, clock=clock)
    assert cooldown.try_acquire() is True
    clock.now += 0.5
    assert cooldown.try_acquire() is False
    clock.now += 0.31
    assert cooldown.try_acquire() is True


def test_cooldown_reset():
    clock = FakeClock()
    cooldown = RefreshCooldown(800, clock=clock)
    cooldown.try_acquire()
    cooldown.reset()
    assert cooldown.try_acquire() is True


def test_cooldown_admits_one_of_concurrent_triggers():
    def slow_clock():
        # Widen the gap between reading the clock and recording the trigger
        time.sleep(0.001)
        return 100.0

    cooldown = RefreshCooldown(800, clock=slow_clock)
    results = []
    threads = [threading.Thread(target=lambda: results.append(cooldown.try_acquire())) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1
    assert len(results) == 16
