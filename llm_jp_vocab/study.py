import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from .structured import LearningRecord, SORT_MODES, Word

# Show count at which the progress bar of a word is full
MAX_SHOW_COUNT = 10
DEFAULT_COOLDOWN_MS = 800


def sorted_word_progress(
    words: Sequence[Word],
    records: Sequence[LearningRecord],
    sort_mode: str = "showCount",
) -> List[Dict[str, Any]]:
    """
    Per-word learning summary for the records screen.

    Sort modes:
      original     – import order
      alphabetical – by kana
      showCount    – most shown first (ties keep import order)
    """
    if sort_mode not in SORT_MODES:
        raise ValueError(f"Unknown sort mode: {sort_mode!r}")

    by_word: Dict[str, LearningRecord] = {}
    for record in records:
        by_word.setdefault(record.word_id, record)

    entries = []
    for word in words:
        record = by_word.get(word.id)
        show_count = record.show_count if record else 0
        entries.append({
            "word": word.to_dict(),
            "showCount": show_count,
            "progress": min(show_count / MAX_SHOW_COUNT, 1.0),
            "isFavorite": bool(record and record.is_favorite),
            "isMastered": bool(record and record.is_mastered),
        })

    if sort_mode == "alphabetical":
        entries.sort(key=lambda e: e["word"]["kana"])
    elif sort_mode == "showCount":
        entries.sort(key=lambda e: e["showCount"], reverse=True)
    return entries


class RefreshCooldown:
    """Swallows refresh triggers that arrive within ``cooldown_ms`` of the last accepted one."""

    def __init__(self, cooldown_ms: int = DEFAULT_COOLDOWN_MS,
                 clock: Optional[Callable[[], float]] = None) -> None:
        self.cooldown_ms = cooldown_ms
        self._clock = clock or time.monotonic
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._last is not None and (now - self._last) * 1000 < self.cooldown_ms:
                return False
            self._last = now
            return True

    def reset(self) -> None:
        with self._lock:
            self._last = None
