from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


# Placeholder stored for a missing part of speech / meaning.
NONE_SENTINEL = "无"

FIELD_NAMES = ["kanji", "kana", "type", "meaning"]
DEFAULT_VISIBLE_FIELDS = ["kanji", "kana", "type", "meaning"]
REQUIRED_FIELDS = ["kanji", "kana"]

SORT_MODES = ("original", "alphabetical", "showCount")
MIN_DISPLAY_COUNT = 1
MAX_DISPLAY_COUNT = 5


@dataclass(frozen=True)
class Word:
    id: str
    kanji: str
    kana: str
    type: str = NONE_SENTINEL
    meaning: str = NONE_SENTINEL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kanji": self.kanji,
            "kana": self.kana,
            "type": self.type,
            "meaning": self.meaning,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Word":
        return cls(
            id=str(data["id"]),
            kanji=data.get("kanji", ""),
            kana=data.get("kana", ""),
            type=data.get("type") or NONE_SENTINEL,
            meaning=data.get("meaning") or NONE_SENTINEL,
        )


@dataclass(frozen=True)
class LearningRecord:
    """Review state of a single word.

    ``next_review_time`` is epoch milliseconds. Records are never mutated;
    the scheduler returns updated copies.
    """
    word_id: str
    next_review_time: int
    interval_level: int = 0
    is_mastered: bool = False
    show_count: int = 0
    is_favorite: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wordId": self.word_id,
            "nextReviewTime": self.next_review_time,
            "intervalLevel": self.interval_level,
            "isMastered": self.is_mastered,
            "showCount": self.show_count,
            "isFavorite": self.is_favorite,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearningRecord":
        return cls(
            word_id=str(data["wordId"]),
            next_review_time=int(data["nextReviewTime"]),
            interval_level=int(data.get("intervalLevel", 0)),
            is_mastered=bool(data.get("isMastered", False)),
            show_count=int(data.get("showCount", 0)),
            is_favorite=bool(data.get("isFavorite", False)),
        )


@dataclass
class ColumnMapping:
    kanji: str = ""
    kana: str = ""
    type: str = ""
    meaning: str = ""

    def is_complete(self) -> bool:
        return bool(self.kanji) and bool(self.kana)

    def to_dict(self) -> Dict[str, str]:
        return {"kanji": self.kanji, "kana": self.kana, "type": self.type, "meaning": self.meaning}


@dataclass
class UserPreferences:
    display_count: int = 3
    visible_fields: List[str] = field(default_factory=lambda: list(DEFAULT_VISIBLE_FIELDS))
    floating_pos: Dict[str, int] = field(default_factory=lambda: {"x": 0, "y": 0})
    floating_opacity: float = 0.9
    is_floating: bool = False
    last_filename: Optional[str] = None
    record_sort_mode: str = "showCount"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "displayCount": self.display_count,
            "visibleFields": list(self.visible_fields),
            "floatingPos": dict(self.floating_pos),
            "floatingOpacity": self.floating_opacity,
            "isFloating": self.is_floating,
            "recordSortMode": self.record_sort_mode,
        }
        if self.last_filename is not None:
            data["lastFilename"] = self.last_filename
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "UserPreferences":
        """Build preferences from a stored dict, falling back to defaults.

        Unknown keys are ignored and out-of-range values are normalized.
        """
        return cls().merge(data or {})

    def merge(self, updates: Dict[str, Any]) -> "UserPreferences":
        """Return a copy with the camelCase ``updates`` applied."""
        prefs = replace(self)
        if "displayCount" in updates:
            prefs.display_count = clamp_display_count(updates["displayCount"])
        if "visibleFields" in updates and isinstance(updates["visibleFields"], list):
            prefs.visible_fields = normalize_visible_fields(updates["visibleFields"])
        if isinstance(updates.get("floatingPos"), dict):
            pos = updates["floatingPos"]
            prefs.floating_pos = {
                "x": _to_int(pos.get("x"), self.floating_pos.get("x", 0)),
                "y": _to_int(pos.get("y"), self.floating_pos.get("y", 0)),
            }
        if "floatingOpacity" in updates:
            prefs.floating_opacity = clamp_opacity(updates["floatingOpacity"], self.floating_opacity)
        if "isFloating" in updates:
            prefs.is_floating = bool(updates["isFloating"])
        if "lastFilename" in updates:
            name = updates["lastFilename"]
            prefs.last_filename = None if name is None else str(name)
        if updates.get("recordSortMode") in SORT_MODES:
            prefs.record_sort_mode = updates["recordSortMode"]
        return prefs


def clamp_display_count(value: Any) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return UserPreferences.display_count
    return max(MIN_DISPLAY_COUNT, min(MAX_DISPLAY_COUNT, count))


def clamp_opacity(value: Any, fallback: float = 0.9) -> float:
    try:
        opacity = float(value)
    except (TypeError, ValueError):
        return fallback
    if opacity != opacity:  # NaN
        return fallback
    return max(0.0, min(1.0, opacity))


def _to_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return fallback


def normalize_visible_fields(fields: List[str]) -> List[str]:
    # Required fields can never be hidden; order follows FIELD_NAMES
    wanted = {f for f in fields if isinstance(f, str)} | set(REQUIRED_FIELDS)
    return [name for name in FIELD_NAMES if name in wanted]
