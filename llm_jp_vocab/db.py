from __future__ import annotations
from sqlalchemy import create_engine, BigInteger, Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session, Mapped, mapped_column
import datetime
import json
import os
from typing import Optional, List, Any, Dict, Sequence

from .scheduler import (
    ACTION_MASTER,
    ACTION_TOGGLE_FAVORITE,
    REVIEW_INTERVALS,
    Shuffle,
    apply_action,
    now_ms,
    select_next_batch,
    view_batch,
)
from .structured import LearningRecord, UserPreferences, Word
from .study import sorted_word_progress

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"
DEFAULT_USER = "default_user"


class Base(DeclarativeBase):
    pass
DB_PATH: str = os.environ.get("LLM_JP_VOCAB_DB", "jp_vocab.db")
engine = create_engine(f"sqlite:///{DB_PATH}")
# Prevent attribute expiration on commit so returned objects remain accessible
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


class VocabWord(Base):
    """Imported word. ``position`` keeps the order of the source sheet."""
    __tablename__ = "words"
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    word_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    kanji: Mapped[str] = mapped_column(String, nullable=False)
    kana: Mapped[str] = mapped_column(String, nullable=False, default="")
    type: Mapped[str] = mapped_column(String, nullable=False, default="无")
    meaning: Mapped[str] = mapped_column(Text, nullable=False, default="无")

    def to_word(self) -> Word:
        return Word(id=self.word_id, kanji=self.kanji, kana=self.kana, type=self.type, meaning=self.meaning)


class LearningRecordRow(Base):
    __tablename__ = "learning_records"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    word_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    next_review_time: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms
    interval_level: Mapped[int] = mapped_column(Integer, default=0)
    is_mastered: Mapped[bool] = mapped_column(Boolean, default=False)
    show_count: Mapped[int] = mapped_column(Integer, default=0)
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_record(self) -> LearningRecord:
        return LearningRecord(
            word_id=self.word_id,
            next_review_time=self.next_review_time,
            interval_level=self.interval_level,
            is_mastered=self.is_mastered,
            show_count=self.show_count,
            is_favorite=self.is_favorite,
        )


class UserPreferencesRow(Base):
    __tablename__ = "user_preferences"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    data: Mapped[str] = mapped_column(Text, nullable=False, default="{}")  # camelCase JSON
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC), onupdate=lambda: datetime.datetime.now(datetime.UTC))


def is_db_initialized() -> bool:
    """Check if the database is already initialized by checking if tables exist."""
    from sqlalchemy import inspect
    inspector = inspect(engine)
    table_names = inspector.get_table_names()

    required_tables = {'words', 'learning_records', 'user_preferences'}
    return required_tables.issubset(set(table_names))


def init_db() -> None:
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


# ── Words ─────────────────────────────────────────────────────────

def _load_words(session: Session) -> List[Word]:
    rows = session.query(VocabWord).order_by(VocabWord.position.asc()).all()
    return [row.to_word() for row in rows]


def get_words() -> List[Word]:
    session: Session = get_session()
    words = _load_words(session)
    session.close()
    return words


def replace_words(words: Sequence[Word], reset_learning: bool = False) -> int:
    """Replace the whole word list. Learning records survive unless ``reset_learning``.

    Returns the number of stored words.
    """
    session: Session = get_session()
    session.query(VocabWord).delete()
    if reset_learning:
        session.query(LearningRecordRow).delete()
    seen: set = set()
    for word in words:
        if word.id in seen:
            continue
        seen.add(word.id)
        session.add(VocabWord(
            word_id=word.id, kanji=word.kanji, kana=word.kana, type=word.type, meaning=word.meaning
        ))
    session.commit()
    session.close()
    print(f"✅ Stored {len(seen)} words" + (" (learning data reset)" if reset_learning else ""))
    return len(seen)


# ── Learning records ──────────────────────────────────────────────

def _load_records(session: Session) -> List[LearningRecord]:
    rows = session.query(LearningRecordRow).order_by(LearningRecordRow.id.asc()).all()
    return [row.to_record() for row in rows]


def _write_records(session: Session, records: Sequence[LearningRecord]) -> None:
    """Sync the table with ``records``: update changed rows, add new ones, drop missing ones."""
    existing = {row.word_id: row for row in session.query(LearningRecordRow).all()}
    keep: set = set()
    for record in records:
        if record.word_id in keep:
            continue
        keep.add(record.word_id)
        row = existing.get(record.word_id)
        if row is None:
            session.add(LearningRecordRow(
                word_id=record.word_id,
                next_review_time=record.next_review_time,
                interval_level=record.interval_level,
                is_mastered=record.is_mastered,
                show_count=record.show_count,
                is_favorite=record.is_favorite,
            ))
            continue
        row.next_review_time = record.next_review_time
        row.interval_level = record.interval_level
        row.is_mastered = record.is_mastered
        row.show_count = record.show_count
        row.is_favorite = record.is_favorite
    for word_id, row in existing.items():
        if word_id not in keep:
            session.delete(row)


def get_learning_records() -> List[LearningRecord]:
    session: Session = get_session()
    records = _load_records(session)
    session.close()
    return records


def get_learning_record(word_id: str) -> Optional[LearningRecord]:
    session: Session = get_session()
    row = session.query(LearningRecordRow).filter_by(word_id=word_id).first()
    record = row.to_record() if row else None
    session.close()
    return record


def save_learning_records(records: Sequence[LearningRecord]) -> None:
    session: Session = get_session()
    _write_records(session, records)
    session.commit()
    session.close()


def reset_learning_data() -> int:
    """Clear every learning record; words are kept. Returns the number removed."""
    session: Session = get_session()
    removed = session.query(LearningRecordRow).delete()
    session.commit()
    session.close()
    print(f"✅ Cleared {removed} learning records")
    return removed


# ── Preferences ───────────────────────────────────────────────────

def get_preferences(user: str = DEFAULT_USER) -> UserPreferences:
    """Stored preferences merged over the defaults."""
    session: Session = get_session()
    row = session.query(UserPreferencesRow).filter_by(user=user).first()
    raw = row.data if row else None
    session.close()
    if not raw:
        return UserPreferences()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        if DEBUG_MODE:
            print(f"⚠️ Stored preferences for {user} are corrupt, using defaults: {e}")
        return UserPreferences()
    if not isinstance(data, dict):
        return UserPreferences()
    return UserPreferences.from_dict(data)


def save_preferences(prefs: UserPreferences, user: str = DEFAULT_USER) -> None:
    session: Session = get_session()
    row = session.query(UserPreferencesRow).filter_by(user=user).first()
    if not row:
        row = UserPreferencesRow(user=user)
        session.add(row)
    row.data = json.dumps(prefs.to_dict(), ensure_ascii=False)
    session.commit()
    session.close()


def update_preferences(updates: Dict[str, Any], user: str = DEFAULT_USER) -> UserPreferences:
    """Apply a partial camelCase update to the stored preferences and save them."""
    prefs = get_preferences(user).merge(updates)
    save_preferences(prefs, user)
    return prefs


# ── Study flow ────────────────────────────────────────────────────

def load_next_batch(
    count: Optional[int] = None,
    now: Optional[int] = None,
    shuffle: Optional[Shuffle] = None,
    user: str = DEFAULT_USER,
    intervals: Sequence[int] = REVIEW_INTERVALS,
) -> List[Word]:
    """Select the next batch and record a ``view`` for each selected word.

    Selection, the view updates and the commit happen in one session so a
    refresh is a single step. ``count`` defaults to the user's display count.
    """
    if count is None:
        count = get_preferences(user).display_count
    if now is None:
        now = now_ms()

    session: Session = get_session()
    words = _load_words(session)
    if not words:
        session.close()
        return []
    records = _load_records(session)

    batch = select_next_batch(words, records, count, now, shuffle=shuffle)
    _write_records(session, view_batch(batch, records, now, intervals))
    session.commit()
    session.close()

    if DEBUG_MODE:
        print(f"🔄 Next batch: {[w.id for w in batch]}")
    return batch


def _apply_single(word_id: str, action: str, now: Optional[int]) -> LearningRecord:
    if now is None:
        now = now_ms()
    session: Session = get_session()
    records = apply_action(word_id, _load_records(session), action, now)
    _write_records(session, records)
    session.commit()
    session.close()
    return next(r for r in records if r.word_id == word_id)


def master_word(word_id: str, now: Optional[int] = None) -> LearningRecord:
    """Mark a word as mastered so it no longer comes up for review."""
    return _apply_single(word_id, ACTION_MASTER, now)


def toggle_favorite_word(word_id: str, now: Optional[int] = None) -> LearningRecord:
    return _apply_single(word_id, ACTION_TOGGLE_FAVORITE, now)


def get_word_progress(sort_mode: Optional[str] = None, user: str = DEFAULT_USER) -> List[Dict[str, Any]]:
    """Learning summary of every word, sorted by ``sort_mode`` or the saved preference."""
    if sort_mode is None:
        sort_mode = get_preferences(user).record_sort_mode
    session: Session = get_session()
    words = _load_words(session)
    records = _load_records(session)
    session.close()
    return sorted_word_progress(words, records, sort_mode)
