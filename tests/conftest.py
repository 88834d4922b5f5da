import os
import sys
from typing import Any, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from llm_jp_vocab import db
from llm_jp_vocab.structured import Word

T = 1_700_000_000_000  # fixed "now" in epoch ms


@pytest.fixture
def temp_db(tmp_path, monkeypatch) -> Generator[Any, None, None]:
    """Rebind the engine/session to a fresh SQLite file."""
    test_db = str(tmp_path / "test_vocab.db")
    monkeypatch.setenv("LLM_JP_VOCAB_DB", test_db)
    db.engine = create_engine(f"sqlite:///{test_db}")
    db.SessionLocal = sessionmaker(bind=db.engine, expire_on_commit=False)
    db.init_db()
    yield db
    db.engine.dispose()


def identity_shuffle(items):
    return list(items)


def make_words(n: int):
    kana = ["あい", "いえ", "うみ", "えき", "おか", "かお", "きく", "くも", "けさ", "こえ"]
    return [Word(id=f"w{i}", kanji=f"漢{i}", kana=kana[i % len(kana)], type="名词", meaning=f"意味{i}")
            for i in range(n)]
