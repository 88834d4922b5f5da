from . import db
import os
from typing import Any, Optional

import click
import llm  # type: ignore

from .importer import ImportFileError, load_word_file
from .structured import ColumnMapping, FIELD_NAMES, NONE_SENTINEL, SORT_MODES, REQUIRED_FIELDS

hookimpl = llm.hookimpl  # type: ignore


def _format_word(word: Any, fields: Any, is_favorite: bool = False) -> str:
    parts = []
    if "kanji" in fields:
        parts.append(word.kanji)
    if "kana" in fields:
        parts.append(f"[{word.kana}]")
    if "type" in fields and word.type and word.type != NONE_SENTINEL:
        parts.append(f"({word.type})")
    if "meaning" in fields and word.meaning and word.meaning != NONE_SENTINEL:
        parts.append(f"- {word.meaning}")
    line = " ".join(parts)
    return "★ " + line if is_favorite else line


@hookimpl  # type: ignore[misc]
def register_commands(cli: Any) -> None:

    @cli.command("vocab-init-db")  # type: ignore[misc]
    def init_db() -> None:
        """Initialize the vocabulary database."""
        db.init_db()
        click.echo("Database initialized.")

    @cli.command("vocab-import")  # type: ignore[misc]
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    @click.option("--kanji-col", default="", help="Header of the kanji column")
    @click.option("--kana-col", default="", help="Header of the kana column")
    @click.option("--type-col", default="", help="Header of the part-of-speech column")
    @click.option("--meaning-col", default="", help="Header of the meaning column")
    @click.option("--reset", is_flag=True, help="Also clear all learning progress")
    def import_words(path: str, kanji_col: str, kana_col: str, type_col: str, meaning_col: str, reset: bool) -> None:
        """Import a word list (.xlsx, .xls or .csv), replacing the current one."""
        db.init_db()
        mapping = ColumnMapping(kanji=kanji_col, kana=kana_col, type=type_col, meaning=meaning_col)
        try:
            words, used = load_word_file(path, mapping)
        except ImportFileError as e:
            raise click.ClickException(str(e))
        count = db.replace_words(words, reset_learning=reset)
        db.update_preferences({"lastFilename": os.path.basename(path)})
        click.echo(f"Column mapping: {used.to_dict()}")
        click.echo(f"Imported {count} words from {os.path.basename(path)}.")

    @cli.command("vocab-next")  # type: ignore[misc]
    @click.option("--count", type=click.IntRange(1, 5), default=None, help="Words to show (default: saved display count)")
    def next_batch(count: Optional[int]) -> None:
        """Show the next batch of words and record them as viewed."""
        db.init_db()
        batch = db.load_next_batch(count=count)
        if not batch:
            click.echo("No words yet. Import a word list with 'llm vocab-import'.")
            return
        prefs = db.get_preferences()
        for word in batch:
            record = db.get_learning_record(word.id)
            is_favorite = bool(record and record.is_favorite)
            click.echo(f"{word.id}\t{_format_word(word, prefs.visible_fields, is_favorite)}")

    @cli.command("vocab-master")  # type: ignore[misc]
    @click.argument("word_id")
    def master(word_id: str) -> None:
        """Mark a word as mastered."""
        db.init_db()
        db.master_word(word_id)
        click.echo(f"Word '{word_id}' marked as mastered.")

    @cli.command("vocab-favorite")  # type: ignore[misc]
    @click.argument("word_id")
    def favorite(word_id: str) -> None:
        """Toggle the favorite flag of a word."""
        db.init_db()
        record = db.toggle_favorite_word(word_id)
        state = "added to" if record.is_favorite else "removed from"
        click.echo(f"Word '{word_id}' {state} favorites.")

    @cli.command("vocab-records")  # type: ignore[misc]
    @click.option("--sort", "sort_mode", type=click.Choice(SORT_MODES), default=None, help="Sort order")
    def records(sort_mode: Optional[str]) -> None:
        """List every word with its show count."""
        db.init_db()
        if sort_mode:
            db.update_preferences({"recordSortMode": sort_mode})
        entries = db.get_word_progress(sort_mode)
        filename = db.get_preferences().last_filename or "untitled list"
        click.echo(f"{filename}: {len(entries)} words")
        for entry in entries:
            word = entry["word"]
            flags = ("★" if entry["isFavorite"] else " ") + ("✓" if entry["isMastered"] else " ")
            bar = "#" * int(entry["progress"] * 10)
            click.echo(f"{flags} {word['kanji']}\t{word['kana']}\t{entry['showCount']:>3}  {bar}")

    @cli.command("vocab-settings")  # type: ignore[misc]
    @click.option("--display-count", type=click.IntRange(1, 5), default=None, help="Words per batch (1-5)")
    @click.option("--show", "show_fields", multiple=True, type=click.Choice(FIELD_NAMES), help="Field to display")
    @click.option("--hide", "hide_fields", multiple=True, type=click.Choice(FIELD_NAMES), help="Field to hide")
    def settings(display_count: Optional[int], show_fields: Any, hide_fields: Any) -> None:
        """Show or change display settings."""
        db.init_db()
        prefs = db.get_preferences()
        updates: dict = {}
        if display_count is not None:
            updates["displayCount"] = display_count
        if show_fields or hide_fields:
            blocked = [f for f in hide_fields if f in REQUIRED_FIELDS]
            if blocked:
                click.echo(f"Fields {blocked} are always shown.")
            fields = (set(prefs.visible_fields) | set(show_fields)) - set(hide_fields)
            updates["visibleFields"] = sorted(fields)
        if updates:
            prefs = db.update_preferences(updates)
        click.echo(f"Display count: {prefs.display_count}")
        click.echo(f"Visible fields: {', '.join(prefs.visible_fields)}")
        click.echo(f"Record sort mode: {prefs.record_sort_mode}")

    @cli.command("vocab-reset")  # type: ignore[misc]
    @click.confirmation_option(prompt="Clear all learning progress? Words are kept.")
    def reset() -> None:
        """Clear learning progress; imported words stay."""
        db.init_db()
        removed = db.reset_learning_data()
        click.echo(f"Cleared {removed} learning records.")
