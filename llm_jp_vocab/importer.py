"""
Word list import.

Reads an Excel (.xlsx/.xlsm/.xls) or CSV vocabulary sheet, finds the header row,
guesses which columns hold kanji / kana / type / meaning, and builds Word
entries. Pure file parsing, no database access.
"""
import csv
import os
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import xlrd
from openpyxl import load_workbook

from .structured import ColumnMapping, NONE_SENTINEL, Word

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}
LEGACY_EXCEL_EXTENSIONS = {".xls"}
CSV_EXTENSIONS = {".csv"}
HEADER_SCAN_ROWS = 10
# Tried in order; Chinese word lists are often saved as GBK
CSV_ENCODINGS = ("utf-8-sig", "gb18030")

# Substrings recognised in header cells, plus the exact English column name
HEADER_HINTS: Dict[str, Tuple[Sequence[str], str]] = {
    "kanji": (("汉字", "词汇"), "kanji"),
    "kana": (("假名", "读音"), "kana"),
    "type": (("词性",), "type"),
    "meaning": (("翻译", "词义", "解释", "词意"), "meaning"),
}


class ImportFileError(ValueError):
    """The uploaded word list cannot be turned into words."""


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    # Spreadsheet numbers arrive as floats; 3.0 should read "3"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _read_xlsx(path: str) -> List[List[Any]]:
    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except Exception as e:
        raise ImportFileError(f"Could not read workbook {os.path.basename(path)}: {e}") from e
    try:
        sheet = workbook.worksheets[0]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_xls(path: str) -> List[List[Any]]:
    try:
        book = xlrd.open_workbook(path, on_demand=True)
    except Exception as e:
        raise ImportFileError(f"Could not read workbook {os.path.basename(path)}: {e}") from e
    try:
        sheet = book.sheet_by_index(0)
        return [list(sheet.row_values(i)) for i in range(sheet.nrows)]
    finally:
        book.release_resources()


def _read_csv(path: str) -> List[List[Any]]:
    for encoding in CSV_ENCODINGS:
        try:
            with open(path, "r", encoding=encoding, newline="") as f:
                return [list(row) for row in csv.reader(f)]
        except UnicodeDecodeError:
            if DEBUG_MODE:
                print(f"⚠️ {os.path.basename(path)} is not {encoding}, trying next encoding")
    raise ImportFileError(
        f"Could not decode {os.path.basename(path)}, save it as UTF-8 or GBK"
    )


def read_table(path: str) -> List[List[Any]]:
    """Read the first sheet of ``path`` as a list of raw rows."""
    ext = os.path.splitext(path)[1].lower()
    if ext in EXCEL_EXTENSIONS:
        rows = _read_xlsx(path)
    elif ext in LEGACY_EXCEL_EXTENSIONS:
        rows = _read_xls(path)
    elif ext in CSV_EXTENSIONS:
        rows = _read_csv(path)
    else:
        raise ImportFileError(f"Unsupported file type '{ext}', expected .xlsx, .xls or .csv")

    if not rows:
        raise ImportFileError("The word list is empty")
    return rows


def find_header_row(rows: List[List[Any]]) -> int:
    """Index of the first row (within the first 10) with at least two filled cells."""
    for i, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        filled = [cell for cell in row if _cell_text(cell) != ""]
        if len(filled) >= 2:
            return i
    return 0


def split_header(rows: List[List[Any]]) -> Tuple[List[str], List[List[Any]]]:
    header_index = find_header_row(rows)
    headers = [_cell_text(h) for h in rows[header_index]]
    if not any(headers):
        raise ImportFileError("No usable header row found")
    return headers, rows[header_index + 1:]


def guess_mapping(headers: Sequence[str]) -> ColumnMapping:
    """Guess the column for each field from the header names."""
    guessed: Dict[str, str] = {}
    for field_name, (fragments, exact) in HEADER_HINTS.items():
        match = next(
            (h for h in headers if h and (any(frag in h for frag in fragments) or h.lower() == exact)),
            "",
        )
        guessed[field_name] = match
    return ColumnMapping(**guessed)


def build_words(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    mapping: ColumnMapping,
    stamp: Optional[int] = None,
) -> List[Word]:
    """Turn data rows into words using ``mapping``.

    Rows without kanji are dropped. A type or meaning that is missing or
    only whitespace becomes the placeholder value.
    """
    if not mapping.is_complete():
        raise ImportFileError("Both the kanji and the kana column must be mapped")

    headers = list(headers)

    def column(name: str) -> int:
        if not name:
            return -1
        if name not in headers:
            raise ImportFileError(f"Column '{name}' not found in header")
        return headers.index(name)

    kanji_idx = column(mapping.kanji)
    kana_idx = column(mapping.kana)
    type_idx = column(mapping.type)
    meaning_idx = column(mapping.meaning)

    if stamp is None:
        stamp = int(time.time() * 1000)

    def cell(row: Sequence[Any], idx: int, default: str = "") -> str:
        if idx < 0 or idx >= len(row):
            return default
        return _cell_text(row[idx]) or default

    words: List[Word] = []
    for i, row in enumerate(rows):
        kanji = cell(row, kanji_idx)
        if not kanji:
            continue
        words.append(Word(
            id=f"w-{i}-{stamp}",
            kanji=kanji,
            kana=cell(row, kana_idx),
            type=cell(row, type_idx, NONE_SENTINEL),
            meaning=cell(row, meaning_idx, NONE_SENTINEL),
        ))

    if not words:
        raise ImportFileError("No word rows found")
    if DEBUG_MODE:
        print(f"📥 Parsed {len(words)} words from {len(rows)} rows")
    return words


def load_word_file(path: str, mapping: Optional[ColumnMapping] = None) -> Tuple[List[Word], ColumnMapping]:
    """Read ``path`` and build words.

    Fields left empty in ``mapping`` are filled from the guessed mapping.
    """
    headers, rows = split_header(read_table(path))
    guessed = guess_mapping(headers)
    if mapping is not None:
        guessed = ColumnMapping(
            kanji=mapping.kanji or guessed.kanji,
            kana=mapping.kana or guessed.kana,
            type=mapping.type or guessed.type,
            meaning=mapping.meaning or guessed.meaning,
        )
    return build_words(headers, rows, guessed), guessed
