#!/usr/bin/env python3
"""
Japanese Vocabulary Memo - Flask JSON API
Serves word batches on an Ebbinghaus review schedule, plus word-list upload,
learning records and display settings.
"""

import os
import sys
import traceback
import argparse
import threading
from typing import List, Optional, Dict, Any

from flask import Flask, request, jsonify
from werkzeug.utils import secure_filename

# Add the current directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from llm_jp_vocab import db
from llm_jp_vocab.importer import (
    ImportFileError, load_word_file, EXCEL_EXTENSIONS, LEGACY_EXCEL_EXTENSIONS, CSV_EXTENSIONS,
)
from llm_jp_vocab.structured import ColumnMapping, SORT_MODES, Word
from llm_jp_vocab.study import RefreshCooldown, DEFAULT_COOLDOWN_MS

# Check for debug mode
DEBUG = os.environ.get("DEBUG", "0") == "1"

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max file size

# Words currently on screen and the guard against rapid refresh triggers
current_batch: List[Word] = []
refresh_cooldown = RefreshCooldown(int(os.environ.get("REFRESH_COOLDOWN_MS", DEFAULT_COOLDOWN_MS)))
# Held while the batch is replaced so a refresh is one step
batch_lock = threading.Lock()

# Configure upload folder
UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', 'uploads')
ALLOWED_EXTENSIONS = EXCEL_EXTENSIONS | LEGACY_EXCEL_EXTENSIONS | CSV_EXTENSIONS


def allowed_file(filename: str) -> bool:
    return os.path.splitext(filename)[1].lower() in ALLOWED_EXTENSIONS


def _batch_payload(batch: List[Word]) -> List[Dict[str, Any]]:
    records = {r.word_id: r for r in db.get_learning_records()}
    payload = []
    for word in batch:
        record = records.get(word.id)
        item = word.to_dict()
        item['isFavorite'] = bool(record and record.is_favorite)
        item['showCount'] = record.show_count if record else 0
        payload.append(item)
    return payload


def _refresh_batch() -> List[Word]:
    """Load and view the next batch. Call with ``batch_lock`` held."""
    global current_batch
    current_batch = db.load_next_batch()
    return current_batch


def _error_response(context: str, e: Exception) -> Any:
    if DEBUG:
        print(f"{context}: {e}")
        traceback.print_exc()
    return jsonify({'status': 'error', 'message': f'Error: {str(e)}'}), 500


@app.before_request
def initialize_app() -> None:
    """Initialize the database if needed."""
    if not hasattr(app, '_database_initialized'):
        try:
            if not db.is_db_initialized():
                db.init_db()
                print("✅ Database initialized on startup")
        except Exception as e:
            print(f"❌ Database startup check failed: {str(e)}")
        setattr(app, "_database_initialized", True)


@app.route('/api/batch')
def api_batch() -> Any:
    """Current batch; the first request after start (or after an import) loads one."""
    try:
        if not db.get_words():
            return jsonify({'status': 'no_words', 'message': 'Upload a word list first', 'words': []})
        with batch_lock:
            batch = current_batch or _refresh_batch()
        prefs = db.get_preferences()
        return jsonify({'status': 'success', 'words': _batch_payload(batch),
                        'visibleFields': prefs.visible_fields})
    except Exception as e:
        return _error_response("Error loading batch", e)


@app.route('/api/batch/next', methods=['POST'])
def api_next_batch() -> Any:
    """Advance to the next batch (scroll / button trigger)."""
    try:
        if not db.get_words():
            return jsonify({'status': 'no_words', 'message': 'Upload a word list first', 'words': []})
        with batch_lock:
            if refresh_cooldown.try_acquire():
                status, batch = 'success', _refresh_batch()
            else:
                status, batch = 'cooldown', current_batch
        return jsonify({'status': status, 'words': _batch_payload(batch)})
    except Exception as e:
        return _error_response("Error refreshing batch", e)


@app.route('/api/words/<word_id>/master', methods=['POST'])
def api_master(word_id: str) -> Any:
    """Mark a word as mastered and take it off the screen."""
    global current_batch
    try:
        record = db.master_word(word_id)
        with batch_lock:
            current_batch = [w for w in current_batch if w.id != word_id]
            batch = current_batch
        return jsonify({'status': 'success', 'record': record.to_dict(),
                        'words': _batch_payload(batch)})
    except Exception as e:
        return _error_response("Error mastering word", e)


@app.route('/api/words/<word_id>/favorite', methods=['POST'])
def api_favorite(word_id: str) -> Any:
    try:
        record = db.toggle_favorite_word(word_id)
        return jsonify({'status': 'success', 'record': record.to_dict()})
    except Exception as e:
        return _error_response("Error toggling favorite", e)


@app.route('/api/upload', methods=['POST'])
def api_upload() -> Any:
    """Upload a word list; replaces the current words."""
    global current_batch
    file = request.files.get('file')
    if file is None or not file.filename:
        return jsonify({'status': 'error', 'message': 'No file selected'}), 400
    if not allowed_file(file.filename):
        return jsonify({'status': 'error', 'message': 'Please upload a .xlsx, .xls or .csv file'}), 400

    try:
        stem, ext = os.path.splitext(file.filename)
        # secure_filename drops non-ASCII names entirely
        safe_name = (secure_filename(stem) or 'upload') + ext.lower()
        os.makedirs(UPLOAD_FOLDER, exist_ok=True)
        filepath = os.path.join(UPLOAD_FOLDER, safe_name)
        file.save(filepath)

        mapping = ColumnMapping(
            kanji=request.form.get('kanji', ''),
            kana=request.form.get('kana', ''),
            type=request.form.get('type', ''),
            meaning=request.form.get('meaning', ''),
        )
        reset = request.form.get('reset', 'false').lower() in ('1', 'true', 'yes', 'on')
        try:
            words, used = load_word_file(filepath, mapping)
        finally:
            os.remove(filepath)

        count = db.replace_words(words, reset_learning=reset)
        db.update_preferences({'lastFilename': file.filename})
        with batch_lock:
            current_batch = []
            refresh_cooldown.reset()
        return jsonify({'status': 'success', 'count': count, 'mapping': used.to_dict(), 'reset': reset})
    except ImportFileError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400
    except Exception as e:
        return _error_response("Error importing word list", e)


@app.route('/api/records')
def api_records() -> Any:
    """Learning records screen data."""
    sort_mode: Optional[str] = request.args.get('sort')
    if sort_mode is not None and sort_mode not in SORT_MODES:
        return jsonify({'status': 'error', 'message': f'Unknown sort mode: {sort_mode}'}), 400
    try:
        if sort_mode is not None:
            db.update_preferences({'recordSortMode': sort_mode})
        entries = db.get_word_progress(sort_mode)
        prefs = db.get_preferences()
        return jsonify({'status': 'success', 'filename': prefs.last_filename,
                        'sortMode': prefs.record_sort_mode, 'total': len(entries), 'records': entries})
    except Exception as e:
        return _error_response("Error loading records", e)


@app.route('/api/settings', methods=['GET', 'POST'])
def api_settings() -> Any:
    try:
        if request.method == 'POST':
            updates = request.get_json(silent=True)
            if not isinstance(updates, dict):
                return jsonify({'status': 'error', 'message': 'Expected a JSON object'}), 400
            prefs = db.update_preferences(updates)
        else:
            prefs = db.get_preferences()
        return jsonify({'status': 'success', 'settings': prefs.to_dict()})
    except Exception as e:
        return _error_response("Error updating settings", e)


@app.route('/api/reset', methods=['POST'])
def api_reset() -> Any:
    """Clear learning progress; the word list is kept."""
    global current_batch
    try:
        removed = db.reset_learning_data()
        with batch_lock:
            current_batch = []
        return jsonify({'status': 'success', 'removed': removed})
    except Exception as e:
        return _error_response("Error resetting progress", e)


def get_local_ip():
    """Attempt to determine the local network IP address."""
    import socket
    try:
        # Connect to an external server (doesn't actually send data)
        # to determine the interface used for internet access
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        local_ip = s.getsockname()[0]
        s.close()
        return local_ip
    except Exception:
        return "127.0.0.1"


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Japanese Vocabulary Memo')
    parser.add_argument('--host', help='Host IP to bind to (default: auto-detect local IP)')
    parser.add_argument('--port', type=int, default=5000, help='Port to bind to (default: 5000)')
    parser.add_argument('--cooldown-ms', type=int, default=DEFAULT_COOLDOWN_MS,
                        help=f'Minimum gap between batch refreshes in ms (default: {DEFAULT_COOLDOWN_MS})')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    args = parser.parse_args()

    if args.debug:
        DEBUG = True

    refresh_cooldown.cooldown_ms = args.cooldown_ms
    print(f"⚙️  Refresh cooldown configured to: {args.cooldown_ms} ms")

    # Initialize database
    try:
        if not db.is_db_initialized():
            db.init_db()
            print("✅ Database initialized")
    except Exception as e:
        print(f"❌ Database initialization failed: {str(e)}")

    host = args.host or get_local_ip()
    print(f"🚀 Starting server on http://{host}:{args.port}")
    app.run(debug=DEBUG, host=host, port=args.port)
