from datetime import datetime, timedelta

import pytest

from backend.services.exceptions import CursorRegressionError
from backend.services.import_state import DEFAULT_LAST_ROW, CursorStore


def test_unknown_source_starts_after_header(db):
    store = CursorStore(db)

    assert store.get_last_processed_row("sheet-1") == DEFAULT_LAST_ROW == 1
    assert store.get_state("sheet-1") is None
    assert store.get_next_run_time("sheet-1") is None


def test_advance_creates_then_updates_state(db):
    store = CursorStore(db, poll_interval_minutes=15)
    seen = datetime(2024, 3, 1, 9, 30)

    store.advance("sheet-1", 2, external_id="l:1", source_timestamp=seen)
    state = store.advance("sheet-1", 3)

    assert state.last_processed_row == 3
    # id/time of the last row that had one are kept
    assert state.last_processed_id == "l:1"
    assert state.last_processed_time == seen
    assert state.next_run_at - state.last_run_at == timedelta(minutes=15)
    assert store.get_last_processed_row("sheet-1") == 3


def test_advance_to_same_row_is_allowed(db):
    store = CursorStore(db)
    store.advance("sheet-1", 4)

    assert store.advance("sheet-1", 4).last_processed_row == 4


def test_cursor_never_moves_backwards(db):
    store = CursorStore(db)
    store.advance("sheet-1", 5)

    with pytest.raises(CursorRegressionError):
        store.advance("sheet-1", 4)

    assert store.get_last_processed_row("sheet-1") == 5


def test_cursors_are_per_source(db):
    store = CursorStore(db)
    store.advance("sheet-1", 9)

    assert store.get_last_processed_row("sheet-2") == 1


def test_interval_override(db):
    store = CursorStore(db, poll_interval_minutes=10)

    state = store.advance("sheet-1", 2, poll_interval_minutes=60)

    assert state.next_run_at - state.last_run_at == timedelta(minutes=60)
