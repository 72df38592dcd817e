"""A coarse millisecond clock with an optional background updater."""

from __future__ import annotations

import threading
import time
from datetime import timedelta

CHECK_UPDATE_INTERVAL = timedelta(milliseconds=200)

_ANCHOR = time.monotonic()
_recent = 0
_recent_lock = threading.Lock()

_updater_lock = threading.Lock()
_updater_running = False


def duration_to_millis(dur: timedelta | float | int) -> int:
    """Convert a duration to whole milliseconds, truncating the remainder.

    ``dur`` may be a :class:`~datetime.timedelta` or a number of seconds.
    """
    if not isinstance(dur, timedelta):
        dur = timedelta(seconds=dur)
    whole_seconds = dur.days * 86_400 + dur.seconds
    return whole_seconds * 1000 + dur.microseconds // 1000


def now_millis() -> int:
    """Return milliseconds since a fixed point in the past.

    The returned value never goes backwards, and it is remembered so that
    :func:`recent_millis` can report it cheaply.
    """
    global _recent
    elapsed = duration_to_millis(max(0.0, time.monotonic() - _ANCHOR))
    with _recent_lock:
        if _recent > elapsed:
            return _recent
        _recent = elapsed
        return elapsed


def recent_millis() -> int:
    """Return the value most recently produced by :func:`now_millis`."""
    with _recent_lock:
        return _recent


def _update_forever() -> None:
    interval = CHECK_UPDATE_INTERVAL.total_seconds()
    while True:
        time.sleep(interval)
        now_millis()


def ensure_updater() -> None:
    """Start the background thread that refreshes the clock, once."""
    global _updater_running
    with _updater_lock:
        if _updater_running:
            return
        _updater_running = True
    thread = threading.Thread(target=_update_forever, name="time updater", daemon=True)
    thread.start()