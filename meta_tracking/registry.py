"""Process-wide default tracker slot.

One cell, set and read explicitly by the caller. It is meant for one tracker
per process; independently configured trackers used from several threads
should be passed around instead of swapped in and out of this slot.
"""

from typing import Any

from .errors import ConfigError

_default_tracker: Any = None


def set_default_tracker(tracker: Any) -> None:
    global _default_tracker
    _default_tracker = tracker


def get_default_tracker() -> Any:
    return _default_tracker


def clear_default_tracker() -> None:
    set_default_tracker(None)


def require_default_tracker() -> Any:
    if _default_tracker is None:
        raise ConfigError("No default tracker configured; call set_default_tracker() first")
    return _default_tracker
