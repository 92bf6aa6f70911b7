"""Utilities for storing per-task logging context using contextvars.

Each asyncio task gets its own copy of the context, so a tag worker can bind
``worker_id`` and ``repo_id`` without leaking them into sibling workers.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Any, Dict


_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current log context."""
    context = _log_context.get()
    # Ensure callers cannot mutate the stored context in place
    return dict(context) if context else {}


def set_log_context(**values: Any) -> Dict[str, Any]:
    """Merge provided values into the stored context.

    Passing ``None`` clears the value for that key.
    """

    current = get_log_context()
    for key, value in values.items():
        if value is None:
            current.pop(key, None)
        else:
            current[key] = value
    _log_context.set(current)
    return current


def clear_log_context() -> None:
    """Remove all stored context for the active task."""

    _log_context.set({})
