# src/pipeline/callbacks.py — v1
"""Invoke user callbacks that may be sync or async."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


async def notify(callback: Callable[[Any], Any] | None, payload: Any) -> None:
    """Call ``callback(payload)``, awaiting it if it returns an awaitable.

    A failing callback is logged and otherwise ignored: observers never
    change the outcome of a run.
    """
    if callback is None:
        return
    try:
        outcome = callback(payload)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        logger.exception("Callback %r raised", getattr(callback, "__name__", callback))
