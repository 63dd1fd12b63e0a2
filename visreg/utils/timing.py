"""Monotonic timing helpers."""

from __future__ import annotations

import time


def round_ms(value: float) -> float:
    """Round a millisecond value to two decimals."""
    return round(value, 2)


def elapsed_ms(start: float) -> float:
    """Milliseconds since ``start`` (a ``time.perf_counter()`` reading)."""
    return round_ms((time.perf_counter() - start) * 1000)
