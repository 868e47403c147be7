"""Playback duration estimate from pattern source text.

This is a literal scan, not an interpreter: only numeric arguments are
understood, so computed tempos or slow factors are ignored and the estimate
falls back to defaults.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from strudeltap.rounding import round_half_up

DEFAULT_CPM = 60.0

_NUMBER = r"(\d+(?:\.\d+)?)"
_CPM_RE = re.compile(rf"setcpm\s*\(\s*{_NUMBER}\s*\)")
_CPS_RE = re.compile(rf"setcps\s*\(\s*{_NUMBER}\s*\)")
_SLOW_RE = re.compile(rf"\.slow\s*\(\s*{_NUMBER}\s*\)")


@dataclass(frozen=True)
class DurationEstimate:
    cycles_per_minute: float
    cycle_count: float  # longest .slow() factor
    seconds: float
    formatted: str  # "m:ss"


def format_duration(seconds: float) -> str:
    """Format as ``m:ss``; minutes and seconds are truncated, not rounded."""
    return f"{int(seconds // 60)}:{int(seconds % 60):02d}"


def _cycles_per_minute(source_text: str) -> float:
    match = _CPM_RE.search(source_text)
    if match:
        return float(match.group(1))
    match = _CPS_RE.search(source_text)
    if match:
        return float(match.group(1)) * 60
    return DEFAULT_CPM


def estimate_duration(source_text: str) -> DurationEstimate:
    """Estimate how long one full loop of the pattern takes.

    The longest ``.slow(n)`` factor is assumed to set the loop length, so the
    loop spans ``max(n)`` cycles at the pattern's cycles per minute.

    Raises
    ------
    ZeroDivisionError
        If the pattern sets a tempo of zero.
    """
    cpm = _cycles_per_minute(source_text)

    max_factor = 1.0
    for match in _SLOW_RE.finditer(source_text):
        max_factor = max(max_factor, float(match.group(1)))

    seconds = (max_factor / cpm) * 60
    return DurationEstimate(
        cycles_per_minute=cpm,
        cycle_count=max_factor,
        seconds=round_half_up(seconds, 2),
        formatted=format_duration(seconds),
    )
