"""Pattern source heuristics."""

from strudeltap.pattern.duration import DurationEstimate, estimate_duration, format_duration

__all__ = ["DurationEstimate", "estimate_duration", "format_duration"]
