"""Rounding helpers matching the conventions of the host's JSON consumers."""

import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round half toward positive infinity (``Math.round`` semantics).

    Python's :func:`round` rounds half to even, which would shift values such
    as ``2.5`` down to ``2``.
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor
