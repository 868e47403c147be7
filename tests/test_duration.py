"""Tests for pattern duration estimates."""

import pytest

from strudeltap.pattern.duration import DurationEstimate, estimate_duration, format_duration


def test_longest_slow_factor_wins():
    est = estimate_duration('setcpm(120)\nstack(s("bd*4").slow(4), s("hh*8").slow(2))')

    assert est == DurationEstimate(cycles_per_minute=120.0, cycle_count=4.0, seconds=2.0, formatted="0:02")


def test_defaults_without_tempo_or_slow():
    est = estimate_duration('s("bd sd")')

    assert est.cycles_per_minute == 60.0
    assert est.cycle_count == 1.0
    assert est.seconds == 1.0
    assert est.formatted == "0:01"


def test_whitespace_and_decimals():
    est = estimate_duration("setcpm( 90.5 )\nnote(\"c e g\") .slow ( 2.5 )")

    assert est.cycles_per_minute == 90.5
    assert est.cycle_count == 2.5
    assert est.seconds == 1.66  # 2.5 / 90.5 * 60 = 1.6574...


def test_slow_factors_below_one_keep_one_cycle():
    assert estimate_duration("setcpm(30) .slow(0.5)").cycle_count == 1.0


def test_computed_arguments_are_ignored():
    est = estimate_duration("setcpm(bpm/4) .slow(n)")
    assert (est.cycles_per_minute, est.cycle_count) == (60.0, 1.0)


def test_cps_converts_to_cpm():
    assert estimate_duration("setcps(0.5)").cycles_per_minute == 30.0
    # setcpm takes precedence when both are present
    assert estimate_duration("setcps(2) setcpm(45)").cycles_per_minute == 45.0


def test_long_pattern_formatting():
    est = estimate_duration("setcpm(10) .slow(16)")
    assert est.seconds == 96.0
    assert est.formatted == "1:36"


def test_zero_tempo_raises():
    with pytest.raises(ZeroDivisionError):
        estimate_duration("setcpm(0)")


@pytest.mark.parametrize("seconds, formatted", [
    (0.0, "0:00"),
    (8.57, "0:08"),
    (59.99, "0:59"),
    (61.5, "1:01"),
    (600.0, "10:00"),
])
def test_format_truncates(seconds, formatted):
    assert format_duration(seconds) == formatted
