from __future__ import annotations

from decimal import Decimal

import pytest

from swift_tracker.units import (
    format_lamports,
    format_native,
    format_units,
    lamports_to_sol,
    parse_units,
    to_decimal,
)


def test_to_decimal_is_exact_for_256_bit_values():
    value = 2**256 - 1
    amount = to_decimal(value, 18)

    sign, digits, exponent = amount.as_tuple()
    assert sign == 0
    assert exponent == -18
    assert int("".join(map(str, digits))) == value
    assert format_units(value, 18).replace(".", "") == str(value)


def test_to_decimal_keeps_sign():
    assert to_decimal(-5_001_000, 9) == Decimal("-0.005001")


def test_to_decimal_rejects_negative_decimals():
    with pytest.raises(ValueError):
        to_decimal(1, -1)


def test_format_units_strips_trailing_zeros():
    assert format_units(1_500_000, 6) == "1.5"
    assert format_units(10**18, 18) == "1"
    assert format_units(0, 18) == "0"


def test_format_units_never_uses_exponent():
    assert format_units(1, 18) == "0.000000000000000001"
    assert format_units(10**30, 6) == "1000000000000000000000000"


def test_lamport_helpers():
    assert lamports_to_sol(1_000_000_000) == Decimal(1)
    assert format_lamports(5_000) == "0.000005"
    assert format_native(25 * 10**16) == "0.25"


def test_parse_units_truncates_extra_precision():
    assert parse_units("1.5", 6) == 1_500_000
    assert parse_units("0.1234567", 6) == 123_456
    assert parse_units(2, 18) == 2 * 10**18


@pytest.mark.parametrize("bad", ["abc", "", "inf", "NaN"])
def test_parse_units_rejects_garbage(bad):
    with pytest.raises(ValueError):
        parse_units(bad, 18)
