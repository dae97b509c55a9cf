from decimal import Decimal

import pytest

from clinic_core.common.money import MoneyAmount


def test_amounts_are_quantized_to_cents_half_up():
    assert MoneyAmount.of("10.005").amount == Decimal("10.01")
    assert MoneyAmount.of("10.004").amount == Decimal("10.00")
    assert MoneyAmount.of(7).amount == Decimal("7.00")
    assert str(MoneyAmount.of("3.5")) == "3.50"


def test_float_is_rejected():
    with pytest.raises(TypeError):
        MoneyAmount.of(0.1)


@pytest.mark.parametrize("raw", ["abc", "", "NaN", "Infinity"])
def test_invalid_strings_are_rejected(raw):
    with pytest.raises(ValueError):
        MoneyAmount.of(raw)


def test_arithmetic_stays_exact():
    total = MoneyAmount.sum([MoneyAmount.of("0.10")] * 3)
    assert total == MoneyAmount.of("0.30")
    assert MoneyAmount.of("50.00") - MoneyAmount.of("80.00") == MoneyAmount.of("-30.00")
    assert -MoneyAmount.of("5") == MoneyAmount.of("-5")
    assert abs(MoneyAmount.of("-5")) == MoneyAmount.of("5")


def test_ordering_and_predicates():
    assert MoneyAmount.of("0.01") > MoneyAmount.zero()
    assert MoneyAmount.zero().is_zero
    assert MoneyAmount.of("-0.01").is_negative
    assert MoneyAmount.of("-0.01").clamp_at_zero() == MoneyAmount.zero()
    assert MoneyAmount.of("2").clamp_at_zero() == MoneyAmount.of("2")


def test_mixing_with_plain_numbers_is_an_error():
    with pytest.raises(TypeError):
        MoneyAmount.of("1") + Decimal("1")
