"""
Unit tests for Money and round_money.

Verifies:
- Half-away-from-zero rounding at the cent
- Floats rejected, non-finite values rejected
- Every arithmetic result rounded immediately
- Equality on rounded cents
- Currency mismatch detection
"""

from decimal import Decimal

import pytest

from estate_kernel.domain.values import CENT, Money, round_money, to_decimal
from estate_kernel.exceptions import CurrencyMismatchError


class TestRoundMoney:
    """Half away from zero."""

    def test_round_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")

    def test_round_down(self):
        assert round_money(Decimal("2.344")) == Decimal("2.34")

    def test_negative_half_away_from_zero(self):
        assert round_money(Decimal("-0.005")) == Decimal("-0.01")
        assert round_money(Decimal("-2.345")) == Decimal("-2.35")

    def test_no_rounding_needed(self):
        assert round_money("12.50") == Decimal("12.50")

    def test_int_input(self):
        assert round_money(7) == Decimal("7.00")

    def test_result_at_cent_precision(self):
        assert round_money("1").as_tuple().exponent == CENT.as_tuple().exponent


class TestConversion:

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            to_decimal(0.1)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            Money.of(True)

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            Money.of("NaN")

    def test_infinity_rejected(self):
        with pytest.raises(ValueError):
            Money.of(Decimal("Infinity"))

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            Money.of("twelve")

    def test_invalid_currency(self):
        with pytest.raises(ValueError):
            Money.of("1.00", "EURO")

    def test_currency_normalized(self):
        assert Money.of("1.00", "eur").currency == "EUR"


class TestMoneyConstruction:

    def test_quantized_on_construction(self):
        assert Money.of("10.005").amount == Decimal("10.01")

    def test_from_cents(self):
        assert Money.from_cents(12345) == Money.of("123.45")
        assert Money.from_cents(-1) == Money.of("-0.01")

    def test_cents(self):
        assert Money.of("123.45").cents == 12345
        assert Money.of("-0.07").cents == -7

    def test_total_of_empty_is_zero(self):
        assert Money.total([], "CHF") == Money.zero("CHF")

    def test_total(self):
        assert Money.total([Money.of("0.10")] * 3) == Money.of("0.30")


class TestArithmetic:
    """Each result is rounded right after the operation."""

    def test_add_and_subtract(self):
        assert Money.of("0.10") + Money.of("0.20") == Money.of("0.30")
        assert Money.of("1.00") - Money.of("2.50") == Money.of("-1.50")

    def test_multiply_rounds(self):
        assert Money.of("10.00") * Decimal("0.333") == Money.of("3.33")
        assert Decimal("3") * Money.of("0.35") == Money.of("1.05")

    def test_divide_rounds(self):
        assert Money.of("100.00") / 3 == Money.of("33.33")
        assert Money.of("1200.00") / 12 == Money.of("100.00")

    def test_divide_by_zero(self):
        with pytest.raises(ZeroDivisionError):
            Money.of("1.00") / 0

    def test_percent_rounds_once(self):
        assert Money.of("33.35").percent(Decimal("10")) == Money.of("3.34")
        assert Money.of("19.99").percent("20") == Money.of("4.00")

    def test_neg_and_abs(self):
        assert -Money.of("1.25") == Money.of("-1.25")
        assert abs(Money.of("-1.25")) == Money.of("1.25")

    def test_float_factor_rejected(self):
        with pytest.raises(TypeError):
            Money.of("1.00") * 1.5


class TestComparison:

    def test_equality_on_rounded_cents(self):
        assert Money.of("1.004") == Money.of("1.00")
        assert Money.of("1.0") == Money.of("1.00")
        assert hash(Money.of("1.0")) == hash(Money.of("1.00"))

    def test_ordering(self):
        assert Money.of("1.00") < Money.of("1.01")
        assert min(Money.of("5.00"), Money.of("4.99")) == Money.of("4.99")

    def test_predicates(self):
        assert Money.zero().is_zero
        assert Money.of("0.01").is_positive
        assert Money.of("-0.01").is_negative

    def test_currency_mismatch_on_add(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1.00", "EUR") + Money.of("1.00", "CHF")

    def test_currency_mismatch_on_compare(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1.00", "EUR") < Money.of("1.00", "CHF")

    def test_different_currencies_not_equal(self):
        assert Money.of("1.00", "EUR") != Money.of("1.00", "CHF")


class TestRoundingDeterminism:

    def test_same_input_same_output(self):
        results = {Money.of("2.675") * Decimal("1.1") for _ in range(100)}

        assert results == {Money.of("2.95")}
