"""
Tests for the Distribution Calculator.

Covers:
- Key-based apportionment (area, ownership share, head count, equal)
- Cent reconciliation order (raw share, tie-break label, participant id)
- Zero-weight equal-split fallback flagged provisional
- Tax and reserve components reconciled independently
- WEG business plan monthly advances
- Statutory reserve minimum
- Input validation
"""

from decimal import Decimal

import pytest

from estate_engines.distribution import (
    BusinessPlanItem,
    CentAdjustment,
    CostItem,
    DistributionCalculator,
    check_reserve_minimum,
)
from estate_kernel.domain.dtos import DistributionKey, Participant
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidInputError,
    InvalidWeightError,
)


def _units(*areas, **kwargs) -> list[Participant]:
    return [
        Participant(f"u{i + 1}", area=Decimal(str(a)), **kwargs)
        for i, a in enumerate(areas)
    ]


class TestKeyDistribution:
    """Shares follow the selected weight."""

    def setup_method(self):
        self.calc = DistributionCalculator()

    def test_area_scenario(self):
        """60/90/150 m2 sharing 1200.00 gives 240/360/600."""
        result = self.calc.distribute(
            Money.of("1200.00"), _units(60, 90, 150), DistributionKey.AREA
        )

        assert [line.net for line in result.lines] == [
            Money.of("240.00"),
            Money.of("360.00"),
            Money.of("600.00"),
        ]
        assert result.component_sum("net") == Money.of("1200.00")
        assert result.adjustments == ()
        assert not result.provisional

    def test_lines_keep_input_order(self):
        participants = _units(150, 60, 90)
        result = self.calc.distribute(Money.of("300.00"), participants, DistributionKey.AREA)

        assert [line.participant_id for line in result.lines] == ["u1", "u2", "u3"]

    def test_ownership_share(self):
        participants = [
            Participant("top1", ownership_share=Decimal("250")),
            Participant("top2", ownership_share=Decimal("750")),
        ]
        result = self.calc.distribute(
            Money.of("1000.00"), participants, DistributionKey.OWNERSHIP_SHARE
        )

        assert result.line_for("top1").net == Money.of("250.00")
        assert result.line_for("top2").net == Money.of("750.00")

    def test_head_count(self):
        participants = [
            Participant("a", head_count=Decimal("1")),
            Participant("b", head_count=Decimal("3")),
        ]
        result = self.calc.distribute(Money.of("80.00"), participants, DistributionKey.HEAD_COUNT)

        assert result.line_for("a").net == Money.of("20.00")
        assert result.line_for("b").net == Money.of("60.00")

    def test_equal_key_ignores_weights(self):
        result = self.calc.distribute(
            Money.of("90.00"), _units(10, 20, 60), DistributionKey.EQUAL
        )

        assert all(line.net == Money.of("30.00") for line in result.lines)

    def test_zero_weight_participant_gets_nothing(self):
        participants = _units(100, 0)
        result = self.calc.distribute(Money.of("50.00"), participants, DistributionKey.AREA)

        assert result.line_for("u1").net == Money.of("50.00")
        assert result.line_for("u2").net.is_zero

    def test_zero_total(self):
        result = self.calc.distribute(Money.zero(), _units(1, 2), DistributionKey.AREA)

        assert all(line.net.is_zero for line in result.lines)
        assert result.adjustments == ()


class TestCentReconciliation:
    """Leftover cents go out in a fixed order."""

    def setup_method(self):
        self.calc = DistributionCalculator()

    def test_extra_cent_goes_to_lowest_id_on_full_tie(self):
        participants = [Participant(pid) for pid in ("c", "a", "b")]
        result = self.calc.distribute(Money.of("100.00"), participants, DistributionKey.EQUAL)

        assert result.line_for("a").net == Money.of("33.34")
        assert result.line_for("b").net == Money.of("33.33")
        assert result.line_for("c").net == Money.of("33.33")
        assert result.adjustments == (CentAdjustment("net", "a", 1),)

    def test_tie_break_label_precedes_id(self):
        participants = [
            Participant("a", tie_break="Top 3"),
            Participant("b", tie_break="Top 1"),
            Participant("c", tie_break="Top 2"),
        ]
        result = self.calc.distribute(Money.of("100.00"), participants, DistributionKey.EQUAL)

        assert result.line_for("b").net == Money.of("33.34")
        assert result.adjustments[0].participant_id == "b"

    def test_largest_raw_share_absorbs_negative_diff(self):
        """Rounding up overshoots by a cent; the largest share gives it back."""
        participants = _units(1, 1, 4)
        result = self.calc.distribute(Money.of("0.10"), participants, DistributionKey.AREA)

        assert [line.net for line in result.lines] == [
            Money.of("0.02"),
            Money.of("0.02"),
            Money.of("0.06"),
        ]
        assert result.adjustments == (CentAdjustment("net", "u3", -1),)

    def test_negative_diff_on_full_tie_takes_from_lowest_id(self):
        participants = [Participant(pid) for pid in ("a", "b", "c")]
        result = self.calc.distribute(Money.of("0.02"), participants, DistributionKey.EQUAL)

        assert result.line_for("a").net.is_zero
        assert result.line_for("b").net == Money.of("0.01")
        assert result.line_for("c").net == Money.of("0.01")

    def test_many_participants_conserve_total(self):
        participants = [
            Participant(f"unit-{i:03d}", area=Decimal(str(37 + (i * 7) % 53)))
            for i in range(500)
        ]
        result = self.calc.distribute(Money.of("98765.43"), participants, DistributionKey.AREA)

        assert result.component_sum("net") == Money.of("98765.43")
        assert all(not line.net.is_negative for line in result.lines)

    def test_identical_input_gives_identical_output(self):
        participants = _units("33.3", "33.3", "33.4", "12.75")
        first = self.calc.distribute(
            Money.of("1000.01"), participants, DistributionKey.AREA, tax_rate=Decimal("20")
        )
        second = self.calc.distribute(
            Money.of("1000.01"), participants, DistributionKey.AREA, tax_rate=Decimal("20")
        )

        assert first == second
        assert first.adjustments == second.adjustments


class TestZeroWeightFallback:
    """All-zero weights fall back to an equal split."""

    def setup_method(self):
        self.calc = DistributionCalculator()

    def test_zero_consumption_splits_equally(self):
        participants = [Participant(pid, consumption=Decimal("0")) for pid in ("a", "b", "c")]
        result = self.calc.distribute(
            Money.of("100.00"), participants, DistributionKey.CONSUMPTION
        )

        assert result.provisional
        assert all(line.provisional for line in result.lines)
        assert result.component_sum("net") == Money.of("100.00")
        assert {line.net for line in result.lines} == {Money.of("33.34"), Money.of("33.33")}

    def test_fallback_logged(self, captured_logs):
        participants = [Participant("a"), Participant("b")]
        self.calc.distribute(Money.of("10.00"), participants, DistributionKey.CONSUMPTION)

        messages = [r["message"] for r in captured_logs()]
        assert "distribution_zero_weight_fallback" in messages

    def test_nonzero_weights_not_provisional(self):
        result = self.calc.distribute(Money.of("10.00"), _units(1, 1), DistributionKey.AREA)

        assert not result.provisional
        assert not any(line.provisional for line in result.lines)


class TestNoParticipants:

    def test_empty_result_not_error(self):
        result = DistributionCalculator().distribute(
            Money.of("500.00"), [], DistributionKey.AREA
        )

        assert result.lines == ()
        assert result.net_total == Money.of("500.00")
        assert result.component_sum("net").is_zero


class TestTaxAndReserve:
    """Components are reconciled independently."""

    def setup_method(self):
        self.calc = DistributionCalculator()

    def test_tax_split_with_net_weights(self):
        result = self.calc.distribute(
            Money.of("1200.00"), _units(60, 90, 150), DistributionKey.AREA, tax_rate=Decimal("10")
        )

        assert result.tax_total == Money.of("120.00")
        assert [line.tax for line in result.lines] == [
            Money.of("24.00"),
            Money.of("36.00"),
            Money.of("60.00"),
        ]

    def test_reserve_untaxed(self):
        result = self.calc.distribute(
            Money.of("100.00"),
            _units(1, 1),
            DistributionKey.AREA,
            tax_rate=Decimal("20"),
            reserve=Money.of("50.00"),
        )

        assert result.tax_total == Money.of("20.00")
        assert result.reserve_total == Money.of("50.00")
        line = result.line_for("u1")
        assert line.reserve == Money.of("25.00")
        assert line.gross == Money.of("85.00")

    def test_each_component_conserved(self):
        result = self.calc.distribute(
            Money.of("1000.00"),
            _units(1, 1, 1),
            DistributionKey.AREA,
            tax_rate=Decimal("10"),
            reserve=Money.of("0.05"),
        )

        for component, total in (
            ("net", result.net_total),
            ("tax", result.tax_total),
            ("reserve", result.reserve_total),
        ):
            assert result.component_sum(component) == total
        components = {adj.component for adj in result.adjustments}
        assert components == {"net", "tax", "reserve"}

    def test_distribute_item(self):
        item = CostItem(
            item_id="water-2024",
            amount=Money.of("300.00"),
            key=DistributionKey.AREA,
            tax_rate=Decimal("10"),
            category="water",
        )
        result = self.calc.distribute_item(item, _units(1, 2))

        assert result.line_for("u2").net == Money.of("200.00")
        assert result.line_for("u2").tax == Money.of("20.00")


class TestBusinessPlan:
    """WEG annual plan to monthly advances."""

    def setup_method(self):
        self.calc = DistributionCalculator()
        self.owners = _units(60, 90, 150)

    def test_monthly_advances(self):
        items = [
            BusinessPlanItem("op", "operating", Money.of("1200.00"), tax_rate=Decimal("10")),
            BusinessPlanItem("rf", "reserve_fund", Money.of("600.00"), is_reserve=True),
        ]
        result = self.calc.distribute_business_plan(items, self.owners, DistributionKey.AREA)

        assert result.net_total == Money.of("100.00")
        assert result.tax_total == Money.of("10.00")
        assert result.reserve_total == Money.of("50.00")

        first = result.line_for("u1")
        assert first.net == Money.of("20.00")
        assert first.tax == Money.of("2.00")
        assert first.reserve == Money.of("10.00")
        assert first.gross == Money.of("32.00")

    def test_reserve_item_never_taxed(self):
        items = [
            BusinessPlanItem("rf", "reserve_fund", Money.of("1200.00"), tax_rate=Decimal("20"), is_reserve=True),
        ]
        result = self.calc.distribute_business_plan(items, self.owners, DistributionKey.AREA)

        assert result.tax_total.is_zero
        assert result.net_total.is_zero
        assert all(line.tax.is_zero for line in result.lines)

    def test_monthly_rounding_conserved_per_component(self):
        items = [
            BusinessPlanItem("op", "operating", Money.of("1000.00"), tax_rate=Decimal("10")),
            BusinessPlanItem("ins", "insurance", Money.of("777.77"), tax_rate=Decimal("20")),
            BusinessPlanItem("rf", "reserve_fund", Money.of("555.55"), is_reserve=True),
        ]
        result = self.calc.distribute_business_plan(items, _units(1, 1, 1), DistributionKey.AREA)

        for component, total in (
            ("net", result.net_total),
            ("tax", result.tax_total),
            ("reserve", result.reserve_total),
        ):
            assert Money.total(getattr(line, component) for line in result.lines) == total
        assert len(result.item_results) == 3

    def test_zero_weight_fallback_weights_match_items(self):
        owners = [Participant(pid, consumption=Decimal("0")) for pid in ("a", "b", "c")]
        items = [
            BusinessPlanItem("op", "operating", Money.of("1200.00"), tax_rate=Decimal("10")),
            BusinessPlanItem("rf", "reserve_fund", Money.of("600.00"), is_reserve=True),
        ]
        result = self.calc.distribute_business_plan(items, owners, DistributionKey.CONSUMPTION)

        assert result.provisional
        assert [line.weight for line in result.lines] == [Decimal("1")] * 3
        for _, item_result in result.item_results:
            assert [line.weight for line in item_result.lines] == [line.weight for line in result.lines]

    def test_negative_annual_amount_rejected(self):
        with pytest.raises(InvalidAmountError):
            BusinessPlanItem("op", "operating", Money.of("-1.00"))


class TestReserveMinimum:

    def test_meets_minimum(self):
        check = check_reserve_minimum(Money.of("3600.00"), Decimal("300"))

        assert check.monthly_per_sqm == Money.of("1.00")
        assert check.meets_minimum

    def test_below_minimum(self):
        check = check_reserve_minimum(Money.of("3000.00"), Decimal("300"))

        assert not check.meets_minimum

    def test_zero_area_fails(self):
        check = check_reserve_minimum(Money.of("3000.00"), Decimal("0"))

        assert check.monthly_per_sqm.is_zero
        assert not check.meets_minimum


class TestInputValidation:

    def setup_method(self):
        self.calc = DistributionCalculator()

    def test_negative_weight(self):
        with pytest.raises(InvalidWeightError):
            Participant("u1", area=Decimal("-1"))

    def test_nan_weight(self):
        with pytest.raises(InvalidWeightError):
            Participant("u1", consumption=Decimal("NaN"))

    def test_float_weight(self):
        with pytest.raises(InvalidWeightError):
            Participant("u1", area=60.5)

    def test_negative_total(self):
        with pytest.raises(InvalidAmountError):
            self.calc.distribute(Money.of("-1.00"), _units(1), DistributionKey.AREA)

    def test_negative_tax_rate(self):
        with pytest.raises(InvalidAmountError):
            self.calc.distribute(
                Money.of("1.00"), _units(1), DistributionKey.AREA, tax_rate=Decimal("-5")
            )

    def test_duplicate_participants(self):
        participants = [Participant("u1"), Participant("u1")]
        with pytest.raises(InvalidInputError):
            self.calc.distribute(Money.of("1.00"), participants, DistributionKey.EQUAL)

    def test_reserve_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError):
            self.calc.distribute(
                Money.of("1.00", "EUR"),
                _units(1),
                DistributionKey.AREA,
                reserve=Money.of("1.00", "CHF"),
            )
