from decimal import Decimal

import allure
import pytest

from exceptions import ConfigurationError
from shopping import (
    ASSESSMENT_THRESHOLDS,
    DecisionKind,
    PriceBand,
    PriceRuleDecision,
    PriceRuleTable,
    Thresholds,
)

THRESHOLDS = Thresholds(
    low_price=Decimal("1000"),
    low_price_qty=2,
    high_price=Decimal("1500"),
    default_qty=1,
)


@allure.feature("Price Rules")
class TestThresholdTable:
    # The threshold table partitions [0, inf) into detail-add, direct-add and skip

    def setup_method(self):
        self.table = PriceRuleTable.from_thresholds(THRESHOLDS)

    @allure.story("Bands")
    @allure.title("Price {price} classifies as {expected}")
    @pytest.mark.parametrize(
        "price, expected",
        [
            ("0", "DetailAddWithQuantity(2)"),
            ("999.99", "DetailAddWithQuantity(2)"),
            ("1000", "DirectAdd(1)"),
            ("1200", "DirectAdd(1)"),
            ("1500", "DirectAdd(1)"),
            ("1500.01", "Skip"),
            ("1600", "Skip"),
        ],
    )
    def test_band_boundaries(self, price, expected):
        assert str(self.table.classify(Decimal(price))) == expected

    @allure.story("Totality")
    @allure.title("Every non-negative price gets exactly one band")
    def test_every_price_matches_exactly_one_band(self):
        prices = [Decimal(cents) / 100 for cents in range(0, 200_001, 997)]
        prices += [THRESHOLDS.low_price, THRESHOLDS.high_price, Decimal("0")]
        for price in prices:
            matching = [band for band in self.table.bands[:2] if band.contains(price)]
            assert len(matching) <= 1, f"overlapping bands at {price}"
            decision = self.table.classify(price)
            assert decision.kind in (DecisionKind.DIRECT_ADD, DecisionKind.DETAIL_ADD, DecisionKind.SKIP)

    @allure.story("Scenario")
    @allure.title("Three products get detail-add, direct-add and skip")
    def test_scenario_decisions(self):
        decisions = [self.table.classify(Decimal(p)) for p in ("999.99", "1200", "1600")]
        assert decisions == [
            PriceRuleDecision.detail_add(2),
            PriceRuleDecision.direct_add(1),
            PriceRuleDecision.skip(),
        ]
        assert [d.adds_to_cart for d in decisions] == [True, True, False]

    @allure.story("Assessment Thresholds")
    @allure.title("Assessment thresholds match the fixture defaults")
    def test_assessment_thresholds(self):
        assert ASSESSMENT_THRESHOLDS == THRESHOLDS
        assert ASSESSMENT_THRESHOLDS.problems() == ()


@allure.feature("Price Rules")
class TestConfiguredTable:

    @allure.story("First Match Wins")
    @allure.title("Earlier bands shadow later ones")
    def test_first_match_wins(self):
        table = PriceRuleTable([
            PriceBand(DecisionKind.SKIP, max_price=Decimal("10")),
            PriceBand(DecisionKind.DIRECT_ADD, 3),
        ])
        assert table.classify(Decimal("10")).kind is DecisionKind.SKIP
        assert table.classify(Decimal("10.01")) == PriceRuleDecision.direct_add(3)

    @allure.story("Uncovered Prices")
    @allure.title("A price no band covers is skipped")
    def test_uncovered_price_is_skipped(self):
        table = PriceRuleTable([PriceBand(DecisionKind.DIRECT_ADD, 1, min_price=Decimal("5"), max_price=Decimal("6"))])
        assert table.classify(Decimal("7")) == PriceRuleDecision.skip()
        assert table.match(Decimal("7")) is None

    @allure.story("Fixture Rules")
    @allure.title("Rule tables load from fixture data")
    def test_from_config(self):
        table = PriceRuleTable.from_config([
            {"action": "direct_add", "quantity": 1, "min": 1000, "max": 1500},
            {"action": "detail_add", "quantity": 2, "max": 1000, "include_max": False},
        ])
        assert len(table) == 2
        assert str(table.classify(Decimal("1000"))) == "DirectAdd(1)"
        assert str(table.classify(Decimal("999.99"))) == "DetailAddWithQuantity(2)"
        assert str(table.classify(Decimal("2000"))) == "Skip"

    @allure.story("Fixture Rules")
    @allure.title("Invalid rule '{rule}' is a configuration error")
    @pytest.mark.parametrize(
        "rule",
        [
            {"quantity": 1},
            {"action": "teleport", "quantity": 1},
            {"action": "configure_and_add", "quantity": 1},
            {"action": "direct_add", "quantity": 0},
            {"action": "direct_add", "quantity": 1, "min": "cheap"},
            {"action": "direct_add", "quantity": "two"},
            {"action": "detail_add", "quantity": None},
            {"action": "direct_add", "quantity": 1, "min": 1500, "max": 1000},
        ],
    )
    def test_invalid_rules_raise(self, rule):
        with pytest.raises(ConfigurationError):
            PriceRuleTable.from_config([rule])

    @allure.story("Thresholds")
    @allure.title("Inconsistent thresholds are reported")
    def test_threshold_problems(self):
        broken = Thresholds(Decimal("2000"), 0, Decimal("1500"), 1)
        problems = broken.problems()
        assert len(problems) == 2
        assert "low_price" in problems[0]
