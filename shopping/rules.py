"""
Price-rule classification.

A ``PriceRuleTable`` is an ordered list of price bands. The first band containing the
price decides the action; a price no band covers is skipped, so every table is total
over non-negative prices. Both workflow variants are tables built from data.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from exceptions import ConfigurationError, create_error_context

from .models import ConfigurableProduct, Thresholds
from .prices import format_price


class DecisionKind(Enum):
    DIRECT_ADD = "direct_add"
    DETAIL_ADD = "detail_add"
    CONFIGURE_AND_ADD = "configure_and_add"
    SKIP = "skip"


# Kinds a price band may produce; CONFIGURE_AND_ADD only comes from product identity
BAND_KINDS = (DecisionKind.DIRECT_ADD, DecisionKind.DETAIL_ADD, DecisionKind.SKIP)


@dataclass(frozen=True)
class PriceRuleDecision:
    kind: DecisionKind
    quantity: int = 0
    product: Optional[ConfigurableProduct] = None

    @classmethod
    def direct_add(cls, quantity: int) -> "PriceRuleDecision":
        return cls(DecisionKind.DIRECT_ADD, quantity)

    @classmethod
    def detail_add(cls, quantity: int) -> "PriceRuleDecision":
        return cls(DecisionKind.DETAIL_ADD, quantity)

    @classmethod
    def configure_and_add(cls, quantity: int, product: ConfigurableProduct) -> "PriceRuleDecision":
        return cls(DecisionKind.CONFIGURE_AND_ADD, quantity, product)

    @classmethod
    def skip(cls) -> "PriceRuleDecision":
        return cls(DecisionKind.SKIP)

    @property
    def adds_to_cart(self) -> bool:
        return self.kind is not DecisionKind.SKIP

    def __str__(self) -> str:
        names = {
            DecisionKind.DIRECT_ADD: "DirectAdd",
            DecisionKind.DETAIL_ADD: "DetailAddWithQuantity",
            DecisionKind.CONFIGURE_AND_ADD: "ConfigureAndAdd",
        }
        if self.kind is DecisionKind.SKIP:
            return "Skip"
        return f"{names[self.kind]}({self.quantity})"


@dataclass(frozen=True)
class PriceBand:
    kind: DecisionKind
    quantity: int = 0
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    include_min: bool = True
    include_max: bool = True

    def contains(self, price: Decimal) -> bool:
        if self.min_price is not None:
            if price < self.min_price or (price == self.min_price and not self.include_min):
                return False
        if self.max_price is not None:
            if price > self.max_price or (price == self.max_price and not self.include_max):
                return False
        return True

    def decision(self) -> PriceRuleDecision:
        if self.kind is DecisionKind.SKIP:
            return PriceRuleDecision.skip()
        return PriceRuleDecision(self.kind, self.quantity)

    def describe(self) -> str:
        low = "" if self.min_price is None else (
            f"{format_price(self.min_price)} {'<=' if self.include_min else '<'} ")
        high = "" if self.max_price is None else (
            f" {'<=' if self.include_max else '<'} {format_price(self.max_price)}")
        return f"{low}price{high}"


class PriceRuleTable:
    """Ordered, first-match-wins price bands."""

    def __init__(self, bands: Iterable[PriceBand]):
        self.bands: Tuple[PriceBand, ...] = tuple(bands)

    @classmethod
    def from_thresholds(cls, thresholds: Thresholds) -> "PriceRuleTable":
        # low <= price <= high adds directly; below low goes through the detail page
        return cls([
            PriceBand(
                DecisionKind.DIRECT_ADD,
                thresholds.default_qty,
                min_price=thresholds.low_price,
                max_price=thresholds.high_price,
            ),
            PriceBand(
                DecisionKind.DETAIL_ADD,
                thresholds.low_price_qty,
                max_price=thresholds.low_price,
                include_max=False,
            ),
            PriceBand(DecisionKind.SKIP),
        ])

    @classmethod
    def from_config(cls, rules: List[Dict[str, Any]]) -> "PriceRuleTable":
        """
        Build a table from fixture data, e.g.::

            [{"action": "direct_add", "quantity": 1, "min": 1000, "max": 1500},
             {"action": "detail_add", "quantity": 2, "max": 1000, "include_max": false}]
        """
        bands = []
        for index, rule in enumerate(rules):
            bands.append(_band_from_config(index, rule))
        return cls(bands)

    def match(self, price: Decimal) -> Optional[PriceBand]:
        for band in self.bands:
            if band.contains(price):
                return band
        return None

    def classify(self, price: Decimal) -> PriceRuleDecision:
        band = self.match(price)
        if band is None:
            return PriceRuleDecision.skip()
        return band.decision()

    def __len__(self) -> int:
        return len(self.bands)

    def __repr__(self) -> str:
        return f"PriceRuleTable({[band.describe() + ' -> ' + str(band.decision()) for band in self.bands]})"


ASSESSMENT_THRESHOLDS = Thresholds(
    low_price=Decimal("1000"),
    low_price_qty=2,
    high_price=Decimal("1500"),
    default_qty=1,
)


def _band_from_config(index: int, rule: Dict[str, Any]) -> PriceBand:
    try:
        kind = DecisionKind(rule["action"])
    except (KeyError, ValueError) as e:
        raise ConfigurationError(
            message=f"Rule {index} has no valid action: {rule.get('action')!r}",
            config_key=f"rules[{index}].action",
            expected_format="One of: direct_add, detail_add, skip",
            error_context=create_error_context(component="Price Rules", operation="load_rules"),
            cause=e
        ) from e

    if kind not in BAND_KINDS:
        raise ConfigurationError(
            message=f"Rule {index} uses action '{kind.value}', which is chosen by product identity",
            config_key=f"rules[{index}].action",
            expected_format="One of: direct_add, detail_add, skip",
        )

    try:
        quantity = int(rule.get("quantity", 0))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            message=f"Rule {index} has a non-numeric quantity: {rule.get('quantity')!r}",
            config_key=f"rules[{index}].quantity",
            expected_format="A positive whole number",
            cause=e
        ) from e
    if kind is not DecisionKind.SKIP and quantity <= 0:
        raise ConfigurationError(
            message=f"Rule {index} needs a positive quantity, got {quantity}",
            config_key=f"rules[{index}].quantity",
        )

    try:
        min_price = None if rule.get("min") is None else Decimal(str(rule["min"]))
        max_price = None if rule.get("max") is None else Decimal(str(rule["max"]))
    except InvalidOperation as e:
        raise ConfigurationError(
            message=f"Rule {index} has a non-numeric price bound",
            config_key=f"rules[{index}]",
            cause=e
        ) from e

    if min_price is not None and max_price is not None and min_price > max_price:
        raise ConfigurationError(
            message=f"Rule {index} has min {min_price} above max {max_price}",
            config_key=f"rules[{index}]",
            expected_format="min <= max",
        )

    return PriceBand(
        kind,
        quantity,
        min_price=min_price,
        max_price=max_price,
        include_min=bool(rule.get("include_min", True)),
        include_max=bool(rule.get("include_max", True)),
    )
