"""
Data model shared by the extractor, classifier, orchestrator and reconciler.

All records are immutable and live for a single workflow run.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .prices import format_price


class HandleKind(Enum):
    """Kinds of UI action the driver knows how to perform."""
    OPEN_DETAIL = "open_detail"
    DIRECT_ADD = "direct_add"
    DETAIL_ADD_TO_CART = "detail_add_to_cart"
    SELECT_OPTION = "select_option"


@dataclass(frozen=True)
class ActionHandle:
    """
    Opaque reference to something the driver can invoke.

    ``target`` is whatever the driver needs (a locator, an index, a selector); the core
    never looks inside it.
    """
    kind: HandleKind
    target: Any = None
    value: Optional[str] = None

    @classmethod
    def detail_add_to_cart(cls) -> "ActionHandle":
        return cls(HandleKind.DETAIL_ADD_TO_CART)

    @classmethod
    def select_option(cls, group: str, variant: Optional[str] = None) -> "ActionHandle":
        # variant None means "first non-placeholder option"
        return cls(HandleKind.SELECT_OPTION, target=group, value=variant)


@dataclass(frozen=True)
class ConfirmationSignal:
    """Something observable that proves an add-to-cart reached the server."""
    name: str
    baseline: int = 0


@dataclass(frozen=True)
class Ack:
    handle: ActionHandle
    signal: Optional[ConfirmationSignal] = None


@dataclass(frozen=True)
class ResultContext:
    term: str
    url: str = ""
    has_results: bool = True


@dataclass(frozen=True)
class ProductSnapshot:
    name: str
    price: Decimal
    detail_action: ActionHandle
    direct_add_action: ActionHandle

    def describe(self) -> str:
        return f'"{self.name}" - {format_price(self.price)}'


@dataclass(frozen=True)
class Thresholds:
    low_price: Decimal
    low_price_qty: int
    high_price: Decimal
    default_qty: int

    def problems(self) -> Tuple[str, ...]:
        # Invariant violations, empty when the thresholds are usable
        issues = []
        if self.low_price > self.high_price:
            issues.append(f"low_price {self.low_price} is above high_price {self.high_price}")
        if self.low_price_qty <= 0:
            issues.append(f"low_price_qty must be positive, got {self.low_price_qty}")
        if self.default_qty <= 0:
            issues.append(f"default_qty must be positive, got {self.default_qty}")
        return tuple(issues)


@dataclass(frozen=True)
class LedgerEntry:
    name: str
    price: Decimal
    quantity: int

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"Ledger quantity must be positive, got {self.quantity}")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class CartLineItem:
    name: str
    price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def describe(self) -> str:
        return f'"{self.name}" - {format_price(self.price)} (Qty: {self.quantity})'


@dataclass(frozen=True)
class CartState:
    items: Tuple[CartLineItem, ...]
    displayed_total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [
                {"name": item.name, "price": str(item.price), "quantity": item.quantity}
                for item in self.items
            ],
            "displayed_total": str(self.displayed_total),
        }


@dataclass(frozen=True)
class OptionGroup:
    """One required option on a configurable product's detail page."""
    selector: str
    variant: Optional[str] = None


@dataclass(frozen=True)
class ConfigurableProduct:
    """A product that has to go through the multi-step configurator before it can be added."""
    name_fragment: str
    option_groups: Tuple[OptionGroup, ...] = field(default_factory=tuple)

    def matches(self, product_name: str) -> bool:
        return self.name_fragment.lower() in product_name.lower()
