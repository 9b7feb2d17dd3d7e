# validation/reconciliation.py
"""
Cart reconciliation.

Compares the ledger a run built while adding products against a fresh read of the cart.
Every ledger entry gets a verdict, and the displayed total is checked against the sum of
the observed line items. Nothing here raises on a mismatch: the report carries it.

Name matching is deliberately lenient. Cart rows often carry a longer or shorter name
than the search card, so a substring match in either direction counts, and failing that
any ledger word longer than three characters that appears inside a cart word counts.
Short generic names can match the wrong row; expectations rely on this leniency.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from shopping.models import CartLineItem, CartState, LedgerEntry
from shopping.prices import format_price

from .core import (
    ValidationContext,
    ValidationResult,
    ValidationStatus,
    ValidationStrategy,
    ValidationType,
)

logger = logging.getLogger(__name__)

STRICT_PRICE_TOLERANCE = Decimal("0.01")
ASSESSMENT_PRICE_TOLERANCE = Decimal("50")
TOTAL_TOLERANCE = Decimal("0.01")

MIN_TOKEN_LENGTH = 3


class MatchVerdict(Enum):
    FULL_MATCH = "full_match"
    PARTIAL_MATCH = "partial_match"
    NO_MATCH = "no_match"


def names_match(first: str, second: str) -> bool:
    """Case-insensitive substring match in either direction."""
    a, b = first.lower(), second.lower()
    return a in b or b in a


def tokens_overlap(ledger_name: str, cart_name: str) -> bool:
    """Any ledger word longer than three characters found inside a cart word."""
    cart_tokens = cart_name.lower().split()
    for token in ledger_name.lower().split():
        if len(token) > MIN_TOKEN_LENGTH and any(token in cart_token for cart_token in cart_tokens):
            return True
    return False


def find_cart_item(name: str, items: Sequence[CartLineItem]) -> Optional[CartLineItem]:
    for item in items:
        if names_match(item.name, name):
            return item
    for item in items:
        if tokens_overlap(name, item.name):
            return item
    return None


def compute_total(items: Iterable[CartLineItem]) -> Decimal:
    return sum((item.price * item.quantity for item in items), Decimal("0"))


def within(actual: Decimal, expected: Decimal, tolerance: Decimal) -> bool:
    return abs(actual - expected) < tolerance


@dataclass(frozen=True)
class EntryCheck:
    entry: LedgerEntry
    cart_item: Optional[CartLineItem]
    price_matches: bool
    quantity_matches: bool

    @property
    def verdict(self) -> MatchVerdict:
        if self.cart_item is None:
            return MatchVerdict.NO_MATCH
        if self.price_matches and self.quantity_matches:
            return MatchVerdict.FULL_MATCH
        if self.price_matches or self.quantity_matches:
            return MatchVerdict.PARTIAL_MATCH
        return MatchVerdict.NO_MATCH

    def describe(self) -> str:
        expected = f'"{self.entry.name}" ({format_price(self.entry.price)}, qty: {self.entry.quantity})'
        if self.cart_item is None:
            return f"{expected} - not found in cart"
        if self.verdict is MatchVerdict.FULL_MATCH:
            return f"{expected} - price and quantity match"
        if self.price_matches:
            return f"{expected} - price matches but quantity differs (actual: {self.cart_item.quantity})"
        if self.quantity_matches:
            return (f"{expected} - quantity matches but price differs "
                    f"(actual: {format_price(self.cart_item.price)})")
        return (f"{expected} - both price and quantity mismatch "
                f"(actual: {format_price(self.cart_item.price)}, qty: {self.cart_item.quantity})")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.entry.name,
            "expected_price": str(self.entry.price),
            "expected_quantity": self.entry.quantity,
            "cart_name": self.cart_item.name if self.cart_item else None,
            "cart_price": str(self.cart_item.price) if self.cart_item else None,
            "cart_quantity": self.cart_item.quantity if self.cart_item else None,
            "price_matches": self.price_matches,
            "quantity_matches": self.quantity_matches,
            "verdict": self.verdict.value,
        }


@dataclass(frozen=True)
class TotalCheck:
    expected_total: Decimal
    displayed_total: Decimal
    tolerance: Decimal = TOTAL_TOLERANCE

    @property
    def matches(self) -> bool:
        return within(self.displayed_total, self.expected_total, self.tolerance)

    def describe(self) -> str:
        if self.matches:
            return f"Cart total matches expected: {format_price(self.expected_total)}"
        return (f"Cart total mismatch - Expected: {format_price(self.expected_total)}, "
                f"Actual: {format_price(self.displayed_total)}")


@dataclass
class ReconciliationReport:
    context: ValidationContext
    entries: Tuple[EntryCheck, ...]
    total: TotalCheck
    cart_items: Tuple[CartLineItem, ...] = field(default_factory=tuple)

    @property
    def all_passed(self) -> bool:
        return self.total.matches and all(
            check.verdict is MatchVerdict.FULL_MATCH for check in self.entries
        )

    def count(self, verdict: MatchVerdict) -> int:
        return sum(1 for check in self.entries if check.verdict is verdict)

    @property
    def mismatches(self) -> List[str]:
        lines = [check.describe() for check in self.entries if check.verdict is not MatchVerdict.FULL_MATCH]
        if not self.total.matches:
            lines.append(self.total.describe())
        return lines

    def results(self) -> List[ValidationResult]:
        # One ValidationResult per check, for reporting
        results = []
        for check in self.entries:
            status = ValidationStatus.PASSED if check.verdict is MatchVerdict.FULL_MATCH else ValidationStatus.FAILED
            results.append(ValidationResult(
                status=status,
                validation_type=ValidationType.CART_LINE_ITEM,
                context=self.context,
                outcome=check.verdict,
                expected_value=check.entry.name,
                actual_value=check.cart_item.name if check.cart_item else None,
                message=check.describe(),
                details=check.to_dict(),
            ))
        results.append(ValidationResult(
            status=ValidationStatus.PASSED if self.total.matches else ValidationStatus.FAILED,
            validation_type=ValidationType.CART_TOTAL,
            context=self.context,
            expected_value=str(self.total.expected_total),
            actual_value=str(self.total.displayed_total),
            message=self.total.describe(),
        ))
        return results

    def to_dict(self) -> Dict[str, Any]:
        return {
            "validation_id": self.context.validation_id,
            "all_passed": self.all_passed,
            "entries": [check.to_dict() for check in self.entries],
            "total": {
                "expected_total": str(self.total.expected_total),
                "displayed_total": str(self.total.displayed_total),
                "matches": self.total.matches,
            },
            "cart_items": [
                {"name": item.name, "price": str(item.price), "quantity": item.quantity}
                for item in self.cart_items
            ],
        }

    def to_text(self) -> str:
        lines = [f"Cart contains {len(self.cart_items)} items:"]
        lines.extend(f"{index}. {item.describe()}" for index, item in enumerate(self.cart_items, 1))
        lines.append(f"Validated {len(self.entries)} added products:")
        lines.extend(f"  [{check.verdict.value}] {check.describe()}" for check in self.entries)
        lines.append(self.total.describe())
        lines.append("All cart validations passed" if self.all_passed else "Some cart validations failed")
        return "\n".join(lines)


class CartReconciler(ValidationStrategy):
    """Ledger-versus-cart comparison with fuzzy names and a price tolerance."""

    validation_type = ValidationType.CART_LINE_ITEM

    def __init__(
        self,
        price_tolerance: Decimal = STRICT_PRICE_TOLERANCE,
        total_tolerance: Decimal = TOTAL_TOLERANCE
    ):
        super().__init__("CartReconciler")
        self.price_tolerance = Decimal(price_tolerance)
        self.total_tolerance = Decimal(total_tolerance)

    def check_entry(self, entry: LedgerEntry, items: Sequence[CartLineItem]) -> EntryCheck:
        item = find_cart_item(entry.name, items)
        if item is None:
            return EntryCheck(entry, None, False, False)
        return EntryCheck(
            entry,
            item,
            price_matches=within(item.price, entry.price, self.price_tolerance),
            quantity_matches=item.quantity == entry.quantity,
        )

    def check_total(self, items: Sequence[CartLineItem], displayed_total: Decimal) -> TotalCheck:
        return TotalCheck(compute_total(items), displayed_total, self.total_tolerance)

    def reconcile(
        self,
        ledger: Iterable[LedgerEntry],
        cart: CartState,
        context: Optional[ValidationContext] = None
    ) -> ReconciliationReport:
        if context is None:
            context = self.create_context(metadata={
                "price_tolerance": str(self.price_tolerance),
                "total_tolerance": str(self.total_tolerance),
            })

        items = tuple(cart.items)
        entries = tuple(ledger)
        logger.info(f"Validating {len(entries)} added products against {len(items)} cart items")

        checks = []
        for entry in entries:
            check = self.check_entry(entry, items)
            if check.verdict is MatchVerdict.FULL_MATCH:
                logger.info(check.describe())
            else:
                logger.warning(check.describe())
                if check.cart_item is None:
                    available = ", ".join(f'"{item.name}"' for item in items)
                    logger.warning(f"  Available cart items: {available}")
            checks.append(check)

        total = self.check_total(items, cart.displayed_total)
        if total.matches:
            logger.info(total.describe())
        else:
            logger.warning(total.describe())

        report = ReconciliationReport(context=context, entries=tuple(checks), total=total, cart_items=items)
        logger.info("All cart validations passed" if report.all_passed else "Some cart validations failed")
        return report

    def validate(self, expected: Iterable[LedgerEntry], actual: CartState,
                 context: Optional[ValidationContext] = None) -> ReconciliationReport:
        return self.reconcile(expected, actual, context)
