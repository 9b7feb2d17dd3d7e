# validation/__init__.py
"""
Storefront validation checks.

- SearchValidator: keyword presence in search results, best-effort or strict
- CartReconciler: ledger versus live cart, per line item and for the displayed total

Usage:
    from validation import CartReconciler

    report = CartReconciler(price_tolerance=Decimal("50")).reconcile(ledger, cart_state)
    if not report.all_passed:
        print("\\n".join(report.mismatches))
"""

from .core import (
    ValidationResult,
    ValidationStrategy,
    ValidationContext,
    ValidationStatus,
    ValidationType,
)

from .search import SearchValidator, SearchOutcome
from .reconciliation import (
    CartReconciler,
    ReconciliationReport,
    EntryCheck,
    TotalCheck,
    MatchVerdict,
    names_match,
    tokens_overlap,
    find_cart_item,
    compute_total,
    STRICT_PRICE_TOLERANCE,
    ASSESSMENT_PRICE_TOLERANCE,
    TOTAL_TOLERANCE,
)

__all__ = [
    # Core validation types
    "ValidationResult",
    "ValidationStrategy",
    "ValidationContext",
    "ValidationStatus",
    "ValidationType",

    # Search
    "SearchValidator",
    "SearchOutcome",

    # Cart reconciliation
    "CartReconciler",
    "ReconciliationReport",
    "EntryCheck",
    "TotalCheck",
    "MatchVerdict",
    "names_match",
    "tokens_overlap",
    "find_cart_item",
    "compute_total",
    "STRICT_PRICE_TOLERANCE",
    "ASSESSMENT_PRICE_TOLERANCE",
    "TOTAL_TOLERANCE",
]
