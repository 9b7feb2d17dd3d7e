# Storefront shopping flow: data model, price rules, extraction and cart actions
# The workflow module is imported directly (shopping.workflow) since it depends on validation

from .models import (
    ActionHandle,
    HandleKind,
    Ack,
    ConfirmationSignal,
    ResultContext,
    ProductSnapshot,
    Thresholds,
    LedgerEntry,
    CartLineItem,
    CartState,
    OptionGroup,
    ConfigurableProduct,
)

from .prices import parse_price, parse_quantity, format_price

from .rules import (
    DecisionKind,
    PriceRuleDecision,
    PriceBand,
    PriceRuleTable,
    ASSESSMENT_THRESHOLDS,
)

from .driver import (
    StorefrontDriver,
    QUANTITY_FIELD,
    ADD_TO_CART_SIGNAL,
    MAX_SNAPSHOTS,
)

from .extraction import ExtractionStrategy, RawProduct, SnapshotExtractor, build_snapshots

from .orchestrator import (
    ActionState,
    ProductOutcome,
    Ledger,
    CartActionOrchestrator,
    BUILD_YOUR_OWN_COMPUTER,
)

__all__ = [
    # Data model
    "ActionHandle",
    "HandleKind",
    "Ack",
    "ConfirmationSignal",
    "ResultContext",
    "ProductSnapshot",
    "Thresholds",
    "LedgerEntry",
    "CartLineItem",
    "CartState",
    "OptionGroup",
    "ConfigurableProduct",

    # Prices
    "parse_price",
    "parse_quantity",
    "format_price",

    # Price rules
    "DecisionKind",
    "PriceRuleDecision",
    "PriceBand",
    "PriceRuleTable",
    "ASSESSMENT_THRESHOLDS",

    # Driver interface
    "StorefrontDriver",
    "QUANTITY_FIELD",
    "ADD_TO_CART_SIGNAL",
    "MAX_SNAPSHOTS",

    # Extraction
    "ExtractionStrategy",
    "RawProduct",
    "SnapshotExtractor",
    "build_snapshots",

    # Orchestration
    "ActionState",
    "ProductOutcome",
    "Ledger",
    "CartActionOrchestrator",
    "BUILD_YOUR_OWN_COMPUTER",
]
