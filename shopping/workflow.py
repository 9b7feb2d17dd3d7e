"""
End-to-end cart workflows.

A workflow walks a fixed list of search terms: search, check the keyword, extract the
first products, run the price rules, and finally reconcile the cart against the ledger.

Two profiles exist:
- strict: structured scenario steps; no results fails the run, prices must match to the cent
- assessment: best effort; a term that fails is logged and skipped, prices may drift by $50
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import allure

from exceptions import (
    NavigationError,
    NoResultsError,
    ConfigurationError,
    log_error_with_context,
)
from validation import (
    ASSESSMENT_PRICE_TOLERANCE,
    STRICT_PRICE_TOLERANCE,
    TOTAL_TOLERANCE,
    CartReconciler,
    MatchVerdict,
    ReconciliationReport,
    SearchOutcome,
    SearchValidator,
    ValidationResult,
)

from .driver import MAX_SNAPSHOTS, StorefrontDriver
from .models import ConfigurableProduct, Thresholds
from .orchestrator import (
    BUILD_YOUR_OWN_COMPUTER,
    DEFAULT_CONFIRMATION_TIMEOUT_MS,
    ActionState,
    CartActionOrchestrator,
    Ledger,
    ProductOutcome,
)
from .prices import format_price
from .rules import ASSESSMENT_THRESHOLDS, PriceRuleTable

logger = logging.getLogger(__name__)

ASSESSMENT_SEARCH_TERMS = (
    "wireless mouse", "Bluetooth headset", "Data cable", "Pen drive",
    "laptop stand", "computer", "laptop", "apple",
)

# Keywords known to return products on the demo store
STRICT_SEARCH_TERMS = ("computer", "laptop", "apple")


@dataclass(frozen=True)
class WorkflowProfile:
    name: str
    strict: bool
    price_tolerance: Decimal
    total_tolerance: Decimal = TOTAL_TOLERANCE
    thresholds: Optional[Thresholds] = None
    require_keyword: bool = False


STRICT_PROFILE = WorkflowProfile(
    name="strict",
    strict=True,
    price_tolerance=STRICT_PRICE_TOLERANCE,
)

ASSESSMENT_PROFILE = WorkflowProfile(
    name="assessment",
    strict=False,
    price_tolerance=ASSESSMENT_PRICE_TOLERANCE,
    thresholds=ASSESSMENT_THRESHOLDS,
)


@dataclass
class TermOutcome:
    term: str
    search: Optional[ValidationResult] = None
    products: List[ProductOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.error is not None or (
            self.search is not None and self.search.outcome is SearchOutcome.NO_PRODUCTS
        )

    def count(self, state: ActionState) -> int:
        return sum(1 for outcome in self.products if outcome.state is state)


@dataclass
class RunSummary:
    profile: WorkflowProfile
    terms: List[TermOutcome]
    ledger: Ledger
    report: Optional[ReconciliationReport] = None

    def count(self, state: ActionState) -> int:
        return sum(term.count(state) for term in self.terms)

    @property
    def succeeded(self) -> int:
        return self.count(ActionState.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self.count(ActionState.FAILED)

    @property
    def skipped(self) -> int:
        return self.count(ActionState.SKIPPED)

    @property
    def mismatched(self) -> int:
        if self.report is None:
            return 0
        return len(self.report.entries) - self.report.count(MatchVerdict.FULL_MATCH)

    @property
    def passed(self) -> bool:
        return self.report is not None and self.report.all_passed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile": self.profile.name,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "mismatched": self.mismatched,
            "passed": self.passed,
            "terms": [
                {
                    "term": term.term,
                    "search_outcome": term.search.outcome.value if term.search and term.search.outcome else None,
                    "error": term.error,
                    "products": [outcome.describe() for outcome in term.products],
                }
                for term in self.terms
            ],
            "ledger": [
                {"name": entry.name, "price": str(entry.price), "quantity": entry.quantity}
                for entry in self.ledger
            ],
            "reconciliation": self.report.to_dict() if self.report else None,
        }

    def to_text(self) -> str:
        lines = [f"=== {self.profile.name.title()} Summary ==="]
        for term in self.terms:
            if term.error:
                lines.append(f'"{term.term}": skipped ({term.error.splitlines()[0]})')
            elif term.skipped:
                lines.append(f'"{term.term}": no products')
            else:
                lines.append(
                    f'"{term.term}": {term.count(ActionState.SUCCEEDED)} added, '
                    f'{term.count(ActionState.FAILED)} failed, {term.count(ActionState.SKIPPED)} skipped'
                )
            for outcome in term.products:
                if outcome.state is ActionState.FAILED:
                    lines.append(f"  FAILED {outcome.describe()}")

        lines.append(f"Total products added to cart: {len(self.ledger)}")
        for index, entry in enumerate(self.ledger, 1):
            lines.append(f"{index}. {entry.name} - {format_price(entry.price)} (Qty: {entry.quantity})")

        lines.append(
            f"Succeeded: {self.succeeded}, Failed: {self.failed}, "
            f"Skipped: {self.skipped}, Mismatched: {self.mismatched}"
        )
        if self.report is not None:
            for mismatch in self.report.mismatches:
                lines.append(f"  MISMATCH {mismatch}")
            lines.append("All cart validations passed" if self.passed else "Some cart validations failed")
        return "\n".join(lines)


class CartWorkflow:
    """
    One run: one driver session, one orchestrator, one ledger.

    The rule table is taken from, in order: the ``rules`` argument, the profile's fixed
    thresholds, the ``thresholds`` argument.
    """

    def __init__(
        self,
        driver: StorefrontDriver,
        profile: WorkflowProfile = STRICT_PROFILE,
        rules: Optional[PriceRuleTable] = None,
        thresholds: Optional[Thresholds] = None,
        configurables: Sequence[ConfigurableProduct] = (BUILD_YOUR_OWN_COMPUTER,),
        confirmation_timeout_ms: int = DEFAULT_CONFIRMATION_TIMEOUT_MS,
        max_products: int = MAX_SNAPSHOTS,
    ):
        self.driver = driver
        self.profile = profile
        self.max_products = max_products
        self.search_validator = SearchValidator()
        self.reconciler = CartReconciler(
            price_tolerance=profile.price_tolerance,
            total_tolerance=profile.total_tolerance,
        )
        self.orchestrator = CartActionOrchestrator(
            driver,
            _resolve_rules(profile, rules, thresholds),
            configurables=configurables,
            confirmation_timeout_ms=confirmation_timeout_ms,
        )
        self.terms: List[TermOutcome] = []

    @property
    def ledger(self) -> Ledger:
        return self.orchestrator.ledger

    async def process_term(self, term: str) -> TermOutcome:
        logger.info(f'=== Processing: "{term}" ===')
        outcome = TermOutcome(term=term)
        self.terms.append(outcome)

        with allure.step(f"Search and add products for '{term}'"):
            try:
                await self.driver.search(term)
                snapshots = await self.driver.list_snapshots(self.max_products)
                names = [snapshot.name for snapshot in snapshots]

                if self.profile.strict:
                    outcome.search = self.search_validator.require_results(
                        term, names, require_keyword=self.profile.require_keyword
                    )
                else:
                    outcome.search = self.search_validator.check(term, names)
                    if outcome.search.outcome is SearchOutcome.NO_PRODUCTS:
                        return outcome

                await self.orchestrator.process(snapshots, term, outcome.products)
            except (NavigationError, NoResultsError) as e:
                if self.profile.strict:
                    raise
                outcome.error = e.message
                log_error_with_context(
                    e,
                    e.error_context,
                    level="warning",
                    search_term=term,
                    recovery_context={"strict": self.profile.strict},
                )
                logger.warning(f'Error processing "{term}": {e.message}')

        return outcome

    async def add_products(self, search_terms: Sequence[str]) -> List[TermOutcome]:
        return [await self.process_term(term) for term in search_terms]

    async def validate_cart(self) -> ReconciliationReport:
        logger.info("=== Validating Cart Contents ===")
        with allure.step("Validate cart contents against added products"):
            cart = await self.driver.read_cart()
            report = self.reconciler.reconcile(self.ledger, cart)
            allure.attach(
                report.to_text(),
                name="Cart Reconciliation",
                attachment_type=allure.attachment_type.TEXT,
            )
            allure.attach(
                json.dumps(report.to_dict(), indent=2),
                name="Cart Reconciliation (JSON)",
                attachment_type=allure.attachment_type.JSON,
            )
        return report

    async def run(self, search_terms: Sequence[str]) -> RunSummary:
        logger.info(f"Starting {self.profile.name} workflow over {len(search_terms)} search terms")
        await self.add_products(search_terms)
        report = await self.validate_cart()

        summary = RunSummary(profile=self.profile, terms=list(self.terms), ledger=self.ledger, report=report)
        text = summary.to_text()
        for line in text.splitlines():
            logger.info(line)
        allure.attach(text, name="Run Summary", attachment_type=allure.attachment_type.TEXT)
        return summary


def _resolve_rules(
    profile: WorkflowProfile,
    rules: Optional[PriceRuleTable],
    thresholds: Optional[Thresholds]
) -> PriceRuleTable:
    if rules is not None:
        return rules
    if profile.thresholds is not None:
        return PriceRuleTable.from_thresholds(profile.thresholds)
    if thresholds is not None:
        return PriceRuleTable.from_thresholds(thresholds)
    raise ConfigurationError(
        message=f"The {profile.name} workflow needs price thresholds or a rule table",
        config_key="thresholds",
    )
