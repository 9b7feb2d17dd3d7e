"""
Cart action orchestration.

Each scraped product is classified and then walked through the UI flow its decision
calls for. A product only reaches the ledger once its add-to-cart is confirmed. A failing
product is logged and skipped; the rest of the batch still runs.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

import allure

from exceptions import ActionError, create_error_context, log_error_with_context

from .driver import ADD_TO_CART_SIGNAL, QUANTITY_FIELD, StorefrontDriver
from .models import (
    Ack,
    ActionHandle,
    ConfigurableProduct,
    ConfirmationSignal,
    LedgerEntry,
    OptionGroup,
    ProductSnapshot,
)
from .prices import format_price
from .rules import DecisionKind, PriceRuleDecision, PriceRuleTable

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TIMEOUT_MS = 30_000

BUILD_YOUR_OWN_COMPUTER = ConfigurableProduct(
    name_fragment="build your own computer",
    option_groups=(
        OptionGroup('select[name="product_attribute_2"]', "2 GB"),
        OptionGroup('input[name="product_attribute_3"]', "320 GB"),
    ),
)


class ActionState(Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ProductOutcome:
    snapshot: ProductSnapshot
    decision: PriceRuleDecision
    search_term: str = ""
    state: ActionState = ActionState.PENDING
    error: Optional[str] = None
    entry: Optional[LedgerEntry] = None

    def describe(self) -> str:
        text = f"{self.snapshot.describe()} -> {self.decision}: {self.state.value}"
        if self.error:
            text += f" ({self.error.splitlines()[0]})"
        return text


class Ledger:
    """Append-only record of what the run expects to find in the cart."""

    def __init__(self):
        self._entries: List[LedgerEntry] = []

    def append(self, entry: LedgerEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> Tuple[LedgerEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(tuple(self._entries))

    def __bool__(self) -> bool:
        return bool(self._entries)


class CartActionOrchestrator:
    """
    Executes price-rule decisions against a single storefront session.

    One orchestrator, and so one ledger, belongs to one run.
    """

    def __init__(
        self,
        driver: StorefrontDriver,
        rules: PriceRuleTable,
        configurables: Sequence[ConfigurableProduct] = (BUILD_YOUR_OWN_COMPUTER,),
        confirmation_timeout_ms: int = DEFAULT_CONFIRMATION_TIMEOUT_MS,
        ledger: Optional[Ledger] = None,
    ):
        self.driver = driver
        self.rules = rules
        self.configurables = tuple(configurables)
        self.confirmation_timeout_ms = confirmation_timeout_ms
        self.ledger = ledger if ledger is not None else Ledger()

    def plan(self, snapshot: ProductSnapshot) -> PriceRuleDecision:
        decision = self.rules.classify(snapshot.price)
        if decision.kind is DecisionKind.DIRECT_ADD:
            for product in self.configurables:
                if product.matches(snapshot.name):
                    return PriceRuleDecision.configure_and_add(decision.quantity, product)
        return decision

    async def process(
        self,
        snapshots: Sequence[ProductSnapshot],
        search_term: str,
        outcomes: Optional[List[ProductOutcome]] = None
    ) -> List[ProductOutcome]:
        """
        Run every snapshot in page order.

        Outcomes go into ``outcomes`` (when given) as each product starts, so a caller still
        holds the finished ones if the return trip to the results page fails.
        """
        # Strictly sequential: every action mutates the one cart and page
        outcomes = outcomes if outcomes is not None else []
        if not snapshots:
            logger.info("No products available for price rule processing")
            return outcomes

        logger.info(f"Processing {len(snapshots)} products with price-based rules...")
        for index, snapshot in enumerate(snapshots):
            logger.info(f"Product {index + 1}: {snapshot.describe()}")
            await self.execute(snapshot, search_term, outcomes)

        added = sum(1 for outcome in outcomes if outcome.state is ActionState.SUCCEEDED)
        logger.info(f"Added products for '{search_term}': {added}")
        return outcomes

    async def execute(
        self,
        snapshot: ProductSnapshot,
        search_term: str,
        outcomes: Optional[List[ProductOutcome]] = None
    ) -> ProductOutcome:
        decision = self.plan(snapshot)
        outcome = ProductOutcome(snapshot=snapshot, decision=decision, search_term=search_term)
        if outcomes is not None:
            outcomes.append(outcome)

        if not decision.adds_to_cart:
            logger.info(f"  -> Price {format_price(snapshot.price)} outside thresholds - skipping")
            outcome.state = ActionState.SKIPPED
            return outcome

        logger.info(f"  -> Price {format_price(snapshot.price)}: {decision}")
        outcome.state = ActionState.EXECUTING
        returns_to_results = False
        try:
            with allure.step(f"{decision} {snapshot.name}"):
                if decision.kind is DecisionKind.DIRECT_ADD:
                    await self._direct_add(snapshot)
                elif decision.kind is DecisionKind.DETAIL_ADD:
                    returns_to_results = True
                    await self._detail_add(snapshot, decision.quantity)
                else:
                    returns_to_results = True
                    await self._configure_and_add(snapshot, decision.product, decision.quantity)
        except ActionError as e:
            outcome.state = ActionState.FAILED
            outcome.error = e.message
            log_error_with_context(
                e,
                e.error_context,
                level="warning",
                product_name=snapshot.name,
                price=str(snapshot.price),
                attempted_action=str(decision),
                search_term=search_term,
            )
            logger.warning(f"  Failed to add {snapshot.describe()}: {e.message}")
            if returns_to_results:
                await self._return_to_results(search_term)
            return outcome

        entry = LedgerEntry(snapshot.name, snapshot.price, decision.quantity)
        self.ledger.append(entry)
        outcome.entry = entry
        outcome.state = ActionState.SUCCEEDED
        logger.info(f"  Successfully added \"{snapshot.name}\" with quantity {decision.quantity} to cart")

        if returns_to_results:
            await self._return_to_results(search_term)
        return outcome

    async def _direct_add(self, snapshot: ProductSnapshot) -> None:
        ack = await self.driver.invoke(snapshot.direct_add_action)
        await self._confirm(ack, snapshot, "direct_add")

    async def _detail_add(self, snapshot: ProductSnapshot, quantity: int) -> None:
        await self.driver.invoke(snapshot.detail_action)
        await self.driver.set_quantity(QUANTITY_FIELD, quantity)
        logger.info(f"  Set quantity to {quantity}")
        ack = await self.driver.invoke(ActionHandle.detail_add_to_cart())
        await self._confirm(ack, snapshot, "detail_add")

    async def _configure_and_add(self, snapshot: ProductSnapshot, product: ConfigurableProduct, quantity: int) -> None:
        logger.info("  -> Special product detected - configuring on the detail page")
        await self.driver.invoke(snapshot.detail_action)
        await self.driver.invoke(ActionHandle.detail_add_to_cart())
        for group in product.option_groups:
            await self.driver.invoke(ActionHandle.select_option(group.selector, group.variant))
            logger.info(f"  Selected {group.variant or 'first available option'} for {group.selector}")
        if quantity != 1:
            await self.driver.set_quantity(QUANTITY_FIELD, quantity)
            logger.info(f"  Set quantity to {quantity}")
        ack = await self.driver.invoke(ActionHandle.detail_add_to_cart())
        await self._confirm(ack, snapshot, "configure_and_add")

    async def _confirm(self, ack: Ack, snapshot: ProductSnapshot, action: str) -> None:
        signal = ack.signal or ConfirmationSignal(ADD_TO_CART_SIGNAL)
        confirmed = await self.driver.await_confirmation(signal, self.confirmation_timeout_ms)
        if not confirmed:
            raise ActionError(
                message=f"No add-to-cart confirmation within {self.confirmation_timeout_ms}ms (timed out)",
                action=action,
                product_name=snapshot.name,
                price=snapshot.price,
                error_context=create_error_context(
                    component="Cart Action",
                    operation="await_confirmation",
                    signal=signal.name,
                ),
            )

    async def _return_to_results(self, search_term: str) -> None:
        # NavigationError here is run-level and propagates
        logger.info("  -> Navigating back to search page...")
        await self.driver.search(search_term)
