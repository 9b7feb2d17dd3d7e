import logging
import os
import platform
import sys
from decimal import Decimal
from importlib.metadata import PackageNotFoundError, version
from typing import Any, AsyncGenerator, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import allure
import pytest
from dotenv import load_dotenv

from browser import NopCommerceDriver, storefront_driver
from core.config import BrowserSettings, FixtureConfig, load_fixtures
from exceptions import (
    ActionError,
    ConfigurationError,
    NavigationError,
    ValidationError,
    create_error_context,
    log_error_with_context,
    configure_error_logging
)
from shopping import (
    ADD_TO_CART_SIGNAL,
    Ack,
    ActionHandle,
    CartLineItem,
    CartState,
    ConfirmationSignal,
    HandleKind,
    ProductSnapshot,
    ResultContext,
    StorefrontDriver,
    parse_price,
)
from shopping.workflow import CartWorkflow, RunSummary, STRICT_PROFILE, WorkflowProfile
from validation import compute_total

# Load environment variables from .env file
load_dotenv()

# Configure structured error logging
configure_error_logging(level="INFO", format_type="json")


def pytest_collection_modifyitems(config, items):
    # Live tests only run when explicitly enabled
    if os.getenv("RUN_LIVE_TESTS", "false").lower() in ("true", "1", "t"):
        return
    skip_live = pytest.mark.skip(reason="set RUN_LIVE_TESTS=true to drive the live storefront")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# --- Configuration Fixtures ---


@pytest.fixture(scope="session")
def browser_settings() -> BrowserSettings:
    # Session-scoped browser configuration read from the environment
    return BrowserSettings.from_env()


@pytest.fixture(scope="session")
def fixture_config() -> FixtureConfig:
    # Session-scoped fixture data; fails the session early on a broken fixtures file
    try:
        return load_fixtures()
    except ConfigurationError as e:
        correlation_id = log_error_with_context(e, e.error_context, level="error")
        raise pytest.UsageError(
            f"\n\nFixture Configuration Error [correlation_id: {correlation_id}]:\n{e.get_actionable_message()}\n\n"
            "Please check your fixtures file and try again.\n"
        )


@pytest.fixture(scope="session", autouse=True)
def environment_reporter(request: pytest.FixtureRequest, browser_settings: BrowserSettings):
    # Writes environment details to a properties file for Allure
    # This runs once per session and only when --alluredir is given
    allure_dir = request.config.getoption("--alluredir", default=None)
    if not allure_dir or not isinstance(allure_dir, str):
        return

    ENVIRONMENT_PROPERTIES_FILENAME = "environment.properties"
    properties_file = os.path.join(allure_dir, ENVIRONMENT_PROPERTIES_FILENAME)

    try:
        os.makedirs(allure_dir, exist_ok=True)
    except PermissionError:
        logging.error(f"Permission denied to create report directory: {allure_dir}")
        return

    try:
        playwright_version = version("playwright")
    except PackageNotFoundError:
        playwright_version = "N/A"

    env_props = {
        "operating_system": f"{platform.system()} {platform.release()}",
        "python_version": sys.version.split(" ")[0],
        "playwright_version": playwright_version,
        "browser_type": "chromium",
        "headless_mode": str(browser_settings.headless),
        "fast_mode": str(browser_settings.fast),
        "base_url": browser_settings.base_url,
    }

    try:
        with open(properties_file, "w") as f:
            for key, value in env_props.items():
                f.write(f"{key}={value}\n")
    except IOError as e:
        logging.error(f"Failed to write environment properties file: {e}")


# --- Browser Fixtures ---


@pytest.fixture(scope="function")
async def storefront(browser_settings: BrowserSettings) -> AsyncGenerator[NopCommerceDriver, None]:
    # Function-scoped live driver: one isolated browser context per test
    async with storefront_driver(browser_settings) as driver:
        yield driver


# --- In-memory storefront ---


PriceLike = Union[str, float, int, Decimal]


class FakeStorefrontDriver(StorefrontDriver):
    """
    Scripted storefront for tests that do not need a browser.

    ``results`` maps a search term to the (name, price) cards it shows. Confirmed adds land
    in an in-memory cart, merged by name. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        results: Optional[Dict[str, Sequence[Tuple[str, PriceLike]]]] = None,
        failing: Iterable[str] = (),
        unconfirmed: Iterable[str] = (),
        unreachable: Iterable[str] = (),
        needs_options: Iterable[str] = (),
        cart_prices: Optional[Dict[str, PriceLike]] = None,
        displayed_total: Optional[PriceLike] = None,
    ):
        self.results = {term.lower(): list(cards) for term, cards in (results or {}).items()}
        self.failing = set(failing)
        self.unconfirmed = set(unconfirmed)
        self.unreachable = {term.lower() for term in unreachable}
        self.needs_options = set(needs_options)
        self.cart_prices = {name: Decimal(str(price)) for name, price in (cart_prices or {}).items()}
        self.displayed_total = None if displayed_total is None else Decimal(str(displayed_total))

        self.calls: List[Tuple[Any, ...]] = []
        self.cart: List[CartLineItem] = []
        self.acks = 0
        self.current_term: Optional[str] = None
        self.detail_product: Optional[str] = None
        self.quantity: Optional[int] = None
        self.selected_options: List[Tuple[str, Optional[str]]] = []

    def _price_of(self, name: str) -> Decimal:
        for cards in self.results.values():
            for card_name, price in cards:
                if card_name == name:
                    return parse_price(str(price))
        return Decimal("0")

    def _add(self, name: str, quantity: int) -> None:
        self.acks += 1
        price = self.cart_prices.get(name, self._price_of(name))
        for index, item in enumerate(self.cart):
            if item.name == name:
                self.cart[index] = CartLineItem(name, item.price, item.quantity + quantity)
                return
        self.cart.append(CartLineItem(name, price, quantity))

    def _click_add(self, name: str, quantity: int) -> ConfirmationSignal:
        signal = ConfirmationSignal(ADD_TO_CART_SIGNAL, baseline=self.acks)
        if name in self.unconfirmed:
            return signal
        if name in self.needs_options and not self.selected_options:
            return signal
        self._add(name, quantity)
        return signal

    async def search(self, term: str) -> ResultContext:
        self.calls.append(("search", term))
        if term.lower() in self.unreachable:
            raise NavigationError(
                message=f"net::ERR_CONNECTION_REFUSED for '{term}'",
                url=f"fake://search?q={term}",
                search_term=term,
                error_context=create_error_context(component="Navigation", operation="search"),
            )
        self.current_term = term
        self.detail_product = None
        self.quantity = None
        self.selected_options = []
        return ResultContext(term, url=f"fake://search?q={term}", has_results=bool(self.results.get(term.lower())))

    async def list_snapshots(self, max_items: int = 10) -> List[ProductSnapshot]:
        self.calls.append(("list_snapshots", max_items))
        cards = self.results.get((self.current_term or "").lower(), [])[:max_items]
        return [
            ProductSnapshot(
                name=name,
                price=parse_price(str(price)),
                detail_action=ActionHandle(HandleKind.OPEN_DETAIL, target=name),
                direct_add_action=ActionHandle(HandleKind.DIRECT_ADD, target=name),
            )
            for name, price in cards
        ]

    async def invoke(self, handle: ActionHandle) -> Ack:
        self.calls.append(("invoke", handle.kind.value, handle.target))

        if handle.kind in (HandleKind.OPEN_DETAIL, HandleKind.DIRECT_ADD) and handle.target in self.failing:
            raise ActionError(
                message=f"Element for '{handle.target}' is not clickable",
                action=handle.kind.value,
                product_name=handle.target,
            )

        if handle.kind is HandleKind.OPEN_DETAIL:
            self.detail_product = handle.target
            self.quantity = None
            self.selected_options = []
            return Ack(handle)

        if handle.kind is HandleKind.DIRECT_ADD:
            return Ack(handle, self._click_add(handle.target, 1))

        if handle.kind is HandleKind.DETAIL_ADD_TO_CART:
            if self.detail_product is None:
                raise ActionError(message="Not on a product page", action=handle.kind.value)
            return Ack(handle, self._click_add(self.detail_product, self.quantity or 1))

        self.selected_options.append((handle.target, handle.value))
        return Ack(handle)

    async def set_quantity(self, field: str, value: int) -> None:
        self.calls.append(("set_quantity", field, value))
        self.quantity = value

    async def read_cart(self) -> CartState:
        self.calls.append(("read_cart",))
        items = tuple(self.cart)
        total = self.displayed_total if self.displayed_total is not None else compute_total(items)
        return CartState(items=items, displayed_total=total)

    async def await_confirmation(self, signal: ConfirmationSignal, timeout_ms: int) -> bool:
        self.calls.append(("await_confirmation", signal.name, signal.baseline))
        return self.acks > signal.baseline

    def calls_named(self, name: str) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]


# --- Base Test Class for Storefront Tests ---


class BaseStorefrontTest:
    # Base class for storefront workflow tests to reduce boilerplate

    def setup_method(self):
        from validation import SearchValidator
        self.search_validator = SearchValidator()

    def teardown_method(self):
        self.search_validator = None

    async def run_workflow(
        self,
        driver: StorefrontDriver,
        search_terms: Sequence[str],
        profile: WorkflowProfile = STRICT_PROFILE,
        **workflow_options
    ) -> RunSummary:
        # Runs one workflow and attaches its summary to the report
        workflow = CartWorkflow(driver, profile, **workflow_options)
        summary = await workflow.run(search_terms)
        allure.attach(
            summary.to_text(),
            name=f"{profile.name.title()} Run",
            attachment_type=allure.attachment_type.TEXT,
        )
        return summary

    def assert_cart_matches(self, summary: RunSummary) -> None:
        # Every mismatch is itemized in the raised error
        if summary.passed:
            return
        mismatches = summary.report.mismatches if summary.report else ["cart was not reconciled"]
        raise ValidationError(
            message="Cart does not match the added products:\n" + "\n".join(mismatches),
            expected_value=f"{len(summary.ledger)} matching line items",
            actual_value=f"{summary.mismatched} mismatched",
            validation_type="cart_reconciliation",
            error_context=create_error_context(
                component="Cart Reconciliation",
                operation="assert_cart_matches",
                profile=summary.profile.name,
            )
        )
