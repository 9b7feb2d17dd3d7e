"""
Playwright driver for the nopCommerce demo storefront.

Everything page-specific lives here: selectors, waits, the add-to-cart network signal and
cart parsing. The harness core only sees the StorefrontDriver interface.
"""

import logging
from decimal import Decimal
from typing import List, Optional
from urllib.parse import quote_plus

from playwright.async_api import (
    Error as PlaywrightError,
    Locator,
    Page,
    Response,
    TimeoutError as PlaywrightTimeoutError,
)

from core.config import BrowserSettings
from core.waiting import poll_until
from exceptions import ActionError, NavigationError, create_error_context
from shopping.driver import ADD_TO_CART_SIGNAL, MAX_SNAPSHOTS, QUANTITY_FIELD, StorefrontDriver
from shopping.extraction import ExtractionStrategy, RawProduct, SnapshotExtractor
from shopping.models import (
    Ack,
    ActionHandle,
    CartLineItem,
    CartState,
    ConfirmationSignal,
    HandleKind,
    ProductSnapshot,
    ResultContext,
)
from shopping.prices import parse_price, parse_quantity
from validation import compute_total

logger = logging.getLogger(__name__)

# Selectors
SEL_RESULTS_CONTAINER = ".search-results, .item-grid, .products-grid, .category-products, body"
SEL_ITEM_BOX = ".item-box"
SEL_ANY_ITEM = ".item-box, .product-item"
SEL_PRODUCT_NAMES = (
    ".item-box h2 a",
    ".product-item .details h2 a",
    "h2.product-title a",
    ".product-title a",
)
SEL_ITEM_PRICE = "span.price, .actual-price, div.prices span"
SEL_ITEM_DETAIL_LINK = "h2.product-title a, .product-title a"
SEL_ITEM_ADD_BUTTON = "button.product-box-add-to-cart-button, button.button-2, .buttons button"

SEL_DETAIL_QUANTITY = (
    "input[name^='addtocart_'].EnteredQuantity, input.qty-input, input[name='addtocart_entered_quantity']"
)
SEL_DETAIL_ADD_BUTTON = (
    "button.button-1.add-to-cart-button, input.button-1[value='Add to cart'], "
    "[id^='add-to-cart-button-'], .add-to-cart-button"
)

SEL_CART_ROWS = "table.cart tbody tr"
SEL_CART_ROW_NAME = "td.product a, .product-name a"
SEL_CART_ROW_PRICE = "td.unit-price .price, .unit-price"
SEL_CART_ROW_QTY = "td.quantity input"
SEL_CART_DIVS = ".cart-item-row, .shopping-cart-item"
SEL_CART_DIV_NAME = ".product-name a, .cart-item-name a"
SEL_CART_DIV_PRICE = ".unit-price, .cart-item-price"
SEL_CART_DIV_QTY = ".quantity input, .cart-item-quantity input"
SEL_CART_TOTALS = (
    ".order-total .value-summary",
    ".order-total",
    ".cart-total",
    ".total-price",
    "td.cart-total .value-summary",
    "span.product-subtotal",
)

ADD_TO_CART_PATH = "/addproducttocart"

# Cart rows that are links to the product editor, not products
NON_PRODUCT_ROW_NAMES = ("Edit",)


class CssExtractionStrategy(ExtractionStrategy):
    """Product cards located by one name selector; price and buttons come from the nth item box."""

    def __init__(self, page: Page, name_selector: str, element_timeout_ms: int = 2_000):
        self.page = page
        self.name = name_selector
        self.name_selector = name_selector
        self.element_timeout_ms = element_timeout_ms

    async def extract(self, max_items: int) -> List[RawProduct]:
        names = self.page.locator(self.name_selector)
        count = min(await names.count(), max_items)

        raw = []
        for index in range(count):
            name_text = await names.nth(index).text_content(timeout=self.element_timeout_ms) or ""
            price_text = await _optional_text(
                self.page.locator(SEL_ITEM_BOX).nth(index).locator(SEL_ITEM_PRICE),
                self.element_timeout_ms,
            )
            raw.append(RawProduct(
                name_text=name_text,
                price_text=price_text,
                detail_action=ActionHandle(HandleKind.OPEN_DETAIL, target=index),
                direct_add_action=ActionHandle(HandleKind.DIRECT_ADD, target=index),
            ))
        return raw


class NopCommerceDriver(StorefrontDriver):
    """
    StorefrontDriver over one Playwright page.

    Add-to-cart confirmation is the ``/addproducttocart`` XHR answering 200. The page's
    response listener counts those; an action records the count before it clicks and
    ``await_confirmation`` waits for the count to move past it.
    """

    def __init__(self, page: Page, settings: Optional[BrowserSettings] = None):
        self.page = page
        self.settings = settings or BrowserSettings()
        self.add_to_cart_responses = 0
        self.current_term: Optional[str] = None
        self.extractor = SnapshotExtractor([
            CssExtractionStrategy(page, selector, self.settings.element_timeout_ms)
            for selector in SEL_PRODUCT_NAMES
        ])
        page.on("response", self._on_response)

    def _on_response(self, response: Response) -> None:
        if ADD_TO_CART_PATH in response.url.lower() and response.status == 200:
            self.add_to_cart_responses += 1
            logger.debug(f"Add-to-cart acknowledged ({self.add_to_cart_responses} so far)")

    def url_for(self, path: str) -> str:
        return self.settings.base_url.rstrip("/") + "/" + path.lstrip("/")

    async def open_home(self) -> None:
        await self._goto(self.settings.base_url, operation="open_home")
        logger.info(f"Page title: {await self.page.title()}")

    async def search(self, term: str) -> ResultContext:
        url = self.url_for(f"search?q={quote_plus(term)}")
        await self._goto(url, operation="search", search_term=term)
        self.current_term = term

        try:
            await self.page.wait_for_selector(
                SEL_RESULTS_CONTAINER,
                state="attached",
                timeout=self.settings.element_timeout_ms,
            )
        except PlaywrightError as e:
            raise NavigationError(
                message=f"Result page for '{term}' did not render: {e}",
                url=url,
                search_term=term,
                error_context=create_error_context(component="Navigation", operation="search"),
                cause=e
            ) from e

        has_results = True
        try:
            await self.page.wait_for_selector(
                SEL_ANY_ITEM,
                state="attached",
                timeout=500 if self.settings.fast else 2_000,
            )
        except PlaywrightTimeoutError:
            logger.info(f"No product items rendered for '{term}'")
            has_results = False

        return ResultContext(term=term, url=self.page.url, has_results=has_results)

    async def list_snapshots(self, max_items: int = MAX_SNAPSHOTS) -> List[ProductSnapshot]:
        try:
            return await self.extractor.extract(max_items)
        except PlaywrightError as e:
            raise NavigationError(
                message=f"Could not read product cards: {e}",
                url=self.page.url,
                search_term=self.current_term,
                error_context=create_error_context(component="Extraction", operation="list_snapshots"),
                cause=e
            ) from e

    async def invoke(self, handle: ActionHandle) -> Ack:
        try:
            if handle.kind is HandleKind.OPEN_DETAIL:
                link = self.page.locator(SEL_ITEM_BOX).nth(handle.target).locator(SEL_ITEM_DETAIL_LINK).first
                await link.click()
                await self.page.wait_for_load_state("domcontentloaded")
                return Ack(handle)

            if handle.kind is HandleKind.DIRECT_ADD:
                button = self.page.locator(SEL_ITEM_BOX).nth(handle.target).locator(SEL_ITEM_ADD_BUTTON).first
                signal = self._add_to_cart_signal()
                await button.click()
                return Ack(handle, signal)

            if handle.kind is HandleKind.DETAIL_ADD_TO_CART:
                button = self.page.locator(SEL_DETAIL_ADD_BUTTON).first
                await button.wait_for(timeout=self.settings.element_timeout_ms)
                signal = self._add_to_cart_signal()
                await button.click()
                return Ack(handle, signal)

            if handle.kind is HandleKind.SELECT_OPTION:
                await self._select_option(handle.target, handle.value)
                return Ack(handle)
        except PlaywrightError as e:
            raise ActionError(
                message=str(e).splitlines()[0],
                action=handle.kind.value,
                error_context=create_error_context(
                    component="Cart Action",
                    operation="invoke",
                    target=str(handle.target),
                    url=self.page.url,
                ),
                cause=e
            ) from e

        raise ActionError(message=f"Unsupported action handle {handle}", action=handle.kind.value)

    async def set_quantity(self, field: str, value: int) -> None:
        if field != QUANTITY_FIELD:
            raise ActionError(message=f"Unknown input field '{field}'", action="set_quantity")
        try:
            quantity_input = self.page.locator(SEL_DETAIL_QUANTITY).first
            await quantity_input.wait_for(timeout=self.settings.element_timeout_ms)
            await quantity_input.fill(str(value))
        except PlaywrightError as e:
            raise ActionError(
                message=f"Could not set quantity to {value}: {str(e).splitlines()[0]}",
                action="set_quantity",
                error_context=create_error_context(component="Cart Action", operation="set_quantity"),
                cause=e
            ) from e

    async def await_confirmation(self, signal: ConfirmationSignal, timeout_ms: int) -> bool:
        if signal.name != ADD_TO_CART_SIGNAL:
            raise ValueError(f"Unknown confirmation signal '{signal.name}'")
        return await poll_until(
            lambda: self.add_to_cart_responses > signal.baseline,
            timeout_ms,
            description=f"{ADD_TO_CART_PATH} response",
        )

    async def read_cart(self) -> CartState:
        await self._goto(self.url_for("cart"), operation="read_cart")

        try:
            items = await self._read_rows(SEL_CART_ROWS, SEL_CART_ROW_NAME, SEL_CART_ROW_PRICE, SEL_CART_ROW_QTY)
            if not items:
                items = await self._read_rows(SEL_CART_DIVS, SEL_CART_DIV_NAME, SEL_CART_DIV_PRICE, SEL_CART_DIV_QTY)
            total = await self._read_total()
        except PlaywrightError as e:
            raise NavigationError(
                message=f"Could not read the cart: {e}",
                url=self.page.url,
                error_context=create_error_context(component="Cart", operation="read_cart"),
                cause=e
            ) from e

        if total is None:
            total = compute_total(items)
            logger.info(f"No cart total displayed, using the sum of line items: {total}")

        logger.info(f"Found {len(items)} cart items")
        return CartState(items=tuple(items), displayed_total=total)

    def _add_to_cart_signal(self) -> ConfirmationSignal:
        return ConfirmationSignal(ADD_TO_CART_SIGNAL, baseline=self.add_to_cart_responses)

    async def _goto(self, url: str, operation: str, search_term: Optional[str] = None) -> None:
        try:
            response = await self.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.settings.navigation_timeout_ms,
            )
        except PlaywrightError as e:
            raise NavigationError(
                message=str(e).splitlines()[0],
                url=url,
                search_term=search_term,
                error_context=create_error_context(component="Navigation", operation=operation),
                cause=e
            ) from e

        if response is not None and response.status >= 400:
            raise NavigationError(
                message=f"HTTP {response.status} for {url}",
                url=url,
                search_term=search_term,
                error_context=create_error_context(component="Navigation", operation=operation),
            )

    async def _select_option(self, group: str, variant: Optional[str]) -> None:
        control = self.page.locator(group)
        await control.first.wait_for(state="attached", timeout=self.settings.element_timeout_ms)
        tag = await control.first.evaluate("el => el.tagName.toLowerCase()")

        if tag == "select":
            if variant:
                await control.first.select_option(label=variant)
                return
            values = await control.first.locator("option").evaluate_all("opts => opts.map(o => o.value)")
            valid = [value for value in values if value != "0"]
            if valid:
                await control.first.select_option(valid[0])
            return

        # Radio group: the option whose label carries the variant text, else the first one
        count = await control.count()
        for index in range(count):
            radio = control.nth(index)
            radio_id = await radio.get_attribute("id")
            if not variant or not radio_id:
                continue
            label = await _optional_text(self.page.locator(f'label[for="{radio_id}"]'), self.settings.element_timeout_ms)
            if variant.lower() in label.lower():
                await radio.check()
                return
        if count:
            logger.info(f"No option labelled '{variant}' in {group}, choosing the first")
            await control.first.check()

    async def _read_rows(self, row_selector: str, name_selector: str, price_selector: str,
                         qty_selector: str) -> List[CartLineItem]:
        rows = self.page.locator(row_selector)
        items = []
        for index in range(await rows.count()):
            row = rows.nth(index)
            name_locator = row.locator(name_selector)
            if not await name_locator.count():
                continue
            name = (await name_locator.first.text_content() or "").strip()
            if not name or name in NON_PRODUCT_ROW_NAMES:
                continue

            price_text = await _optional_text(row.locator(price_selector), self.settings.element_timeout_ms)
            qty_locator = row.locator(qty_selector)
            qty_text = await qty_locator.first.input_value() if await qty_locator.count() else ""

            item = CartLineItem(name=name, price=parse_price(price_text), quantity=parse_quantity(qty_text))
            logger.info(f"Cart item: {item.describe()}")
            items.append(item)
        return items

    async def _read_total(self) -> Optional[Decimal]:
        # Last matching element of the first selector with a positive value
        for selector in SEL_CART_TOTALS:
            elements = self.page.locator(selector)
            count = await elements.count()
            if not count:
                continue
            total = parse_price(await elements.nth(count - 1).text_content() or "")
            if total > 0:
                logger.info(f"Cart total: {total} (from selector: {selector})")
                return total
        return None


async def _optional_text(locator: Locator, timeout_ms: int) -> str:
    if not await locator.count():
        return ""
    return await locator.first.text_content(timeout=timeout_ms) or ""
