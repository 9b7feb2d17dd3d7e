from decimal import Decimal

import allure
import pytest

from shopping import CartLineItem, CartState, LedgerEntry
from validation import (
    ASSESSMENT_PRICE_TOLERANCE,
    CartReconciler,
    MatchVerdict,
    ValidationStatus,
    ValidationType,
    compute_total,
    find_cart_item,
    names_match,
    tokens_overlap,
)

LEDGER = [
    LedgerEntry("A", Decimal("999.99"), 2),
    LedgerEntry("B", Decimal("1200"), 1),
]

CART_ITEMS = (
    CartLineItem("A", Decimal("999.99"), 2),
    CartLineItem("B", Decimal("1200"), 1),
)


@allure.feature("Cart Reconciliation")
class TestNameMatching:

    @allure.story("Symmetry")
    @allure.title("Name matching is symmetric for '{first}' and '{second}'")
    @pytest.mark.parametrize(
        "first, second",
        [
            ("Apple MacBook Pro", "apple macbook pro 13-inch"),
            ("HP Envy", "Lenovo Thinkpad"),
            ("", "Anything"),
            ("Build your own computer", "BUILD YOUR OWN COMPUTER"),
        ],
    )
    def test_symmetric(self, first, second):
        assert names_match(first, second) == names_match(second, first)

    @allure.story("Substring")
    @allure.title("Either name may contain the other")
    def test_substring_either_direction(self):
        assert names_match("Lenovo IdeaCentre", "Lenovo IdeaCentre 600 All-in-One PC")
        assert names_match("Lenovo IdeaCentre 600 All-in-One PC", "lenovo ideacentre")
        assert not names_match("HP Envy", "HP Spectre")

    @allure.story("Token Fallback")
    @allure.title("A long ledger word inside a cart word matches")
    def test_token_overlap(self):
        assert tokens_overlap("Apple MacBook", "MacBook Pro 13-inch")
        # Words of three characters or fewer are ignored
        assert not tokens_overlap("HP One", "HP Spectre One")

    @allure.story("Token Fallback")
    @allure.title("Substring matches win over token matches")
    def test_find_prefers_substring(self):
        items = (
            CartLineItem("Apple iCam accessory", Decimal("25"), 1),
            CartLineItem("Apple MacBook Pro 13-inch", Decimal("1800"), 2),
        )
        assert find_cart_item("Apple MacBook Pro", items) is items[1]
        assert find_cart_item("Refurbished MacBook", items) is items[1]
        assert find_cart_item("Nikon D5500", items) is None


@allure.feature("Cart Reconciliation")
class TestReconciler:

    @allure.story("Scenario")
    @allure.title("Matching cart reconciles completely")
    def test_full_match(self):
        report = CartReconciler().reconcile(LEDGER, CartState(CART_ITEMS, Decimal("3199.98")))

        assert [check.verdict for check in report.entries] == [MatchVerdict.FULL_MATCH, MatchVerdict.FULL_MATCH]
        assert report.total.expected_total == Decimal("3199.98")
        assert report.total.matches
        assert report.all_passed
        assert report.mismatches == []

    @allure.story("Scenario")
    @allure.title("A wrong displayed total is reported independently of the line items")
    def test_total_mismatch(self):
        report = CartReconciler().reconcile(LEDGER, CartState(CART_ITEMS, Decimal("3200.00")))

        assert report.count(MatchVerdict.FULL_MATCH) == 2
        assert not report.total.matches
        assert not report.all_passed
        assert report.mismatches == [
            "Cart total mismatch - Expected: $3,199.98, Actual: $3,200.00"
        ]

    @allure.story("Verdicts")
    @allure.title("Quantity drift gives a partial match")
    def test_partial_match_on_quantity(self):
        cart = CartState((CartLineItem("A", Decimal("999.99"), 3),), Decimal("2999.97"))
        check = CartReconciler().reconcile(LEDGER[:1], cart).entries[0]

        assert check.price_matches and not check.quantity_matches
        assert check.verdict is MatchVerdict.PARTIAL_MATCH
        assert "quantity differs (actual: 3)" in check.describe()

    @allure.story("Verdicts")
    @allure.title("Price and quantity both wrong is no match")
    def test_no_match_when_both_differ(self):
        cart = CartState((CartLineItem("A", Decimal("500"), 1),), Decimal("500"))
        check = CartReconciler().reconcile(LEDGER[:1], cart).entries[0]

        assert check.cart_item is not None
        assert check.verdict is MatchVerdict.NO_MATCH

    @allure.story("Verdicts")
    @allure.title("A ledger entry missing from the cart is no match")
    def test_missing_item(self):
        report = CartReconciler().reconcile(LEDGER, CartState(CART_ITEMS[:1], Decimal("1999.98")))

        assert report.entries[1].verdict is MatchVerdict.NO_MATCH
        assert report.entries[1].describe().endswith("not found in cart")
        assert report.total.matches

    @allure.story("Tolerance")
    @allure.title("Price tolerance is exclusive")
    def test_price_tolerance(self):
        strict = CartReconciler()
        lenient = CartReconciler(price_tolerance=ASSESSMENT_PRICE_TOLERANCE)
        drift = (CartLineItem("B", Decimal("1249.99"), 1),)
        edge = (CartLineItem("B", Decimal("1250"), 1),)

        assert strict.check_entry(LEDGER[1], drift).verdict is MatchVerdict.PARTIAL_MATCH
        assert lenient.check_entry(LEDGER[1], drift).verdict is MatchVerdict.FULL_MATCH
        assert lenient.check_entry(LEDGER[1], edge).verdict is MatchVerdict.PARTIAL_MATCH
        assert strict.check_entry(LEDGER[1], (CartLineItem("B", Decimal("1200.009"), 1),)).price_matches

    @allure.story("Total")
    @allure.title("Recomputing the total is idempotent")
    def test_total_recompute_idempotent(self):
        items = list(CART_ITEMS)
        first = compute_total(items)
        second = compute_total(items)

        assert first == second == Decimal("3199.98")
        assert items == list(CART_ITEMS)
        assert compute_total([]) == Decimal("0")

    @allure.story("Total")
    @allure.title("The expected total comes from the cart, not the ledger")
    def test_total_uses_observed_items(self):
        extra = CART_ITEMS + (CartLineItem("Gift card", Decimal("25"), 1),)
        report = CartReconciler().reconcile(LEDGER, CartState(extra, Decimal("3224.98")))

        assert report.total.matches
        assert report.all_passed

    @allure.story("Reporting")
    @allure.title("Report renders as results, JSON and text")
    def test_report_outputs(self):
        report = CartReconciler().reconcile(LEDGER, CartState(CART_ITEMS, Decimal("3200.00")))

        results = report.results()
        assert [r.validation_type for r in results] == [
            ValidationType.CART_LINE_ITEM, ValidationType.CART_LINE_ITEM, ValidationType.CART_TOTAL,
        ]
        assert results[-1].status is ValidationStatus.FAILED

        data = report.to_dict()
        assert data["all_passed"] is False
        assert data["entries"][0]["verdict"] == "full_match"
        assert data["total"]["expected_total"] == "3199.98"

        text = report.to_text()
        assert "Cart contains 2 items:" in text
        assert text.endswith("Some cart validations failed")

    @allure.story("Empty Cart")
    @allure.title("An empty ledger against an empty cart passes")
    def test_empty(self):
        report = CartReconciler().validate([], CartState((), Decimal("0")))
        assert report.entries == ()
        assert report.all_passed
