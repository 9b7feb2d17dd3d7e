# Playwright binding for the nopCommerce demo storefront

from .nopcommerce import NopCommerceDriver, CssExtractionStrategy, ADD_TO_CART_PATH
from .session import browser_page, storefront_driver, context_options, LAUNCH_ARGS

__all__ = [
    "NopCommerceDriver",
    "CssExtractionStrategy",
    "ADD_TO_CART_PATH",
    "browser_page",
    "storefront_driver",
    "context_options",
    "LAUNCH_ARGS",
]
