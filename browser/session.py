import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from playwright.async_api import Error as PlaywrightError, Page, async_playwright

from core.config import BrowserSettings
from exceptions import BrowserSessionError, create_error_context, log_error_with_context

from .nopcommerce import NopCommerceDriver


logger = logging.getLogger(__name__)

BROWSER_TYPE = "chromium"

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=VizDisplayCompositor",
    "--start-maximized",
    "--window-size=1920,1080",
]

VIDEO_SIZE = {"width": 1280, "height": 720}


def context_options(settings: BrowserSettings) -> Dict[str, Any]:
    # One isolated context per run; video only when a directory is configured
    options = {
        "user_agent": settings.user_agent,
        "viewport": {"width": settings.viewport_width, "height": settings.viewport_height},
        "ignore_https_errors": True,
        "bypass_csp": True,
    }
    if settings.video_dir:
        options["record_video_dir"] = settings.video_dir
        options["record_video_size"] = VIDEO_SIZE
    return options


@asynccontextmanager
async def browser_page(settings: BrowserSettings) -> AsyncIterator[Page]:
    # Yields a fresh page; the context (and its video) is closed on exit
    async with async_playwright() as playwright:
        try:
            browser = await playwright.chromium.launch(headless=settings.headless, args=LAUNCH_ARGS)
        except PlaywrightError as e:
            context = create_error_context(component="Browser Session", operation="launch")
            browser_error = BrowserSessionError(
                message=f"Failed to launch browser: {str(e).splitlines()[0]}",
                browser_type=BROWSER_TYPE,
                error_context=context,
                cause=e
            )
            log_error_with_context(browser_error, context)
            raise browser_error from e

        logger.info(f"Browser launched in {'headless' if settings.headless else 'headed'} mode")
        browser_context = None
        try:
            try:
                browser_context = await browser.new_context(**context_options(settings))
                page = await browser_context.new_page()
            except PlaywrightError as e:
                context = create_error_context(component="Browser Session", operation="new_context")
                browser_error = BrowserSessionError(
                    message=f"Failed to create browser context: {str(e).splitlines()[0]}",
                    browser_type=BROWSER_TYPE,
                    error_context=context,
                    cause=e
                )
                log_error_with_context(browser_error, context)
                raise browser_error from e

            page.set_default_timeout(settings.default_timeout_ms)
            page.set_default_navigation_timeout(settings.navigation_timeout_ms)
            logger.info(
                f"Using {'fast' if settings.fast else 'full'} mode "
                f"(timeouts: {settings.default_timeout_ms // 1000}s)"
            )
            yield page
        finally:
            try:
                if browser_context is not None:
                    await browser_context.close()
                    if settings.video_dir:
                        logger.info(f"Video saved to {settings.video_dir}")
                await browser.close()
            except PlaywrightError as e:
                # Cleanup errors are logged, the run result stands
                log_error_with_context(
                    e,
                    create_error_context(component="Browser Session", operation="session_cleanup"),
                    level="warning"
                )


@asynccontextmanager
async def storefront_driver(settings: BrowserSettings) -> AsyncIterator[NopCommerceDriver]:
    async with browser_page(settings) as page:
        driver = NopCommerceDriver(page, settings)
        await driver.open_home()
        yield driver
