"""
Run configuration.

Two sources, both read once at run start:
- the fixtures file (search terms, price thresholds, optional explicit rule table)
- environment variables (loaded from .env by conftest) for browser behaviour
"""

import json
import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from exceptions import ConfigurationError, create_error_context
from shopping.models import Thresholds
from shopping.rules import PriceRuleTable

logger = logging.getLogger(__name__)

DEFAULT_FIXTURES_PATH = Path(__file__).resolve().parent.parent / "fixtures" / "products.json"
DEFAULT_BASE_URL = "https://demo.nopcommerce.com/"

THRESHOLD_KEYS = ("low_price", "low_price_qty", "high_price", "default_qty")


@dataclass(frozen=True)
class FixtureConfig:
    search_terms: Tuple[str, ...]
    thresholds: Thresholds
    rules: Optional[PriceRuleTable] = None
    source: str = ""

    def rule_table(self) -> PriceRuleTable:
        # An explicit rule table wins over the threshold-derived one
        if self.rules is not None:
            return self.rules
        return PriceRuleTable.from_thresholds(self.thresholds)


def load_fixtures(path: Optional[Union[str, Path]] = None) -> FixtureConfig:
    # Missing or malformed fixtures are run-level failures
    if path is None:
        path = os.getenv("FIXTURES_PATH") or DEFAULT_FIXTURES_PATH
    path = Path(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(
            message=f"Fixtures file not found: {path}",
            config_file=str(path),
            config_key="FIXTURES_PATH",
            error_context=create_error_context(component="Fixtures", operation="load_fixtures"),
            cause=e
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            message=f"Fixtures file is not valid JSON: {e}",
            config_file=str(path),
            error_context=create_error_context(component="Fixtures", operation="load_fixtures"),
            cause=e
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            message="Fixtures file must contain a JSON object",
            config_file=str(path),
            expected_format='{"products": [...], "thresholds": {...}}',
        )

    terms = data.get("products", [])
    if not isinstance(terms, list) or not all(isinstance(term, str) and term.strip() for term in terms):
        raise ConfigurationError(
            message="'products' must be a list of non-empty search terms",
            config_key="products",
            config_file=str(path),
        )

    thresholds = parse_thresholds(data.get("thresholds"), source=str(path))

    rules = None
    if data.get("rules"):
        rules = PriceRuleTable.from_config(data["rules"])

    config = FixtureConfig(
        search_terms=tuple(term.strip() for term in terms),
        thresholds=thresholds,
        rules=rules,
        source=str(path),
    )
    logger.info(f"Loaded {len(config.search_terms)} search terms and thresholds {thresholds} from {path}")
    return config


def parse_thresholds(data: Optional[Dict[str, Any]], source: str = "") -> Thresholds:
    if not isinstance(data, dict):
        raise ConfigurationError(
            message="'thresholds' section is missing",
            config_key="thresholds",
            config_file=source or None,
            expected_format=", ".join(THRESHOLD_KEYS),
        )

    missing = [key for key in THRESHOLD_KEYS if key not in data]
    if missing:
        raise ConfigurationError(
            message=f"'thresholds' is missing {', '.join(missing)}",
            config_key="thresholds",
            config_file=source or None,
            expected_format=", ".join(THRESHOLD_KEYS),
        )

    try:
        thresholds = Thresholds(
            low_price=Decimal(str(data["low_price"])),
            low_price_qty=int(data["low_price_qty"]),
            high_price=Decimal(str(data["high_price"])),
            default_qty=int(data["default_qty"]),
        )
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ConfigurationError(
            message=f"'thresholds' has a non-numeric value: {data}",
            config_key="thresholds",
            config_file=source or None,
            cause=e
        ) from e

    problems = thresholds.problems()
    if problems:
        raise ConfigurationError(
            message="; ".join(problems),
            config_key="thresholds",
            config_file=source or None,
        )
    return thresholds


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("true", "1", "t", "yes")


@dataclass(frozen=True)
class BrowserSettings:
    base_url: str = DEFAULT_BASE_URL
    headless: bool = True
    fast: bool = False
    video_dir: Optional[str] = None
    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    @property
    def default_timeout_ms(self) -> int:
        return 5_000 if self.fast else 180_000

    @property
    def navigation_timeout_ms(self) -> int:
        return 10_000 if self.fast else 60_000

    @property
    def confirmation_timeout_ms(self) -> int:
        return 15_000 if self.fast else 30_000

    @property
    def element_timeout_ms(self) -> int:
        return 2_000 if self.fast else 10_000

    @classmethod
    def from_env(cls) -> "BrowserSettings":
        base_url = os.getenv("STOREFRONT_BASE_URL", DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL
        if not base_url.endswith("/"):
            base_url += "/"
        return cls(
            base_url=base_url,
            headless=_env_flag("PLAYWRIGHT_HEADLESS", True),
            fast=_env_flag("PLAYWRIGHT_FAST", False),
            video_dir=os.getenv("VIDEO_DIR") or None,
        )
