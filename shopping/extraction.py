"""
Product snapshot extraction.

Result pages differ in markup between layouts, so extraction is an ordered list of
strategies. The first strategy that yields anything wins; its raw records are trimmed,
priced and capped.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Sequence

from .driver import MAX_SNAPSHOTS
from .models import ActionHandle, ProductSnapshot
from .prices import parse_price

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawProduct:
    name_text: str
    price_text: str
    detail_action: ActionHandle
    direct_add_action: ActionHandle


class ExtractionStrategy(ABC):
    """One way of reading product cards off a result page."""

    name: str = "strategy"

    @abstractmethod
    async def extract(self, max_items: int) -> List[RawProduct]:
        """Raw cards in render order, or an empty list when this layout is absent."""


class SnapshotExtractor:

    def __init__(self, strategies: Sequence[ExtractionStrategy]):
        if not strategies:
            raise ValueError("SnapshotExtractor needs at least one strategy")
        self.strategies = tuple(strategies)

    async def extract_raw(self, max_items: int = MAX_SNAPSHOTS) -> List[RawProduct]:
        for strategy in self.strategies:
            raw = await strategy.extract(max_items)
            logger.info(f"Trying extraction strategy '{strategy.name}': found {len(raw)} products")
            if raw:
                return raw
        logger.info("No extraction strategy found products on this page")
        return []

    async def extract(self, max_items: int = MAX_SNAPSHOTS) -> List[ProductSnapshot]:
        raw = await self.extract_raw(max_items)
        return build_snapshots(raw, max_items)


def build_snapshots(raw: Sequence[RawProduct], max_items: int = MAX_SNAPSHOTS) -> List[ProductSnapshot]:
    # The cap applies to rendered cards, so a blank card still uses up a slot
    snapshots = []
    for index, card in enumerate(raw[:max_items]):
        name = (card.name_text or "").strip()
        if not name:
            continue
        snapshot = ProductSnapshot(
            name=name,
            price=parse_price(card.price_text),
            detail_action=card.detail_action,
            direct_add_action=card.direct_add_action,
        )
        logger.info(f"Product {index + 1}: {snapshot.describe()}")
        snapshots.append(snapshot)
    return snapshots
