"""
The narrow browser interface the harness core runs against.

Implementations own a single page/session. Calls are made strictly one at a time.
"""

from abc import ABC, abstractmethod
from typing import List

from .models import Ack, ActionHandle, CartState, ConfirmationSignal, ProductSnapshot, ResultContext

# Field names passed to set_quantity
QUANTITY_FIELD = "quantity"

# Signal name for a server-acknowledged add-to-cart
ADD_TO_CART_SIGNAL = "add_to_cart"

MAX_SNAPSHOTS = 10


class StorefrontDriver(ABC):

    @abstractmethod
    async def search(self, term: str) -> ResultContext:
        """Show the result page for ``term``. Raises NavigationError."""

    @abstractmethod
    async def list_snapshots(self, max_items: int = MAX_SNAPSHOTS) -> List[ProductSnapshot]:
        """Products on the current result page, in render order."""

    @abstractmethod
    async def invoke(self, handle: ActionHandle) -> Ack:
        """Perform a UI action. Raises ActionError."""

    @abstractmethod
    async def set_quantity(self, field: str, value: int) -> None:
        """Fill a quantity input on the current page. Raises ActionError."""

    @abstractmethod
    async def read_cart(self) -> CartState:
        """Fresh snapshot of the cart's line items and displayed total."""

    @abstractmethod
    async def await_confirmation(self, signal: ConfirmationSignal, timeout_ms: int) -> bool:
        """True once ``signal`` is observed, False when ``timeout_ms`` passes first."""
