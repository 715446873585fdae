"""In-memory cart adapter.

Holds a request's line items as a plain list. The host integration builds
one per request from its session; the CLI builds one from product ids.
"""

from collections.abc import Iterable

from shopreferral.core.models import CartLineItem
from shopreferral.core.ports import CartPort


class InMemoryCart(CartPort):
    """Cart backed by a list of line items."""

    def __init__(self, items: Iterable[CartLineItem] = ()):
        self.items: list[CartLineItem] = list(items)

    @classmethod
    def from_product_ids(cls, product_ids: Iterable[int]) -> "InMemoryCart":
        return cls(CartLineItem(product_id=product_id) for product_id in product_ids)

    async def is_empty(self) -> bool:
        return not self.items

    async def line_items(self) -> list[CartLineItem]:
        return list(self.items)
