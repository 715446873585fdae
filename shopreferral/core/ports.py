"""Port interfaces for the shopreferral hooks.

These abstract base classes define the boundaries between core
domain logic and the host commerce platform. Implementations live in
the adapters/ package; in-memory fakes live in tests/fakes/.

Port Interface Categories:

1. **Session ports** (read-only, request-scoped)
   - CartPort: Line items of the active cart

2. **Store ports** (core reads and writes through them)
   - OptionStorePort: Named settings, e.g. the configured products
   - OrderMetaStorePort: Per-order key/value metadata
   - ActivityLogPort: Channelled domain log

3. **Host event bus**
   - HookBusPort: Action and filter registration and dispatch
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from .models import ActivityLogEntry, CartLineItem

HookCallback = Callable[..., Awaitable[Any]]


class CartPort(ABC):
    """Port for reading the shopper's active cart."""

    @abstractmethod
    async def is_empty(self) -> bool:
        """Return True when the cart holds no line items."""

    @abstractmethod
    async def line_items(self) -> list[CartLineItem]:
        """Return the cart's line items in cart order."""


class OptionStorePort(ABC):
    """Port for named settings stored by the host."""

    @abstractmethod
    async def get_option(self, name: str, default: Any = None) -> Any:
        """Return the decoded option value, or `default` when absent."""

    @abstractmethod
    async def update_option(self, name: str, value: Any) -> None:
        """Create or replace an option value."""


class OrderMetaStorePort(ABC):
    """Port for per-order metadata.

    Values are stored as strings, matching the host's untyped meta table.

    Implementations must handle:
    - Atomic write-once inserts (`add_meta_many_if_absent`) so concurrent
      deliveries of the same event cannot both win, and a failed write
      leaves none of the values behind
    """

    @abstractmethod
    async def get_meta(self, order_id: int, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    async def update_meta(self, order_id: int, key: str, value: str) -> None:
        """Create or replace a metadata value."""

    @abstractmethod
    async def add_meta_many_if_absent(
        self, order_id: int, claim_key: str, values: Mapping[str, str]
    ) -> bool:
        """Store every value in one transaction, only if `claim_key` is absent.

        `values` must contain `claim_key`. Either all values are written or
        none are.

        Returns:
            True if this call wrote the values, False if `claim_key` already existed.

        Raises:
            ValueError: If `claim_key` is not one of the keys of `values`.
        """

    @abstractmethod
    async def delete_meta(self, order_id: int, key: str) -> None:
        """Remove a metadata value. Missing keys are ignored."""


class ActivityLogPort(ABC):
    """Port for the channelled activity log.

    Logging is fire-and-forget from the caller's point of view; core
    services never let a log failure abort the operation being logged.
    """

    @abstractmethod
    async def log(
        self,
        level: str,
        message: str,
        context: Mapping[str, Any] | None = None,
        channel: str = "general",
    ) -> None:
        """Write one log entry."""

    @abstractmethod
    async def get_recent(
        self,
        limit: int = 50,
        level: str | None = None,
        channel: str | None = None,
    ) -> list[ActivityLogEntry]:
        """Return the newest entries first, optionally filtered."""

    @abstractmethod
    async def count_by_channel(self, channel: str, days: int = 30) -> int:
        """Count entries written on `channel` during the last `days` days."""

    async def info(
        self, message: str, context: Mapping[str, Any] | None = None, channel: str = "general"
    ) -> None:
        await self.log("INFO", message, context, channel)

    async def warning(
        self, message: str, context: Mapping[str, Any] | None = None, channel: str = "general"
    ) -> None:
        await self.log("WARNING", message, context, channel)

    async def error(
        self, message: str, context: Mapping[str, Any] | None = None, channel: str = "general"
    ) -> None:
        await self.log("ERROR", message, context, channel)

    async def debug(
        self, message: str, context: Mapping[str, Any] | None = None, channel: str = "general"
    ) -> None:
        await self.log("DEBUG", message, context, channel)


class HookBusPort(ABC):
    """Port for the host's action/filter registry.

    Callbacks with a lower priority run first; equal priorities run in
    registration order. Callbacks may be removed either by identity or by
    their `__name__`, which is how the host's built-in callbacks are
    referenced.
    """

    @abstractmethod
    def add_action(self, name: str, callback: HookCallback, priority: int = 10) -> None:
        """Register an action callback."""

    @abstractmethod
    def add_filter(self, name: str, callback: HookCallback, priority: int = 10) -> None:
        """Register a filter callback."""

    @abstractmethod
    def remove_action(
        self, name: str, callback: HookCallback | str, priority: int = 10
    ) -> bool:
        """Deregister an action callback.

        Returns:
            True if a callback was removed.
        """

    @abstractmethod
    def has_action(self, name: str, callback: HookCallback | str) -> bool:
        """Return True if the callback is registered on the action."""

    @abstractmethod
    async def do_action(self, name: str, *args: Any) -> None:
        """Run every callback registered on the action."""

    @abstractmethod
    async def apply_filters(self, name: str, value: Any, *args: Any) -> Any:
        """Thread `value` through every callback registered on the filter."""
