"""CLI command implementations for shopreferral.

Provides operator actions through a command-line interface.

This adapter drives the core through the same hook bus the host uses
(order processing, cart rendering) and formats the results as JSON-able
dictionaries. Each simulated request gets a fresh bus from `bus_factory`
because handlers such as the coupon toggle removal mutate the registry.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any

from shopreferral.adapters.cart.memory import InMemoryCart
from shopreferral.core.models import (
    ACTION_APPLICATION_INIT,
    ACTION_CHECKOUT_BEFORE_FORM,
    ACTION_HEAD_RENDER,
    ACTION_ORDER_PROCESSED,
    FILTER_COUPONS_ENABLED,
    META_REFERRAL_CODE,
    PageKind,
    RequestContext,
)
from shopreferral.core.ports import (
    ActivityLogPort,
    HookBusPort,
    OptionStorePort,
    OrderMetaStorePort,
)
from shopreferral.core.referral_pricing import ReferralPricingCalculator

logger = logging.getLogger(__name__)


class CLICommandHandler:
    """Handles CLI commands by delegating to the core services."""

    def __init__(
        self,
        bus_factory: Callable[[], HookBusPort],
        calculator: ReferralPricingCalculator,
        activity_log: ActivityLogPort,
        options: OptionStorePort,
        meta_store: OrderMetaStorePort,
        products_config_option: str = "products_config",
    ):
        """Initialize the CLI command handler.

        Args:
            bus_factory: Builds a request-scoped hook bus with all hooks registered.
            calculator: ReferralPricingCalculator for pricing lookups.
            activity_log: ActivityLogPort for log queries.
            options: OptionStorePort holding the products configuration.
            meta_store: OrderMetaStorePort for setting referral codes.
            products_config_option: Name of the products configuration option.
        """
        self.bus_factory = bus_factory
        self.calculator = calculator
        self.activity_log = activity_log
        self.options = options
        self.meta_store = meta_store
        self.products_config_option = products_config_option

    async def process_order(
        self, order_id: int, referral_code: str | None = None
    ) -> dict[str, Any]:
        """Fire the order-processed event for an order.

        Args:
            order_id: Order to process.
            referral_code: Optional referral code stored on the order first.

        Returns:
            Dictionary with the order's referral state and pricing info.
        """
        try:
            order_id = int(order_id)
        except (TypeError, ValueError):
            return {
                "status": "error",
                "operation": "process_order",
                "message": f"Invalid order id: {order_id!r}",
            }

        if referral_code:
            await self.meta_store.update_meta(order_id, META_REFERRAL_CODE, referral_code)

        bus = self.bus_factory()
        await bus.do_action(ACTION_ORDER_PROCESSED, order_id)

        state = await self.calculator.referral_state(order_id)
        info = await self.calculator.get_referral_pricing_info(order_id)
        return {
            "status": "success",
            "operation": "process_order",
            "order_id": order_id,
            "state": state.value,
            "pricing": info.as_dict() if info else None,
        }

    async def pricing_info(self, order_id: int, output_format: str = "json") -> dict[str, Any]:
        """Show the stored referral pricing window of an order.

        Args:
            order_id: Order to look up.
            output_format: Output format ('json', 'text'). Default 'json'.
        """
        try:
            info = await self.calculator.get_referral_pricing_info(int(order_id))
        except ValueError as e:
            logger.error(f"Failed to read pricing info: {e}")
            return {
                "status": "error",
                "operation": "pricing_info",
                "order_id": order_id,
                "message": str(e),
            }

        if info is None:
            return {
                "status": "error",
                "operation": "pricing_info",
                "order_id": order_id,
                "message": f"No referral pricing stored for order {order_id}",
            }

        if output_format == "json":
            data: Any = info.as_dict()
        elif output_format == "text":
            data = (
                f"Order {order_id}: discount from {info.discount_start_date_formatted} "
                f"to {info.discount_end_date_formatted} "
                f"({info.discount_period_months} months + {info.margin_days} days margin)"
            )
        else:
            return {
                "status": "error",
                "operation": "pricing_info",
                "message": f"Unsupported format: {output_format}",
            }

        return {
            "status": "success",
            "operation": "pricing_info",
            "order_id": order_id,
            "data": data,
        }

    async def check_cart(
        self,
        product_ids: Iterable[int],
        page: str = "cart",
        is_admin: bool = False,
    ) -> dict[str, Any]:
        """Simulate a storefront request for a cart holding `product_ids`.

        Runs the init, head render and coupons-enabled hooks in host order
        and reports what the shopper would see.
        """
        try:
            page_kind = PageKind(page)
            cart = InMemoryCart.from_product_ids(int(pid) for pid in product_ids)
        except (TypeError, ValueError) as e:
            return {
                "status": "error",
                "operation": "check_cart",
                "message": str(e),
            }

        ctx = RequestContext(page=page_kind, is_admin=is_admin, cart=cart)
        bus = self.bus_factory()

        await bus.do_action(ACTION_APPLICATION_INIT, ctx)
        await bus.do_action(ACTION_HEAD_RENDER, ctx)
        coupons_enabled = await bus.apply_filters(FILTER_COUPONS_ENABLED, True, ctx)
        if ctx.is_checkout_page():
            await bus.do_action(ACTION_CHECKOUT_BEFORE_FORM, ctx)

        return {
            "status": "success",
            "operation": "check_cart",
            "page": page_kind.value,
            "coupons_enabled": coupons_enabled,
            "head_output": ctx.head_output,
        }

    async def set_products_config(self, product_ids: Iterable[int]) -> dict[str, Any]:
        """Replace the configured products with `product_ids`."""
        try:
            config = {str(int(pid)): {} for pid in product_ids}
        except (TypeError, ValueError) as e:
            return {
                "status": "error",
                "operation": "set_products_config",
                "message": str(e),
            }

        await self.options.update_option(self.products_config_option, config)
        return {
            "status": "success",
            "operation": "set_products_config",
            "products": sorted(int(pid) for pid in config),
        }

    async def recent_logs(
        self,
        limit: int = 50,
        level: str | None = None,
        channel: str | None = None,
    ) -> dict[str, Any]:
        """List recent activity log entries, newest first."""
        entries = await self.activity_log.get_recent(limit=limit, level=level, channel=channel)
        return {
            "status": "success",
            "operation": "recent_logs",
            "count": len(entries),
            "data": [
                {
                    "logged_at": entry.logged_at.isoformat(),
                    "level": entry.level,
                    "channel": entry.channel,
                    "message": entry.message,
                    "context": dict(entry.context),
                }
                for entry in entries
            ],
        }
