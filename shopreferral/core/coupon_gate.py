"""Coupon visibility gate.

Hides and disables coupon entry whenever the active cart holds a product
listed in the products configuration option. The decision is recomputed
at every integration point: the cart can change between hooks within a
single request (AJAX cart updates) and the hooks fire in no guaranteed
order relative to those changes.
"""

import logging
from collections.abc import Mapping
from typing import Any

from .models import (
    ACTION_CHECKOUT_BEFORE_FORM,
    CHANNEL_COUPON_MANAGER,
    CHECKOUT_COUPON_FORM_CALLBACK,
    ProductId,
    RequestContext,
)
from .ports import ActivityLogPort, HookBusPort, OptionStorePort

logger = logging.getLogger(__name__)

CART_COUPON_STYLE = """<style>
    .woocommerce-cart .coupon,
    .cart_totals .coupon,
    .wc-proceed-to-checkout .coupon,
    form.woocommerce-coupon-form,
    .woocommerce-form-coupon-toggle {
        display: none !important;
    }
</style>"""

CHECKOUT_COUPON_STYLE = """<style>
    .woocommerce-checkout .woocommerce-form-coupon-toggle,
    .woocommerce-checkout .woocommerce-form-coupon,
    .checkout_coupon,
    .woocommerce-checkout-coupon {
        display: none !important;
    }
</style>"""


def _normalize_product_keys(config: Any) -> set[ProductId]:
    """Collect the configured product ids.

    Option values decoded from JSON carry string keys ("42"); keys that
    are not integers (such as a "default" entry) are ignored.
    """
    if not isinstance(config, Mapping):
        return set()
    product_ids: set[ProductId] = set()
    for key in config:
        try:
            product_ids.add(int(key))
        except (TypeError, ValueError):
            continue
    return product_ids


class CouponVisibilityGate:
    """Suppresses coupon UI for carts holding configured products.

    Stateless per request: nothing is cached between calls.
    """

    def __init__(
        self,
        options: OptionStorePort,
        activity_log: ActivityLogPort,
        hook_bus: HookBusPort,
        products_config_option: str = "products_config",
    ):
        """Initialize the gate.

        Args:
            options: OptionStorePort holding the products configuration.
            activity_log: ActivityLogPort receiving suppression entries.
            hook_bus: HookBusPort used to remove the default coupon toggle.
            products_config_option: Name of the products configuration option.
        """
        self.options = options
        self.activity_log = activity_log
        self.hook_bus = hook_bus
        self.products_config_option = products_config_option

    async def current_cart_product_ids(self, ctx: RequestContext) -> list[ProductId]:
        """Distinct product and variation ids of the active cart.

        Returns an empty list in admin requests, when there is no active
        cart, or when the cart is empty. Order is first occurrence.
        """
        if ctx.is_admin or ctx.cart is None or await ctx.cart.is_empty():
            return []

        seen: dict[ProductId, None] = {}
        for item in await ctx.cart.line_items():
            for product_id in item.product_ids():
                seen.setdefault(product_id, None)
        return list(seen)

    async def configured_product_ids(self) -> set[ProductId]:
        config = await self.options.get_option(self.products_config_option, {})
        return _normalize_product_keys(config)

    async def cart_requires_coupon_suppression(self, ctx: RequestContext) -> bool:
        """Does any cart product (or variation) appear in the configuration?"""
        configured = await self.configured_product_ids()
        if not configured:
            return False
        cart_ids = await self.current_cart_product_ids(ctx)
        return any(product_id in configured for product_id in cart_ids)

    async def on_cart_page_render(self, ctx: RequestContext) -> None:
        """Hide coupon forms on the cart and checkout pages."""
        if not ctx.is_cart_page() and not ctx.is_checkout_page():
            return

        if not await self.cart_requires_coupon_suppression(ctx):
            return

        await self._log_info(
            "Coupon codes hidden - configured products detected in cart",
            {
                "page": "cart" if ctx.is_cart_page() else "checkout",
                "products": await self.current_cart_product_ids(ctx),
            },
        )
        ctx.emit(CART_COUPON_STYLE)

    async def on_checkout_page_render(self, ctx: RequestContext) -> None:
        """Hide the checkout-specific coupon elements."""
        if not ctx.is_checkout_page():
            return

        if await self.cart_requires_coupon_suppression(ctx):
            ctx.emit(CHECKOUT_COUPON_STYLE)

    async def on_application_init(self, ctx: RequestContext) -> None:
        """Deregister the host's "have a coupon?" toggle on checkout."""
        if await self.cart_requires_coupon_suppression(ctx):
            removed = self.hook_bus.remove_action(
                ACTION_CHECKOUT_BEFORE_FORM, CHECKOUT_COUPON_FORM_CALLBACK, 10
            )
            logger.debug(
                "Checkout coupon toggle removal",
                extra={"removed": removed},
            )

    async def filter_coupons_enabled(self, enabled: bool, ctx: RequestContext) -> bool:
        """Force coupons off for this request when suppression applies."""
        if await self.cart_requires_coupon_suppression(ctx):
            await self._log_info(
                "Coupon application disabled - configured products in cart",
                {"products": await self.current_cart_product_ids(ctx)},
            )
            return False
        return enabled

    async def filter_cart_updated(self, updated: bool, ctx: RequestContext) -> bool:
        """Always report cart updates as applied."""
        return True

    async def _log_info(self, message: str, context: dict[str, Any]) -> None:
        try:
            await self.activity_log.info(message, context, CHANNEL_COUPON_MANAGER)
        except Exception:
            logger.warning(
                "Activity log write failed",
                extra={"channel": CHANNEL_COUPON_MANAGER},
                exc_info=True,
            )
