"""Hook registration table.

Every integration point is an explicit (kind, hook, handler, priority)
row registered against the injected HookBusPort at startup.

Dispatch arguments by hook:
- head_render, application_init: (ctx: RequestContext)
- order_processed: (order_id: int)
- coupons_enabled, cart_updated filters: (value: bool, ctx: RequestContext)
"""

from typing import Literal

from .coupon_gate import CouponVisibilityGate
from .models import (
    ACTION_APPLICATION_INIT,
    ACTION_HEAD_RENDER,
    ACTION_ORDER_PROCESSED,
    FILTER_CART_UPDATED,
    FILTER_COUPONS_ENABLED,
)
from .ports import HookBusPort
from .referral_pricing import ReferralPricingCalculator

HookKind = Literal["action", "filter"]
Component = Literal["gate", "calculator"]

HOOK_TABLE: tuple[tuple[HookKind, str, Component, str, int], ...] = (
    ("action", ACTION_HEAD_RENDER, "gate", "on_cart_page_render", 10),
    ("action", ACTION_HEAD_RENDER, "gate", "on_checkout_page_render", 10),
    ("action", ACTION_APPLICATION_INIT, "gate", "on_application_init", 10),
    ("filter", FILTER_COUPONS_ENABLED, "gate", "filter_coupons_enabled", 10),
    ("filter", FILTER_CART_UPDATED, "gate", "filter_cart_updated", 10),
    ("action", ACTION_ORDER_PROCESSED, "calculator", "on_order_processed", 10),
)


def register_hooks(
    bus: HookBusPort,
    gate: CouponVisibilityGate,
    calculator: ReferralPricingCalculator,
) -> int:
    """Register every row of HOOK_TABLE on the bus.

    Returns:
        Number of callbacks registered.
    """
    components = {"gate": gate, "calculator": calculator}
    for kind, hook, component, handler, priority in HOOK_TABLE:
        callback = getattr(components[component], handler)
        if kind == "action":
            bus.add_action(hook, callback, priority)
        else:
            bus.add_filter(hook, callback, priority)
    return len(HOOK_TABLE)
