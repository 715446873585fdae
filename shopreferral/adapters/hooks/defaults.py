"""Callbacks the host platform registers on its own.

Only the ones the core interacts with are modelled here.
"""

from shopreferral.core.models import ACTION_CHECKOUT_BEFORE_FORM, RequestContext
from shopreferral.core.ports import HookBusPort

CHECKOUT_COUPON_TOGGLE = (
    '<div class="woocommerce-form-coupon-toggle">'
    'Have a coupon? <a href="#" class="showcoupon">Click here to enter your code</a>'
    "</div>"
)


async def checkout_coupon_form(ctx: RequestContext) -> None:
    """Render the "have a coupon?" toggle above the checkout form."""
    ctx.emit(CHECKOUT_COUPON_TOGGLE)


def register_host_defaults(bus: HookBusPort) -> None:
    bus.add_action(ACTION_CHECKOUT_BEFORE_FORM, checkout_coupon_form, 10)
