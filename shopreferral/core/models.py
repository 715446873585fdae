"""Domain models for the shopreferral hooks.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from .ports import CartPort

ProductId: TypeAlias = int

# Referral discount window
DISCOUNT_PERIOD_MONTHS = 12
MARGIN_DAYS = 2

# Order metadata keys shared with the host platform
META_DISCOUNT_END = "_parrainage_date_fin_remise"
META_DISCOUNT_START = "_parrainage_date_debut"
META_MARGIN_DAYS = "_parrainage_jours_marge"
META_REFERRAL_CODE = "_billing_parrain_code"

# Activity log channels
CHANNEL_COUPON_MANAGER = "coupon-manager"
CHANNEL_SUBSCRIPTION_PRICING = "subscription-pricing"

# Host hook names
ACTION_HEAD_RENDER = "head_render"
ACTION_APPLICATION_INIT = "application_init"
ACTION_ORDER_PROCESSED = "order_processed"
ACTION_CHECKOUT_BEFORE_FORM = "checkout_before_form"
FILTER_COUPONS_ENABLED = "coupons_enabled"
FILTER_CART_UPDATED = "cart_updated"

# Name of the host's default "have a coupon?" toggle on checkout
CHECKOUT_COUPON_FORM_CALLBACK = "checkout_coupon_form"


@dataclass(frozen=True)
class CartLineItem:
    """A single line of the active cart."""

    product_id: ProductId
    variation_id: ProductId | None = None
    quantity: int = 1

    def __post_init__(self) -> None:
        """Validate line item invariants on creation."""
        if self.product_id <= 0:
            raise ValueError(f"product_id must be positive, got {self.product_id}")
        if self.quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {self.quantity}")

    def product_ids(self) -> tuple[ProductId, ...]:
        """Ids this line contributes to the cart snapshot."""
        if self.variation_id is not None and self.variation_id > 0:
            return (self.product_id, self.variation_id)
        return (self.product_id,)


class PageKind(Enum):
    """Which storefront view the current request renders."""

    CART = "cart"
    CHECKOUT = "checkout"
    OTHER = "other"


@dataclass
class RequestContext:
    """Request-scoped state handed to every hook handler.

    Replaces the host's ambient globals (current page, admin flag, session
    cart) so handlers can run without a simulated host environment.
    `cart` is None when the request has no active cart.
    """

    page: PageKind = PageKind.OTHER
    is_admin: bool = False
    cart: CartPort | None = None
    head_output: list[str] = field(default_factory=list)

    def is_cart_page(self) -> bool:
        return self.page == PageKind.CART

    def is_checkout_page(self) -> bool:
        return self.page == PageKind.CHECKOUT

    def emit(self, markup: str) -> None:
        """Append markup to the page head."""
        self.head_output.append(markup)


@dataclass(frozen=True)
class ReferralPricingRecord:
    """Persisted discount window for a referred order.

    Written once per order; never recomputed once `discount_end_date`
    exists in the store.
    """

    order_id: int
    discount_start_date: date
    discount_end_date: date
    margin_days: int = MARGIN_DAYS

    def __post_init__(self) -> None:
        """Validate record invariants on creation."""
        if self.discount_end_date <= self.discount_start_date:
            raise ValueError(
                f"discount_end_date ({self.discount_end_date}) must be after "
                f"discount_start_date ({self.discount_start_date})"
            )
        if self.margin_days < 0:
            raise ValueError(f"margin_days must be non-negative, got {self.margin_days}")


@dataclass(frozen=True)
class ReferralPricingInfo:
    """Display view of a stored referral pricing record."""

    discount_end_date: str
    discount_start_date: str
    discount_end_date_formatted: str
    discount_start_date_formatted: str
    margin_days: int
    discount_period_months: int = DISCOUNT_PERIOD_MONTHS

    def as_dict(self) -> dict[str, Any]:
        """Render with the keys consumed by the host templates."""
        return {
            "date_fin_remise_parrainage": self.discount_end_date,
            "date_debut_parrainage": self.discount_start_date,
            "date_fin_remise_parrainage_formatted": self.discount_end_date_formatted,
            "date_debut_parrainage_formatted": self.discount_start_date_formatted,
            "jours_marge_parrainage": self.margin_days,
            "periode_remise_mois": self.discount_period_months,
        }


class ReferralState(Enum):
    """Lifecycle of an order with respect to referral pricing.

    - NOT_REFERRED: no referral code; terminal, no record is ever created
    - REFERRED_PENDING: referral code present, window not computed yet
    - REFERRED_COMPUTED: window persisted; terminal
    """

    NOT_REFERRED = "not_referred"
    REFERRED_PENDING = "referred_pending"
    REFERRED_COMPUTED = "referred_computed"


@dataclass(frozen=True)
class ActivityLogEntry:
    """One row of the channelled activity log."""

    logged_at: datetime
    level: str
    channel: str
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Convert context dict to read-only proxy."""
        if isinstance(self.context, dict):
            object.__setattr__(self, "context", MappingProxyType(self.context))
