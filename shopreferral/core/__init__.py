"""Core domain logic for the shopreferral hooks.

This package contains zero external dependencies and represents
the pure business logic of the application. All host integrations
(stores, hook bus, activity log) are handled by the adapters package.
"""

from .models import (
    ActivityLogEntry,
    CartLineItem,
    PageKind,
    ProductId,
    ReferralPricingInfo,
    ReferralPricingRecord,
    ReferralState,
    RequestContext,
)

__all__ = [
    "ActivityLogEntry",
    "CartLineItem",
    "PageKind",
    "ProductId",
    "ReferralPricingInfo",
    "ReferralPricingRecord",
    "ReferralState",
    "RequestContext",
]
