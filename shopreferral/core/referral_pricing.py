"""Referral pricing: a write-once discount window per referred order.

When an order carrying a referral code is processed, the discount window
(today until today + 12 months + 2 days) is computed and stored as order
metadata. The order-processed event is delivered at least once, so the
end-date key doubles as the write-once claim: whoever inserts it first
owns the record, and every later delivery is a no-op. The claim and the
other fields are written in one transaction.
"""

import logging
import re
from collections.abc import Callable
from datetime import date

from .dates import compute_discount_window, format_display_date, parse_stored_date
from .models import (
    CHANNEL_SUBSCRIPTION_PRICING,
    DISCOUNT_PERIOD_MONTHS,
    MARGIN_DAYS,
    META_DISCOUNT_END,
    META_DISCOUNT_START,
    META_MARGIN_DAYS,
    META_REFERRAL_CODE,
    ReferralPricingInfo,
    ReferralPricingRecord,
    ReferralState,
)
from .ports import ActivityLogPort, OrderMetaStorePort

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _coerce_int(value: str | None) -> int:
    """Leading integer of a stored value ("2 days" -> 2, "2.5" -> 2, "x" -> 0)."""
    if value is None:
        return 0
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else 0


class ReferralPricingRepository:
    """Typed view of the referral pricing fields of the order meta store."""

    def __init__(self, meta_store: OrderMetaStorePort):
        self.meta_store = meta_store

    async def has_record(self, order_id: int) -> bool:
        return bool(await self.meta_store.get_meta(order_id, META_DISCOUNT_END))

    async def get_referral_code(self, order_id: int) -> str | None:
        code = await self.meta_store.get_meta(order_id, META_REFERRAL_CODE)
        if code is None or not code.strip():
            return None
        return code

    async def find(self, order_id: int) -> ReferralPricingRecord | None:
        """Load the stored record, or None when no end date is stored.

        Raises:
            ValueError: If the start date is missing or a stored date is malformed.
        """
        end_raw = await self.meta_store.get_meta(order_id, META_DISCOUNT_END)
        if not end_raw:
            return None
        start_raw = await self.meta_store.get_meta(order_id, META_DISCOUNT_START)
        if not start_raw:
            raise ValueError(f"Order {order_id} has a discount end date but no start date")
        margin_raw = await self.meta_store.get_meta(order_id, META_MARGIN_DAYS)
        return ReferralPricingRecord(
            order_id=order_id,
            discount_start_date=parse_stored_date(start_raw),
            discount_end_date=parse_stored_date(end_raw),
            margin_days=_coerce_int(margin_raw),
        )

    async def save(self, record: ReferralPricingRecord) -> bool:
        """Persist the record unless one already exists.

        Returns:
            True if this call wrote the record.
        """
        return await self.meta_store.add_meta_many_if_absent(
            record.order_id,
            META_DISCOUNT_END,
            {
                META_DISCOUNT_END: record.discount_end_date.isoformat(),
                META_DISCOUNT_START: record.discount_start_date.isoformat(),
                META_MARGIN_DAYS: str(record.margin_days),
            },
        )

    async def state(self, order_id: int) -> ReferralState:
        if await self.has_record(order_id):
            return ReferralState.REFERRED_COMPUTED
        if await self.get_referral_code(order_id) is None:
            return ReferralState.NOT_REFERRED
        return ReferralState.REFERRED_PENDING


class ReferralPricingCalculator:
    """Computes and exposes the referral discount window of an order."""

    def __init__(
        self,
        repository: ReferralPricingRepository,
        activity_log: ActivityLogPort,
        today: Callable[[], date] = date.today,
    ):
        """Initialize the calculator.

        Args:
            repository: ReferralPricingRepository over the order meta store.
            activity_log: ActivityLogPort receiving computation entries.
            today: Returns the host's current local date.
        """
        self.repository = repository
        self.activity_log = activity_log
        self.today = today

    async def on_order_processed(self, order_id: int | None) -> ReferralPricingRecord | None:
        """Compute and store the discount window for a referred order.

        Returns:
            The record written by this call, or None when nothing was written.
        """
        if not order_id:
            return None

        if await self.repository.has_record(order_id):
            return None

        if await self.repository.get_referral_code(order_id) is None:
            return None

        start, end = compute_discount_window(self.today())
        record = ReferralPricingRecord(
            order_id=order_id,
            discount_start_date=start,
            discount_end_date=end,
            margin_days=MARGIN_DAYS,
        )

        if not await self.repository.save(record):
            logger.debug(
                f"Order {order_id} pricing already claimed by another delivery",
                extra={"order_id": order_id},
            )
            return None

        try:
            await self.activity_log.info(
                f"Referral pricing dates computed for order #{order_id}",
                {
                    "order_id": order_id,
                    "date_debut": start.isoformat(),
                    "date_fin": end.isoformat(),
                },
                CHANNEL_SUBSCRIPTION_PRICING,
            )
        except Exception:
            logger.warning(
                "Activity log write failed",
                extra={"channel": CHANNEL_SUBSCRIPTION_PRICING, "order_id": order_id},
                exc_info=True,
            )

        return record

    async def get_referral_pricing_info(self, order_id: int) -> ReferralPricingInfo | None:
        """Stored window in raw and DD-MM-YYYY form, or None if not computed.

        Raises:
            ValueError: If the stored record is incomplete or malformed.
        """
        record = await self.repository.find(order_id)
        if record is None:
            return None

        return ReferralPricingInfo(
            discount_end_date=record.discount_end_date.isoformat(),
            discount_start_date=record.discount_start_date.isoformat(),
            discount_end_date_formatted=format_display_date(record.discount_end_date),
            discount_start_date_formatted=format_display_date(record.discount_start_date),
            margin_days=record.margin_days,
            discount_period_months=DISCOUNT_PERIOD_MONTHS,
        )

    async def referral_state(self, order_id: int) -> ReferralState:
        return await self.repository.state(order_id)
