"""Unit tests for ReferralPricingRepository and ReferralPricingCalculator.

Tests verify the write-once discount window, the no-op guards, the
display view and the per-order referral state machine.
"""

import asyncio
from datetime import date

import pytest

from shopreferral.core.models import (
    CHANNEL_SUBSCRIPTION_PRICING,
    META_DISCOUNT_END,
    META_DISCOUNT_START,
    META_MARGIN_DAYS,
    META_REFERRAL_CODE,
    ReferralPricingRecord,
    ReferralState,
)
from shopreferral.core.referral_pricing import (
    ReferralPricingCalculator,
    ReferralPricingRepository,
)
from shopreferral.tests.fakes import FakeActivityLog, FakeOrderMetaStore

ORDER_ID = 1001


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def meta_store() -> FakeOrderMetaStore:
    return FakeOrderMetaStore()


@pytest.fixture
def activity_log() -> FakeActivityLog:
    return FakeActivityLog()


@pytest.fixture
def repository(meta_store: FakeOrderMetaStore) -> ReferralPricingRepository:
    return ReferralPricingRepository(meta_store)


@pytest.fixture
def calculator(
    repository: ReferralPricingRepository, activity_log: FakeActivityLog
) -> ReferralPricingCalculator:
    return ReferralPricingCalculator(
        repository=repository,
        activity_log=activity_log,
        today=lambda: date(2024, 1, 1),
    )


@pytest.fixture
def referred_order(meta_store: FakeOrderMetaStore) -> int:
    """An order carrying a referral code."""
    meta_store.set(ORDER_ID, META_REFERRAL_CODE, "PARRAIN42")
    return ORDER_ID


# ============================================================================
# on_order_processed
# ============================================================================


class TestOnOrderProcessed:
    """Tests for the order-processed hook."""

    @pytest.mark.asyncio
    async def test_computes_and_persists_window(
        self,
        calculator: ReferralPricingCalculator,
        meta_store: FakeOrderMetaStore,
        referred_order: int,
    ) -> None:
        record = await calculator.on_order_processed(referred_order)

        assert record == ReferralPricingRecord(
            order_id=referred_order,
            discount_start_date=date(2024, 1, 1),
            discount_end_date=date(2025, 1, 3),
            margin_days=2,
        )
        stored = meta_store.for_order(referred_order)
        assert stored[META_DISCOUNT_END] == "2025-01-03"
        assert stored[META_DISCOUNT_START] == "2024-01-01"
        assert stored[META_MARGIN_DAYS] == "2"

    @pytest.mark.asyncio
    async def test_logs_one_entry(
        self,
        calculator: ReferralPricingCalculator,
        activity_log: FakeActivityLog,
        referred_order: int,
    ) -> None:
        await calculator.on_order_processed(referred_order)

        assert len(activity_log.entries) == 1
        entry = activity_log.entries[0]
        assert entry.level == "INFO"
        assert entry.channel == CHANNEL_SUBSCRIPTION_PRICING
        assert f"#{referred_order}" in entry.message
        assert dict(entry.context) == {
            "order_id": referred_order,
            "date_debut": "2024-01-01",
            "date_fin": "2025-01-03",
        }

    @pytest.mark.asyncio
    async def test_second_call_is_noop(
        self,
        repository: ReferralPricingRepository,
        activity_log: FakeActivityLog,
        meta_store: FakeOrderMetaStore,
        referred_order: int,
    ) -> None:
        """A redelivered event on a later day leaves the stored window unchanged."""
        days = iter([date(2024, 1, 1), date(2024, 6, 15)])
        calculator = ReferralPricingCalculator(repository, activity_log, today=lambda: next(days))

        await calculator.on_order_processed(referred_order)
        after_first = meta_store.for_order(referred_order)
        writes_after_first = len(meta_store.writes)

        assert await calculator.on_order_processed(referred_order) is None

        assert meta_store.for_order(referred_order) == after_first
        assert len(meta_store.writes) == writes_after_first
        assert len(activity_log.entries) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order_id", [None, 0])
    async def test_empty_order_id_writes_nothing(
        self,
        calculator: ReferralPricingCalculator,
        meta_store: FakeOrderMetaStore,
        order_id: int | None,
    ) -> None:
        assert await calculator.on_order_processed(order_id) is None
        assert meta_store.writes == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [None, "", "   "])
    async def test_missing_referral_code_writes_nothing(
        self,
        calculator: ReferralPricingCalculator,
        meta_store: FakeOrderMetaStore,
        activity_log: FakeActivityLog,
        code: str | None,
    ) -> None:
        if code is not None:
            meta_store.set(ORDER_ID, META_REFERRAL_CODE, code)

        assert await calculator.on_order_processed(ORDER_ID) is None
        assert meta_store.writes == []
        assert activity_log.entries == []

    @pytest.mark.asyncio
    async def test_existing_end_date_is_never_recomputed(
        self,
        calculator: ReferralPricingCalculator,
        meta_store: FakeOrderMetaStore,
        referred_order: int,
    ) -> None:
        meta_store.set(referred_order, META_DISCOUNT_END, "2023-05-05")

        assert await calculator.on_order_processed(referred_order) is None
        assert meta_store.for_order(referred_order)[META_DISCOUNT_END] == "2023-05-05"
        assert meta_store.writes == []

    @pytest.mark.asyncio
    async def test_concurrent_deliveries_write_once(
        self,
        calculator: ReferralPricingCalculator,
        meta_store: FakeOrderMetaStore,
        activity_log: FakeActivityLog,
        referred_order: int,
    ) -> None:
        """Two interleaved deliveries both pass the read check; only one writes."""
        meta_store.yield_on_read = True

        results = await asyncio.gather(
            calculator.on_order_processed(referred_order),
            calculator.on_order_processed(referred_order),
        )

        assert sum(result is not None for result in results) == 1
        assert len(meta_store.rejected_inserts) == 1
        end_writes = [w for w in meta_store.writes if w[1] == META_DISCOUNT_END]
        assert len(end_writes) == 1
        assert len(activity_log.entries) == 1

    @pytest.mark.asyncio
    async def test_failed_write_leaves_no_partial_record(
        self,
        calculator: ReferralPricingCalculator,
        meta_store: FakeOrderMetaStore,
        activity_log: FakeActivityLog,
        referred_order: int,
    ) -> None:
        """A write failure after the claim stores nothing, so a redelivery completes."""
        meta_store.fail_on_keys = {META_DISCOUNT_START}

        with pytest.raises(RuntimeError):
            await calculator.on_order_processed(referred_order)

        assert meta_store.for_order(referred_order) == {META_REFERRAL_CODE: "PARRAIN42"}
        assert await calculator.get_referral_pricing_info(referred_order) is None
        assert activity_log.entries == []

        meta_store.fail_on_keys = set()
        record = await calculator.on_order_processed(referred_order)

        assert record is not None
        info = await calculator.get_referral_pricing_info(referred_order)
        assert info is not None
        assert info.discount_start_date == "2024-01-01"
        assert info.margin_days == 2

    @pytest.mark.asyncio
    async def test_log_failure_keeps_record(
        self,
        calculator: ReferralPricingCalculator,
        meta_store: FakeOrderMetaStore,
        activity_log: FakeActivityLog,
        referred_order: int,
    ) -> None:
        activity_log.should_fail = True

        record = await calculator.on_order_processed(referred_order)

        assert record is not None
        assert meta_store.for_order(referred_order)[META_DISCOUNT_END] == "2025-01-03"

    @pytest.mark.asyncio
    async def test_month_end_start_date(
        self,
        repository: ReferralPricingRepository,
        activity_log: FakeActivityLog,
        referred_order: int,
    ) -> None:
        calculator = ReferralPricingCalculator(
            repository, activity_log, today=lambda: date(2024, 1, 31)
        )
        record = await calculator.on_order_processed(referred_order)
        assert record is not None
        assert record.discount_end_date == date(2025, 2, 2)


# ============================================================================
# get_referral_pricing_info
# ============================================================================


class TestGetReferralPricingInfo:
    """Tests for the display view of a stored window."""

    @pytest.mark.asyncio
    async def test_none_without_end_date(
        self, calculator: ReferralPricingCalculator, meta_store: FakeOrderMetaStore
    ) -> None:
        meta_store.set(ORDER_ID, META_DISCOUNT_START, "2024-01-01")
        assert await calculator.get_referral_pricing_info(ORDER_ID) is None

    @pytest.mark.asyncio
    async def test_formats_stored_dates(
        self, calculator: ReferralPricingCalculator, referred_order: int
    ) -> None:
        await calculator.on_order_processed(referred_order)

        info = await calculator.get_referral_pricing_info(referred_order)

        assert info is not None
        assert info.discount_start_date == "2024-01-01"
        assert info.discount_end_date == "2025-01-03"
        assert info.discount_start_date_formatted == "01-01-2024"
        assert info.discount_end_date_formatted == "03-01-2025"
        assert info.margin_days == 2
        assert info.discount_period_months == 12

    @pytest.mark.asyncio
    async def test_as_dict_uses_host_keys(
        self, calculator: ReferralPricingCalculator, referred_order: int
    ) -> None:
        await calculator.on_order_processed(referred_order)
        info = await calculator.get_referral_pricing_info(referred_order)

        assert info is not None
        assert info.as_dict() == {
            "date_fin_remise_parrainage": "2025-01-03",
            "date_debut_parrainage": "2024-01-01",
            "date_fin_remise_parrainage_formatted": "03-01-2025",
            "date_debut_parrainage_formatted": "01-01-2024",
            "jours_marge_parrainage": 2,
            "periode_remise_mois": 12,
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("stored", "expected"),
        [("2", 2), (" 3", 3), ("2 days", 2), ("2.5", 2), ("not-a-number", 0), ("", 0)],
    )
    async def test_margin_days_coerced_to_int(
        self,
        calculator: ReferralPricingCalculator,
        meta_store: FakeOrderMetaStore,
        stored: str,
        expected: int,
    ) -> None:
        """Margin days read as their leading integer, 0 when there is none."""
        meta_store.set(ORDER_ID, META_DISCOUNT_END, "2025-01-03")
        meta_store.set(ORDER_ID, META_DISCOUNT_START, "2024-01-01")
        meta_store.set(ORDER_ID, META_MARGIN_DAYS, stored)

        info = await calculator.get_referral_pricing_info(ORDER_ID)

        assert info is not None
        assert info.margin_days == expected
        assert info.discount_period_months == 12

    @pytest.mark.asyncio
    async def test_incomplete_record_raises(
        self, calculator: ReferralPricingCalculator, meta_store: FakeOrderMetaStore
    ) -> None:
        meta_store.set(ORDER_ID, META_DISCOUNT_END, "2025-01-03")

        with pytest.raises(ValueError, match="no start date"):
            await calculator.get_referral_pricing_info(ORDER_ID)

    @pytest.mark.asyncio
    async def test_reads_through_repository(
        self,
        calculator: ReferralPricingCalculator,
        repository: ReferralPricingRepository,
        referred_order: int,
    ) -> None:
        """The display view matches the typed record."""
        await calculator.on_order_processed(referred_order)

        record = await repository.find(referred_order)
        info = await calculator.get_referral_pricing_info(referred_order)

        assert record is not None and info is not None
        assert info.discount_start_date == record.discount_start_date.isoformat()
        assert info.discount_end_date == record.discount_end_date.isoformat()
        assert info.margin_days == record.margin_days


# ============================================================================
# Repository and state machine
# ============================================================================


class TestReferralPricingRepository:
    """Tests for the typed repository over order metadata."""

    @pytest.mark.asyncio
    async def test_find_round_trips_saved_record(
        self, repository: ReferralPricingRepository
    ) -> None:
        record = ReferralPricingRecord(
            order_id=ORDER_ID,
            discount_start_date=date(2024, 3, 10),
            discount_end_date=date(2025, 3, 12),
        )
        assert await repository.save(record) is True
        assert await repository.find(ORDER_ID) == record

    @pytest.mark.asyncio
    async def test_save_is_write_once(self, repository: ReferralPricingRepository) -> None:
        first = ReferralPricingRecord(ORDER_ID, date(2024, 1, 1), date(2025, 1, 3))
        second = ReferralPricingRecord(ORDER_ID, date(2024, 2, 1), date(2025, 2, 3))

        assert await repository.save(first) is True
        assert await repository.save(second) is False
        assert await repository.find(ORDER_ID) == first

    @pytest.mark.asyncio
    async def test_find_missing_returns_none(self, repository: ReferralPricingRepository) -> None:
        assert await repository.find(ORDER_ID) is None

    @pytest.mark.asyncio
    async def test_state_transitions(
        self,
        calculator: ReferralPricingCalculator,
        meta_store: FakeOrderMetaStore,
    ) -> None:
        assert await calculator.referral_state(ORDER_ID) == ReferralState.NOT_REFERRED

        meta_store.set(ORDER_ID, META_REFERRAL_CODE, "PARRAIN42")
        assert await calculator.referral_state(ORDER_ID) == ReferralState.REFERRED_PENDING

        await calculator.on_order_processed(ORDER_ID)
        assert await calculator.referral_state(ORDER_ID) == ReferralState.REFERRED_COMPUTED

        await calculator.on_order_processed(ORDER_ID)
        assert await calculator.referral_state(ORDER_ID) == ReferralState.REFERRED_COMPUTED


class TestReferralPricingRecord:
    def test_end_must_follow_start(self) -> None:
        with pytest.raises(ValueError, match="must be after"):
            ReferralPricingRecord(ORDER_ID, date(2025, 1, 1), date(2024, 1, 1))

    def test_margin_days_non_negative(self) -> None:
        with pytest.raises(ValueError, match="margin_days"):
            ReferralPricingRecord(ORDER_ID, date(2024, 1, 1), date(2025, 1, 3), margin_days=-1)
