"""Tests for usage/ledger.py, usage/models.py and usage/store.py."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tunedup.core.constants import UsageWarning
from tunedup.core.exceptions import PersistenceError, QuotaExceededError
from tunedup.usage.ledger import UsageLedger
from tunedup.usage.models import TokenUsage, month_key, next_month_reset
from tunedup.usage.store import InMemoryUsageStore

USER_ID = "user-1"


class ExplodingStore(InMemoryUsageStore):
    async def get(self, user_id: str, month_key: str) -> TokenUsage | None:
        raise RuntimeError("connection reset")

    async def increment(
        self, user_id: str, month_key: str, delta: int, default_limit: int
    ) -> TokenUsage:
        raise RuntimeError("connection reset")


# ---------------------------------------------------------------------------
# Period helpers
# ---------------------------------------------------------------------------


def test_month_key_format() -> None:
    assert month_key(datetime(2026, 3, 9, tzinfo=timezone.utc)) == "2026-03"


def test_next_month_reset_mid_year() -> None:
    reset = next_month_reset(datetime(2026, 10, 19, 12, tzinfo=timezone.utc))
    assert reset == datetime(2026, 11, 1, tzinfo=timezone.utc)


def test_next_month_reset_rolls_year() -> None:
    reset = next_month_reset(datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc))
    assert reset == datetime(2027, 1, 1, tzinfo=timezone.utc)


def test_token_usage_blocked_and_percent() -> None:
    usage = TokenUsage(user_id="u", month_key="2026-10", used=75, limit=100)
    assert usage.blocked is False
    assert usage.percent_remaining == 25
    over = usage.model_copy(update={"used": 120})
    assert over.blocked is True
    assert over.percent_remaining == 0


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


async def test_first_access_creates_default_row(ledger: UsageLedger, current_month: str) -> None:
    usage = await ledger.get_or_create(USER_ID)
    assert usage.used == 0
    assert usage.limit == 100_000
    assert usage.month_key == current_month


async def test_check_blocked_false_for_new_user(ledger: UsageLedger) -> None:
    assert await ledger.check_blocked(USER_ID) is False


async def test_check_blocked_true_at_limit(
    ledger: UsageLedger, usage_store: InMemoryUsageStore, current_month: str
) -> None:
    usage_store.set_limit(USER_ID, current_month, 500)
    await ledger.track_tokens(USER_ID, 500)
    assert await ledger.check_blocked(USER_ID) is True
    with pytest.raises(QuotaExceededError) as exc_info:
        await ledger.ensure_not_blocked(USER_ID)
    assert exc_info.value.code == "quota_exceeded"
    assert exc_info.value.user_id == USER_ID


async def test_read_failure_is_persistence_error() -> None:
    ledger = UsageLedger(ExplodingStore())
    with pytest.raises(PersistenceError):
        await ledger.check_blocked(USER_ID)


async def test_new_month_is_a_fresh_row(usage_store: InMemoryUsageStore) -> None:
    october = datetime(2026, 10, 31, 23, tzinfo=timezone.utc)
    november = datetime(2026, 11, 1, 0, 30, tzinfo=timezone.utc)
    clock = {"now": october}
    ledger = UsageLedger(usage_store, default_limit=100, clock=lambda: clock["now"])

    await ledger.track_tokens(USER_ID, 100)
    assert await ledger.check_blocked(USER_ID) is True

    clock["now"] = november
    assert await ledger.check_blocked(USER_ID) is False


# ---------------------------------------------------------------------------
# Accounting
# ---------------------------------------------------------------------------


async def test_track_tokens_accumulates(ledger: UsageLedger) -> None:
    await ledger.track_tokens(USER_ID, 300)
    await ledger.track_tokens(USER_ID, 200)
    assert (await ledger.get_or_create(USER_ID)).used == 500


async def test_track_zero_tokens_is_allowed(ledger: UsageLedger) -> None:
    result = await ledger.track_tokens(USER_ID, 0)
    assert result is not None
    assert result.warning is None


async def test_negative_delta_rejected(ledger: UsageLedger) -> None:
    with pytest.raises(ValueError):
        await ledger.track_tokens(USER_ID, -1)


async def test_fifty_percent_warning_fires_once(
    usage_store: InMemoryUsageStore, current_month: str, ledger: UsageLedger
) -> None:
    usage_store.set_limit(USER_ID, current_month, 1000)

    first = await ledger.track_tokens(USER_ID, 600)
    second = await ledger.track_tokens(USER_ID, 100)

    assert first is not None and first.warning == UsageWarning.FIFTY_PERCENT
    assert second is not None and second.warning is None


async def test_ten_percent_warning_fires_once(
    usage_store: InMemoryUsageStore, current_month: str, ledger: UsageLedger
) -> None:
    usage_store.set_limit(USER_ID, current_month, 1000)

    await ledger.track_tokens(USER_ID, 600)
    low = await ledger.track_tokens(USER_ID, 350)
    lower = await ledger.track_tokens(USER_ID, 10)

    assert low is not None and low.warning == UsageWarning.TEN_PERCENT
    assert lower is not None and lower.warning is None


async def test_blocked_flag_returned(
    usage_store: InMemoryUsageStore, current_month: str, ledger: UsageLedger
) -> None:
    usage_store.set_limit(USER_ID, current_month, 100)
    result = await ledger.track_tokens(USER_ID, 150)
    assert result is not None
    assert result.blocked is True
    assert result.warning == UsageWarning.TEN_PERCENT


async def test_store_failure_is_swallowed() -> None:
    ledger = UsageLedger(ExplodingStore())
    assert await ledger.track_tokens(USER_ID, 10) is None


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


async def test_status_for_new_user(ledger: UsageLedger) -> None:
    status = await ledger.get_status(USER_ID)
    assert status.used == 0
    assert status.percent_remaining == 100
    assert status.warning is None
    assert status.blocked is False
    assert status.resets_at == datetime(2026, 11, 1, tzinfo=timezone.utc)


async def test_status_warning_levels(
    usage_store: InMemoryUsageStore, current_month: str, ledger: UsageLedger
) -> None:
    usage_store.set_limit(USER_ID, current_month, 100)
    await ledger.track_tokens(USER_ID, 55)
    assert (await ledger.get_status(USER_ID)).warning == UsageWarning.FIFTY_PERCENT

    await ledger.track_tokens(USER_ID, 40)
    status = await ledger.get_status(USER_ID)
    assert status.warning == UsageWarning.TEN_PERCENT
    assert status.percent_remaining == 5


async def test_status_wire_aliases(ledger: UsageLedger) -> None:
    wire = (await ledger.get_status(USER_ID)).model_dump(mode="json", by_alias=True)
    assert wire["percentRemaining"] == 100
    assert wire["resetsAt"].startswith("2026-11-01T00:00:00")
