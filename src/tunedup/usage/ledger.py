"""Per-user token ledger: quota gate before generator calls, accounting after."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from tunedup.core.constants import UsageWarning
from tunedup.core.exceptions import PersistenceError, QuotaExceededError
from tunedup.usage.models import (
    TokenUsage,
    TrackResult,
    UsageStatus,
    month_key,
    next_month_reset,
)
from tunedup.usage.store import UsageStore
from tunedup.utils.logging import get_logger

logger = get_logger(__name__)


class UsageLedger:
    """Explicit handle on per-user token usage.

    Every component that calls the generator reads :meth:`check_blocked`
    first and records the cost with :meth:`track_tokens` afterwards.
    Reads propagate store failures as :class:`PersistenceError`; writes
    are best effort and never fail the caller.

    Args:
        store: Backing :class:`UsageStore`.
        default_limit: Quota given to a user on first access in a period.
        clock: Returns "now"; injectable for tests around month boundaries.
    """

    def __init__(
        self,
        store: UsageStore,
        *,
        default_limit: int = 100_000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._default_limit = default_limit
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return f"UsageLedger(default_limit={self._default_limit})"

    async def get_or_create(self, user_id: str) -> TokenUsage:
        """Return this period's row, creating a default-quota row on first access."""
        key = month_key(self._clock())
        try:
            usage = await self._store.get(user_id, key)
            if usage is None:
                usage = await self._store.create(
                    TokenUsage(user_id=user_id, month_key=key, limit=self._default_limit)
                )
        except PersistenceError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError(
                f"Could not read usage for user {user_id!r}: {exc}",
                details={"user_id": user_id},
            ) from exc
        return usage

    async def check_blocked(self, user_id: str) -> bool:
        """``True`` when the user has spent their whole quota for this period."""
        usage = await self.get_or_create(user_id)
        return usage.blocked

    async def ensure_not_blocked(self, user_id: str) -> None:
        """Raise :class:`QuotaExceededError` when :meth:`check_blocked` is true."""
        if await self.check_blocked(user_id):
            logger.info("usage_blocked", user_id=user_id)
            raise QuotaExceededError(user_id)

    async def track_tokens(self, user_id: str, delta: int) -> TrackResult | None:
        """Add *delta* tokens to the user's running total.

        The 50%-remaining and 10%-remaining warnings are each returned once
        per period. A store failure is logged and ``None`` is returned; the
        generation that incurred the cost has already succeeded.

        Raises:
            ValueError: If *delta* is negative.
        """
        if delta < 0:
            raise ValueError(f"token delta must be non-negative, got {delta}")

        key = month_key(self._clock())
        try:
            usage = await self._store.increment(user_id, key, delta, self._default_limit)
            warning = await self._deliver_warning(usage)
        except Exception:  # noqa: BLE001
            logger.exception("usage_tracking_failed", user_id=user_id, tokens=delta)
            return None

        logger.debug("usage_tracked", user_id=user_id, tokens=delta, used=usage.used)
        return TrackResult(warning=warning, blocked=usage.blocked)

    async def _deliver_warning(self, usage: TokenUsage) -> UsageWarning | None:
        percent_remaining = 100 - (usage.used / usage.limit) * 100
        warning: UsageWarning | None = None

        if 10 < percent_remaining <= 50 and not usage.warned_50:
            await self._store.mark_warned(usage.user_id, usage.month_key, "50")
            warning = UsageWarning.FIFTY_PERCENT

        if percent_remaining <= 10 and not usage.warned_10:
            await self._store.mark_warned(usage.user_id, usage.month_key, "10")
            warning = UsageWarning.TEN_PERCENT

        return warning

    async def get_status(self, user_id: str) -> UsageStatus:
        """Snapshot of the user's quota for display."""
        now = self._clock()
        usage = await self.get_or_create(user_id)
        remaining = usage.percent_remaining

        warning: UsageWarning | None = None
        if remaining <= 10:
            warning = UsageWarning.TEN_PERCENT
        elif remaining <= 50:
            warning = UsageWarning.FIFTY_PERCENT

        return UsageStatus(
            used=usage.used,
            limit=usage.limit,
            percent_remaining=remaining,
            warning=warning,
            blocked=usage.blocked,
            resets_at=next_month_reset(now),
        )
