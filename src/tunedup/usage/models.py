"""Usage data models: per-user monthly token counters and status views."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from tunedup.core.constants import UsageWarning


def month_key(now: datetime | None = None) -> str:
    """Period key for *now* (UTC), formatted ``YYYY-MM``."""
    now = now or datetime.now(timezone.utc)
    return f"{now.year}-{now.month:02d}"


def next_month_reset(now: datetime | None = None) -> datetime:
    """First instant of the month following *now* (UTC)."""
    now = now or datetime.now(timezone.utc)
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)


class TokenUsage(BaseModel):
    """Cumulative tokens one user has spent in one period."""

    user_id: str
    month_key: str
    used: int = Field(default=0, ge=0)
    limit: int = Field(ge=1)
    warned_50: bool = False
    warned_10: bool = False

    @property
    def blocked(self) -> bool:
        return self.used >= self.limit

    @property
    def percent_remaining(self) -> int:
        """Whole percent of the quota left, clamped at 0."""
        return max(0, round((self.limit - self.used) / self.limit * 100))


class TrackResult(BaseModel):
    """Outcome of recording tokens: a one-shot warning and the block flag."""

    warning: UsageWarning | None = None
    blocked: bool = False


class UsageStatus(BaseModel):
    used: int
    limit: int
    percent_remaining: int = Field(alias="percentRemaining")
    warning: UsageWarning | None = None
    blocked: bool
    resets_at: datetime = Field(alias="resetsAt")

    model_config = {"populate_by_name": True}
