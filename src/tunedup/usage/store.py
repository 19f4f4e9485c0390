from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

from tunedup.usage.models import TokenUsage


class UsageStore(ABC):
    """Abstract persistence for :class:`TokenUsage` rows.

    Subclass this to back the ledger with a database. Rows are keyed by
    ``(user_id, month_key)``; a new month key is a fresh row, which is how
    the periodic reset happens.
    """

    @abstractmethod
    async def get(self, user_id: str, month_key: str) -> TokenUsage | None:
        """Return the row, or ``None`` if the user has no usage this period."""

    @abstractmethod
    async def create(self, usage: TokenUsage) -> TokenUsage:
        """Insert *usage*; return the existing row instead if one already exists."""

    @abstractmethod
    async def increment(
        self, user_id: str, month_key: str, delta: int, default_limit: int
    ) -> TokenUsage:
        """Atomically add *delta*, creating the row with *default_limit* if absent."""

    @abstractmethod
    async def mark_warned(
        self, user_id: str, month_key: str, level: Literal["50", "10"]
    ) -> None:
        """Persist that the given remaining-quota warning was delivered."""


class InMemoryUsageStore(UsageStore):
    """Dict-backed store for tests and single-process deployments."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], TokenUsage] = {}

    async def get(self, user_id: str, month_key: str) -> TokenUsage | None:
        row = self._rows.get((user_id, month_key))
        return row.model_copy() if row is not None else None

    async def create(self, usage: TokenUsage) -> TokenUsage:
        key = (usage.user_id, usage.month_key)
        row = self._rows.setdefault(key, usage.model_copy())
        return row.model_copy()

    async def increment(
        self, user_id: str, month_key: str, delta: int, default_limit: int
    ) -> TokenUsage:
        key = (user_id, month_key)
        row = self._rows.get(key)
        if row is None:
            row = TokenUsage(user_id=user_id, month_key=month_key, limit=default_limit)
            self._rows[key] = row
        row.used += delta
        return row.model_copy()

    async def mark_warned(
        self, user_id: str, month_key: str, level: Literal["50", "10"]
    ) -> None:
        row = self._rows.get((user_id, month_key))
        if row is None:
            return
        if level == "50":
            row.warned_50 = True
        else:
            row.warned_10 = True

    def set_limit(self, user_id: str, month_key: str, limit: int) -> None:
        """Test helper: override the quota of an existing or new row."""
        row = self._rows.setdefault(
            (user_id, month_key),
            TokenUsage(user_id=user_id, month_key=month_key, limit=limit),
        )
        row.limit = limit
