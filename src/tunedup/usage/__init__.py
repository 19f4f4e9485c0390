from tunedup.usage.ledger import UsageLedger
from tunedup.usage.models import (
    TokenUsage,
    TrackResult,
    UsageStatus,
    month_key,
    next_month_reset,
)
from tunedup.usage.store import InMemoryUsageStore, UsageStore

__all__ = [
    "InMemoryUsageStore",
    "TokenUsage",
    "TrackResult",
    "UsageLedger",
    "UsageStatus",
    "UsageStore",
    "month_key",
    "next_month_reset",
]
