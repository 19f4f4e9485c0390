from __future__ import annotations

from enum import StrEnum


class PipelineStep(StrEnum):
    """The seven build-plan stages, in execution order."""

    NORMALIZE = "normalize"
    STRATEGY = "strategy"
    SYNERGY = "synergy"
    EXECUTION = "execution"
    PERFORMANCE = "performance"
    SOURCING = "sourcing"
    TONE = "tone"


STEP_ORDER: tuple[PipelineStep, ...] = tuple(PipelineStep)


class StepStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ChatRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class UsageWarning(StrEnum):
    FIFTY_PERCENT = "50_percent"
    TEN_PERCENT = "10_percent"


class ErrorCode(StrEnum):
    QUOTA_EXCEEDED = "quota_exceeded"
    GENERATION_FAILED = "generation_failed"
    PERSISTENCE_FAILED = "persistence_failed"


class ModStatus(StrEnum):
    """Where the owner is with one planned mod."""

    PENDING = "pending"
    PURCHASED = "purchased"
    INSTALLED = "installed"
