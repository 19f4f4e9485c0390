from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tunedup.core.constants import ChatRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(_Model):
    id: str = Field(default_factory=_new_id)
    role: ChatRole
    content: str
    created_at: datetime = Field(default_factory=_utcnow)


class ChatThread(_Model):
    """All messages for one (user, build) pair. ``build_id=None`` is the garage chat."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    build_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    messages: list[ChatMessage] = Field(default_factory=list)


class ContextUsage(_Model):
    """Approximate prompt size against the chat context budget. Advisory only."""

    used: int
    limit: int
    percent: float
    warning: bool


class BuildStageSummary(_Model):
    name: str
    mods: list[str] = Field(default_factory=list)


class BuildContext(_Model):
    """The slice of a build that the mechanic chat is told about."""

    vehicle: str
    summary: str | None = None
    stages: list[BuildStageSummary] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)


class ChatReply(_Model):
    reply: str
    thread_id: str
    tokens_used: int
    context: ContextUsage


class ChatHistory(_Model):
    thread_id: str | None = None
    messages: list[ChatMessage] = Field(default_factory=list)
    context: ContextUsage
