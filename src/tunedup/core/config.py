from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, Field


class ChatConfig(BaseModel):
    max_history: int = Field(default=10, ge=1, le=200)
    """How many of the most recent messages are sent to the model."""
    context_limit: int = Field(default=8000, ge=1)
    """Token budget used for the advisory context-pressure signal."""
    chars_per_token: float = Field(default=4.0, gt=0)
    """Divisor for the length-based token estimate. Approximate by nature."""
    warning_ratio: float = Field(default=0.5, gt=0, le=1)
    max_message_chars: int = Field(default=500, ge=1)
    max_response_words: int = Field(default=300, ge=1)
    timeout: float = Field(default=60.0, gt=0, le=3600)
    """Seconds one chat turn may wait on the generator."""


class PlannerConfig(BaseModel):
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    pro_model: str = "gemini-2.5-pro-preview-05-06"
    flash_model: str = "gemini-2.5-flash-preview-05-20"
    generator_timeout: float = Field(default=120.0, gt=0, le=3600)
    default_token_limit: int = Field(default=100_000, ge=1)
    max_builds: int = Field(default=3, ge=1, le=100)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    chat: ChatConfig = Field(default_factory=ChatConfig)

    @classmethod
    def from_env(cls) -> PlannerConfig:
        """Create a :class:`PlannerConfig` from ``TUNEDUP_*`` environment variables.

        Reads the following env vars (all optional):

        * ``TUNEDUP_GEMINI_API_KEY`` → ``gemini_api_key``
        * ``TUNEDUP_GEMINI_BASE_URL`` → ``gemini_base_url``
        * ``TUNEDUP_PRO_MODEL`` / ``TUNEDUP_FLASH_MODEL`` → model names
        * ``TUNEDUP_GENERATOR_TIMEOUT`` → ``generator_timeout`` (seconds)
        * ``TUNEDUP_DEFAULT_TOKEN_LIMIT`` → ``default_token_limit``
        * ``TUNEDUP_MAX_BUILDS`` → ``max_builds``
        * ``TUNEDUP_LOG_LEVEL`` → ``log_level``
        * ``TUNEDUP_CHAT_TIMEOUT`` → ``chat.timeout`` (seconds)

        Any variable that is not set or is empty is left at its default value.
        """
        kwargs: dict[str, Any] = {}

        api_key = os.environ.get("TUNEDUP_GEMINI_API_KEY")
        if api_key:
            kwargs["gemini_api_key"] = api_key

        base_url = os.environ.get("TUNEDUP_GEMINI_BASE_URL")
        if base_url:
            kwargs["gemini_base_url"] = base_url

        pro_model = os.environ.get("TUNEDUP_PRO_MODEL")
        if pro_model:
            kwargs["pro_model"] = pro_model

        flash_model = os.environ.get("TUNEDUP_FLASH_MODEL")
        if flash_model:
            kwargs["flash_model"] = flash_model

        timeout_str = os.environ.get("TUNEDUP_GENERATOR_TIMEOUT")
        if timeout_str:
            kwargs["generator_timeout"] = float(timeout_str)

        limit_str = os.environ.get("TUNEDUP_DEFAULT_TOKEN_LIMIT")
        if limit_str:
            kwargs["default_token_limit"] = int(limit_str)

        max_builds = os.environ.get("TUNEDUP_MAX_BUILDS")
        if max_builds:
            kwargs["max_builds"] = int(max_builds)

        log_level = os.environ.get("TUNEDUP_LOG_LEVEL")
        if log_level:
            kwargs["log_level"] = log_level

        chat_timeout = os.environ.get("TUNEDUP_CHAT_TIMEOUT")
        if chat_timeout:
            kwargs["chat"] = ChatConfig(timeout=float(chat_timeout))

        return cls(**kwargs)
