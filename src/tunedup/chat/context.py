"""Prompt assembly and context-budget arithmetic for the mechanic chat.

Everything here is a pure function of its arguments, so the same build and
history always produce the same system prompt and the same usage figures.
"""

from __future__ import annotations

from typing import Sequence

from tunedup.builds.models import Build
from tunedup.chat.models import BuildContext, BuildStageSummary, ChatMessage, ContextUsage
from tunedup.core.constants import ChatRole
from tunedup.generator.base import ChatTurn
from tunedup.output.structured import estimate_tokens

_PERSONALITY = """YOUR PERSONALITY:
- Friendly shop mechanic with wicked humor
- Accurate and safe advice, delivered with personality
- Keep responses CONCISE - under {max_words} words
- Be helpful but don't over-explain
- Use casual language but stay professional
- If asked about pricing, give rough ranges and emphasize "it depends\""""

_RULES = """RULES:
- NEVER recommend unsafe modifications without warnings
- NEVER suggest skipping safety equipment
- Keep responses SHORT and punchy - no essays"""


def build_context_from_build(build: Build | None) -> BuildContext | None:
    """Summarize *build* for the chat prompt.

    Returns ``None`` when there is no build or it has no staged plan yet.
    """
    if build is None or build.synergy is None:
        return None
    vehicle = (
        build.normalize.vehicle_profile.label
        if build.normalize is not None
        else build.request.vehicle.label
    )
    return BuildContext(
        vehicle=vehicle,
        summary=build.tone.summary if build.tone is not None else None,
        stages=[
            BuildStageSummary(name=stage.name, mods=[mod.name for mod in stage.mods])
            for stage in build.synergy.stages
        ],
        assumptions=build.assumptions,
    )


def build_system_prompt(context: BuildContext | None, *, max_response_words: int = 300) -> str:
    """System prompt for a chat turn; generic garage prompt when *context* is ``None``."""
    personality = _PERSONALITY.format(max_words=max_response_words)

    if context is None:
        return "\n\n".join(
            [
                "You are a friendly shop mechanic with wicked humor helping a customer "
                "with questions about their car and modifications.",
                personality,
                _RULES,
            ]
        )

    stages = "\n".join(f"{stage.name}: {', '.join(stage.mods)}" for stage in context.stages)
    assumptions = "\n".join(context.assumptions)
    return "\n\n".join(
        [
            "You are a friendly shop mechanic with wicked humor helping a customer "
            f"with their {context.vehicle} build.",
            f"BUILD CONTEXT:\n{context.summary or 'Build summary not available'}",
            f"MODIFICATION STAGES:\n{stages or 'No stages defined yet'}",
            f"ASSUMPTIONS MADE:\n{assumptions or 'None noted'}",
            personality,
            _RULES,
        ]
    )


def bound_history(messages: Sequence[ChatMessage], max_history: int) -> list[ChatMessage]:
    """The most recent *max_history* messages, oldest first."""
    if max_history <= 0:
        return []
    return list(messages[-max_history:])


def to_turns(messages: Sequence[ChatMessage]) -> list[ChatTurn]:
    return [
        ChatTurn(role="user" if m.role == ChatRole.USER else "model", content=m.content)
        for m in messages
    ]


def compute_context_usage(
    system_prompt: str,
    history: Sequence[ChatMessage],
    new_message: str,
    *,
    limit: int = 8000,
    chars_per_token: float = 4.0,
    warning_ratio: float = 0.5,
) -> ContextUsage:
    """Estimate how much of the context budget the next call would use.

    ``used`` is ``ceil(total characters / chars_per_token)`` over the system
    prompt, the bounded history and the new message; ``percent`` is the
    fraction of *limit*. Nothing is truncated based on the result.
    """
    text = system_prompt + "".join(m.content for m in history) + new_message
    used = estimate_tokens(text, chars_per_token)
    percent = used / limit
    return ContextUsage(
        used=used,
        limit=limit,
        percent=percent,
        warning=percent >= warning_ratio,
    )
