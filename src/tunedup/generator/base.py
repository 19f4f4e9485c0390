from __future__ import annotations

from typing import Literal, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel

from tunedup.core.types import GenerationResult


class ChatTurn(BaseModel):
    """One prior message as the generator sees it."""

    role: Literal["user", "model"]
    content: str


@runtime_checkable
class Generator(Protocol):
    """Structural type for the external text generator.

    The orchestrator, chat manager and install-guide service accept this
    Protocol so they work with :class:`GeminiGenerator`, :class:`MockGenerator`
    or any other backend without importing concrete classes.
    """

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        *,
        array_hint: bool = False,
        use_flash: bool = False,
    ) -> GenerationResult:
        """Produce structured (JSON-decoded) output for *prompt*.

        Args:
            prompt: The user-turn prompt.
            system_instruction: Optional role/rules preamble.
            array_hint: The payload is expected to be a top-level JSON array.
            use_flash: Use the cheaper/faster model tier.

        Raises:
            GeneratorError: When the call fails or the reply is not JSON.
        """
        ...

    async def chat(
        self,
        system_prompt: str,
        history: Sequence[ChatTurn],
        message: str,
    ) -> GenerationResult:
        """Produce a free-text reply to *message* given prior turns.

        ``GenerationResult.data`` is the reply string.
        """
        ...
