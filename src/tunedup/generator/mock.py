from __future__ import annotations

import inspect
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Sequence

from tunedup.core.exceptions import GeneratorError
from tunedup.core.types import GenerationResult
from tunedup.generator.base import ChatTurn

# A payload, an exception to raise, or a callable receiving the prompt.
Response = Any


@dataclass
class MockCall:
    kind: str
    prompt: str
    system_instruction: str | None
    history: list[ChatTurn] = field(default_factory=list)
    array_hint: bool = False
    use_flash: bool = False


class MockGenerator:
    """In-memory Generator for testing.

    Responses are consumed in FIFO order, one per call.

    Usage::

        gen = MockGenerator()
        gen.queue({"stages": []}, tokens_used=300)          # static payload
        gen.queue(GeneratorError("boom"))                    # raised on call
        gen.queue(lambda prompt: {"echo": prompt})           # dynamic payload
        gen.queue_chat("Sure thing, boss.", tokens_used=40)

        result = await gen.generate("prompt", "system")
        assert gen.call_count == 1
    """

    def __init__(self) -> None:
        self._generate_queue: deque[tuple[Response, int]] = deque()
        self._chat_queue: deque[tuple[Response, int]] = deque()
        self.calls: list[MockCall] = []

    def __repr__(self) -> str:
        return (
            f"MockGenerator(queued={len(self._generate_queue)}, "
            f"chat_queued={len(self._chat_queue)}, calls={len(self.calls)})"
        )

    # ------------------------------------------------------------------ #
    # Registration helpers
    # ------------------------------------------------------------------ #

    def queue(self, response: Response, tokens_used: int = 0) -> MockGenerator:
        """Queue the next :meth:`generate` response and return self for chaining."""
        self._generate_queue.append((response, tokens_used))
        return self

    def queue_chat(self, response: Response, tokens_used: int = 0) -> MockGenerator:
        """Queue the next :meth:`chat` response and return self for chaining."""
        self._chat_queue.append((response, tokens_used))
        return self

    # ------------------------------------------------------------------ #
    # Generator protocol
    # ------------------------------------------------------------------ #

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        *,
        array_hint: bool = False,
        use_flash: bool = False,
    ) -> GenerationResult:
        self.calls.append(
            MockCall(
                kind="generate",
                prompt=prompt,
                system_instruction=system_instruction,
                array_hint=array_hint,
                use_flash=use_flash,
            )
        )
        return await self._next(self._generate_queue, prompt)

    async def chat(
        self,
        system_prompt: str,
        history: Sequence[ChatTurn],
        message: str,
    ) -> GenerationResult:
        self.calls.append(
            MockCall(
                kind="chat",
                prompt=message,
                system_instruction=system_prompt,
                history=list(history),
            )
        )
        return await self._next(self._chat_queue, message)

    async def _next(self, pending: deque[tuple[Response, int]], prompt: str) -> GenerationResult:
        if not pending:
            raise GeneratorError("MockGenerator: no response queued")
        response, tokens_used = pending.popleft()
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = response(prompt)
            if inspect.isawaitable(response):
                response = await response
        if isinstance(response, GenerationResult):
            return response
        return GenerationResult(data=response, tokens_used=tokens_used)

    # ------------------------------------------------------------------ #
    # Test helpers
    # ------------------------------------------------------------------ #

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def assert_not_called(self) -> None:
        assert not self.calls, f"Expected no generator calls, got {len(self.calls)}"

    def reset(self) -> None:
        self.calls.clear()
        self._generate_queue.clear()
        self._chat_queue.clear()
