"""Tests for generator/mock.py — MockGenerator."""
from __future__ import annotations

import pytest

from tunedup.core.exceptions import GeneratorError
from tunedup.core.types import GenerationResult
from tunedup.generator.base import ChatTurn, Generator
from tunedup.generator.mock import MockGenerator


def test_satisfies_generator_protocol() -> None:
    assert isinstance(MockGenerator(), Generator)


async def test_responses_consumed_in_order() -> None:
    gen = MockGenerator().queue({"n": 1}, tokens_used=10).queue({"n": 2}, tokens_used=20)

    first = await gen.generate("a")
    second = await gen.generate("b")

    assert (first.data, first.tokens_used) == ({"n": 1}, 10)
    assert (second.data, second.tokens_used) == ({"n": 2}, 20)


async def test_empty_queue_raises() -> None:
    with pytest.raises(GeneratorError):
        await MockGenerator().generate("p")


async def test_queued_exception_is_raised() -> None:
    gen = MockGenerator().queue(GeneratorError("boom", code="503"))
    with pytest.raises(GeneratorError, match="boom"):
        await gen.generate("p")
    assert gen.call_count == 1


async def test_callable_receives_prompt() -> None:
    gen = MockGenerator().queue(lambda prompt: {"echo": prompt}, tokens_used=5)
    result = await gen.generate("hello")
    assert result.data == {"echo": "hello"}
    assert result.tokens_used == 5


async def test_async_callable_is_awaited() -> None:
    async def respond(prompt: str) -> dict[str, int]:
        return {"length": len(prompt)}

    gen = MockGenerator().queue(respond)
    result = await gen.generate("four")
    assert result.data == {"length": 4}


async def test_generation_result_passes_through() -> None:
    canned = GenerationResult(data=[1], tokens_used=7, prompt_tokens=5, output_tokens=2)
    gen = MockGenerator().queue(canned, tokens_used=999)
    assert await gen.generate("p") is canned


async def test_calls_are_recorded() -> None:
    gen = MockGenerator().queue({}).queue_chat("hi")
    history = [ChatTurn(role="user", content="earlier")]

    await gen.generate("prompt", "system", array_hint=True, use_flash=True)
    await gen.chat("sys", history, "now")

    gen_call, chat_call = gen.calls
    assert gen_call.kind == "generate"
    assert gen_call.system_instruction == "system"
    assert gen_call.array_hint and gen_call.use_flash
    assert chat_call.kind == "chat"
    assert chat_call.prompt == "now"
    assert chat_call.history == history


async def test_chat_and_generate_queues_are_separate() -> None:
    gen = MockGenerator().queue_chat("reply", tokens_used=3)
    with pytest.raises(GeneratorError):
        await gen.generate("p")
    result = await gen.chat("sys", [], "m")
    assert result.data == "reply"


async def test_reset_clears_calls_and_queues() -> None:
    gen = MockGenerator().queue({}).queue({})
    await gen.generate("p")
    gen.reset()
    gen.assert_not_called()
    with pytest.raises(GeneratorError):
        await gen.generate("p")


async def test_assert_not_called_fails_after_call() -> None:
    gen = MockGenerator().queue({})
    await gen.generate("p")
    with pytest.raises(AssertionError):
        gen.assert_not_called()
