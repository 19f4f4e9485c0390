from __future__ import annotations

import asyncio
from typing import Awaitable

from tunedup.core.exceptions import GeneratorError, GeneratorTimeoutError, TunedupError
from tunedup.core.types import GenerationResult


async def call_generator(
    call: Awaitable[GenerationResult],
    *,
    timeout: float,
    step: str | None = None,
) -> GenerationResult:
    """Await one generator call under a deadline, normalising its failures.

    Every caller of the :class:`~tunedup.generator.base.Generator` protocol goes
    through here, so a failed call always surfaces as a :class:`GeneratorError`.

    Args:
        call: The pending ``generate(...)`` or ``chat(...)`` awaitable.
        timeout: Seconds to wait before the call is cancelled.
        step: Label attached to the error (stage name, ``"chat"``, ...).

    Raises:
        GeneratorTimeoutError: The deadline passed (code ``"timeout"``).
        GeneratorError: The call raised; foreign exceptions are wrapped.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except GeneratorError as exc:
        exc.step = exc.step or step
        raise
    except asyncio.TimeoutError as exc:
        raise GeneratorTimeoutError(
            f"Generator timed out after {timeout:g}s",
            code="timeout",
            step=step,
        ) from exc
    except TunedupError:
        raise
    except Exception as exc:
        raise GeneratorError(f"Generator call failed: {exc}", step=step) from exc
