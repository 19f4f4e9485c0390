from __future__ import annotations

import json
import math
import re
from typing import Any, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from tunedup.core.exceptions import GeneratorError

T = TypeVar("T", bound=BaseModel)

_FENCED_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def estimate_tokens(text: str, chars_per_token: float = 4.0) -> int:
    """Rough token count for *text*: ``ceil(len(text) / chars_per_token)``.

    This is a length heuristic, not a tokenizer. It is used when the
    generator reports no usage metadata and for the chat context gauge.
    """
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


def parse_json(text: str, *, array_hint: bool = False) -> Any:
    """Decode a JSON payload from raw generator text.

    Search order:
    1. The whole text as JSON.
    2. A fenced `` ```json ... ``` `` (or bare `` ``` ``) block.
    3. The outermost ``[...]`` (when *array_hint*) or ``{...}`` span.

    Raises:
        GeneratorError: If no decodable JSON is found.
    """
    stripped = text.strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    candidates: list[str] = []
    fenced = _FENCED_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())

    bare = re.search(r"\[[\s\S]*\]" if array_hint else r"\{[\s\S]*\}", text)
    if bare:
        candidates.append(bare.group(0))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    raise GeneratorError(f"Failed to parse JSON response: {text[:200]}")


def validate_output(data: Any, model: Type[T], *, step: str | None = None) -> T:
    """Validate decoded generator output against *model*.

    A structurally non-conforming payload is reported as a
    :class:`GeneratorError`, the same way a failed call is.
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise GeneratorError(
            f"Output does not match {model.__name__}: {exc.error_count()} error(s)",
            code="schema_mismatch",
            details={"errors": exc.errors(include_url=False, include_input=False)},
            step=step,
        ) from exc
