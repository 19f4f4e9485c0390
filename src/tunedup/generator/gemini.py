from __future__ import annotations

from typing import Any, Sequence

import httpx

from tunedup.core.config import PlannerConfig
from tunedup.core.exceptions import ConfigurationError, GeneratorError, GeneratorTimeoutError
from tunedup.core.types import GenerationResult
from tunedup.generator.base import ChatTurn
from tunedup.output.structured import estimate_tokens, parse_json
from tunedup.utils.logging import get_logger

logger = get_logger(__name__)

# Structured pipeline calls ask for JSON directly.
JSON_GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.7,
    "topP": 0.95,
    "topK": 40,
    "maxOutputTokens": 8192,
    "responseMimeType": "application/json",
}

CHAT_GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.9,
    "topP": 0.95,
    "topK": 40,
    "maxOutputTokens": 1024,
}


class GeminiGenerator:
    """HTTP client for the Google Generative Language ``generateContent`` API.

    Pipeline stages run on the pro model unless ``use_flash`` is set; chat
    always uses the flash model.

    Args:
        api_key: API key sent as ``x-goog-api-key``.
        base_url: Service root, e.g. ``"https://generativelanguage.googleapis.com"``.
        pro_model: Model name for heavy structured stages.
        flash_model: Model name for cheap stages and chat.
        timeout: HTTP request timeout in seconds.
        transport: Optional custom httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://generativelanguage.googleapis.com",
        pro_model: str = "gemini-2.5-pro-preview-05-06",
        flash_model: str = "gemini-2.5-flash-preview-05-20",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("GeminiGenerator requires an API key")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._pro_model = pro_model
        self._flash_model = flash_model
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: PlannerConfig) -> GeminiGenerator:
        if config.gemini_api_key is None:
            raise ConfigurationError("TUNEDUP_GEMINI_API_KEY is not set")
        return cls(
            config.gemini_api_key,
            base_url=config.gemini_base_url,
            pro_model=config.pro_model,
            flash_model=config.flash_model,
            timeout=config.generator_timeout,
        )

    def __repr__(self) -> str:
        return f"GeminiGenerator(pro={self._pro_model!r}, flash={self._flash_model!r})"

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    async def connect(self) -> None:
        """Create the underlying :class:`httpx.AsyncClient`."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self._api_key,
            },
            timeout=self._timeout,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GeminiGenerator:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

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
        model = self._flash_model if use_flash else self._pro_model
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": JSON_GENERATION_CONFIG,
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        payload = await self._post(model, body)
        text = self._extract_text(payload)
        data = parse_json(text, array_hint=array_hint)
        return self._result(data, payload, fallback_text=prompt + text)

    async def chat(
        self,
        system_prompt: str,
        history: Sequence[ChatTurn],
        message: str,
    ) -> GenerationResult:
        contents = [
            {"role": turn.role, "parts": [{"text": turn.content}]} for turn in history
        ]
        contents.append({"role": "user", "parts": [{"text": message}]})
        body: dict[str, Any] = {
            "contents": contents,
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "generationConfig": CHAT_GENERATION_CONFIG,
        }

        payload = await self._post(self._flash_model, body)
        text = self._extract_text(payload)
        return self._result(text, payload, fallback_text=system_prompt + message + text)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _post(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        if self._client is None:
            raise GeneratorError(
                "GeminiGenerator not connected. Call await generator.connect() first."
            )

        path = f"/v1beta/models/{model}:generateContent"
        try:
            resp = await self._client.post(path, json=body)
        except httpx.TimeoutException as exc:
            raise GeneratorTimeoutError(
                f"Generator timed out after {self._timeout}s", code="timeout"
            ) from exc
        except httpx.RequestError as exc:
            raise GeneratorError(f"Generator request failed: {exc}") from exc

        if resp.status_code >= 400:
            try:
                err_body: dict[str, Any] = resp.json()
            except ValueError:
                err_body = {"raw": resp.text}
            raise GeneratorError(
                f"Generator returned HTTP {resp.status_code}",
                code=str(resp.status_code),
                details=err_body,
            )

        try:
            result: dict[str, Any] = resp.json()
        except ValueError as exc:
            raise GeneratorError(
                f"Non-JSON response from generator: {resp.text[:200]}"
            ) from exc
        return result

    @staticmethod
    def _extract_text(payload: dict[str, Any]) -> str:
        candidates = payload.get("candidates") or []
        if not candidates:
            feedback = payload.get("promptFeedback", {})
            raise GeneratorError(
                "Generator returned no candidates", details={"promptFeedback": feedback}
            )
        parts = candidates[0].get("content", {}).get("parts", [])
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise GeneratorError(
                "Generator returned an empty candidate",
                details={"finishReason": candidates[0].get("finishReason")},
            )
        return text

    @staticmethod
    def _result(data: Any, payload: dict[str, Any], *, fallback_text: str) -> GenerationResult:
        usage = payload.get("usageMetadata")
        if usage:
            prompt_tokens = usage.get("promptTokenCount")
            output_tokens = usage.get("candidatesTokenCount")
            tokens_used = (prompt_tokens or 0) + (output_tokens or 0)
        else:
            prompt_tokens = output_tokens = None
            tokens_used = estimate_tokens(fallback_text)
            logger.debug("generator_usage_estimated", tokens=tokens_used)
        return GenerationResult(
            data=data,
            tokens_used=tokens_used,
            prompt_tokens=prompt_tokens,
            output_tokens=output_tokens,
        )
