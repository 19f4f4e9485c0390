from __future__ import annotations

from tunedup.builds.models import Build
from tunedup.builds.store import BuildStore
from tunedup.chat.context import (
    bound_history,
    build_context_from_build,
    build_system_prompt,
    compute_context_usage,
    to_turns,
)
from tunedup.chat.models import ChatHistory, ChatMessage, ChatReply, ChatThread, ContextUsage
from tunedup.chat.store import ChatStore
from tunedup.core.config import ChatConfig
from tunedup.core.constants import ChatRole
from tunedup.core.exceptions import (
    BuildNotFoundError,
    GeneratorError,
    PersistenceError,
    ValidationError,
)
from tunedup.generator.base import Generator
from tunedup.generator.calls import call_generator
from tunedup.usage.ledger import UsageLedger
from tunedup.utils.logging import get_logger

logger = get_logger(__name__)


class ChatContextManager:
    """Mechanic chat over the shared generator, one thread per (user, build).

    Only the last ``config.max_history`` messages are sent with each turn;
    the full thread stays in the store. The context usage returned with
    every reply is an estimate for display and never trims anything.

    Usage::

        chat = ChatContextManager(generator, ledger, InMemoryChatStore(), builds)
        reply = await chat.send("user-1", "Will this void my warranty?", build_id="b-1")
        print(reply.reply, reply.context.percent)
    """

    def __init__(
        self,
        generator: Generator,
        ledger: UsageLedger,
        chats: ChatStore,
        builds: BuildStore,
        *,
        config: ChatConfig | None = None,
    ) -> None:
        self._generator = generator
        self._ledger = ledger
        self._chats = chats
        self._builds = builds
        self._config = config or ChatConfig()

    def __repr__(self) -> str:
        return f"ChatContextManager(max_history={self._config.max_history})"

    async def resolve_thread(self, user_id: str, build_id: str | None = None) -> ChatThread:
        """Return the thread for ``(user_id, build_id)``, creating it on first access."""
        thread = await self._chats.find_thread(user_id, build_id)
        if thread is None:
            thread = await self._chats.create_thread(user_id, build_id)
            logger.debug("chat_thread_created", thread_id=thread.id, build_id=build_id)
        return thread

    async def send(self, user_id: str, message: str, build_id: str | None = None) -> ChatReply:
        """Run one chat turn and persist both sides of it.

        Raises:
            ValidationError: *message* is empty or longer than ``max_message_chars``.
            QuotaExceededError: The user's quota is spent; the generator is not called.
            BuildNotFoundError: *build_id* is missing or belongs to another user.
            GeneratorError: The generator call failed or returned no text.
            GeneratorTimeoutError: No reply within ``config.timeout`` seconds.
        """
        self._validate_message(message)
        await self._ledger.ensure_not_blocked(user_id)

        build = await self._owned_build(user_id, build_id)
        thread = await self.resolve_thread(user_id, build_id)

        system_prompt = self._system_prompt(build)
        history = bound_history(thread.messages, self._config.max_history)
        context = self._usage(system_prompt, history, message)
        if context.warning:
            logger.info(
                "chat_context_pressure",
                thread_id=thread.id,
                used=context.used,
                limit=context.limit,
            )

        result = await call_generator(
            self._generator.chat(system_prompt, to_turns(history), message),
            timeout=self._config.timeout,
            step="chat",
        )
        reply = result.data
        if not isinstance(reply, str) or not reply.strip():
            raise GeneratorError(
                "Generator returned an empty chat reply",
                code="empty_reply",
                details={"thread_id": thread.id},
                step="chat",
            )

        try:
            await self._chats.append_messages(
                thread.id,
                [
                    ChatMessage(role=ChatRole.USER, content=message),
                    ChatMessage(role=ChatRole.ASSISTANT, content=reply),
                ],
            )
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(
                f"Could not save chat messages: {exc}", details={"thread_id": thread.id}
            ) from exc

        await self._ledger.track_tokens(user_id, result.tokens_used)
        logger.info("chat_turn_completed", thread_id=thread.id, tokens=result.tokens_used)

        return ChatReply(
            reply=reply,
            thread_id=thread.id,
            tokens_used=result.tokens_used,
            context=context,
        )

    async def history(self, user_id: str, build_id: str | None = None) -> ChatHistory:
        """All stored messages plus the context usage the next turn would start from."""
        build = await self._owned_build(user_id, build_id)
        thread = await self._chats.find_thread(user_id, build_id)
        messages = thread.messages if thread is not None else []
        context = self._usage(
            self._system_prompt(build),
            bound_history(messages, self._config.max_history),
            "",
        )
        return ChatHistory(
            thread_id=thread.id if thread is not None else None,
            messages=messages,
            context=context,
        )

    async def reset(self, user_id: str, build_id: str | None = None) -> None:
        """Clear every message in the thread. The thread itself is kept."""
        thread = await self._chats.find_thread(user_id, build_id)
        if thread is None:
            return
        await self._chats.clear_thread(thread.id)
        logger.info("chat_thread_reset", thread_id=thread.id)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _validate_message(self, message: str) -> None:
        limit = self._config.max_message_chars
        if not message or not message.strip():
            raise ValidationError("message: must not be empty", code="invalid_request")
        if len(message) > limit:
            raise ValidationError(
                f"message: must be at most {limit} characters", code="invalid_request"
            )

    async def _owned_build(self, user_id: str, build_id: str | None) -> Build | None:
        if build_id is None:
            return None
        build = await self._builds.get(build_id)
        if build is None or build.user_id != user_id:
            raise BuildNotFoundError(
                f"Build {build_id!r} not found", details={"build_id": build_id}
            )
        return build

    def _system_prompt(self, build: Build | None) -> str:
        return build_system_prompt(
            build_context_from_build(build),
            max_response_words=self._config.max_response_words,
        )

    def _usage(
        self, system_prompt: str, history: list[ChatMessage], message: str
    ) -> ContextUsage:
        return compute_context_usage(
            system_prompt,
            history,
            message,
            limit=self._config.context_limit,
            chars_per_token=self._config.chars_per_token,
            warning_ratio=self._config.warning_ratio,
        )
