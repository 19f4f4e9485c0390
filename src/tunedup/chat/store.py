from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from tunedup.chat.models import ChatMessage, ChatThread
from tunedup.core.exceptions import PersistenceError


class ChatStore(ABC):
    """Abstract persistence for chat threads.

    A thread is unique per ``(user_id, build_id)``. Messages are only ever
    appended, except for :meth:`clear_thread`.
    """

    @abstractmethod
    async def find_thread(self, user_id: str, build_id: str | None) -> ChatThread | None: ...

    @abstractmethod
    async def create_thread(self, user_id: str, build_id: str | None) -> ChatThread:
        """Create the thread, or return the existing one for the same key."""

    @abstractmethod
    async def append_messages(self, thread_id: str, messages: Sequence[ChatMessage]) -> None: ...

    @abstractmethod
    async def clear_thread(self, thread_id: str) -> None: ...


class InMemoryChatStore(ChatStore):
    """Dict-backed store for tests and single-process deployments."""

    def __init__(self) -> None:
        self._threads: dict[str, ChatThread] = {}
        self._by_key: dict[tuple[str, str | None], str] = {}

    def __repr__(self) -> str:
        return f"InMemoryChatStore(threads={len(self._threads)})"

    async def find_thread(self, user_id: str, build_id: str | None) -> ChatThread | None:
        thread_id = self._by_key.get((user_id, build_id))
        if thread_id is None:
            return None
        return self._threads[thread_id].model_copy(deep=True)

    async def create_thread(self, user_id: str, build_id: str | None) -> ChatThread:
        key = (user_id, build_id)
        if key not in self._by_key:
            thread = ChatThread(user_id=user_id, build_id=build_id)
            self._threads[thread.id] = thread
            self._by_key[key] = thread.id
        return self._threads[self._by_key[key]].model_copy(deep=True)

    async def append_messages(self, thread_id: str, messages: Sequence[ChatMessage]) -> None:
        self._require(thread_id).messages.extend(m.model_copy() for m in messages)

    async def clear_thread(self, thread_id: str) -> None:
        self._require(thread_id).messages.clear()

    def _require(self, thread_id: str) -> ChatThread:
        thread = self._threads.get(thread_id)
        if thread is None:
            raise PersistenceError(f"Chat thread {thread_id!r} does not exist")
        return thread
