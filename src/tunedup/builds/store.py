from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from tunedup.builds.models import Build, ModProgress
from tunedup.core.constants import PipelineStatus, PipelineStep
from tunedup.core.exceptions import PersistenceError


class BuildStore(ABC):
    """Abstract persistence for :class:`Build` records.

    The pipeline writes each stage output through :meth:`upsert_stage_output`
    as soon as it is validated, so a failed run still leaves its completed
    prefix readable via :meth:`get`.
    """

    @abstractmethod
    async def create(self, build: Build) -> Build: ...

    @abstractmethod
    async def get(self, build_id: str) -> Build | None: ...

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[Build]:
        """All of *user_id*'s builds, newest first."""

    @abstractmethod
    async def count_for_user(self, user_id: str) -> int: ...

    @abstractmethod
    async def delete(self, build_id: str) -> bool:
        """Delete a build. Returns ``False`` when it did not exist."""

    @abstractmethod
    async def upsert_stage_output(
        self, build_id: str, step: PipelineStep, output: BaseModel
    ) -> None:
        """Store *output* in the build's slot for *step*, replacing any previous value."""

    @abstractmethod
    async def set_status(
        self,
        build_id: str,
        status: PipelineStatus,
        *,
        failed_step: PipelineStep | None = None,
        error_message: str | None = None,
    ) -> None: ...

    @abstractmethod
    async def list_progress(self, build_id: str) -> list[ModProgress]:
        """Every per-mod progress entry recorded for *build_id*."""

    @abstractmethod
    async def get_progress(self, build_id: str, mod_id: str) -> ModProgress | None: ...

    @abstractmethod
    async def upsert_progress(self, build_id: str, entry: ModProgress) -> ModProgress:
        """Insert or replace the entry for ``entry.mod_id``."""


class InMemoryBuildStore(BuildStore):
    """Dict-backed store for tests and single-process deployments."""

    def __init__(self) -> None:
        self._builds: dict[str, Build] = {}
        self._progress: dict[str, dict[str, ModProgress]] = {}

    def __repr__(self) -> str:
        return f"InMemoryBuildStore(builds={len(self._builds)})"

    async def create(self, build: Build) -> Build:
        if build.id in self._builds:
            raise PersistenceError(f"Build {build.id!r} already exists")
        self._builds[build.id] = build.model_copy(deep=True)
        return build.model_copy(deep=True)

    async def get(self, build_id: str) -> Build | None:
        build = self._builds.get(build_id)
        return build.model_copy(deep=True) if build is not None else None

    async def list_for_user(self, user_id: str) -> list[Build]:
        builds = [b for b in self._builds.values() if b.user_id == user_id]
        builds.sort(key=lambda b: b.created_at, reverse=True)
        return [b.model_copy(deep=True) for b in builds]

    async def count_for_user(self, user_id: str) -> int:
        return sum(1 for b in self._builds.values() if b.user_id == user_id)

    async def delete(self, build_id: str) -> bool:
        self._progress.pop(build_id, None)
        return self._builds.pop(build_id, None) is not None

    async def upsert_stage_output(
        self, build_id: str, step: PipelineStep, output: BaseModel
    ) -> None:
        build = self._require(build_id)
        setattr(build, PipelineStep(step).value, output.model_copy(deep=True))

    async def set_status(
        self,
        build_id: str,
        status: PipelineStatus,
        *,
        failed_step: PipelineStep | None = None,
        error_message: str | None = None,
    ) -> None:
        build = self._require(build_id)
        build.pipeline_status = status
        build.failed_step = failed_step
        build.error_message = error_message

    async def list_progress(self, build_id: str) -> list[ModProgress]:
        entries = self._progress.get(build_id, {})
        return [e.model_copy(deep=True) for e in entries.values()]

    async def get_progress(self, build_id: str, mod_id: str) -> ModProgress | None:
        entry = self._progress.get(build_id, {}).get(mod_id)
        return entry.model_copy(deep=True) if entry is not None else None

    async def upsert_progress(self, build_id: str, entry: ModProgress) -> ModProgress:
        self._require(build_id)
        self._progress.setdefault(build_id, {})[entry.mod_id] = entry.model_copy(deep=True)
        return entry.model_copy(deep=True)

    def _require(self, build_id: str) -> Build:
        build = self._builds.get(build_id)
        if build is None:
            raise PersistenceError(f"Build {build_id!r} does not exist")
        return build
