"""Build lifecycle under the per-user cap, plus per-mod purchase/install progress."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from tunedup.builds.models import Build, BuildList, BuildListItem, BuildProgress, ModProgress
from tunedup.builds.store import BuildStore
from tunedup.core.constants import ModStatus, PipelineStatus
from tunedup.core.exceptions import BuildLimitError, BuildNotFoundError, ValidationError
from tunedup.core.types import BuildRequest
from tunedup.usage.ledger import UsageLedger
from tunedup.utils.logging import get_logger

logger = get_logger(__name__)

MAX_PROGRESS_NOTES = 500


class BuildService:
    """User-facing operations on stored builds.

    Args:
        builds: Backing :class:`BuildStore`.
        ledger: Consulted before a new build is created.
        max_builds: How many builds one user may keep at a time.
        id_factory: Produces new build ids; defaults to a uuid4 hex string.
        clock: Timestamp source for progress updates; defaults to UTC now.
    """

    def __init__(
        self,
        builds: BuildStore,
        ledger: UsageLedger,
        *,
        max_builds: int = 3,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._builds = builds
        self._ledger = ledger
        self._max_builds = max_builds
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return f"BuildService(max_builds={self._max_builds})"

    async def create(self, user_id: str, request: BuildRequest | dict[str, Any]) -> Build:
        """Validate *request* and store a new build in ``running`` status.

        Raises:
            BuildLimitError: The user already has ``max_builds`` builds.
            QuotaExceededError: The user's token quota is spent.
            ValidationError: *request* is a dict that does not validate.
        """
        existing = await self._builds.count_for_user(user_id)
        if existing >= self._max_builds:
            raise BuildLimitError(
                f"Maximum {self._max_builds} builds allowed. "
                "Delete a build to create a new one.",
                code="build_limit",
                details={"user_id": user_id, "max_builds": self._max_builds},
            )

        await self._ledger.ensure_not_blocked(user_id)

        if not isinstance(request, BuildRequest):
            request = BuildRequest.parse(request)

        build = await self._builds.create(
            Build(
                id=self._id_factory(),
                user_id=user_id,
                request=request,
                pipeline_status=PipelineStatus.RUNNING,
            )
        )
        logger.info("build_created", build_id=build.id, user_id=user_id)
        return build

    async def list(self, user_id: str) -> BuildList:
        builds = await self._builds.list_for_user(user_id)
        return BuildList(
            builds=[BuildListItem.from_build(b) for b in builds],
            can_create_new=len(builds) < self._max_builds,
        )

    async def get(self, user_id: str, build_id: str) -> Build:
        """Fetch a build owned by *user_id*.

        Another user's build is reported the same way as a missing one.
        """
        build = await self._builds.get(build_id)
        if build is None or build.user_id != user_id:
            raise BuildNotFoundError(
                f"Build {build_id!r} not found",
                details={"build_id": build_id},
            )
        return build

    async def delete(self, user_id: str, build_id: str) -> None:
        await self.get(user_id, build_id)
        await self._builds.delete(build_id)
        logger.info("build_deleted", build_id=build_id, user_id=user_id)

    # ------------------------------------------------------------------ #
    # Per-mod progress
    # ------------------------------------------------------------------ #

    async def progress(self, user_id: str, build_id: str) -> BuildProgress:
        """Recorded progress entries plus total/purchased/installed counts."""
        build = await self.get(user_id, build_id)
        entries = await self._builds.list_progress(build_id)
        return BuildProgress.from_entries(build, entries)

    async def update_progress(
        self,
        user_id: str,
        build_id: str,
        mod_id: str,
        status: ModStatus | str,
        notes: str | None = None,
    ) -> ModProgress:
        """Set the status of one mod and stamp the matching timestamps.

        ``purchased`` stamps ``purchased_at``. ``installed`` stamps
        ``installed_at`` and keeps an earlier ``purchased_at`` (or stamps it
        now). ``pending`` clears both. Notes are kept when *notes* is None.

        Raises:
            BuildNotFoundError: The build is missing or owned by someone else.
            ValidationError: Unknown *status* or notes over 500 characters.
        """
        try:
            status = ModStatus(status)
        except ValueError:
            raise ValidationError(
                f"status: must be one of {', '.join(s.value for s in ModStatus)}",
                code="invalid_request",
            ) from None
        if notes is not None and len(notes) > MAX_PROGRESS_NOTES:
            raise ValidationError(
                f"notes: must be at most {MAX_PROGRESS_NOTES} characters",
                code="invalid_request",
            )

        await self.get(user_id, build_id)
        existing = await self._builds.get_progress(build_id, mod_id)
        now = self._clock()

        purchased_at: datetime | None = None
        installed_at: datetime | None = None
        if status == ModStatus.PURCHASED:
            purchased_at = now
        elif status == ModStatus.INSTALLED:
            purchased_at = (existing.purchased_at if existing else None) or now
            installed_at = now

        entry = await self._builds.upsert_progress(
            build_id,
            ModProgress(
                mod_id=mod_id,
                status=status,
                purchased_at=purchased_at,
                installed_at=installed_at,
                notes=notes if notes is not None else (existing.notes if existing else None),
            ),
        )
        logger.info(
            "build_progress_updated",
            build_id=build_id,
            mod_id=mod_id,
            status=status.value,
        )
        return entry
