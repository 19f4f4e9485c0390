from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncGenerator, AsyncIterator, Callable

from pydantic import BaseModel

from tunedup.core.config import PlannerConfig
from tunedup.core.constants import ErrorCode, PipelineStatus, PipelineStep, StepStatus
from tunedup.core.exceptions import (
    PersistenceError,
    QuotaExceededError,
    TunedupError,
)
from tunedup.core.types import BuildRequest
from tunedup.generator.base import Generator
from tunedup.generator.calls import call_generator
from tunedup.output.structured import validate_output
from tunedup.pipeline.events import (
    CompleteEvent,
    ErrorEvent,
    PipelineEvent,
    ProgressEvent,
    stage_data,
)
from tunedup.pipeline.stages import STAGES, StageDefinition, StageInputs
from tunedup.pipeline.state import PipelineState
from tunedup.usage.ledger import UsageLedger
from tunedup.utils.logging import get_logger

if TYPE_CHECKING:
    from tunedup.builds.store import BuildStore

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Build cancelled before completion"


@dataclass
class PipelineRunResult:
    """Everything one drained run produced."""

    build_id: str
    state: PipelineState
    events: list[PipelineEvent] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state.status == PipelineStatus.COMPLETED

    @property
    def total_tokens(self) -> int:
        return self.state.total_tokens

    @property
    def error(self) -> ErrorEvent | None:
        last = self.events[-1] if self.events else None
        return last if isinstance(last, ErrorEvent) else None


def _error_code(exc: TunedupError) -> ErrorCode:
    if isinstance(exc, QuotaExceededError):
        return ErrorCode.QUOTA_EXCEEDED
    if isinstance(exc, PersistenceError):
        return ErrorCode.PERSISTENCE_FAILED
    return ErrorCode.GENERATION_FAILED


class PipelineOrchestrator:
    """Run the seven build-plan stages in order for one build.

    For each stage the orchestrator checks the user's quota, calls the
    generator, validates the reply, records usage, persists the output and
    emits progress. The first failure ends the run with a single
    :class:`ErrorEvent`; completed stages stay persisted.

    Args:
        generator: Any :class:`~tunedup.generator.base.Generator`.
        ledger: Per-user usage ledger used for the quota gate and accounting.
        builds: Store receiving stage outputs and the run status.
        config: Supplies ``generator_timeout``; defaults to :class:`PlannerConfig`.
    """

    def __init__(
        self,
        generator: Generator,
        ledger: UsageLedger,
        builds: BuildStore,
        *,
        config: PlannerConfig | None = None,
        stages: tuple[StageDefinition, ...] = STAGES,
    ) -> None:
        self._generator = generator
        self._ledger = ledger
        self._builds = builds
        self._config = config or PlannerConfig()
        self._stages = stages

    def __repr__(self) -> str:
        return f"PipelineOrchestrator(stages={len(self._stages)})"

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def run(
        self, build_id: str, user_id: str, request: BuildRequest
    ) -> AsyncIterator[PipelineEvent]:
        """Execute every stage, yielding events as they happen.

        The stream is ``running``/``completed`` pairs in stage order, ending
        in one :class:`CompleteEvent`, or a ``failed`` event followed by one
        :class:`ErrorEvent`. Closing the stream or cancelling the consuming
        task cancels the in-flight generator call, emits nothing further and
        marks the build ``failed`` at the unfinished stage.

        Usage::

            async for event in orchestrator.run(build.id, user_id, request):
                await send(event.event_name, event.to_wire())
        """
        return self._stream(build_id, user_id, request, self._new_state())

    async def execute(
        self,
        build_id: str,
        user_id: str,
        request: BuildRequest,
        on_event: Callable[[PipelineEvent], Any] | None = None,
    ) -> PipelineRunResult:
        """Drain :meth:`run`, forwarding each event to *on_event* (sync or async)."""
        result = PipelineRunResult(build_id=build_id, state=self._new_state())
        stream = self._stream(build_id, user_id, request, result.state)
        try:
            async for event in stream:
                result.events.append(event)
                if on_event is not None:
                    handled = on_event(event)
                    if inspect.isawaitable(handled):
                        await handled
        finally:
            await stream.aclose()
        return result

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _new_state(self) -> PipelineState:
        return PipelineState(stage.step for stage in self._stages)

    async def _stream(
        self,
        build_id: str,
        user_id: str,
        request: BuildRequest,
        state: PipelineState,
    ) -> AsyncGenerator[PipelineEvent, None]:
        log = logger.bind(build_id=build_id, user_id=user_id)
        total_tokens = 0

        await self._mark_status(build_id, PipelineStatus.RUNNING)
        log.info("pipeline_started", vehicle=request.vehicle.label)

        try:
            for stage in self._stages:
                state.start(stage.step)

                try:
                    await self._ledger.ensure_not_blocked(user_id)
                except TunedupError as exc:
                    for event in await self._fail(state, stage, exc, build_id, total_tokens):
                        yield event
                    return

                yield ProgressEvent(
                    step=stage.step,
                    status=StepStatus.RUNNING,
                    message=stage.running_message,
                )

                try:
                    output, tokens = await self._invoke(stage, state, request)
                    total_tokens += tokens
                    await self._ledger.track_tokens(user_id, tokens)
                    await self._persist(build_id, stage.step, output)
                except TunedupError as exc:
                    for event in await self._fail(state, stage, exc, build_id, total_tokens):
                        yield event
                    return

                state.mark_done(stage.step, output, tokens)
                log.info("pipeline_stage_completed", step=stage.name, tokens=tokens)
                yield ProgressEvent(
                    step=stage.step,
                    status=StepStatus.COMPLETED,
                    tokens_used=tokens,
                    total_tokens=total_tokens,
                    data=stage_data(stage.step, output),
                )

            state.complete()
            await self._mark_status(build_id, PipelineStatus.COMPLETED)
            log.info("pipeline_completed", total_tokens=total_tokens)
            yield CompleteEvent(build_id=build_id, success=True, total_tokens=total_tokens)
        except (asyncio.CancelledError, GeneratorExit):
            if not state.run_status.terminal:
                log.info("pipeline_cancelled", status=state.status.value, total_tokens=total_tokens)
                await asyncio.shield(self._mark_cancelled(build_id, state))
            raise

    async def _invoke(
        self, stage: StageDefinition, state: PipelineState, request: BuildRequest
    ) -> tuple[BaseModel, int]:
        inputs = StageInputs(
            outputs={dep: state.output(dep) for dep in stage.depends_on},  # type: ignore[misc]
            request=request if stage.consumes_request else None,
            city=request.intent.city if stage.consumes_city else None,
        )
        result = await call_generator(
            self._generator.generate(
                stage.build_prompt(inputs),
                stage.system_instruction,
                use_flash=stage.use_flash,
            ),
            timeout=self._config.generator_timeout,
            step=stage.name,
        )

        output = validate_output(result.data, stage.output_model, step=stage.name)
        return output, result.tokens_used

    async def _persist(self, build_id: str, step: PipelineStep, output: BaseModel) -> None:
        try:
            await self._builds.upsert_stage_output(build_id, step, output)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(
                f"Could not save {step.value} output: {exc}",
                details={"build_id": build_id, "step": step.value},
            ) from exc

    async def _fail(
        self,
        state: PipelineState,
        stage: StageDefinition,
        exc: TunedupError,
        build_id: str,
        total_tokens: int,
    ) -> list[PipelineEvent]:
        message = str(exc)
        code = _error_code(exc)
        state.mark_failed(stage.step, message)
        logger.warning(
            "pipeline_stage_failed",
            build_id=build_id,
            step=stage.name,
            code=code.value,
            error=message,
        )
        await self._mark_status(
            build_id,
            PipelineStatus.FAILED,
            failed_step=stage.step,
            error_message=message,
        )
        return [
            ProgressEvent(
                step=stage.step,
                status=StepStatus.FAILED,
                message=f"Failed to {stage.failure_label}",
                error=message,
                total_tokens=total_tokens,
            ),
            ErrorEvent(
                step=stage.step,
                error=message,
                partial=state.has_partial,
                build_id=build_id,
                code=code,
            ),
        ]

    async def _mark_cancelled(self, build_id: str, state: PipelineState) -> None:
        done = len(state.partial())
        pending = state.steps[done] if done < len(state.steps) else None
        await self._mark_status(
            build_id,
            PipelineStatus.FAILED,
            failed_step=pending,
            error_message=CANCELLED_MESSAGE,
        )

    async def _mark_status(
        self,
        build_id: str,
        status: PipelineStatus,
        *,
        failed_step: PipelineStep | None = None,
        error_message: str | None = None,
    ) -> None:
        try:
            await self._builds.set_status(
                build_id, status, failed_step=failed_step, error_message=error_message
            )
        except Exception:  # noqa: BLE001
            logger.warning(
                "build_status_update_failed",
                build_id=build_id,
                status=status.value,
                exc_info=True,
            )
