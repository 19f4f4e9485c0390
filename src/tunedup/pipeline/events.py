"""Events streamed to the caller while a pipeline run executes.

A run yields :class:`ProgressEvent` objects and ends with exactly one
:class:`CompleteEvent` or :class:`ErrorEvent`. ``to_wire()`` gives the
camelCase payload a push transport (SSE, websocket) would send under
``event_name``.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tunedup.core.constants import ErrorCode, PipelineStep, StepStatus
from tunedup.pipeline.schemas import (
    ExecutionOutput,
    NormalizeOutput,
    PerformanceOutput,
    SourcingOutput,
    StrategyOutput,
    SynergyOutput,
    ToneOutput,
)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    event_name: ClassVar[str]

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --------------------------------------------------------------------------- #
# Stage payloads, tagged by step
# --------------------------------------------------------------------------- #


class NormalizeData(_WireModel):
    step: Literal["normalize"] = "normalize"
    output: NormalizeOutput


class StrategyData(_WireModel):
    step: Literal["strategy"] = "strategy"
    output: StrategyOutput


class SynergyData(_WireModel):
    step: Literal["synergy"] = "synergy"
    output: SynergyOutput


class ExecutionData(_WireModel):
    step: Literal["execution"] = "execution"
    output: ExecutionOutput


class PerformanceData(_WireModel):
    step: Literal["performance"] = "performance"
    output: PerformanceOutput


class SourcingData(_WireModel):
    step: Literal["sourcing"] = "sourcing"
    output: SourcingOutput


class ToneData(_WireModel):
    step: Literal["tone"] = "tone"
    output: ToneOutput


StageData = Annotated[
    Union[
        NormalizeData,
        StrategyData,
        SynergyData,
        ExecutionData,
        PerformanceData,
        SourcingData,
        ToneData,
    ],
    Field(discriminator="step"),
]

_DATA_BY_STEP: dict[PipelineStep, type[_WireModel]] = {
    PipelineStep.NORMALIZE: NormalizeData,
    PipelineStep.STRATEGY: StrategyData,
    PipelineStep.SYNERGY: SynergyData,
    PipelineStep.EXECUTION: ExecutionData,
    PipelineStep.PERFORMANCE: PerformanceData,
    PipelineStep.SOURCING: SourcingData,
    PipelineStep.TONE: ToneData,
}


def stage_data(step: PipelineStep, output: BaseModel) -> StageData:
    """Wrap a validated stage output in its tagged payload."""
    return _DATA_BY_STEP[PipelineStep(step)](output=output)  # type: ignore[return-value]


# --------------------------------------------------------------------------- #
# Events
# --------------------------------------------------------------------------- #


class ProgressEvent(_WireModel):
    event_name: ClassVar[str] = "progress"

    step: PipelineStep
    status: StepStatus
    message: str | None = None
    error: str | None = None
    tokens_used: int | None = None
    total_tokens: int | None = None
    data: StageData | None = None


class CompleteEvent(_WireModel):
    event_name: ClassVar[str] = "complete"

    build_id: str
    success: bool = True
    total_tokens: int | None = None


class ErrorEvent(_WireModel):
    event_name: ClassVar[str] = "error"

    step: PipelineStep
    error: str
    partial: bool
    code: ErrorCode
    build_id: str | None = None


PipelineEvent = Union[ProgressEvent, CompleteEvent, ErrorEvent]
