from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tunedup.core.constants import STEP_ORDER, ModStatus, PipelineStatus, PipelineStep
from tunedup.core.types import BuildRequest, VehicleInput
from tunedup.pipeline.schemas import (
    CostRange,
    ExecutionOutput,
    NormalizeOutput,
    PerformanceOutput,
    SourcingOutput,
    StrategyOutput,
    SynergyOutput,
    ToneOutput,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Build(_Model):
    """A stored build: the caller's request, run status and one slot per stage."""

    id: str
    user_id: str
    request: BuildRequest
    created_at: datetime = Field(default_factory=_utcnow)
    pipeline_status: PipelineStatus = PipelineStatus.PENDING
    failed_step: PipelineStep | None = None
    error_message: str | None = None

    normalize: NormalizeOutput | None = None
    strategy: StrategyOutput | None = None
    synergy: SynergyOutput | None = None
    execution: ExecutionOutput | None = None
    performance: PerformanceOutput | None = None
    sourcing: SourcingOutput | None = None
    tone: ToneOutput | None = None

    def output(self, step: PipelineStep) -> BaseModel | None:
        return getattr(self, PipelineStep(step).value)

    def completed_steps(self) -> list[PipelineStep]:
        """Stages with a stored output, in stage order."""
        return [step for step in STEP_ORDER if self.output(step) is not None]

    @property
    def assumptions(self) -> list[str]:
        return list(self.normalize.assumptions) if self.normalize else []


class StatsPreview(_Model):
    hp_gain_range: CostRange | None = None
    total_budget: float


class BuildListItem(_Model):
    id: str
    created_at: datetime
    vehicle: VehicleInput
    summary: str | None = None
    pipeline_status: PipelineStatus
    stats_preview: StatsPreview

    @classmethod
    def from_build(cls, build: Build) -> BuildListItem:
        final = build.performance.final_stage() if build.performance else None
        return cls(
            id=build.id,
            created_at=build.created_at,
            vehicle=build.request.vehicle,
            summary=build.tone.summary if build.tone else None,
            pipeline_status=build.pipeline_status,
            stats_preview=StatsPreview(
                hp_gain_range=final.hp_gain if final else None,
                total_budget=build.request.intent.budget,
            ),
        )


class BuildList(_Model):
    builds: list[BuildListItem] = Field(default_factory=list)
    can_create_new: bool


# --------------------------------------------------------------------------- #
# per-mod progress
# --------------------------------------------------------------------------- #


class ModProgress(_Model):
    """The owner's purchase/install state for one mod of a build."""

    mod_id: str
    status: ModStatus = ModStatus.PENDING
    purchased_at: datetime | None = None
    installed_at: datetime | None = None
    notes: str | None = None


class ProgressStats(_Model):
    total: int
    purchased: int
    installed: int


class BuildProgress(_Model):
    progress: list[ModProgress] = Field(default_factory=list)
    stats: ProgressStats

    @classmethod
    def from_entries(cls, build: Build, entries: list[ModProgress]) -> BuildProgress:
        """Entries plus counts; ``total`` is the number of mods in the plan.

        An installed mod also counts as purchased.
        """
        total = len(build.synergy.all_mods()) if build.synergy else 0
        return cls(
            progress=entries,
            stats=ProgressStats(
                total=total,
                purchased=sum(
                    1 for e in entries if e.status in (ModStatus.PURCHASED, ModStatus.INSTALLED)
                ),
                installed=sum(1 for e in entries if e.status == ModStatus.INSTALLED),
            ),
        )
