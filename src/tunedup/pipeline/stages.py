"""The fixed, ordered registry of build-plan stages.

Each :class:`StageDefinition` declares which earlier outputs it reads. The
orchestrator hands a stage exactly those outputs (plus the raw request or
the owner's city where declared), so a prompt builder cannot reach for data
it did not declare.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Callable, Mapping, Type, TypeVar

from pydantic import BaseModel

from tunedup.core.constants import PipelineStep
from tunedup.core.exceptions import PipelineError
from tunedup.core.types import BuildRequest
from tunedup.pipeline.schemas import (
    ExecutionOutput,
    NormalizeOutput,
    PerformanceOutput,
    SourcingOutput,
    StrategyOutput,
    SynergyOutput,
    ToneOutput,
)

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class StageInputs:
    """What a stage is allowed to see."""

    outputs: Mapping[PipelineStep, BaseModel] = field(default_factory=dict)
    request: BuildRequest | None = None
    city: str | None = None

    def get(self, step: PipelineStep, model: Type[T]) -> T:
        """Return the declared dependency *step*, typed as *model*."""
        output = self.outputs.get(step)
        if output is None:
            raise PipelineError(f"Stage input {step.value!r} was not provided")
        if not isinstance(output, model):
            raise PipelineError(
                f"Stage input {step.value!r} is {type(output).__name__}, expected {model.__name__}"
            )
        return output

    def require_request(self) -> BuildRequest:
        if self.request is None:
            raise PipelineError("Stage requires the build request but none was provided")
        return self.request


@dataclass(frozen=True)
class StageDefinition:
    step: PipelineStep
    ordinal: int
    depends_on: frozenset[PipelineStep]
    output_model: Type[BaseModel]
    system_instruction: str
    build_prompt: Callable[[StageInputs], str]
    running_message: str
    failure_label: str
    consumes_request: bool = False
    consumes_city: bool = False
    use_flash: bool = False

    @property
    def name(self) -> str:
        return self.step.value


def _dump(model: BaseModel | list[BaseModel]) -> str:
    if isinstance(model, list):
        return json.dumps([m.model_dump(by_alias=True) for m in model], indent=2)
    return json.dumps(model.model_dump(by_alias=True), indent=2)


def _schema(model: Type[BaseModel]) -> str:
    return (
        "OUTPUT FORMAT: respond with a single JSON object matching this schema:\n"
        f"{json.dumps(model.model_json_schema(by_alias=True), indent=2)}"
    )


# --------------------------------------------------------------------------- #
# Prompt builders
# --------------------------------------------------------------------------- #


def _normalize_prompt(inputs: StageInputs) -> str:
    request = inputs.require_request()
    vehicle, intent = request.vehicle, request.intent
    goals = intent.goals
    lines = [
        "Normalize this vehicle and intent into structured JSON.",
        "",
        "VEHICLE INPUT:",
        f"- Year: {vehicle.year}",
        f"- Make: {vehicle.make}",
        f"- Model: {vehicle.model}",
        f"- Trim: {vehicle.trim}",
        f"- Engine: {vehicle.engine or 'not specified'}",
        f"- Drivetrain: {vehicle.drivetrain or 'not specified'}",
        f"- Fuel: {vehicle.fuel or 'not specified'}",
        f"- Transmission: {vehicle.transmission}",
        "",
        "USER INTENT:",
        f"- Budget: ${intent.budget:,.0f}",
        f"- Goals: Power {goals.power}/5, Handling {goals.handling}/5, "
        f"Reliability {goals.reliability}/5",
        f"- Priority Order: {' > '.join(goals.priority_rank())}",
        f"- Daily Driver: {intent.daily_driver}",
        f"- Emissions Sensitive: {intent.emissions_sensitive}",
        f"- Existing Mods: {intent.existing_mods or 'none'}",
        f"- City: {intent.city or 'not specified'}",
    ]
    if intent.elevation:
        lines.append(f"- Elevation: {intent.elevation}")
    if intent.climate:
        lines.append(f"- Climate: {intent.climate}")
    if intent.tire_type:
        lines.append(f"- Tires: {intent.tire_type}")
    if intent.weight:
        lines.append(f"- Known Weight: {intent.weight:g} lbs")
    lines += ["", _schema(NormalizeOutput)]
    return "\n".join(lines)


def _strategy_prompt(inputs: StageInputs) -> str:
    normalized = inputs.get(PipelineStep.NORMALIZE, NormalizeOutput)
    return "\n".join(
        [
            "Create a build strategy for this vehicle and intent.",
            "",
            "VEHICLE PROFILE:",
            _dump(normalized.vehicle_profile),
            "",
            "USER INTENT:",
            _dump(normalized.user_intent),
            "",
            "ASSUMPTIONS MADE:",
            "\n".join(normalized.assumptions) or "None",
            "",
            _schema(StrategyOutput),
        ]
    )


def _synergy_prompt(inputs: StageInputs) -> str:
    normalized = inputs.get(PipelineStep.NORMALIZE, NormalizeOutput)
    strategy = inputs.get(PipelineStep.STRATEGY, StrategyOutput)
    return "\n".join(
        [
            "Create a detailed staged modification plan.",
            "",
            "VEHICLE PROFILE:",
            _dump(normalized.vehicle_profile),
            "",
            "USER INTENT:",
            _dump(normalized.user_intent),
            "",
            "BUILD STRATEGY:",
            _dump(strategy),
            "",
            _schema(SynergyOutput),
        ]
    )


def _execution_prompt(inputs: StageInputs) -> str:
    normalized = inputs.get(PipelineStep.NORMALIZE, NormalizeOutput)
    plan = inputs.get(PipelineStep.SYNERGY, SynergyOutput)
    mods = [
        {"stageNumber": number, **mod.model_dump(by_alias=True)}
        for number, mod in plan.all_mods()
    ]
    return "\n".join(
        [
            "Create execution details for each mod in this build plan.",
            "",
            "VEHICLE:",
            normalized.vehicle_profile.label,
            "",
            "ALL MODS TO ASSESS:",
            json.dumps(mods, indent=2),
            "",
            _schema(ExecutionOutput),
        ]
    )


def _performance_prompt(inputs: StageInputs) -> str:
    normalized = inputs.get(PipelineStep.NORMALIZE, NormalizeOutput)
    plan = inputs.get(PipelineStep.SYNERGY, SynergyOutput)
    return "\n".join(
        [
            "Estimate performance before and after each stage of modifications.",
            "Key afterStage by stage number as a string.",
            "",
            "VEHICLE PROFILE:",
            _dump(normalized.vehicle_profile),
            "",
            "BUILD PLAN (all stages):",
            _dump(list(plan.stages)),
            "",
            _schema(PerformanceOutput),
        ]
    )


def _sourcing_prompt(inputs: StageInputs) -> str:
    normalized = inputs.get(PipelineStep.NORMALIZE, NormalizeOutput)
    plan = inputs.get(PipelineStep.SYNERGY, SynergyOutput)
    mods = [
        {"stageNumber": number, "id": mod.id, "name": mod.name, "category": mod.category}
        for number, mod in plan.all_mods()
    ]
    return "\n".join(
        [
            "Generate sourcing information for each mod in this build.",
            "",
            "VEHICLE:",
            normalized.vehicle_profile.label,
            "",
            f"USER CITY: {inputs.city or 'not specified'}",
            "",
            "MODS TO SOURCE:",
            json.dumps(mods, indent=2),
            "",
            _schema(SourcingOutput),
        ]
    )


def _tone_prompt(inputs: StageInputs) -> str:
    plan = inputs.get(PipelineStep.SYNERGY, SynergyOutput)
    performance = inputs.get(PipelineStep.PERFORMANCE, PerformanceOutput)
    total = plan.total_cost()
    stage_names = ", ".join(f"Stage {s.stage_number}: {s.name}" for s in plan.stages)
    lines = [
        "Write the presentation text for this build plan.",
        "",
        "BUILD OVERVIEW:",
        f"- Stages: {stage_names}",
        f"- Total Mods: {len(plan.all_mods())}",
        f"- Cost Range: ${total.low:,.0f} - ${total.high:,.0f}",
    ]
    final = performance.final_stage()
    if final is not None:
        lines.append(f"- Final HP Gain: {final.hp_gain.low:g}-{final.hp_gain.high:g} hp")
    lines += ["", "STAGE DETAILS:"]
    lines += [f"Stage {s.stage_number} ({s.name}): {s.description}" for s in plan.stages]
    if performance.caveats:
        lines += ["", "PERFORMANCE CAVEATS:", *performance.caveats]
    lines += ["", _schema(ToneOutput)]
    return "\n".join(lines)


# --------------------------------------------------------------------------- #
# System instructions
# --------------------------------------------------------------------------- #

_NORMALIZE_SYSTEM = """You are an automotive data normalizer. Turn the owner's vehicle and goals into a clean JSON profile.
- Always produce valid JSON; never refuse or ask questions.
- Infer missing data from the most common configuration for the year/make/model/trim and list every inference under assumptions.
- Confidence: 100 when everything was provided, 70-90 for some inference, 50-70 for heavy inference.
- Split existing mods into individual entries."""

_STRATEGY_SYSTEM = """You are a build strategy planner for automotive modifications.
- Match the archetype to the stated goals and budget.
- Daily driver with a reliability priority means conservative guardrails.
- Emissions-sensitive owners must get emissionsLegal = true.
- Budget allocation percentages sum to 100.
- 1-2 stages for budgets under $5k, 3-4 for larger builds."""

_SYNERGY_SYSTEM = """You are a synergy-aware build planner for automotive modifications.
- Stage 0 is maintenance and foundation only.
- Later stages build on earlier ones; respect dependencies.
- Group mods that work together and explain why.
- Parts-only cost ranges. Every mod gets a unique id such as "intake-1".
- Honour the strategy guardrails."""

_EXECUTION_SYSTEM = """You are an installation advisor for automotive modifications.
- Be realistic about DIY; some jobs need a shop.
- Difficulty 1-2 beginner, 3 intermediate, 4-5 advanced or shop.
- Consolidate tools across mods and mark reusable ones.
- Include honest risk notes and typical shop labor ranges."""

_PERFORMANCE_SYSTEM = """You are a performance estimator for automotive modifications.
- Use realistic drivetrain loss and give ranges, not single numbers.
- Account for synergy between mods.
- List assumptions and caveats (altitude, fuel, tune quality, traction).
- Be conservative."""

_SOURCING_SYSTEM = """You are a parts sourcing advisor for automotive modifications.
- Recommend 2-4 well-reputed brands per mod for this vehicle.
- Give ready-to-use search queries and where to buy.
- Use the owner's city in shop searches when provided."""

_TONE_SYSTEM = """You are a friendly shop mechanic with a wicked sense of humor writing build summaries.
- Headline under 50 characters; summary 2-3 sentences; one punchy line per stage.
- Stay accurate and safe; be encouraging but honest.
- The disclaimer is friendly but clear that all numbers are estimates."""


STAGES: tuple[StageDefinition, ...] = (
    StageDefinition(
        step=PipelineStep.NORMALIZE,
        ordinal=0,
        depends_on=frozenset(),
        consumes_request=True,
        output_model=NormalizeOutput,
        system_instruction=_NORMALIZE_SYSTEM,
        build_prompt=_normalize_prompt,
        running_message="Understanding your car…",
        failure_label="normalize input",
    ),
    StageDefinition(
        step=PipelineStep.STRATEGY,
        ordinal=1,
        depends_on=frozenset({PipelineStep.NORMALIZE}),
        output_model=StrategyOutput,
        system_instruction=_STRATEGY_SYSTEM,
        build_prompt=_strategy_prompt,
        running_message="Planning stages…",
        failure_label="create strategy",
    ),
    StageDefinition(
        step=PipelineStep.SYNERGY,
        ordinal=2,
        depends_on=frozenset({PipelineStep.NORMALIZE, PipelineStep.STRATEGY}),
        output_model=SynergyOutput,
        system_instruction=_SYNERGY_SYSTEM,
        build_prompt=_synergy_prompt,
        running_message="Optimizing synergy…",
        failure_label="create synergy plan",
    ),
    StageDefinition(
        step=PipelineStep.EXECUTION,
        ordinal=3,
        depends_on=frozenset({PipelineStep.NORMALIZE, PipelineStep.SYNERGY}),
        output_model=ExecutionOutput,
        system_instruction=_EXECUTION_SYSTEM,
        build_prompt=_execution_prompt,
        running_message="Planning installation…",
        failure_label="create execution plan",
        use_flash=True,
    ),
    StageDefinition(
        step=PipelineStep.PERFORMANCE,
        ordinal=4,
        depends_on=frozenset({PipelineStep.NORMALIZE, PipelineStep.SYNERGY}),
        output_model=PerformanceOutput,
        system_instruction=_PERFORMANCE_SYSTEM,
        build_prompt=_performance_prompt,
        running_message="Estimating performance…",
        failure_label="estimate performance",
        use_flash=True,
    ),
    StageDefinition(
        step=PipelineStep.SOURCING,
        ordinal=5,
        depends_on=frozenset({PipelineStep.NORMALIZE, PipelineStep.SYNERGY}),
        consumes_city=True,
        output_model=SourcingOutput,
        system_instruction=_SOURCING_SYSTEM,
        build_prompt=_sourcing_prompt,
        running_message="Building parts list…",
        failure_label="generate sourcing",
        use_flash=True,
    ),
    StageDefinition(
        step=PipelineStep.TONE,
        ordinal=6,
        depends_on=frozenset({PipelineStep.SYNERGY, PipelineStep.PERFORMANCE}),
        output_model=ToneOutput,
        system_instruction=_TONE_SYSTEM,
        build_prompt=_tone_prompt,
        running_message="Final polish…",
        failure_label="generate presentation",
        use_flash=True,
    ),
)

STAGES_BY_STEP: dict[PipelineStep, StageDefinition] = {s.step: s for s in STAGES}


def get_stage(step: PipelineStep | str) -> StageDefinition:
    return STAGES_BY_STEP[PipelineStep(step)]
