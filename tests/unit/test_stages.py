"""Tests for pipeline/stages.py — registry order, dependencies and prompts."""
from __future__ import annotations

from typing import Any

import pytest

from tunedup.core.constants import STEP_ORDER, PipelineStep
from tunedup.core.exceptions import PipelineError
from tunedup.core.types import BuildRequest
from tunedup.pipeline.schemas import (
    NormalizeOutput,
    PerformanceOutput,
    SynergyOutput,
    ToneOutput,
)
from tunedup.pipeline.stages import STAGES, StageInputs, get_stage

N, ST, SY, EX, PE, SO, TO = STEP_ORDER


def test_registry_is_in_fixed_order() -> None:
    assert tuple(stage.step for stage in STAGES) == STEP_ORDER
    assert [stage.ordinal for stage in STAGES] == list(range(7))


@pytest.mark.parametrize(
    "step, deps",
    [
        (N, set()),
        (ST, {N}),
        (SY, {N, ST}),
        (EX, {N, SY}),
        (PE, {N, SY}),
        (SO, {N, SY}),
        (TO, {SY, PE}),
    ],
)
def test_declared_dependencies(step: PipelineStep, deps: set[PipelineStep]) -> None:
    assert get_stage(step).depends_on == deps


def test_dependencies_only_point_backwards() -> None:
    for stage in STAGES:
        for dep in stage.depends_on:
            assert STEP_ORDER.index(dep) < stage.ordinal


def test_only_normalize_reads_request_and_only_sourcing_reads_city() -> None:
    assert [s.step for s in STAGES if s.consumes_request] == [N]
    assert [s.step for s in STAGES if s.consumes_city] == [SO]


def test_get_stage_accepts_string() -> None:
    assert get_stage("tone").output_model is ToneOutput


def test_stage_definitions_are_frozen() -> None:
    with pytest.raises(AttributeError):
        STAGES[0].use_flash = True  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Prompt builders
# ---------------------------------------------------------------------------


def test_normalize_prompt_includes_vehicle_and_priorities(build_request: BuildRequest) -> None:
    prompt = get_stage(N).build_prompt(StageInputs(request=build_request))
    assert "Make: Subaru" in prompt
    assert "Priority Order: power > reliability > handling" in prompt
    assert "Cat-back exhaust" in prompt


def test_normalize_prompt_requires_request() -> None:
    with pytest.raises(PipelineError):
        get_stage(N).build_prompt(StageInputs())


def test_strategy_prompt_embeds_normalized_profile(
    stage_payloads: dict[PipelineStep, dict[str, Any]],
) -> None:
    normalized = NormalizeOutput.model_validate(stage_payloads[N])
    prompt = get_stage(ST).build_prompt(StageInputs(outputs={N: normalized}))
    assert '"factoryHp": 268.0' in prompt
    assert "Stock turbo and intercooler" in prompt


def test_missing_dependency_raises(stage_payloads: dict[PipelineStep, dict[str, Any]]) -> None:
    normalized = NormalizeOutput.model_validate(stage_payloads[N])
    with pytest.raises(PipelineError):
        get_stage(SY).build_prompt(StageInputs(outputs={N: normalized}))


def test_wrong_dependency_type_raises(stage_payloads: dict[PipelineStep, dict[str, Any]]) -> None:
    tone = ToneOutput.model_validate(stage_payloads[TO])
    with pytest.raises(PipelineError):
        get_stage(ST).build_prompt(StageInputs(outputs={N: tone}))


def test_sourcing_prompt_uses_city(stage_payloads: dict[PipelineStep, dict[str, Any]]) -> None:
    outputs = {
        N: NormalizeOutput.model_validate(stage_payloads[N]),
        SY: SynergyOutput.model_validate(stage_payloads[SY]),
    }
    prompt = get_stage(SO).build_prompt(StageInputs(outputs=outputs, city="Denver"))
    assert "USER CITY: Denver" in prompt
    assert '"id": "tune-1"' in prompt


def test_tone_prompt_summarizes_plan_and_final_gain(
    stage_payloads: dict[PipelineStep, dict[str, Any]],
) -> None:
    outputs = {
        SY: SynergyOutput.model_validate(stage_payloads[SY]),
        PE: PerformanceOutput.model_validate(stage_payloads[PE]),
    }
    prompt = get_stage(TO).build_prompt(StageInputs(outputs=outputs))
    assert "Stage 1: Bolt-ons" in prompt
    assert "Total Mods: 3" in prompt
    assert "Cost Range: $1,700 - $2,600" in prompt
    assert "Final HP Gain: 30-45 hp" in prompt
