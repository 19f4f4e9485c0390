"""Tests for pipeline/events.py."""
from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError as PydanticValidationError

from tunedup.core.constants import ErrorCode, PipelineStep, StepStatus
from tunedup.pipeline.events import (
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    ToneData,
    stage_data,
)
from tunedup.pipeline.schemas import StrategyOutput, ToneOutput


def test_running_event_wire_drops_empty_fields() -> None:
    event = ProgressEvent(
        step=PipelineStep.NORMALIZE,
        status=StepStatus.RUNNING,
        message="Understanding your car…",
    )
    assert event.event_name == "progress"
    assert event.to_wire() == {
        "step": "normalize",
        "status": "running",
        "message": "Understanding your car…",
    }


def test_completed_event_wire_is_camel_case(
    stage_payloads: dict[PipelineStep, dict[str, Any]],
) -> None:
    output = StrategyOutput.model_validate(stage_payloads[PipelineStep.STRATEGY])
    event = ProgressEvent(
        step=PipelineStep.STRATEGY,
        status=StepStatus.COMPLETED,
        tokens_used=150,
        total_tokens=250,
        data=stage_data(PipelineStep.STRATEGY, output),
    )
    wire = event.to_wire()
    assert wire["tokensUsed"] == 150
    assert wire["totalTokens"] == 250
    assert wire["data"]["step"] == "strategy"
    assert wire["data"]["output"]["guardrails"]["avoidFI"] is False
    assert wire["data"]["output"]["stageCount"] == 2


def test_stage_data_discriminates_on_step(
    stage_payloads: dict[PipelineStep, dict[str, Any]],
) -> None:
    event = ProgressEvent.model_validate(
        {
            "step": "tone",
            "status": "completed",
            "data": {"step": "tone", "output": stage_payloads[PipelineStep.TONE]},
        }
    )
    assert isinstance(event.data, ToneData)
    assert isinstance(event.data.output, ToneOutput)


def test_stage_data_rejects_mismatched_output() -> None:
    with pytest.raises(PydanticValidationError):
        ProgressEvent.model_validate(
            {
                "step": "tone",
                "status": "completed",
                "data": {"step": "tone", "output": {"stages": []}},
            }
        )


def test_complete_event_wire() -> None:
    event = CompleteEvent(build_id="b-1", total_tokens=1480)
    assert event.event_name == "complete"
    assert event.to_wire() == {"buildId": "b-1", "success": True, "totalTokens": 1480}


def test_error_event_wire() -> None:
    event = ErrorEvent(
        step=PipelineStep.SYNERGY,
        error="model overloaded",
        partial=True,
        build_id="b-1",
        code=ErrorCode.GENERATION_FAILED,
    )
    assert event.event_name == "error"
    assert event.to_wire() == {
        "step": "synergy",
        "error": "model overloaded",
        "partial": True,
        "code": "generation_failed",
        "buildId": "b-1",
    }


def test_events_accept_camel_case_input() -> None:
    event = CompleteEvent.model_validate({"buildId": "b-2", "success": False})
    assert event.build_id == "b-2"
    assert event.success is False
