"""Shared test fixtures."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from tunedup.builds.models import Build
from tunedup.builds.store import InMemoryBuildStore
from tunedup.chat.store import InMemoryChatStore
from tunedup.core.constants import PipelineStatus, PipelineStep
from tunedup.core.types import BuildRequest
from tunedup.generator.mock import MockGenerator
from tunedup.pipeline.stages import STAGES_BY_STEP
from tunedup.usage.ledger import UsageLedger
from tunedup.usage.models import month_key
from tunedup.usage.store import InMemoryUsageStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
USER_ID = "user-1"


def _range(low: float, high: float) -> dict[str, float]:
    return {"low": low, "high": high}


def _stage_perf(hp_low: float, hp_high: float) -> dict[str, Any]:
    return {
        "hpGain": _range(hp_low, hp_high),
        "whpGain": _range(hp_low * 0.85, hp_high * 0.85),
        "torqueGain": _range(hp_low, hp_high),
        "estimatedHp": _range(268 + hp_low, 268 + hp_high),
        "estimatedWhp": _range(230 + hp_low * 0.85, 230 + hp_high * 0.85),
        "zeroToSixty": _range(4.9, 5.2),
        "quarterMile": {"time": _range(13.0, 13.4), "trapSpeed": _range(104, 107)},
    }


@pytest.fixture
def generator() -> MockGenerator:
    return MockGenerator()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def current_month() -> str:
    return month_key(NOW)


@pytest.fixture
def usage_store() -> InMemoryUsageStore:
    return InMemoryUsageStore()


@pytest.fixture
def ledger(usage_store: InMemoryUsageStore) -> UsageLedger:
    return UsageLedger(usage_store, default_limit=100_000, clock=lambda: NOW)


@pytest.fixture
def build_store() -> InMemoryBuildStore:
    return InMemoryBuildStore()


@pytest.fixture
def chat_store() -> InMemoryChatStore:
    return InMemoryChatStore()


@pytest.fixture
def request_data() -> dict[str, Any]:
    return {
        "vehicle": {
            "year": 2019,
            "make": "Subaru",
            "model": "WRX",
            "trim": "Premium",
            "engine": "2.0L FA20DIT",
            "transmission": "manual",
        },
        "intent": {
            "budget": 8000,
            "goals": {"power": 5, "handling": 3, "reliability": 4},
            "dailyDriver": True,
            "emissionsSensitive": False,
            "existingMods": "Cat-back exhaust",
            "city": "Denver",
        },
    }


@pytest.fixture
def build_request(request_data: dict[str, Any]) -> BuildRequest:
    return BuildRequest.parse(request_data)


@pytest.fixture
def stage_payloads() -> dict[PipelineStep, dict[str, Any]]:
    """One schema-valid generator reply per stage, in wire (camelCase) form."""
    return {
        PipelineStep.NORMALIZE: {
            "vehicleProfile": {
                "year": 2019,
                "make": "Subaru",
                "model": "WRX",
                "trim": "Premium",
                "engine": "2.0L FA20DIT",
                "displacement": "2.0L",
                "aspiration": "turbo",
                "drivetrain": "awd",
                "transmission": "manual",
                "factoryHp": 268,
                "factoryTorque": 258,
                "curbWeight": 3267,
                "platform": "VA",
            },
            "userIntent": {
                "budget": 8000,
                "priorityRank": ["power", "reliability", "handling"],
                "dailyDriver": True,
                "emissionsSensitive": False,
                "existingMods": ["Cat-back exhaust"],
                "city": "Denver",
            },
            "confidence": {"overall": 90, "vehicleData": 95, "userIntent": 85},
            "assumptions": ["Stock turbo and intercooler"],
            "followUpQuestions": [],
        },
        PipelineStep.STRATEGY: {
            "archetype": "Street Performance",
            "archetypeRationale": "Power first without giving up the daily commute.",
            "stageCount": 2,
            "budgetAllocation": {"stage0": 10, "stage1": 40, "stage2": 50},
            "guardrails": {
                "avoidFI": False,
                "keepWarranty": False,
                "emissionsLegal": True,
                "dailyReliability": True,
            },
            "keyFocus": ["power", "reliability"],
        },
        PipelineStep.SYNERGY: {
            "stages": [
                {
                    "stageNumber": 0,
                    "name": "Foundation",
                    "description": "Fresh fluids before adding boost.",
                    "estimatedCost": _range(200, 400),
                    "mods": [
                        {
                            "id": "fluids-1",
                            "category": "maintenance",
                            "name": "Fluid refresh",
                            "description": "Oil, coolant and diff fluid.",
                            "justification": "Healthy baseline.",
                            "estimatedCost": _range(200, 400),
                        }
                    ],
                },
                {
                    "stageNumber": 1,
                    "name": "Bolt-ons",
                    "description": "Intake and a protune.",
                    "estimatedCost": _range(1500, 2200),
                    "mods": [
                        {
                            "id": "intake-1",
                            "category": "intake",
                            "name": "Cold air intake",
                            "description": "Larger intake tract.",
                            "justification": "Supports the tune.",
                            "estimatedCost": _range(300, 450),
                            "synergyWith": ["tune-1"],
                        },
                        {
                            "id": "tune-1",
                            "category": "tune",
                            "name": "Pro tune",
                            "description": "Dyno tune for the new hardware.",
                            "justification": "Where the power comes from.",
                            "estimatedCost": _range(1200, 1750),
                            "dependsOn": ["intake-1"],
                        },
                    ],
                    "synergyGroups": [
                        {
                            "id": "sg-1",
                            "name": "Breathing",
                            "modIds": ["intake-1", "tune-1"],
                            "explanation": "The tune is calibrated for the intake.",
                        }
                    ],
                },
            ]
        },
        PipelineStep.EXECUTION: {
            "modExecutions": [
                {
                    "modId": "intake-1",
                    "diyable": True,
                    "difficulty": 2,
                    "timeEstimate": {"hours": _range(1, 2)},
                    "toolsRequired": ["10mm socket", "Flat screwdriver"],
                    "riskNotes": ["Check MAF connector seating"],
                },
                {
                    "modId": "tune-1",
                    "diyable": False,
                    "difficulty": 5,
                    "timeEstimate": {"hours": _range(3, 5)},
                    "shopType": "Subaru tuner",
                    "shopLaborEstimate": _range(400, 700),
                },
            ],
            "consolidatedTools": [
                {
                    "id": "tool-1",
                    "name": "Socket set",
                    "category": "hand tool",
                    "estimatedCost": 60,
                    "reusable": True,
                }
            ],
        },
        PipelineStep.PERFORMANCE: {
            "baseline": {
                "hp": 268,
                "whp": 230,
                "torque": 258,
                "weight": 3267,
                "zeroToSixty": 5.4,
                "quarterMile": {"time": 13.6, "trapSpeed": 102},
            },
            "afterStage": {"0": _stage_perf(0, 0), "1": _stage_perf(30, 45)},
            "assumptions": ["93 octane"],
            "caveats": ["Altitude reduces turbo efficiency"],
        },
        PipelineStep.SOURCING: {
            "modSourcing": [
                {
                    "modId": "intake-1",
                    "reputableBrands": ["Cobb", "Perrin"],
                    "searchQueries": ["2019 WRX cold air intake"],
                    "whereToBuy": ["Online retailers"],
                }
            ],
            "shopTypes": [
                {
                    "type": "Subaru tuner",
                    "forMods": ["tune-1"],
                    "searchQuery": "subaru tuning shop Denver",
                }
            ],
        },
        PipelineStep.TONE: {
            "headline": "Your WRX, but angrier",
            "summary": "A sensible path to more boost without wrecking the commute.",
            "stageDescriptions": {"0": "Fix the basics", "1": "Wake it up"},
            "disclaimerText": "All numbers are estimates.",
        },
    }


@pytest.fixture
async def stored_build(build_store: InMemoryBuildStore, build_request: BuildRequest) -> Build:
    return await build_store.create(
        Build(
            id="build-1",
            user_id=USER_ID,
            request=build_request,
            pipeline_status=PipelineStatus.RUNNING,
        )
    )


@pytest.fixture
async def completed_build(
    build_store: InMemoryBuildStore,
    build_request: BuildRequest,
    stage_payloads: dict[PipelineStep, dict[str, Any]],
) -> Build:
    """A stored build with every stage output filled in."""
    outputs = {
        step.value: STAGES_BY_STEP[step].output_model.model_validate(payload)
        for step, payload in stage_payloads.items()
    }
    return await build_store.create(
        Build(
            id="build-done",
            user_id=USER_ID,
            request=build_request,
            pipeline_status=PipelineStatus.COMPLETED,
            **outputs,
        )
    )
