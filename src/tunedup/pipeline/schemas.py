"""Output schemas for the seven pipeline stages.

Every generator reply is validated against one of these models before it is
persisted or handed to a later stage. Field names are snake_case in Python
and camelCase on the wire (``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CostRange(_Schema):
    low: float
    high: float


# --------------------------------------------------------------------------- #
# normalize
# --------------------------------------------------------------------------- #


class VehicleProfile(_Schema):
    year: int
    make: str
    model: str
    trim: str
    engine: str
    displacement: str
    aspiration: Literal["na", "turbo", "supercharged", "twinturbo"]
    drivetrain: Literal["fwd", "rwd", "awd"]
    transmission: Literal["manual", "auto", "dct", "cvt"]
    factory_hp: float
    factory_torque: float
    curb_weight: float
    platform: str

    @property
    def label(self) -> str:
        return f"{self.year} {self.make} {self.model} {self.trim}"


class UserIntent(_Schema):
    budget: float
    priority_rank: list[Literal["power", "handling", "reliability"]]
    daily_driver: bool
    emissions_sensitive: bool
    existing_mods: list[str] = Field(default_factory=list)
    city: str | None = None


class Confidence(_Schema):
    overall: float = Field(ge=0, le=100)
    vehicle_data: float = Field(ge=0, le=100)
    user_intent: float = Field(ge=0, le=100)


class NormalizeOutput(_Schema):
    vehicle_profile: VehicleProfile
    user_intent: UserIntent
    confidence: Confidence
    assumptions: list[str] = Field(default_factory=list)
    follow_up_questions: list[str] = Field(default_factory=list)


# --------------------------------------------------------------------------- #
# strategy
# --------------------------------------------------------------------------- #


class BudgetAllocation(_Schema):
    stage0: float
    stage1: float
    stage2: float | None = None
    stage3: float | None = None


class Guardrails(_Schema):
    avoid_fi: bool = Field(alias="avoidFI")
    keep_warranty: bool
    emissions_legal: bool
    daily_reliability: bool


class StrategyOutput(_Schema):
    archetype: str
    archetype_rationale: str
    stage_count: int = Field(ge=1, le=4)
    budget_allocation: BudgetAllocation
    guardrails: Guardrails
    key_focus: list[str] = Field(default_factory=list)


# --------------------------------------------------------------------------- #
# synergy
# --------------------------------------------------------------------------- #


class Mod(_Schema):
    id: str
    category: str
    name: str
    description: str
    justification: str
    estimated_cost: CostRange
    depends_on: list[str] = Field(default_factory=list)
    synergy_with: list[str] = Field(default_factory=list)


class SynergyGroup(_Schema):
    id: str
    name: str
    mod_ids: list[str]
    explanation: str


class Stage(_Schema):
    stage_number: int = Field(ge=0, le=3)
    name: str
    description: str
    estimated_cost: CostRange
    mods: list[Mod] = Field(default_factory=list)
    synergy_groups: list[SynergyGroup] = Field(default_factory=list)


class SynergyOutput(_Schema):
    stages: list[Stage] = Field(min_length=1)

    def all_mods(self) -> list[tuple[int, Mod]]:
        """Every mod in plan order, paired with its stage number."""
        return [(stage.stage_number, mod) for stage in self.stages for mod in stage.mods]

    def find_mod(self, mod_id: str) -> Mod | None:
        for _, mod in self.all_mods():
            if mod.id == mod_id:
                return mod
        return None

    def total_cost(self) -> CostRange:
        return CostRange(
            low=sum(s.estimated_cost.low for s in self.stages),
            high=sum(s.estimated_cost.high for s in self.stages),
        )


# --------------------------------------------------------------------------- #
# execution
# --------------------------------------------------------------------------- #


class HoursRange(_Schema):
    hours: CostRange


class ModExecution(_Schema):
    mod_id: str
    diyable: bool
    difficulty: int = Field(ge=1, le=5)
    time_estimate: HoursRange
    tools_required: list[str] = Field(default_factory=list)
    shop_type: str | None = None
    shop_labor_estimate: CostRange | None = None
    risk_notes: list[str] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)


class Tool(_Schema):
    id: str
    name: str
    category: Literal["hand tool", "specialty", "lift required", "diagnostic"]
    estimated_cost: float | None = None
    reusable: bool


class ExecutionOutput(_Schema):
    mod_executions: list[ModExecution]
    consolidated_tools: list[Tool] = Field(default_factory=list)

    def for_mod(self, mod_id: str) -> ModExecution | None:
        return next((e for e in self.mod_executions if e.mod_id == mod_id), None)


# --------------------------------------------------------------------------- #
# performance
# --------------------------------------------------------------------------- #


class QuarterMile(_Schema):
    time: float
    trap_speed: float


class PerformanceBaseline(_Schema):
    hp: float
    whp: float
    torque: float
    weight: float
    zero_to_sixty: float
    quarter_mile: QuarterMile


class QuarterMileRange(_Schema):
    time: CostRange
    trap_speed: CostRange


class StagePerformance(_Schema):
    hp_gain: CostRange
    whp_gain: CostRange
    torque_gain: CostRange
    estimated_hp: CostRange
    estimated_whp: CostRange
    zero_to_sixty: CostRange
    quarter_mile: QuarterMileRange


class PerformanceOutput(_Schema):
    baseline: PerformanceBaseline
    after_stage: dict[str, StagePerformance]
    assumptions: list[str] = Field(default_factory=list)
    caveats: list[str] = Field(default_factory=list)

    def final_stage(self) -> StagePerformance | None:
        """Estimate after the highest-numbered stage, if any are numeric."""
        numbered = [key for key in self.after_stage if key.isdigit()]
        if not numbered:
            return None
        return self.after_stage[max(numbered, key=int)]


# --------------------------------------------------------------------------- #
# sourcing
# --------------------------------------------------------------------------- #


class ModSourcing(_Schema):
    mod_id: str
    reputable_brands: list[str] = Field(default_factory=list)
    search_queries: list[str] = Field(default_factory=list)
    where_to_buy: list[str] = Field(default_factory=list)


class ShopType(_Schema):
    type: str
    for_mods: list[str] = Field(default_factory=list)
    search_query: str


class SourcingOutput(_Schema):
    mod_sourcing: list[ModSourcing]
    shop_types: list[ShopType] = Field(default_factory=list)


# --------------------------------------------------------------------------- #
# tone
# --------------------------------------------------------------------------- #


class ToneOutput(_Schema):
    headline: str
    summary: str
    stage_descriptions: dict[str, str] = Field(default_factory=dict)
    disclaimer_text: str


StageOutput = (
    NormalizeOutput
    | StrategyOutput
    | SynergyOutput
    | ExecutionOutput
    | PerformanceOutput
    | SourcingOutput
    | ToneOutput
)
