from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from tunedup.core.exceptions import ValidationError


class Goals(BaseModel):
    """Relative weight (1-5) the owner puts on each goal."""

    power: int = Field(ge=1, le=5)
    handling: int = Field(ge=1, le=5)
    reliability: int = Field(ge=1, le=5)

    model_config = {"frozen": True}

    def priority_rank(self) -> list[str]:
        """Goal names ordered from most to least important (stable on ties)."""
        ranked = sorted(
            [("power", self.power), ("handling", self.handling), ("reliability", self.reliability)],
            key=lambda item: item[1],
            reverse=True,
        )
        return [name for name, _ in ranked]


class VehicleInput(BaseModel):
    year: int = Field(ge=1900, le=2030)
    make: str = Field(min_length=1, max_length=50)
    model: str = Field(min_length=1, max_length=50)
    trim: str = Field(min_length=1, max_length=100)
    engine: str | None = Field(default=None, max_length=100)
    drivetrain: str | None = Field(default=None, max_length=20)
    fuel: str | None = Field(default=None, max_length=20)
    transmission: Literal["manual", "auto", "unknown"]

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"{self.year} {self.make} {self.model} {self.trim}"


class IntentInput(BaseModel):
    budget: float = Field(gt=0, le=500_000)
    goals: Goals
    daily_driver: bool = Field(alias="dailyDriver")
    emissions_sensitive: bool = Field(alias="emissionsSensitive")
    existing_mods: str = Field(default="", max_length=1000, alias="existingMods")
    elevation: str | None = Field(default=None, max_length=100)
    climate: str | None = Field(default=None, max_length=100)
    tire_type: str | None = Field(default=None, max_length=50, alias="tireType")
    weight: float | None = Field(default=None, gt=0, le=10_000)
    city: str | None = Field(default=None, max_length=100)

    model_config = {"frozen": True, "populate_by_name": True}


class BuildRequest(BaseModel):
    """Vehicle description plus the owner's intent. Immutable once built."""

    vehicle: VehicleInput
    intent: IntentInput

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, data: Any) -> BuildRequest:
        """Validate raw caller input (camelCase or snake_case keys).

        Raises:
            ValidationError: With every failing field message joined by ``", "``.
        """
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            messages = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            ]
            raise ValidationError(", ".join(messages), code="invalid_request") from exc


class GenerationResult(BaseModel):
    """What one generator call produced and what it cost."""

    data: Any
    tokens_used: int = Field(default=0, ge=0, alias="tokensUsed")
    prompt_tokens: int | None = Field(default=None, alias="promptTokens")
    output_tokens: int | None = Field(default=None, alias="outputTokens")

    model_config = {"populate_by_name": True}
