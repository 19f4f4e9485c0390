from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tunedup.builds.models import Build
from tunedup.builds.store import BuildStore
from tunedup.core.config import PlannerConfig
from tunedup.core.exceptions import BuildNotFoundError, ModNotFoundError
from tunedup.generator.base import Generator
from tunedup.generator.calls import call_generator
from tunedup.output.structured import validate_output
from tunedup.pipeline.schemas import Mod, ModExecution
from tunedup.usage.ledger import UsageLedger
from tunedup.utils.logging import get_logger

logger = get_logger(__name__)


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InstallStep(_Model):
    number: int = Field(ge=1)
    title: str
    description: str
    warning: str | None = None


class InstallGuide(_Model):
    title: str
    recommendation: Literal["diy", "shop"]
    shop_reason: str | None = None
    difficulty: int = Field(ge=1, le=5)
    time_estimate: str
    tools: list[str] = Field(default_factory=list)
    steps: list[InstallStep] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class InstallGuideResult(_Model):
    guide: InstallGuide
    tokens_used: int


INSTALL_GUIDE_SYSTEM = """You are a friendly shop mechanic creating an install guide. Be helpful, accurate, and include safety warnings.
- Don't assume the user has expertise; call out the gotchas that catch beginners.
- If the mod is not DIY-able, set recommendation to "shop" and explain why in shopReason.
- Otherwise give detailed step-by-step DIY instructions.
- Be specific to the vehicle and mention any specialty tools.
Return a single JSON object with: title, recommendation ("diy" | "shop"), shopReason,
difficulty (1-5), timeEstimate, tools, steps [{number, title, description, warning}],
tips, warnings."""


def build_install_prompt(build: Build, mod: Mod, execution: ModExecution | None) -> str:
    vehicle = build.request.vehicle
    vehicle_str = vehicle.label + (f" ({vehicle.engine})" if vehicle.engine else "")

    diyable = execution.diyable if execution else True
    difficulty = execution.difficulty if execution else 3
    if execution:
        hours = execution.time_estimate.hours
        time_estimate = f"{hours.low:g}-{hours.high:g} hours"
    else:
        time_estimate = "Unknown"
    tools = execution.tools_required if execution else []
    risks = execution.risk_notes if execution else []

    if diyable:
        guidance = (
            "DIY GUIDE:\nProvide a clear, step-by-step guide that a moderately skilled "
            "DIYer could follow. Include all safety precautions."
        )
    else:
        guidance = (
            "SHOP RECOMMENDED:\nStart by being honest about why a shop is recommended, "
            "then explain what is involved so the owner knows what they are paying for."
        )

    return "\n".join(
        [
            "Generate an install guide for the following:",
            "",
            f"VEHICLE: {vehicle_str}",
            f"MODIFICATION: {mod.name}",
            f"CATEGORY: {mod.category}",
            f"DESCRIPTION: {mod.description}",
            "",
            "EXECUTION CONTEXT:",
            f"- DIY Recommended: {'Yes' if diyable else 'No (Shop recommended)'}",
            f"- Difficulty: {difficulty}/5",
            f"- Estimated Time: {time_estimate}",
            f"- Tools Required: {', '.join(tools) or 'Unknown'}",
            f"- Risk Notes: {'; '.join(risks) or 'None noted'}",
            "",
            guidance,
            "",
            "Return the install guide as JSON.",
        ]
    )


class InstallGuideService:
    """On-demand install guide for one mod of a stored build.

    Execution details from the build are used when present; otherwise the
    mod is treated as DIY-able with difficulty 3. The generator call is bounded
    by ``config.generator_timeout``.
    """

    def __init__(
        self,
        generator: Generator,
        ledger: UsageLedger,
        builds: BuildStore,
        *,
        config: PlannerConfig | None = None,
    ) -> None:
        self._generator = generator
        self._ledger = ledger
        self._builds = builds
        self._config = config or PlannerConfig()

    def __repr__(self) -> str:
        return "InstallGuideService()"

    async def generate(self, user_id: str, build_id: str, mod_id: str) -> InstallGuideResult:
        """Generate a guide for *mod_id*.

        Raises:
            QuotaExceededError: The user's quota is spent.
            BuildNotFoundError: The build is missing or owned by someone else.
            ModNotFoundError: The build's plan has no mod with that id.
            GeneratorError: The call failed, timed out or the reply is not a valid guide.
        """
        await self._ledger.ensure_not_blocked(user_id)

        build = await self._builds.get(build_id)
        if build is None or build.user_id != user_id:
            raise BuildNotFoundError(
                f"Build {build_id!r} not found", details={"build_id": build_id}
            )

        mod = build.synergy.find_mod(mod_id) if build.synergy else None
        if mod is None:
            raise ModNotFoundError(
                f"Mod {mod_id!r} not found in build",
                details={"build_id": build_id, "mod_id": mod_id},
            )
        execution = build.execution.for_mod(mod_id) if build.execution else None

        result = await call_generator(
            self._generator.generate(
                build_install_prompt(build, mod, execution),
                INSTALL_GUIDE_SYSTEM,
                use_flash=True,
            ),
            timeout=self._config.generator_timeout,
            step="install_guide",
        )
        guide = validate_output(result.data, InstallGuide, step="install_guide")

        await self._ledger.track_tokens(user_id, result.tokens_used)
        logger.info(
            "install_guide_generated",
            build_id=build_id,
            mod_id=mod_id,
            tokens=result.tokens_used,
        )
        return InstallGuideResult(guide=guide, tokens_used=result.tokens_used)
