"""tunedup: staged automotive build plans and a mechanic chat over one text generator."""

from tunedup.__version__ import __version__
from tunedup.builds import (
    Build,
    BuildList,
    BuildProgress,
    BuildService,
    BuildStore,
    InMemoryBuildStore,
    ModProgress,
)
from tunedup.chat import (
    ChatContextManager,
    ChatStore,
    ContextUsage,
    InMemoryChatStore,
    compute_context_usage,
)
from tunedup.core.config import ChatConfig, PlannerConfig
from tunedup.core.constants import (
    STEP_ORDER,
    ErrorCode,
    ModStatus,
    PipelineStatus,
    PipelineStep,
    StepStatus,
    UsageWarning,
)
from tunedup.core.exceptions import (
    BuildLimitError,
    BuildNotFoundError,
    ConfigurationError,
    GeneratorError,
    GeneratorTimeoutError,
    ModNotFoundError,
    PersistenceError,
    PipelineError,
    QuotaExceededError,
    TunedupError,
    ValidationError,
)
from tunedup.core.types import BuildRequest, GenerationResult, Goals, IntentInput, VehicleInput
from tunedup.generator.base import ChatTurn, Generator
from tunedup.generator.gemini import GeminiGenerator
from tunedup.generator.mock import MockGenerator
from tunedup.guides import InstallGuide, InstallGuideResult, InstallGuideService
from tunedup.pipeline.events import CompleteEvent, ErrorEvent, PipelineEvent, ProgressEvent
from tunedup.pipeline.orchestrator import PipelineOrchestrator, PipelineRunResult
from tunedup.pipeline.stages import STAGES, StageDefinition
from tunedup.pipeline.state import PipelineState
from tunedup.usage import InMemoryUsageStore, UsageLedger, UsageStatus, UsageStore
from tunedup.utils.logging import configure_from_config, configure_logging, get_logger

__all__ = [
    "__version__",
    # Pipeline
    "PipelineOrchestrator",
    "PipelineRunResult",
    "PipelineState",
    "StageDefinition",
    "STAGES",
    "STEP_ORDER",
    "ProgressEvent",
    "CompleteEvent",
    "ErrorEvent",
    "PipelineEvent",
    # Generators
    "Generator",
    "ChatTurn",
    "GeminiGenerator",
    "MockGenerator",
    "GenerationResult",
    # Usage
    "UsageLedger",
    "UsageStore",
    "InMemoryUsageStore",
    "UsageStatus",
    # Builds
    "Build",
    "BuildList",
    "BuildProgress",
    "BuildRequest",
    "BuildService",
    "BuildStore",
    "InMemoryBuildStore",
    "ModProgress",
    "Goals",
    "IntentInput",
    "VehicleInput",
    # Chat
    "ChatContextManager",
    "ChatStore",
    "InMemoryChatStore",
    "ContextUsage",
    "compute_context_usage",
    # Install guides
    "InstallGuide",
    "InstallGuideResult",
    "InstallGuideService",
    # Config
    "ChatConfig",
    "PlannerConfig",
    # Constants
    "ErrorCode",
    "ModStatus",
    "PipelineStatus",
    "PipelineStep",
    "StepStatus",
    "UsageWarning",
    # Exceptions
    "TunedupError",
    "ConfigurationError",
    "ValidationError",
    "QuotaExceededError",
    "GeneratorError",
    "GeneratorTimeoutError",
    "PersistenceError",
    "PipelineError",
    "BuildNotFoundError",
    "BuildLimitError",
    "ModNotFoundError",
    # Logging
    "configure_from_config",
    "configure_logging",
    "get_logger",
]
