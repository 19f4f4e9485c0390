from tunedup.builds.models import (
    Build,
    BuildList,
    BuildListItem,
    BuildProgress,
    ModProgress,
    ProgressStats,
    StatsPreview,
)
from tunedup.builds.service import BuildService
from tunedup.builds.store import BuildStore, InMemoryBuildStore

__all__ = [
    "Build",
    "BuildList",
    "BuildListItem",
    "BuildProgress",
    "BuildService",
    "BuildStore",
    "InMemoryBuildStore",
    "ModProgress",
    "ProgressStats",
    "StatsPreview",
]
