from tunedup.guides.install import (
    InstallGuide,
    InstallGuideResult,
    InstallGuideService,
    InstallStep,
)

__all__ = [
    "InstallGuide",
    "InstallGuideResult",
    "InstallGuideService",
    "InstallStep",
]
