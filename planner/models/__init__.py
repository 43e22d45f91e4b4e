"""Data models for the production planner"""

from .manifest import (
    ManifestStatus,
    JobStatus,
    ValidationStatus,
    AssetStatus,
    SceneStatus,
    AssetType,
    AssetSource,
    UsageType,
    Orientation,
    JobType,
    DependencyType,
    ProcessingPhase,
    ASSEMBLY_JOB_TYPES,
    TERMINAL_JOB_STATUSES,
    AssetTiming,
    ProductionAsset,
    ProductionScene,
    JobDependency,
    ResourceRequirements,
    ProductionJob,
    VoiceoverConfig,
    MusicConfig,
    SoundEffectConfig,
    VisualEffectConfig,
    ChartConfig,
    ProcessingConfig,
    ProductionManifest,
)
from .validation import (
    Severity,
    ValidationIssue,
    ValidationResult,
    format_issues,
)

__all__ = [
    # Enums
    "ManifestStatus",
    "JobStatus",
    "ValidationStatus",
    "AssetStatus",
    "SceneStatus",
    "AssetType",
    "AssetSource",
    "UsageType",
    "Orientation",
    "JobType",
    "DependencyType",
    "ProcessingPhase",
    "ASSEMBLY_JOB_TYPES",
    "TERMINAL_JOB_STATUSES",
    # Manifest models
    "AssetTiming",
    "ProductionAsset",
    "ProductionScene",
    "JobDependency",
    "ResourceRequirements",
    "ProductionJob",
    "VoiceoverConfig",
    "MusicConfig",
    "SoundEffectConfig",
    "VisualEffectConfig",
    "ChartConfig",
    "ProcessingConfig",
    "ProductionManifest",
    # Validation
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "format_issues",
]
