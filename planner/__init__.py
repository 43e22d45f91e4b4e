"""Production planner - manifest validation, governance and job orchestration"""

from .config import GovernanceConfig, PromptEnhancementMode
from .errors import (
    ProductionPlannerError,
    ManifestValidationError,
    ProcessingError,
    JobExecutionError,
    GovernanceRejection,
    InvalidTransitionError,
    ConcurrentModificationError,
    RecordNotFoundError,
)
from .governance import GovernanceEngine, CapCheck, QualityGateResult, RetryPolicy, AdmissionDecision
from .quality import calculate_quality_score
from .state_machine import ManifestStateMachine
from .validator import validate_manifest, validate_asset, validate_scene
from .execution import JobGraph, JobScheduler, SchedulerConfig, SchedulerReport
from .planner import ProductionPlanner

__version__ = "0.1.0"

__all__ = [
    # Config
    "GovernanceConfig",
    "PromptEnhancementMode",

    # Errors
    "ProductionPlannerError",
    "ManifestValidationError",
    "ProcessingError",
    "JobExecutionError",
    "GovernanceRejection",
    "InvalidTransitionError",
    "ConcurrentModificationError",
    "RecordNotFoundError",

    # Governance
    "GovernanceEngine",
    "CapCheck",
    "QualityGateResult",
    "RetryPolicy",
    "AdmissionDecision",

    # Manifest
    "calculate_quality_score",
    "ManifestStateMachine",
    "validate_manifest",
    "validate_asset",
    "validate_scene",

    # Orchestration
    "JobGraph",
    "JobScheduler",
    "SchedulerConfig",
    "SchedulerReport",
    "ProductionPlanner",
]
