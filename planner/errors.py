"""Exception types raised by the production planner"""

from typing import Any, Dict, List, Optional

from planner.models.manifest import ProcessingPhase


class ProductionPlannerError(Exception):
    """Base class for every planner failure"""

    def __init__(
        self,
        message: str,
        code: str = "PRODUCTION_PLANNER_ERROR",
        manifest_id: Optional[str] = None,
        job_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.manifest_id = manifest_id
        self.job_id = job_id
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "manifest_id": self.manifest_id,
            "job_id": self.job_id,
            "details": self.details,
        }


class ManifestValidationError(ProductionPlannerError):
    """
    Schema or business-rule violation.

    Recoverable by correcting the document, never retried automatically.
    """

    def __init__(self, message: str, validation_errors: List[Any], manifest_id: Optional[str] = None):
        super().__init__(
            message,
            "VALIDATION_ERROR",
            manifest_id=manifest_id,
            details={"validation_errors": list(validation_errors)},
        )
        self.validation_errors = list(validation_errors)


class ProcessingError(ProductionPlannerError):
    """A named phase of the production pipeline failed"""

    def __init__(
        self,
        message: str,
        phase: ProcessingPhase,
        manifest_id: Optional[str] = None,
        job_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "PROCESSING_ERROR", manifest_id, job_id, details)
        self.phase = phase


class JobExecutionError(ProductionPlannerError):
    """A specific job failed after exhausting its attempts"""

    def __init__(
        self,
        message: str,
        job_type: str,
        job_id: str,
        manifest_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "JOB_EXECUTION_ERROR", manifest_id, job_id, details)
        self.job_type = job_type


class GovernanceRejection(ProductionPlannerError):
    """A cost or timeout cap refused admission. Not retryable."""

    def __init__(self, message: str, job_id: Optional[str] = None, manifest_id: Optional[str] = None):
        super().__init__(message, "GOVERNANCE_REJECTION", manifest_id, job_id)


class InvalidTransitionError(ProductionPlannerError):
    """Illegal state machine move or unmet transition guard"""

    def __init__(self, message: str, current: str, target: str, manifest_id: Optional[str] = None):
        super().__init__(
            message,
            "INVALID_TRANSITION",
            manifest_id=manifest_id,
            details={"current": current, "target": target},
        )
        self.current = current
        self.target = target


class ConcurrentModificationError(ProductionPlannerError):
    """Conditional update lost against a newer record version"""

    def __init__(self, manifest_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Manifest {manifest_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            "CONFLICT",
            manifest_id=manifest_id,
            details={"expected_version": expected_version, "actual_version": actual_version},
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class RecordNotFoundError(ProductionPlannerError):
    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}", "NOT_FOUND")
        self.kind = kind
        self.record_id = record_id
