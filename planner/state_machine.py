"""
Manifest and job lifecycle

    draft -> validated -> approved -> in_production -> completed
      \\________\\___________\\______________\\_______-> failed

Manifest status only moves forward, except that any non-terminal state may
move to failed. Each forward transition stamps its timestamp once; a
timestamp that is already set is never overwritten.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Set

from planner.errors import InvalidTransitionError
from planner.models.manifest import (
    DependencyType,
    JobStatus,
    ManifestStatus,
    ProductionJob,
    ProductionManifest,
    ValidationStatus,
    utcnow,
)
from planner.models.validation import ValidationResult, format_issues

logger = logging.getLogger(__name__)


MANIFEST_TRANSITIONS: Dict[ManifestStatus, Set[ManifestStatus]] = {
    ManifestStatus.DRAFT: {ManifestStatus.VALIDATED, ManifestStatus.FAILED},
    ManifestStatus.VALIDATED: {ManifestStatus.APPROVED, ManifestStatus.FAILED},
    ManifestStatus.APPROVED: {ManifestStatus.IN_PRODUCTION, ManifestStatus.FAILED},
    ManifestStatus.IN_PRODUCTION: {ManifestStatus.COMPLETED, ManifestStatus.FAILED},
    ManifestStatus.COMPLETED: set(),
    ManifestStatus.FAILED: set(),
}

JOB_TRANSITIONS: Dict[JobStatus, Set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.CANCELLED, JobStatus.FAILED},
    JobStatus.PROCESSING: {
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.PENDING,  # Retry
        JobStatus.CANCELLED,
    },
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.CANCELLED: set(),
}

# Timestamp attribute stamped on entering each manifest state
MANIFEST_TIMESTAMPS = {
    ManifestStatus.VALIDATED: "validated_at",
    ManifestStatus.APPROVED: "approved_at",
    ManifestStatus.IN_PRODUCTION: "started_at",
    ManifestStatus.COMPLETED: "completed_at",
}


def validation_status_for(result: ValidationResult) -> ValidationStatus:
    if result.errors:
        return ValidationStatus.INVALID
    if result.warnings:
        return ValidationStatus.WARNING
    return ValidationStatus.VALID


class ManifestStateMachine:
    """
    Guards and applies manifest and job status changes.

    Example:
        machine = ManifestStateMachine()
        machine.transition(manifest, ManifestStatus.VALIDATED)
        machine.transition(manifest, ManifestStatus.APPROVED)
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utcnow

    # ------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------

    def can_transition(self, manifest: ProductionManifest, target: ManifestStatus) -> bool:
        """True when `target` is reachable in one step and its guard holds"""
        if target not in MANIFEST_TRANSITIONS[manifest.status]:
            return False
        return self._guard_failure(manifest, target) is None

    def transition(
        self,
        manifest: ProductionManifest,
        target: ManifestStatus,
        reason: Optional[str] = None,
        validation: Optional[ValidationResult] = None,
    ) -> ProductionManifest:
        """
        Move `manifest` to `target`.

        Args:
            manifest: Manifest to update in place
            target: Desired status
            reason: Recorded as error_message when moving to failed
            validation: Result to use for the draft -> validated guard;
                computed from the manifest when omitted

        Returns:
            The same manifest, updated

        Raises:
            InvalidTransitionError: Move not allowed or guard failed
        """
        current = manifest.status
        if target not in MANIFEST_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot move manifest from {current.value} to {target.value}",
                current=current.value,
                target=target.value,
                manifest_id=manifest.id,
            )

        if target == ManifestStatus.VALIDATED:
            if validation is None:
                from planner.validator import validate_manifest
                validation = validate_manifest(manifest)
            self.record_validation(manifest, validation)

        failure = self._guard_failure(manifest, target, validation)
        if failure:
            raise InvalidTransitionError(
                failure,
                current=current.value,
                target=target.value,
                manifest_id=manifest.id,
            )

        manifest.status = target
        stamp = MANIFEST_TIMESTAMPS.get(target)
        if stamp and getattr(manifest, stamp) is None:
            setattr(manifest, stamp, self._clock())
        if target == ManifestStatus.FAILED and reason:
            manifest.error_message = reason

        logger.info(f"Manifest {manifest.id}: {current.value} -> {target.value}")
        return manifest

    def fail(self, manifest: ProductionManifest, reason: str) -> ProductionManifest:
        """Move to failed unless already terminal"""
        if manifest.status in (ManifestStatus.COMPLETED, ManifestStatus.FAILED):
            return manifest
        return self.transition(manifest, ManifestStatus.FAILED, reason=reason)

    def record_validation(self, manifest: ProductionManifest, result: ValidationResult) -> None:
        """Write a validation outcome onto the manifest's derived fields"""
        manifest.validation_status = validation_status_for(result)
        manifest.validation_errors = format_issues(result.errors)

    def _guard_failure(
        self,
        manifest: ProductionManifest,
        target: ManifestStatus,
        validation: Optional[ValidationResult] = None,
    ) -> Optional[str]:
        if target == ManifestStatus.VALIDATED:
            if validation is not None:
                valid = validation.valid
            else:
                valid = manifest.validation_status in (ValidationStatus.VALID, ValidationStatus.WARNING)
            if not valid:
                return "Manifest failed validation"

        elif target == ManifestStatus.IN_PRODUCTION:
            if not manifest.jobs:
                return "Manifest has no jobs to run"

        elif target == ManifestStatus.COMPLETED:
            assembly = manifest.assembly_jobs()
            if not any(j.status == JobStatus.COMPLETED for j in assembly):
                return "Final assembly has not completed"
            blocking_ids = {
                dep.job_id
                for job in manifest.jobs
                for dep in job.dependencies
                if dep.dependency_type == DependencyType.BLOCKING
            }
            pending = [
                j.id for j in manifest.jobs
                if j.id in blocking_ids and j.status != JobStatus.COMPLETED
            ]
            if pending:
                return f"Blocking jobs not completed: {', '.join(pending)}"

        return None

    # ------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------

    def can_transition_job(self, job: ProductionJob, target: JobStatus) -> bool:
        return target in JOB_TRANSITIONS[job.status]

    def transition_job(
        self,
        job: ProductionJob,
        target: JobStatus,
        error: Optional[str] = None,
    ) -> ProductionJob:
        """Move a job to `target`, stamping started_at/completed_at"""
        current = job.status
        if not self.can_transition_job(job, target):
            raise InvalidTransitionError(
                f"Cannot move job {job.id} from {current.value} to {target.value}",
                current=current.value,
                target=target.value,
            )

        job.status = target
        if target == JobStatus.PROCESSING and job.started_at is None:
            job.started_at = self._clock()
        if job.is_terminal and job.completed_at is None:
            job.completed_at = self._clock()
        if error:
            job.error = error

        logger.debug(f"Job {job.id}: {current.value} -> {target.value}")
        return job
