"""Unit tests for manifest and job lifecycle transitions"""

from datetime import datetime, timedelta, timezone

import pytest

from planner.errors import InvalidTransitionError
from planner.models.manifest import (
    JobStatus,
    ManifestStatus,
    ProductionManifest,
    ValidationStatus,
)
from planner.models.validation import ValidationIssue, ValidationResult
from planner.state_machine import ManifestStateMachine, validation_status_for
from tests.mocks.fixtures import make_job_dict, make_manifest_dict


class FakeClock:
    """Clock that advances one minute per reading"""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def machine(clock):
    return ManifestStateMachine(clock=clock)


@pytest.fixture
def manifest():
    return ProductionManifest.from_dict(make_manifest_dict())


def complete_all_jobs(manifest):
    for job in manifest.jobs:
        job.status = JobStatus.COMPLETED


# ============================================================
# Manifest transitions
# ============================================================

class TestManifestTransitions:

    def test_happy_path_stamps_each_timestamp(self, machine, manifest):
        machine.transition(manifest, ManifestStatus.VALIDATED)
        machine.transition(manifest, ManifestStatus.APPROVED)
        machine.transition(manifest, ManifestStatus.IN_PRODUCTION)
        complete_all_jobs(manifest)
        machine.transition(manifest, ManifestStatus.COMPLETED)

        assert manifest.status == ManifestStatus.COMPLETED
        stamps = [manifest.validated_at, manifest.approved_at, manifest.started_at, manifest.completed_at]
        assert all(stamps)
        assert stamps == sorted(stamps)

    def test_validation_is_recorded(self, machine, manifest):
        machine.transition(manifest, ManifestStatus.VALIDATED)

        assert manifest.validation_status == ValidationStatus.VALID
        assert manifest.validation_errors == []

    def test_invalid_manifest_cannot_be_validated(self, machine):
        data = make_manifest_dict(duration_seconds=45)
        manifest = ProductionManifest.from_dict(data)

        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.transition(manifest, ManifestStatus.VALIDATED)

        assert manifest.status == ManifestStatus.DRAFT
        assert manifest.validation_status == ValidationStatus.INVALID
        assert manifest.validation_errors
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_warnings_still_validate(self, machine):
        jobs = [make_job_dict("img_1", job_config={"scene_id": "scene_1"})]
        manifest = ProductionManifest.from_dict(make_manifest_dict(jobs=jobs))

        machine.transition(manifest, ManifestStatus.VALIDATED)

        assert manifest.validation_status == ValidationStatus.WARNING

    def test_uses_supplied_validation_result(self, machine, manifest):
        failed = ValidationResult.invalid([ValidationIssue("jobs", "broken", "dependency_cycle")])

        with pytest.raises(InvalidTransitionError):
            machine.transition(manifest, ManifestStatus.VALIDATED, validation=failed)

        assert manifest.validation_errors == ["jobs: broken"]

    def test_cannot_skip_states(self, machine, manifest):
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.transition(manifest, ManifestStatus.IN_PRODUCTION)

        assert exc_info.value.current == "draft"
        assert exc_info.value.target == "in_production"

    def test_cannot_go_backwards(self, machine, manifest):
        machine.transition(manifest, ManifestStatus.VALIDATED)
        machine.transition(manifest, ManifestStatus.APPROVED)

        assert not machine.can_transition(manifest, ManifestStatus.VALIDATED)
        with pytest.raises(InvalidTransitionError):
            machine.transition(manifest, ManifestStatus.VALIDATED)

    def test_production_needs_jobs(self, machine):
        manifest = ProductionManifest.from_dict(make_manifest_dict(jobs=[]))
        manifest.status = ManifestStatus.APPROVED

        assert not machine.can_transition(manifest, ManifestStatus.IN_PRODUCTION)
        with pytest.raises(InvalidTransitionError, match="no jobs"):
            machine.transition(manifest, ManifestStatus.IN_PRODUCTION)

    def test_completion_needs_final_assembly(self, machine, manifest):
        manifest.status = ManifestStatus.IN_PRODUCTION
        for job in manifest.jobs:
            if job.id != "assembly":
                job.status = JobStatus.COMPLETED

        assert not machine.can_transition(manifest, ManifestStatus.COMPLETED)

    def test_completion_needs_blocking_jobs(self, machine, manifest):
        manifest.status = ManifestStatus.IN_PRODUCTION
        complete_all_jobs(manifest)
        manifest.get_job("img_2").status = JobStatus.FAILED

        with pytest.raises(InvalidTransitionError, match="img_2"):
            machine.transition(manifest, ManifestStatus.COMPLETED)

    def test_any_state_can_fail(self, machine, manifest):
        machine.transition(manifest, ManifestStatus.VALIDATED)
        machine.transition(manifest, ManifestStatus.FAILED, reason="Upstream analyzer crashed")

        assert manifest.status == ManifestStatus.FAILED
        assert manifest.error_message == "Upstream analyzer crashed"

    def test_terminal_states_are_final(self, machine, manifest):
        machine.fail(manifest, "first")

        assert not machine.can_transition(manifest, ManifestStatus.VALIDATED)
        # fail() on a terminal manifest keeps the first reason
        machine.fail(manifest, "second")
        assert manifest.error_message == "first"

    def test_timestamp_is_never_restamped(self, machine, manifest):
        original = datetime(2020, 5, 1, tzinfo=timezone.utc)
        manifest.validated_at = original

        machine.transition(manifest, ManifestStatus.VALIDATED)

        assert manifest.validated_at == original


# ============================================================
# Job transitions
# ============================================================

class TestJobTransitions:

    def test_lifecycle_stamps_once(self, machine, manifest):
        job = manifest.get_job("img_1")

        machine.transition_job(job, JobStatus.PROCESSING)
        started = job.started_at
        machine.transition_job(job, JobStatus.PENDING)
        machine.transition_job(job, JobStatus.PROCESSING)
        machine.transition_job(job, JobStatus.COMPLETED)

        assert job.started_at == started
        assert job.completed_at is not None
        assert job.completed_at > started

    def test_failure_records_error(self, machine, manifest):
        job = manifest.get_job("img_1")
        machine.transition_job(job, JobStatus.PROCESSING)
        machine.transition_job(job, JobStatus.FAILED, error="Provider timeout")

        assert job.error == "Provider timeout"
        assert job.is_terminal

    def test_terminal_jobs_cannot_move(self, machine, manifest):
        job = manifest.get_job("img_1")
        job.status = JobStatus.COMPLETED

        assert not machine.can_transition_job(job, JobStatus.PROCESSING)
        with pytest.raises(InvalidTransitionError):
            machine.transition_job(job, JobStatus.PROCESSING)

    def test_pending_job_can_be_cancelled(self, machine, manifest):
        job = manifest.get_job("img_1")
        machine.transition_job(job, JobStatus.CANCELLED)

        assert job.status == JobStatus.CANCELLED
        assert job.started_at is None


class TestValidationStatusFor:

    def test_statuses(self):
        error = ValidationIssue("a", "b", "c")
        assert validation_status_for(ValidationResult.ok(None)) == ValidationStatus.VALID
        assert validation_status_for(ValidationResult.ok(None, [error])) == ValidationStatus.WARNING
        assert validation_status_for(ValidationResult.invalid([error])) == ValidationStatus.INVALID
