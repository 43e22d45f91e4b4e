"""
Production planner service

Ties validation, scoring, the state machine and the scheduler to a
repository. This is the entry point an API layer or the CLI calls.
"""

import logging
from typing import Any, Dict, Optional, Union

from planner.errors import (
    InvalidTransitionError,
    ManifestValidationError,
    ProductionPlannerError,
)
from planner.execution.scheduler import JobScheduler, SchedulerReport
from planner.governance import GovernanceEngine
from planner.models.manifest import ManifestStatus, ProductionManifest, ValidationStatus
from planner.models.validation import format_issues
from planner.quality import calculate_quality_score
from planner.repository.base import ManifestRecord, ManifestRepository
from planner.state_machine import ManifestStateMachine, validation_status_for
from planner.validator import validate_manifest

logger = logging.getLogger(__name__)

# Manifest data can only be edited before approval
EDITABLE_STATUSES = (ManifestStatus.DRAFT, ManifestStatus.VALIDATED)


class ProductionPlanner:
    """
    Manifest lifecycle service.

    Example:
        planner = ProductionPlanner(InMemoryManifestRepository(), scheduler)
        record = await planner.create_manifest(document, user_id="user_1")
        await planner.approve(record.id)
        report = await planner.produce(record.id)
    """

    def __init__(
        self,
        repository: ManifestRepository,
        scheduler: Optional[JobScheduler] = None,
        governance: Optional[GovernanceEngine] = None,
        state_machine: Optional[ManifestStateMachine] = None,
    ):
        self.repository = repository
        self.scheduler = scheduler
        self.governance = governance or (scheduler.governance if scheduler else GovernanceEngine())
        self.state_machine = state_machine or ManifestStateMachine()

    async def create_manifest(
        self,
        document: Union[Dict[str, Any], ProductionManifest],
        user_id: str,
        profile_id: Optional[str] = None,
    ) -> ManifestRecord:
        """
        Validate, score and store a new manifest with its scenes, assets and jobs.

        A valid manifest is admitted to `validated` straight away.

        Raises:
            ManifestValidationError: The document is invalid; nothing is stored
            ProductionPlannerError: The repository refused the write
        """
        result = validate_manifest(document)
        if not result.valid:
            raise ManifestValidationError(
                "Invalid manifest data",
                validation_errors=format_issues(result.errors),
            )

        manifest: ProductionManifest = result.data
        manifest.status = ManifestStatus.DRAFT
        manifest.user_id = user_id
        if profile_id:
            manifest.profile_id = profile_id
        manifest.quality_score = calculate_quality_score(manifest)
        self.state_machine.transition(manifest, ManifestStatus.VALIDATED, validation=result)

        record = (await self.repository.create_manifest(ManifestRecord.from_manifest(manifest, user_id))).unwrap()
        (await self.repository.create_scenes(record.id, manifest.scenes)).unwrap()
        (await self.repository.create_assets(record.id, manifest.assets)).unwrap()
        (await self.repository.create_jobs(record.id, manifest.jobs)).unwrap()

        logger.info(
            f"Created manifest {record.id}: {len(manifest.scenes)} scenes, "
            f"{len(manifest.assets)} assets, {len(manifest.jobs)} jobs, quality {manifest.quality_score:.2f}"
        )
        return record

    async def get_manifest(self, manifest_id: str) -> ProductionManifest:
        """Load a manifest with its current scene, asset and job records"""
        record: ManifestRecord = (await self.repository.get_manifest(manifest_id)).unwrap()
        manifest = record.to_manifest()
        manifest.scenes = (await self.repository.get_scenes(manifest_id)).unwrap()
        manifest.assets = (await self.repository.get_assets(manifest_id)).unwrap()
        manifest.jobs = (await self.repository.get_jobs(manifest_id)).unwrap()
        return manifest

    async def revalidate(
        self,
        manifest_id: str,
        document: Optional[Dict[str, Any]] = None,
        expected_version: Optional[int] = None,
    ) -> ManifestRecord:
        """
        Re-run validation and scoring, optionally on edited manifest data.

        Invalid data is stored with its errors; a draft that becomes valid
        moves to `validated`.

        Raises:
            ProductionPlannerError: The manifest is past approval (code
                MANIFEST_LOCKED) or the update conflicted (code CONFLICT)
        """
        record: ManifestRecord = (await self.repository.get_manifest(manifest_id)).unwrap()
        if record.status not in EDITABLE_STATUSES:
            raise ProductionPlannerError(
                f"Manifest {manifest_id} is {record.status.value} and can no longer be edited",
                "MANIFEST_LOCKED",
                manifest_id=manifest_id,
            )

        data = dict(document if document is not None else record.manifest_data)
        data["id"] = manifest_id
        result = validate_manifest(data)

        status = validation_status_for(result)
        partial: Dict[str, Any] = {
            "manifest_data": result.data.to_dict() if result.valid else data,
            "validation_status": status,
            "validation_errors": format_issues(result.errors),
            "quality_score": calculate_quality_score(data),
        }
        if record.status == ManifestStatus.DRAFT and result.valid:
            manifest: ProductionManifest = result.data
            manifest.status = record.status
            self.state_machine.transition(manifest, ManifestStatus.VALIDATED, validation=result)
            partial["status"] = manifest.status
            partial["validated_at"] = manifest.validated_at

        updated = (await self.repository.update_manifest(manifest_id, partial, expected_version)).unwrap()
        if result.valid and document is not None:
            # Nothing has run before approval, so the children are rebuilt from the edit
            (await self.repository.replace_children(
                manifest_id, result.data.scenes, result.data.assets, result.data.jobs
            )).unwrap()

        logger.info(f"Revalidated manifest {manifest_id}: {status.value}")
        return updated

    async def approve(self, manifest_id: str, expected_version: Optional[int] = None) -> ManifestRecord:
        """Explicit approval of a validated manifest"""
        manifest = await self.get_manifest(manifest_id)
        if manifest.validation_status not in (ValidationStatus.VALID, ValidationStatus.WARNING):
            raise InvalidTransitionError(
                f"Manifest {manifest_id} has validation errors",
                current=manifest.status.value,
                target=ManifestStatus.APPROVED.value,
                manifest_id=manifest_id,
            )
        self.state_machine.transition(manifest, ManifestStatus.APPROVED)
        return (await self.repository.update_manifest(
            manifest_id,
            {"status": manifest.status, "approved_at": manifest.approved_at},
            expected_version,
        )).unwrap()

    async def produce(self, manifest_id: str) -> SchedulerReport:
        """Run an approved manifest's jobs to completion"""
        if self.scheduler is None:
            raise ProductionPlannerError("No scheduler configured", manifest_id=manifest_id)

        manifest = await self.get_manifest(manifest_id)
        report = await self.scheduler.run(manifest)

        if self.scheduler.repository is not self.repository:
            (await self.repository.update_manifest(manifest_id, {
                "status": manifest.status,
                "error_message": manifest.error_message,
                "manifest_data": manifest.to_dict(),
                "started_at": manifest.started_at,
                "completed_at": manifest.completed_at,
            })).unwrap()
            for job in manifest.jobs:
                await self.repository.update_job(manifest_id, job)
        for scene in manifest.scenes:
            await self.repository.update_scene(manifest_id, scene)
        for asset in manifest.assets:
            await self.repository.update_asset(manifest_id, asset)
        return report

    def cancel(self, manifest_id: str) -> bool:
        return bool(self.scheduler and self.scheduler.cancel(manifest_id))

    async def delete(self, manifest_id: str) -> None:
        (await self.repository.delete_manifest(manifest_id)).unwrap()
