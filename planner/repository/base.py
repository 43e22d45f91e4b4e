"""
Abstract repository gateway for manifests and their scenes, assets and jobs.

The planner only talks to this interface. Implementations:
- InMemoryManifestRepository: process-local storage for tests and the CLI
- LocalManifestRepository: one JSON file per manifest for development
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from planner.errors import ProductionPlannerError
from planner.models.manifest import (
    JobStatus,
    ManifestStatus,
    Orientation,
    ProductionAsset,
    ProductionJob,
    ProductionManifest,
    ProductionScene,
    ValidationStatus,
    _enum,
    _iso,
    _parse_dt,
    utcnow,
)


# Timestamp column written atomically with each status
STATUS_TIMESTAMPS = {
    ManifestStatus.VALIDATED: "validated_at",
    ManifestStatus.APPROVED: "approved_at",
    ManifestStatus.IN_PRODUCTION: "started_at",
    ManifestStatus.COMPLETED: "completed_at",
}

# Columns update_manifest accepts
UPDATABLE_FIELDS = frozenset({
    "status",
    "priority",
    "profile_id",
    "manifest_data",
    "validation_status",
    "validation_errors",
    "quality_score",
    "error_message",
    "validated_at",
    "approved_at",
    "started_at",
    "completed_at",
    "retry_count",
    "max_retries",
})

ORDERABLE_FIELDS = ("created_at", "updated_at", "priority", "quality_score", "duration_seconds")


@dataclass
class ManifestRecord:
    """
    Stored form of a manifest.

    `manifest_data` holds the full document; the top-level columns are
    authoritative for status, validation and timestamps. `version` starts
    at 1 and increments on every update.
    """
    user_id: str
    manifest_data: Dict[str, Any]
    id: str = ""
    profile_id: Optional[str] = None
    analyzer_id: Optional[str] = None
    refiner_id: Optional[str] = None
    script_enhancer_id: Optional[str] = None
    manifest_version: str = "1.0.0"
    status: ManifestStatus = ManifestStatus.DRAFT
    priority: int = 0
    duration_seconds: float = 0.0
    aspect_ratio: str = ""
    platform: str = ""
    language: str = "en"
    orientation: Optional[Orientation] = None
    validation_status: ValidationStatus = ValidationStatus.PENDING
    validation_errors: List[str] = field(default_factory=list)
    quality_score: Optional[float] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    max_retries: int = 3

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    validated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    version: int = 1

    @classmethod
    def from_manifest(cls, manifest: ProductionManifest, user_id: Optional[str] = None) -> "ManifestRecord":
        return cls(
            id=manifest.id,
            user_id=user_id or manifest.user_id or "",
            manifest_data=manifest.to_dict(),
            profile_id=manifest.profile_id,
            analyzer_id=manifest.analyzer_id,
            refiner_id=manifest.refiner_id,
            script_enhancer_id=manifest.script_enhancer_id,
            manifest_version=manifest.manifest_version,
            status=manifest.status,
            priority=manifest.priority,
            duration_seconds=manifest.duration_seconds,
            aspect_ratio=manifest.aspect_ratio,
            platform=manifest.platform,
            language=manifest.language,
            orientation=manifest.orientation,
            validation_status=manifest.validation_status,
            validation_errors=list(manifest.validation_errors),
            quality_score=manifest.quality_score,
            error_message=manifest.error_message,
            validated_at=manifest.validated_at,
            approved_at=manifest.approved_at,
            started_at=manifest.started_at,
            completed_at=manifest.completed_at,
        )

    def to_manifest(self) -> ProductionManifest:
        """Rebuild the manifest, with the record's columns taking precedence"""
        manifest = ProductionManifest.from_dict({**self.manifest_data, "id": self.id})
        manifest.user_id = self.user_id
        manifest.profile_id = self.profile_id
        manifest.status = self.status
        manifest.priority = self.priority
        manifest.validation_status = self.validation_status
        manifest.validation_errors = list(self.validation_errors)
        manifest.quality_score = self.quality_score
        manifest.error_message = self.error_message
        manifest.validated_at = self.validated_at
        manifest.approved_at = self.approved_at
        manifest.started_at = self.started_at
        manifest.completed_at = self.completed_at
        return manifest

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "profile_id": self.profile_id,
            "analyzer_id": self.analyzer_id,
            "refiner_id": self.refiner_id,
            "script_enhancer_id": self.script_enhancer_id,
            "manifest_version": self.manifest_version,
            "status": self.status.value,
            "priority": self.priority,
            "duration_seconds": self.duration_seconds,
            "aspect_ratio": self.aspect_ratio,
            "platform": self.platform,
            "language": self.language,
            "orientation": self.orientation.value if self.orientation else None,
            "manifest_data": self.manifest_data,
            "validation_status": self.validation_status.value,
            "validation_errors": list(self.validation_errors),
            "quality_score": self.quality_score,
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "validated_at": _iso(self.validated_at),
            "approved_at": _iso(self.approved_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestRecord":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            manifest_data=data.get("manifest_data") or {},
            profile_id=data.get("profile_id"),
            analyzer_id=data.get("analyzer_id"),
            refiner_id=data.get("refiner_id"),
            script_enhancer_id=data.get("script_enhancer_id"),
            manifest_version=data.get("manifest_version") or "1.0.0",
            status=_enum(ManifestStatus, data.get("status"), ManifestStatus.DRAFT),
            priority=data.get("priority", 0),
            duration_seconds=data.get("duration_seconds", 0.0),
            aspect_ratio=data.get("aspect_ratio", ""),
            platform=data.get("platform", ""),
            language=data.get("language") or "en",
            orientation=_enum(Orientation, data.get("orientation")),
            validation_status=_enum(ValidationStatus, data.get("validation_status"), ValidationStatus.PENDING),
            validation_errors=list(data.get("validation_errors") or []),
            quality_score=data.get("quality_score"),
            error_message=data.get("error_message"),
            retry_count=data.get("retry_count", 0),
            max_retries=data.get("max_retries", 3),
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
            updated_at=_parse_dt(data.get("updated_at")) or utcnow(),
            validated_at=_parse_dt(data.get("validated_at")),
            approved_at=_parse_dt(data.get("approved_at")),
            started_at=_parse_dt(data.get("started_at")),
            completed_at=_parse_dt(data.get("completed_at")),
            version=data.get("version", 1),
        )


@dataclass
class RepositoryResult:
    """
    Envelope returned by every repository operation.

    Failures carry a human readable `error` and a machine readable `code`
    (e.g. NOT_FOUND, CONFLICT). `total_count` is set by list operations.
    """
    success: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[str] = None
    total_count: Optional[int] = None

    @classmethod
    def ok(cls, data: Any = None, total_count: Optional[int] = None) -> "RepositoryResult":
        return cls(success=True, data=data, total_count=total_count)

    @classmethod
    def fail(cls, exc: ProductionPlannerError) -> "RepositoryResult":
        return cls(success=False, error=exc.message, code=exc.code)

    def unwrap(self) -> Any:
        """Return data, or raise the failure as a ProductionPlannerError"""
        if not self.success:
            raise ProductionPlannerError(self.error or "Repository operation failed", self.code or "REPOSITORY_ERROR")
        return self.data


class ManifestRepository(ABC):
    """
    Abstract base class for manifest storage.

    Every write that changes `status` also writes the matching timestamp
    (validated_at, approved_at, started_at, completed_at) in the same
    update. Timestamps already set are kept.
    """

    @abstractmethod
    async def create_manifest(self, record: ManifestRecord) -> RepositoryResult:
        """
        Store a new manifest.

        Args:
            record: The record to create; an empty id is replaced by its
                manifest_data id

        Returns:
            RepositoryResult with the stored ManifestRecord
        """
        pass

    @abstractmethod
    async def get_manifest(self, manifest_id: str) -> RepositoryResult:
        pass

    @abstractmethod
    async def update_manifest(
        self,
        manifest_id: str,
        partial: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> RepositoryResult:
        """
        Apply a partial update.

        Args:
            manifest_id: Manifest to update
            partial: Column -> value; only UPDATABLE_FIELDS are accepted
            expected_version: When given, the update only applies if the
                stored version still matches (code CONFLICT otherwise)

        Returns:
            RepositoryResult with the updated ManifestRecord
        """
        pass

    @abstractmethod
    async def list_manifests(
        self,
        user_id: str,
        status: Optional[ManifestStatus] = None,
        limit: int = 20,
        offset: int = 0,
        order_by: str = "created_at",
        order_direction: str = "desc",
    ) -> RepositoryResult:
        """List a user's manifests; `total_count` counts all matches before paging"""
        pass

    @abstractmethod
    async def delete_manifest(self, manifest_id: str) -> RepositoryResult:
        """Delete a manifest with its scenes, assets and jobs"""
        pass

    @abstractmethod
    async def create_assets(self, manifest_id: str, assets: List[ProductionAsset]) -> RepositoryResult:
        pass

    @abstractmethod
    async def get_assets(self, manifest_id: str) -> RepositoryResult:
        pass

    @abstractmethod
    async def update_asset(self, manifest_id: str, asset: ProductionAsset) -> RepositoryResult:
        pass

    @abstractmethod
    async def create_scenes(self, manifest_id: str, scenes: List[ProductionScene]) -> RepositoryResult:
        pass

    @abstractmethod
    async def get_scenes(self, manifest_id: str) -> RepositoryResult:
        """Scenes ordered by scene_order"""
        pass

    @abstractmethod
    async def update_scene(self, manifest_id: str, scene: ProductionScene) -> RepositoryResult:
        pass

    @abstractmethod
    async def create_jobs(self, manifest_id: str, jobs: List[ProductionJob]) -> RepositoryResult:
        pass

    @abstractmethod
    async def get_jobs(self, manifest_id: str) -> RepositoryResult:
        pass

    @abstractmethod
    async def update_job(self, manifest_id: str, job: ProductionJob) -> RepositoryResult:
        pass

    @abstractmethod
    async def replace_children(
        self,
        manifest_id: str,
        scenes: List[ProductionScene],
        assets: List[ProductionAsset],
        jobs: List[ProductionJob],
    ) -> RepositoryResult:
        """Swap all scenes, assets and jobs of a manifest in one write"""
        pass

    # ------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------

    async def get_manifest_summary(self, manifest_id: str) -> RepositoryResult:
        """Headline numbers for one manifest"""
        result = await self.get_manifest(manifest_id)
        if not result.success:
            return result
        record: ManifestRecord = result.data

        scenes = (await self.get_scenes(manifest_id)).data or []
        assets = (await self.get_assets(manifest_id)).data or []
        jobs = (await self.get_jobs(manifest_id)).data or []

        return RepositoryResult.ok({
            "id": record.id,
            "user_id": record.user_id,
            "status": record.status.value,
            "validation_status": record.validation_status.value,
            "quality_score": record.quality_score,
            "duration_seconds": record.duration_seconds,
            "aspect_ratio": record.aspect_ratio,
            "platform": record.platform,
            "scene_count": len(scenes),
            "asset_count": len(assets),
            "job_count": len(jobs),
            "created_at": _iso(record.created_at),
            "completed_at": _iso(record.completed_at),
        })

    async def get_production_progress(self, manifest_id: str) -> RepositoryResult:
        """Job completion counts for one manifest"""
        result = await self.get_manifest(manifest_id)
        if not result.success:
            return result

        jobs: List[ProductionJob] = (await self.get_jobs(manifest_id)).data or []
        counts = {status.value: 0 for status in JobStatus}
        for job in jobs:
            counts[job.status.value] += 1

        total = len(jobs)
        done = counts[JobStatus.COMPLETED.value]
        return RepositoryResult.ok({
            "manifest_id": manifest_id,
            "status": result.data.status.value,
            "total_jobs": total,
            "completed_jobs": done,
            "failed_jobs": counts[JobStatus.FAILED.value],
            "cancelled_jobs": counts[JobStatus.CANCELLED.value],
            "processing_jobs": counts[JobStatus.PROCESSING.value],
            "pending_jobs": counts[JobStatus.PENDING.value],
            "progress_percentage": round(done / total * 100, 1) if total else 0.0,
        })
