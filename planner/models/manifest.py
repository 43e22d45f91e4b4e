"""
Production manifest models

A manifest describes one short-form video production: its ordered scenes,
the assets placed in them, and the generation jobs that produce those
assets. Scenes, assets and jobs are owned by the manifest and are stored as
separate records that point back at it.

Constructors do not enforce the cross-entity invariants (contiguous scene
order, resolvable references, acyclic job graph). That is the validator's
job, so a malformed manifest can still be built and reported on.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ManifestStatus(Enum):
    DRAFT = "draft"
    VALIDATED = "validated"
    APPROVED = "approved"
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ValidationStatus(Enum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"
    WARNING = "warning"


class AssetStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"
    SKIPPED = "skipped"


class SceneStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class AssetType(Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"
    CHART = "chart"
    EFFECT = "effect"


class AssetSource(Enum):
    USER_UPLOAD = "user_upload"
    AI_GENERATED = "ai_generated"
    STOCK = "stock"
    ENHANCED = "enhanced"


class UsageType(Enum):
    PRIMARY = "primary"
    BACKGROUND = "background"
    OVERLAY = "overlay"
    TRANSITION = "transition"
    EFFECT = "effect"


class Orientation(Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    SQUARE = "square"


class JobType(Enum):
    """Every kind of work a generation worker can be handed"""
    ANALYSIS = "analysis"
    ASSET_PREP = "asset_prep"
    STORYBOARD = "storyboard"
    RENDER = "render"
    VIDEO_GENERATION = "video_generation"
    IMAGE_PROCESSING = "image_processing"
    TEXT_ANALYSIS = "text_analysis"
    VOICEOVER_GENERATION = "voiceover_generation"
    MUSIC_GENERATION = "music_generation"
    SOUND_EFFECTS = "sound_effects"
    IMAGE_GENERATION = "image_generation"
    VIDEO_GENERATION_AI = "video_generation_ai"
    CHART_GENERATION = "chart_generation"
    SUBTITLE_GENERATION = "subtitle_generation"
    LIPSYNC_PROCESSING = "lipsync_processing"
    VISUAL_EFFECTS = "visual_effects"
    ASSET_ENHANCEMENT = "asset_enhancement"
    CONSISTENCY_CHECK = "consistency_check"
    QUALITY_VALIDATION = "quality_validation"
    FINAL_ASSEMBLY = "final_assembly"
    RENDERING = "rendering"


# Jobs whose completion finishes the production
ASSEMBLY_JOB_TYPES = (JobType.FINAL_ASSEMBLY, JobType.RENDERING)


class DependencyType(Enum):
    BLOCKING = "blocking"    # Gates readiness
    OPTIONAL = "optional"    # Failure tolerated, recorded on the dependent
    PARALLEL = "parallel"    # Co-scheduling hint only


class ProcessingPhase(Enum):
    INITIALIZATION = "initialization"
    VALIDATION = "validation"
    ASSET_PREPARATION = "asset_preparation"
    SCENE_PROCESSING = "scene_processing"
    AUDIO_GENERATION = "audio_generation"
    VISUAL_EFFECTS = "visual_effects"
    QUALITY_VALIDATION = "quality_validation"
    FINAL_ASSEMBLY = "final_assembly"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _enum(enum_cls, value: Any, default=None):
    if value is None:
        return default
    if isinstance(value, enum_cls):
        return value
    return enum_cls(value)


# ============================================================
# Assets
# ============================================================

@dataclass
class AssetTiming:
    """Placement of an asset on the timeline. end = start + duration."""
    start_time_seconds: float
    duration_seconds: float
    end_time_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time_seconds": self.start_time_seconds,
            "duration_seconds": self.duration_seconds,
            "end_time_seconds": self.end_time_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetTiming":
        return cls(
            start_time_seconds=data["start_time_seconds"],
            duration_seconds=data["duration_seconds"],
            end_time_seconds=data["end_time_seconds"],
        )


@dataclass
class ProductionAsset:
    """
    A single media unit usable in one or more scenes.

    Attributes:
        id: Manifest-local identifier referenced by scenes and jobs
        asset_id: Upstream identifier from the analyzer/refiner
        scene_assignments: Ids of scenes this asset appears in
        consistency_group: Tag clustering assets that must look alike
    """
    id: str
    asset_type: AssetType
    source: AssetSource
    asset_id: Optional[str] = None

    original_url: Optional[str] = None
    processed_url: Optional[str] = None
    file_size_bytes: Optional[int] = None
    duration_seconds: Optional[float] = None
    format: Optional[str] = None

    status: AssetStatus = AssetStatus.PENDING
    processing_job_id: Optional[str] = None

    scene_assignments: List[str] = field(default_factory=list)
    usage_type: Optional[UsageType] = None
    timing_info: Optional[AssetTiming] = None

    quality_score: Optional[float] = None
    enhancement_applied: bool = False
    enhancement_details: Optional[Dict[str, Any]] = None

    consistency_group: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "asset_type": self.asset_type.value,
            "source": self.source.value,
            "original_url": self.original_url,
            "processed_url": self.processed_url,
            "file_size_bytes": self.file_size_bytes,
            "duration_seconds": self.duration_seconds,
            "format": self.format,
            "status": self.status.value,
            "processing_job_id": self.processing_job_id,
            "scene_assignments": list(self.scene_assignments),
            "usage_type": self.usage_type.value if self.usage_type else None,
            "timing_info": self.timing_info.to_dict() if self.timing_info else None,
            "quality_score": self.quality_score,
            "enhancement_applied": self.enhancement_applied,
            "enhancement_details": self.enhancement_details,
            "consistency_group": self.consistency_group,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductionAsset":
        timing = data.get("timing_info")
        return cls(
            id=data["id"],
            asset_id=data.get("asset_id"),
            asset_type=AssetType(data["asset_type"]),
            source=AssetSource(data["source"]),
            original_url=data.get("original_url"),
            processed_url=data.get("processed_url"),
            file_size_bytes=data.get("file_size_bytes"),
            duration_seconds=data.get("duration_seconds"),
            format=data.get("format"),
            status=_enum(AssetStatus, data.get("status"), AssetStatus.PENDING),
            processing_job_id=data.get("processing_job_id"),
            scene_assignments=list(data.get("scene_assignments") or []),
            usage_type=_enum(UsageType, data.get("usage_type")),
            timing_info=AssetTiming.from_dict(timing) if timing else None,
            quality_score=data.get("quality_score"),
            enhancement_applied=bool(data.get("enhancement_applied", False)),
            enhancement_details=data.get("enhancement_details"),
            consistency_group=data.get("consistency_group"),
        )


# ============================================================
# Scenes
# ============================================================

@dataclass
class ProductionScene:
    """A time-boxed segment of the final video"""
    id: str
    scene_order: int
    start_time_seconds: float
    duration_seconds: float
    scene_id: Optional[str] = None  # Upstream id from the script enhancer
    scene_name: Optional[str] = None

    narration_text: Optional[str] = None
    visual_description: Optional[str] = None
    music_cue: Optional[str] = None
    sound_effects: List[str] = field(default_factory=list)

    primary_assets: List[str] = field(default_factory=list)
    background_assets: List[str] = field(default_factory=list)
    overlay_assets: List[str] = field(default_factory=list)

    status: SceneStatus = SceneStatus.PENDING
    processing_jobs: List[str] = field(default_factory=list)

    quality_score: Optional[float] = None
    consistency_score: Optional[float] = None

    @property
    def end_time_seconds(self) -> float:
        return self.start_time_seconds + self.duration_seconds

    def all_asset_ids(self) -> List[str]:
        """Primary, background and overlay asset ids, in that order"""
        return list(self.primary_assets) + list(self.background_assets) + list(self.overlay_assets)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "scene_id": self.scene_id,
            "scene_order": self.scene_order,
            "scene_name": self.scene_name,
            "start_time_seconds": self.start_time_seconds,
            "duration_seconds": self.duration_seconds,
            "narration_text": self.narration_text,
            "visual_description": self.visual_description,
            "music_cue": self.music_cue,
            "sound_effects": list(self.sound_effects),
            "primary_assets": list(self.primary_assets),
            "background_assets": list(self.background_assets),
            "overlay_assets": list(self.overlay_assets),
            "status": self.status.value,
            "processing_jobs": list(self.processing_jobs),
            "quality_score": self.quality_score,
            "consistency_score": self.consistency_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductionScene":
        return cls(
            id=data["id"],
            scene_id=data.get("scene_id"),
            scene_order=data["scene_order"],
            scene_name=data.get("scene_name"),
            start_time_seconds=data["start_time_seconds"],
            duration_seconds=data["duration_seconds"],
            narration_text=data.get("narration_text"),
            visual_description=data.get("visual_description"),
            music_cue=data.get("music_cue"),
            sound_effects=list(data.get("sound_effects") or []),
            primary_assets=list(data.get("primary_assets") or []),
            background_assets=list(data.get("background_assets") or []),
            overlay_assets=list(data.get("overlay_assets") or []),
            status=_enum(SceneStatus, data.get("status"), SceneStatus.PENDING),
            processing_jobs=list(data.get("processing_jobs") or []),
            quality_score=data.get("quality_score"),
            consistency_score=data.get("consistency_score"),
        )


# ============================================================
# Jobs
# ============================================================

@dataclass
class JobDependency:
    job_id: str
    dependency_type: DependencyType = DependencyType.BLOCKING

    def to_dict(self) -> Dict[str, Any]:
        return {"job_id": self.job_id, "dependency_type": self.dependency_type.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobDependency":
        return cls(
            job_id=data["job_id"],
            dependency_type=_enum(DependencyType, data.get("dependency_type"), DependencyType.BLOCKING),
        )


@dataclass
class ResourceRequirements:
    cpu_cores: Optional[float] = None
    memory_gb: Optional[float] = None
    gpu_required: bool = False
    api_calls: Optional[int] = None
    storage_gb: Optional[float] = None
    network_bandwidth_mbps: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cpu_cores": self.cpu_cores,
            "memory_gb": self.memory_gb,
            "gpu_required": self.gpu_required,
            "api_calls": self.api_calls,
            "storage_gb": self.storage_gb,
            "network_bandwidth_mbps": self.network_bandwidth_mbps,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceRequirements":
        return cls(
            cpu_cores=data.get("cpu_cores"),
            memory_gb=data.get("memory_gb"),
            gpu_required=bool(data.get("gpu_required", False)),
            api_calls=data.get("api_calls"),
            storage_gb=data.get("storage_gb"),
            network_bandwidth_mbps=data.get("network_bandwidth_mbps"),
        )


@dataclass
class ProductionJob:
    """
    An asynchronous unit of work handed to a generation worker.

    `job_config` is passed to the worker untouched. The planner reads two
    keys from it: `scene_id` (which scene the job feeds) and
    `estimated_cost` (used for cost-cap admission).
    """
    id: str
    type: JobType
    status: JobStatus = JobStatus.PENDING
    priority: int = 0

    job_config: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[JobDependency] = field(default_factory=list)
    estimated_duration_seconds: Optional[float] = None
    resource_requirements: Optional[ResourceRequirements] = None

    attempts: int = 0
    max_attempts: int = 3
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    @property
    def scene_id(self) -> Optional[str]:
        return self.job_config.get("scene_id")

    @property
    def estimated_cost(self) -> float:
        return float(self.job_config.get("estimated_cost") or 0.0)

    def blocking_dependencies(self) -> List[str]:
        return [
            d.job_id for d in self.dependencies
            if d.dependency_type == DependencyType.BLOCKING
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "priority": self.priority,
            "job_config": dict(self.job_config),
            "dependencies": [d.to_dict() for d in self.dependencies],
            "estimated_duration_seconds": self.estimated_duration_seconds,
            "resource_requirements": (
                self.resource_requirements.to_dict() if self.resource_requirements else None
            ),
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "error": self.error,
            "result": self.result,
            "metadata": dict(self.metadata),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductionJob":
        requirements = data.get("resource_requirements")
        return cls(
            id=data["id"],
            type=JobType(data["type"]),
            status=_enum(JobStatus, data.get("status"), JobStatus.PENDING),
            priority=data.get("priority", 0),
            job_config=dict(data.get("job_config") or {}),
            dependencies=[JobDependency.from_dict(d) for d in data.get("dependencies") or []],
            estimated_duration_seconds=data.get("estimated_duration_seconds"),
            resource_requirements=ResourceRequirements.from_dict(requirements) if requirements else None,
            attempts=data.get("attempts", 0),
            max_attempts=data.get("max_attempts", 3),
            error=data.get("error"),
            result=data.get("result"),
            metadata=dict(data.get("metadata") or {}),
            started_at=_parse_dt(data.get("started_at")),
            completed_at=_parse_dt(data.get("completed_at")),
        )


# ============================================================
# Audio / visual sub-plans
# ============================================================

@dataclass
class VoiceoverConfig:
    voice_id: str
    text: str
    scene_id: str
    start_time_seconds: float
    duration_seconds: float
    model_id: Optional[str] = None
    voice_settings: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voice_id": self.voice_id,
            "text": self.text,
            "scene_id": self.scene_id,
            "start_time_seconds": self.start_time_seconds,
            "duration_seconds": self.duration_seconds,
            "model_id": self.model_id,
            "voice_settings": self.voice_settings,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoiceoverConfig":
        return cls(
            voice_id=data["voice_id"],
            text=data["text"],
            scene_id=data["scene_id"],
            start_time_seconds=data["start_time_seconds"],
            duration_seconds=data["duration_seconds"],
            model_id=data.get("model_id"),
            voice_settings=data.get("voice_settings"),
        )


@dataclass
class MusicConfig:
    music_type: str  # intro, build, climax, outro, background, transition
    duration_seconds: float
    start_time_seconds: float
    intensity: Optional[float] = None
    genre: Optional[str] = None
    mood: Optional[str] = None
    scene_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "music_type": self.music_type,
            "duration_seconds": self.duration_seconds,
            "start_time_seconds": self.start_time_seconds,
            "intensity": self.intensity,
            "genre": self.genre,
            "mood": self.mood,
            "scene_id": self.scene_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MusicConfig":
        return cls(
            music_type=data["music_type"],
            duration_seconds=data["duration_seconds"],
            start_time_seconds=data["start_time_seconds"],
            intensity=data.get("intensity"),
            genre=data.get("genre"),
            mood=data.get("mood"),
            scene_id=data.get("scene_id"),
        )


@dataclass
class SoundEffectConfig:
    effect_type: str
    duration_seconds: float
    start_time_seconds: float
    volume: float = 0.8
    scene_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "effect_type": self.effect_type,
            "duration_seconds": self.duration_seconds,
            "start_time_seconds": self.start_time_seconds,
            "volume": self.volume,
            "scene_id": self.scene_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SoundEffectConfig":
        return cls(
            effect_type=data["effect_type"],
            duration_seconds=data["duration_seconds"],
            start_time_seconds=data["start_time_seconds"],
            volume=data.get("volume", 0.8),
            scene_id=data.get("scene_id"),
        )


@dataclass
class VisualEffectConfig:
    effect_type: str  # transition, overlay, parallax, zoom, pan, fade, blur, color_grading
    scene_id: str
    start_time_seconds: float
    duration_seconds: float
    intensity: float = 1.0
    parameters: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "effect_type": self.effect_type,
            "scene_id": self.scene_id,
            "start_time_seconds": self.start_time_seconds,
            "duration_seconds": self.duration_seconds,
            "intensity": self.intensity,
            "parameters": self.parameters,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisualEffectConfig":
        return cls(
            effect_type=data["effect_type"],
            scene_id=data["scene_id"],
            start_time_seconds=data["start_time_seconds"],
            duration_seconds=data["duration_seconds"],
            intensity=data.get("intensity", 1.0),
            parameters=data.get("parameters"),
        )


@dataclass
class ChartConfig:
    chart_type: str  # bar, line, pie, scatter, area, histogram, heatmap
    data: Dict[str, Any]
    scene_id: str
    start_time_seconds: float
    duration_seconds: float
    title: Optional[str] = None
    x_axis_label: Optional[str] = None
    y_axis_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chart_type": self.chart_type,
            "data": self.data,
            "scene_id": self.scene_id,
            "start_time_seconds": self.start_time_seconds,
            "duration_seconds": self.duration_seconds,
            "title": self.title,
            "x_axis_label": self.x_axis_label,
            "y_axis_label": self.y_axis_label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChartConfig":
        return cls(
            chart_type=data["chart_type"],
            data=data.get("data") or {},
            scene_id=data["scene_id"],
            start_time_seconds=data["start_time_seconds"],
            duration_seconds=data["duration_seconds"],
            title=data.get("title"),
            x_axis_label=data.get("x_axis_label"),
            y_axis_label=data.get("y_axis_label"),
        )


@dataclass
class ProcessingConfig:
    parallel_jobs: int = 3
    retry_attempts: int = 3
    timeout_seconds: int = 300
    quality_threshold: float = 0.8

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parallel_jobs": self.parallel_jobs,
            "retry_attempts": self.retry_attempts,
            "timeout_seconds": self.timeout_seconds,
            "quality_threshold": self.quality_threshold,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessingConfig":
        return cls(
            parallel_jobs=data.get("parallel_jobs", 3),
            retry_attempts=data.get("retry_attempts", 3),
            timeout_seconds=data.get("timeout_seconds", 300),
            quality_threshold=data.get("quality_threshold", 0.8),
        )


# ============================================================
# Manifest
# ============================================================

@dataclass
class ProductionManifest:
    """
    Root aggregate for one production.

    Example:
        manifest = ProductionManifest(
            duration_seconds=30,
            aspect_ratio="9:16",
            platform="tiktok",
            scenes=[...],
            assets=[...],
            jobs=[...],
        )
    """
    duration_seconds: float
    aspect_ratio: str
    platform: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None
    profile_id: Optional[str] = None  # Creative profile used for governance
    manifest_version: str = "1.0.0"
    status: ManifestStatus = ManifestStatus.DRAFT
    priority: int = 0

    # Upstream provenance
    analyzer_id: Optional[str] = None
    refiner_id: Optional[str] = None
    script_enhancer_id: Optional[str] = None

    language: str = "en"
    orientation: Optional[Orientation] = None

    scenes: List[ProductionScene] = field(default_factory=list)
    assets: List[ProductionAsset] = field(default_factory=list)
    jobs: List[ProductionJob] = field(default_factory=list)

    voiceover_jobs: List[VoiceoverConfig] = field(default_factory=list)
    music_plan: List[MusicConfig] = field(default_factory=list)
    sound_effects: List[SoundEffectConfig] = field(default_factory=list)
    visual_effects: List[VisualEffectConfig] = field(default_factory=list)
    charts: List[ChartConfig] = field(default_factory=list)
    processing_config: Optional[ProcessingConfig] = None

    validation_status: ValidationStatus = ValidationStatus.PENDING
    validation_errors: List[str] = field(default_factory=list)
    quality_score: Optional[float] = None
    error_message: Optional[str] = None

    validated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def get_job(self, job_id: str) -> Optional[ProductionJob]:
        return next((j for j in self.jobs if j.id == job_id), None)

    def get_scene(self, scene_id: str) -> Optional[ProductionScene]:
        return next((s for s in self.scenes if s.id == scene_id), None)

    def get_asset(self, asset_id: str) -> Optional[ProductionAsset]:
        return next((a for a in self.assets if a.id == asset_id), None)

    def ordered_scenes(self) -> List[ProductionScene]:
        """Scenes in final assembly order"""
        return sorted(self.scenes, key=lambda s: s.scene_order)

    def assembly_jobs(self) -> List[ProductionJob]:
        return [j for j in self.jobs if j.type in ASSEMBLY_JOB_TYPES]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "profile_id": self.profile_id,
            "manifest_version": self.manifest_version,
            "status": self.status.value,
            "priority": self.priority,
            "analyzer_id": self.analyzer_id,
            "refiner_id": self.refiner_id,
            "script_enhancer_id": self.script_enhancer_id,
            "duration_seconds": self.duration_seconds,
            "aspect_ratio": self.aspect_ratio,
            "platform": self.platform,
            "language": self.language,
            "orientation": self.orientation.value if self.orientation else None,
            "scenes": [s.to_dict() for s in self.scenes],
            "assets": [a.to_dict() for a in self.assets],
            "jobs": [j.to_dict() for j in self.jobs],
            "voiceover_jobs": [v.to_dict() for v in self.voiceover_jobs],
            "music_plan": [m.to_dict() for m in self.music_plan],
            "sound_effects": [s.to_dict() for s in self.sound_effects],
            "visual_effects": [v.to_dict() for v in self.visual_effects],
            "charts": [c.to_dict() for c in self.charts],
            "processing_config": self.processing_config.to_dict() if self.processing_config else None,
            "validation_status": self.validation_status.value,
            "validation_errors": list(self.validation_errors),
            "quality_score": self.quality_score,
            "error_message": self.error_message,
            "validated_at": _iso(self.validated_at),
            "approved_at": _iso(self.approved_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductionManifest":
        processing = data.get("processing_config")
        kwargs: Dict[str, Any] = {}
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(
            duration_seconds=data["duration_seconds"],
            aspect_ratio=data["aspect_ratio"],
            platform=data["platform"],
            user_id=data.get("user_id"),
            profile_id=data.get("profile_id"),
            manifest_version=data.get("manifest_version") or "1.0.0",
            status=_enum(ManifestStatus, data.get("status"), ManifestStatus.DRAFT),
            priority=data.get("priority", 0),
            analyzer_id=data.get("analyzer_id"),
            refiner_id=data.get("refiner_id"),
            script_enhancer_id=data.get("script_enhancer_id"),
            language=data.get("language") or "en",
            orientation=_enum(Orientation, data.get("orientation")),
            scenes=[ProductionScene.from_dict(s) for s in data.get("scenes") or []],
            assets=[ProductionAsset.from_dict(a) for a in data.get("assets") or []],
            jobs=[ProductionJob.from_dict(j) for j in data.get("jobs") or []],
            voiceover_jobs=[VoiceoverConfig.from_dict(v) for v in data.get("voiceover_jobs") or []],
            music_plan=[MusicConfig.from_dict(m) for m in data.get("music_plan") or []],
            sound_effects=[SoundEffectConfig.from_dict(s) for s in data.get("sound_effects") or []],
            visual_effects=[VisualEffectConfig.from_dict(v) for v in data.get("visual_effects") or []],
            charts=[ChartConfig.from_dict(c) for c in data.get("charts") or []],
            processing_config=ProcessingConfig.from_dict(processing) if processing else None,
            validation_status=_enum(ValidationStatus, data.get("validation_status"), ValidationStatus.PENDING),
            validation_errors=list(data.get("validation_errors") or []),
            quality_score=data.get("quality_score"),
            error_message=data.get("error_message"),
            validated_at=_parse_dt(data.get("validated_at")),
            approved_at=_parse_dt(data.get("approved_at")),
            started_at=_parse_dt(data.get("started_at")),
            completed_at=_parse_dt(data.get("completed_at")),
            **kwargs,
        )
