"""
Manifest schema validator

Checks a manifest document in three layers:

1. Structure: required fields, types, numeric ranges, enum membership.
   A broken scene, asset or job is reported and then left out of the
   cross-reference layer; the rest of the document is still checked.
2. Cross-references: contiguous scene order, scene durations adding up to
   the manifest duration, every id reference resolving inside the manifest,
   and an acyclic job dependency graph.
3. Derived fields: validation_status agreeing with validation_errors.

Validation is pure: no I/O, no mutation of the input, and bad input is
reported in the result rather than raised.
"""

import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Type
from enum import Enum

from planner.execution.graph import JobEdge, JobGraph
from planner.models.manifest import (
    ASSEMBLY_JOB_TYPES,
    AssetSource,
    AssetStatus,
    AssetType,
    DependencyType,
    JobStatus,
    JobType,
    ManifestStatus,
    Orientation,
    ProductionAsset,
    ProductionManifest,
    ProductionScene,
    SceneStatus,
    UsageType,
    ValidationStatus,
)
from planner.models.validation import Severity, ValidationIssue, ValidationResult


# Allowed drift between the summed scene durations and the manifest duration
DURATION_TOLERANCE_SECONDS = 0.5

# Allowed drift for timing arithmetic (end = start + duration)
TIMING_EPSILON = 1e-6

MUSIC_TYPES = ("intro", "build", "climax", "outro", "background", "transition")
VISUAL_EFFECT_TYPES = ("transition", "overlay", "parallax", "zoom", "pan", "fade", "blur", "color_grading")
CHART_TYPES = ("bar", "line", "pie", "scatter", "area", "histogram", "heatmap")


class _Collector:
    """Accumulates issues while walking a document"""

    def __init__(self):
        self.errors: List[ValidationIssue] = []
        self.warnings: List[ValidationIssue] = []

    def error(self, path: str, message: str, code: str):
        self.errors.append(ValidationIssue(path, message, code, Severity.ERROR))

    def warn(self, path: str, message: str, code: str):
        self.warnings.append(ValidationIssue(path, message, code, Severity.WARNING))


def _join(*parts: Any) -> str:
    return ".".join(str(p) for p in parts if p != "")


def _is_number(value: Any) -> bool:
    """Real, finite numbers only; bools, NaN and infinities do not count"""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# ============================================================
# Field checks
# ============================================================

def _check_number(
    c: _Collector,
    obj: Dict[str, Any],
    key: str,
    path: str,
    required: bool = False,
    minimum: Optional[float] = None,
    positive: bool = False,
    maximum: Optional[float] = None,
    integer: bool = False,
) -> bool:
    field_path = _join(path, key)
    value = obj.get(key)
    if value is None:
        if required:
            c.error(field_path, "Required", "required")
            return False
        return True

    if isinstance(value, float) and not math.isfinite(value):
        c.error(field_path, f"Must be a finite number, got {value}", "invalid_type")
        return False
    if not _is_number(value) or (integer and not float(value).is_integer()):
        expected = "integer" if integer else "number"
        c.error(field_path, f"Expected {expected}, received {type(value).__name__}", "invalid_type")
        return False
    if positive and value <= 0:
        c.error(field_path, f"Must be greater than 0, got {value}", "too_small")
        return False
    if minimum is not None and value < minimum:
        c.error(field_path, f"Must be at least {minimum}, got {value}", "too_small")
        return False
    if maximum is not None and value > maximum:
        c.error(field_path, f"Must be at most {maximum}, got {value}", "too_big")
        return False
    return True


def _check_string(c: _Collector, obj: Dict[str, Any], key: str, path: str, required: bool = False) -> bool:
    field_path = _join(path, key)
    value = obj.get(key)
    if value is None:
        if required:
            c.error(field_path, "Required", "required")
            return False
        return True
    if not isinstance(value, str):
        c.error(field_path, f"Expected string, received {type(value).__name__}", "invalid_type")
        return False
    if required and not value.strip():
        c.error(field_path, "Must not be empty", "too_small")
        return False
    return True


def _check_bool(c: _Collector, obj: Dict[str, Any], key: str, path: str) -> bool:
    value = obj.get(key)
    if value is not None and not isinstance(value, bool):
        c.error(_join(path, key), f"Expected boolean, received {type(value).__name__}", "invalid_type")
        return False
    return True


def _check_enum(
    c: _Collector,
    obj: Dict[str, Any],
    key: str,
    path: str,
    allowed: Iterable[str],
    required: bool = False,
) -> bool:
    field_path = _join(path, key)
    value = obj.get(key)
    if value is None:
        if required:
            c.error(field_path, "Required", "required")
            return False
        return True
    allowed = list(allowed)
    if isinstance(value, Enum):
        value = value.value
    if value not in allowed:
        c.error(
            field_path,
            f"Invalid enum value. Expected {' | '.join(repr(a) for a in allowed)}, received {value!r}",
            "invalid_enum_value",
        )
        return False
    return True


def _enum_values(enum_cls: Type[Enum]) -> List[str]:
    return [member.value for member in enum_cls]


def _check_string_list(c: _Collector, obj: Dict[str, Any], key: str, path: str) -> bool:
    field_path = _join(path, key)
    value = obj.get(key)
    if value is None:
        return True
    if not isinstance(value, list):
        c.error(field_path, f"Expected array, received {type(value).__name__}", "invalid_type")
        return False
    ok = True
    for i, item in enumerate(value):
        if not isinstance(item, str):
            c.error(_join(field_path, i), f"Expected string, received {type(item).__name__}", "invalid_type")
            ok = False
    return ok


def _check_object(c: _Collector, obj: Dict[str, Any], key: str, path: str) -> bool:
    value = obj.get(key)
    if value is not None and not isinstance(value, dict):
        c.error(_join(path, key), f"Expected object, received {type(value).__name__}", "invalid_type")
        return False
    return True


def _check_datetime(c: _Collector, obj: Dict[str, Any], key: str, path: str) -> bool:
    value = obj.get(key)
    if value is None or isinstance(value, datetime):
        return True
    try:
        datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        c.error(_join(path, key), f"Invalid datetime: {value!r}", "invalid_string")
        return False
    return True


def _all(results: Iterable[bool]) -> bool:
    # Evaluate every check so every problem is reported
    return all(list(results))


# ============================================================
# Entity structure
# ============================================================

def _check_asset(c: _Collector, asset: Any, path: str) -> bool:
    if not isinstance(asset, dict):
        c.error(path or "root", f"Expected object, received {type(asset).__name__}", "invalid_type")
        return False

    ok = _all([
        _check_string(c, asset, "id", path, required=True),
        _check_string(c, asset, "asset_id", path),
        _check_enum(c, asset, "asset_type", path, _enum_values(AssetType), required=True),
        _check_enum(c, asset, "source", path, _enum_values(AssetSource), required=True),
        _check_string(c, asset, "original_url", path),
        _check_string(c, asset, "processed_url", path),
        _check_number(c, asset, "file_size_bytes", path, positive=True, integer=True),
        _check_number(c, asset, "duration_seconds", path, positive=True),
        _check_string(c, asset, "format", path),
        _check_enum(c, asset, "status", path, _enum_values(AssetStatus)),
        _check_string_list(c, asset, "scene_assignments", path),
        _check_enum(c, asset, "usage_type", path, _enum_values(UsageType)),
        _check_number(c, asset, "quality_score", path, minimum=0, maximum=1),
        _check_bool(c, asset, "enhancement_applied", path),
        _check_object(c, asset, "enhancement_details", path),
        _check_string(c, asset, "consistency_group", path),
    ])

    timing = asset.get("timing_info")
    if timing is not None:
        timing_path = _join(path, "timing_info")
        if not isinstance(timing, dict):
            c.error(timing_path, f"Expected object, received {type(timing).__name__}", "invalid_type")
            ok = False
        else:
            ok = _all([
                _check_number(c, timing, "start_time_seconds", timing_path, required=True, minimum=0),
                _check_number(c, timing, "duration_seconds", timing_path, required=True, positive=True),
                _check_number(c, timing, "end_time_seconds", timing_path, required=True, minimum=0),
            ]) and ok
    return ok


def _check_scene(c: _Collector, scene: Any, path: str) -> bool:
    if not isinstance(scene, dict):
        c.error(path or "root", f"Expected object, received {type(scene).__name__}", "invalid_type")
        return False

    return _all([
        _check_string(c, scene, "id", path, required=True),
        _check_string(c, scene, "scene_id", path),
        _check_number(c, scene, "scene_order", path, required=True, positive=True, integer=True),
        _check_string(c, scene, "scene_name", path),
        _check_number(c, scene, "start_time_seconds", path, required=True, minimum=0),
        _check_number(c, scene, "duration_seconds", path, required=True, positive=True),
        _check_string(c, scene, "narration_text", path),
        _check_string(c, scene, "visual_description", path),
        _check_string(c, scene, "music_cue", path),
        _check_string_list(c, scene, "sound_effects", path),
        _check_string_list(c, scene, "primary_assets", path),
        _check_string_list(c, scene, "background_assets", path),
        _check_string_list(c, scene, "overlay_assets", path),
        _check_enum(c, scene, "status", path, _enum_values(SceneStatus)),
        _check_string_list(c, scene, "processing_jobs", path),
        _check_number(c, scene, "quality_score", path, minimum=0, maximum=1),
        _check_number(c, scene, "consistency_score", path, minimum=0, maximum=1),
    ])


def _check_job(c: _Collector, job: Any, path: str) -> bool:
    if not isinstance(job, dict):
        c.error(path or "root", f"Expected object, received {type(job).__name__}", "invalid_type")
        return False

    ok = _all([
        _check_string(c, job, "id", path, required=True),
        _check_enum(c, job, "type", path, _enum_values(JobType), required=True),
        _check_enum(c, job, "status", path, _enum_values(JobStatus)),
        _check_number(c, job, "priority", path, integer=True),
        _check_object(c, job, "job_config", path),
        _check_number(c, job, "estimated_duration_seconds", path, positive=True),
        _check_object(c, job, "resource_requirements", path),
        _check_number(c, job, "attempts", path, minimum=0, integer=True),
        _check_number(c, job, "max_attempts", path, positive=True, integer=True),
        _check_string(c, job, "error", path),
        _check_object(c, job, "result", path),
        _check_object(c, job, "metadata", path),
        _check_datetime(c, job, "started_at", path),
        _check_datetime(c, job, "completed_at", path),
    ])

    config = job.get("job_config")
    if isinstance(config, dict):
        config_path = _join(path, "job_config")
        ok = _all([
            _check_string(c, config, "scene_id", config_path),
            _check_string_list(c, config, "asset_ids", config_path),
            _check_number(c, config, "estimated_cost", config_path, minimum=0),
        ]) and ok

    requirements = job.get("resource_requirements")
    if isinstance(requirements, dict):
        req_path = _join(path, "resource_requirements")
        ok = _all([
            _check_number(c, requirements, "cpu_cores", req_path, positive=True),
            _check_number(c, requirements, "memory_gb", req_path, positive=True),
            _check_bool(c, requirements, "gpu_required", req_path),
            _check_number(c, requirements, "api_calls", req_path, positive=True, integer=True),
            _check_number(c, requirements, "storage_gb", req_path, positive=True),
            _check_number(c, requirements, "network_bandwidth_mbps", req_path, positive=True),
        ]) and ok

    dependencies = job.get("dependencies")
    if dependencies is not None:
        deps_path = _join(path, "dependencies")
        if not isinstance(dependencies, list):
            c.error(deps_path, f"Expected array, received {type(dependencies).__name__}", "invalid_type")
            ok = False
        else:
            for i, dep in enumerate(dependencies):
                dep_path = _join(deps_path, i)
                if not isinstance(dep, dict):
                    c.error(dep_path, f"Expected object, received {type(dep).__name__}", "invalid_type")
                    ok = False
                    continue
                ok = _all([
                    _check_string(c, dep, "job_id", dep_path, required=True),
                    _check_enum(c, dep, "dependency_type", dep_path, _enum_values(DependencyType)),
                ]) and ok

    attempts, max_attempts = job.get("attempts"), job.get("max_attempts")
    if ok and _is_number(attempts) and _is_number(max_attempts) and attempts > max_attempts:
        c.error(
            _join(path, "attempts"),
            f"Attempts ({attempts}) exceed max_attempts ({max_attempts})",
            "too_big",
        )
        ok = False
    return ok


def _check_timed_item(
    c: _Collector,
    item: Any,
    path: str,
    required_strings: Iterable[str] = (),
    optional_strings: Iterable[str] = (),
) -> bool:
    """Shared checks for the audio/visual sub-plan entries"""
    if not isinstance(item, dict):
        c.error(path, f"Expected object, received {type(item).__name__}", "invalid_type")
        return False
    checks = [
        _check_number(c, item, "start_time_seconds", path, required=True, minimum=0),
        _check_number(c, item, "duration_seconds", path, required=True, positive=True),
    ]
    checks += [_check_string(c, item, key, path, required=True) for key in required_strings]
    checks += [_check_string(c, item, key, path) for key in optional_strings]
    return _all(checks)


def _check_sub_plans(c: _Collector, doc: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Validate audio/visual sub-plans; returns the structurally valid entries by section"""
    sections = {
        "voiceover_jobs": (("voice_id", "text", "scene_id"), ("model_id",)),
        "music_plan": (("music_type",), ("genre", "mood", "scene_id")),
        "sound_effects": (("effect_type",), ("scene_id",)),
        "visual_effects": (("effect_type", "scene_id"), ()),
        "charts": (("chart_type", "scene_id"), ("title", "x_axis_label", "y_axis_label")),
    }
    valid: Dict[str, List[Dict[str, Any]]] = {}

    for section, (required, optional) in sections.items():
        items = doc.get(section)
        valid[section] = []
        if items is None:
            continue
        if not isinstance(items, list):
            c.error(section, f"Expected array, received {type(items).__name__}", "invalid_type")
            continue

        for i, item in enumerate(items):
            path = _join(section, i)
            ok = _check_timed_item(c, item, path, required, optional)
            if not ok:
                continue
            if section == "music_plan":
                ok = _all([
                    _check_enum(c, item, "music_type", path, MUSIC_TYPES),
                    _check_number(c, item, "intensity", path, minimum=0, maximum=1),
                ])
            elif section == "sound_effects":
                ok = _check_number(c, item, "volume", path, minimum=0, maximum=1)
            elif section == "visual_effects":
                ok = _all([
                    _check_enum(c, item, "effect_type", path, VISUAL_EFFECT_TYPES),
                    _check_number(c, item, "intensity", path, minimum=0, maximum=1),
                    _check_object(c, item, "parameters", path),
                ])
            elif section == "charts":
                ok = _all([
                    _check_enum(c, item, "chart_type", path, CHART_TYPES),
                    _check_object(c, item, "data", path),
                ])
                if ok and item.get("data") is None:
                    c.error(_join(path, "data"), "Required", "required")
                    ok = False
            elif section == "voiceover_jobs":
                ok = _check_object(c, item, "voice_settings", path)
            if ok:
                valid[section].append(item)
    return valid


def _check_collection(c: _Collector, doc: Dict[str, Any], key: str, checker) -> List[Dict[str, Any]]:
    """Run `checker` over doc[key]; returns the structurally valid items"""
    items = doc.get(key)
    if items is None:
        c.error(key, "Required", "required")
        return []
    if not isinstance(items, list):
        c.error(key, f"Expected array, received {type(items).__name__}", "invalid_type")
        return []
    return [item for i, item in enumerate(items) if checker(c, item, _join(key, i))]


def _check_manifest_fields(c: _Collector, doc: Dict[str, Any]) -> bool:
    ok = _all([
        _check_string(c, doc, "id", ""),
        _check_string(c, doc, "user_id", ""),
        _check_string(c, doc, "profile_id", ""),
        _check_string(c, doc, "manifest_version", ""),
        _check_enum(c, doc, "status", "", _enum_values(ManifestStatus)),
        _check_number(c, doc, "priority", "", integer=True),
        _check_string(c, doc, "analyzer_id", ""),
        _check_string(c, doc, "refiner_id", ""),
        _check_string(c, doc, "script_enhancer_id", ""),
        _check_number(c, doc, "duration_seconds", "", required=True, positive=True),
        _check_string(c, doc, "aspect_ratio", "", required=True),
        _check_string(c, doc, "platform", "", required=True),
        _check_string(c, doc, "language", ""),
        _check_enum(c, doc, "orientation", "", _enum_values(Orientation)),
        _check_enum(c, doc, "validation_status", "", _enum_values(ValidationStatus)),
        _check_string_list(c, doc, "validation_errors", ""),
        _check_number(c, doc, "quality_score", "", minimum=0, maximum=1),
        _check_string(c, doc, "error_message", ""),
        _check_datetime(c, doc, "validated_at", ""),
        _check_datetime(c, doc, "approved_at", ""),
        _check_datetime(c, doc, "started_at", ""),
        _check_datetime(c, doc, "completed_at", ""),
        _check_object(c, doc, "processing_config", ""),
    ])

    processing = doc.get("processing_config")
    if isinstance(processing, dict):
        ok = _all([
            _check_number(c, processing, "parallel_jobs", "processing_config", positive=True, integer=True),
            _check_number(c, processing, "retry_attempts", "processing_config", positive=True, integer=True),
            _check_number(c, processing, "timeout_seconds", "processing_config", positive=True, integer=True),
            _check_number(c, processing, "quality_threshold", "processing_config", minimum=0, maximum=1),
        ]) and ok
    return ok


# ============================================================
# Cross-references
# ============================================================

def _ids(items: Iterable[Any]) -> Set[str]:
    return {
        item["id"] for item in items
        if isinstance(item, dict) and isinstance(item.get("id"), str)
    }


def _index_of(items: List[Any], target: Dict[str, Any]) -> int:
    return next(i for i, item in enumerate(items) if item is target)


def _check_duplicate_ids(c: _Collector, key: str, items: Any):
    if not isinstance(items, list):
        return
    seen: Dict[str, int] = {}
    for i, item in enumerate(items):
        if not isinstance(item, dict) or not isinstance(item.get("id"), str):
            continue
        item_id = item["id"]
        if item_id in seen:
            c.error(
                _join(key, i, "id"),
                f"Duplicate id '{item_id}' (first used at {key}.{seen[item_id]})",
                "duplicate_id",
            )
        else:
            seen[item_id] = i


def _check_scene_order(c: _Collector, all_scenes: List[Any], valid_scenes: List[Dict[str, Any]]):
    seen: Dict[int, int] = {}
    for scene in valid_scenes:
        index = _index_of(all_scenes, scene)
        order = int(scene["scene_order"])
        if order in seen:
            c.error(
                _join("scenes", index, "scene_order"),
                f"Duplicate scene_order {order} (also used by scenes.{seen[order]})",
                "scene_order_duplicate",
            )
        else:
            seen[order] = index

    # Contiguity is only meaningful when every scene's order is known
    if len(valid_scenes) != len(all_scenes) or len(seen) != len(valid_scenes):
        return
    expected = set(range(1, len(valid_scenes) + 1))
    actual = set(seen)
    if actual != expected:
        missing = sorted(expected - actual)
        c.error(
            "scenes",
            f"scene_order must form a contiguous sequence 1..{len(valid_scenes)}; "
            f"missing {missing}, found {sorted(actual)}",
            "scene_order_gap",
        )


def _check_scene_timing(c: _Collector, doc: Dict[str, Any], all_scenes: List[Any], valid_scenes: List[Dict[str, Any]]):
    if not valid_scenes or len(valid_scenes) != len(all_scenes):
        return

    duration = doc.get("duration_seconds")
    total = sum(float(s["duration_seconds"]) for s in valid_scenes)
    if _is_number(duration) and abs(total - duration) > DURATION_TOLERANCE_SECONDS:
        c.error(
            "scenes",
            f"Scene durations sum to {total:g}s but manifest duration_seconds is {duration:g}s "
            f"(tolerance {DURATION_TOLERANCE_SECONDS:g}s)",
            "scene_duration_mismatch",
        )

    expected_start = 0.0
    for scene in sorted(valid_scenes, key=lambda s: s["scene_order"]):
        start = float(scene["start_time_seconds"])
        if abs(start - expected_start) > DURATION_TOLERANCE_SECONDS:
            c.warn(
                _join("scenes", _index_of(all_scenes, scene), "start_time_seconds"),
                f"Scene starts at {start:g}s but previous scenes end at {expected_start:g}s",
                "scene_timing_gap",
            )
        expected_start = start + float(scene["duration_seconds"])


def _check_reference_list(
    c: _Collector,
    refs: Optional[List[str]],
    known: Set[str],
    path: str,
    kind: str,
):
    for i, ref in enumerate(refs or []):
        if ref not in known:
            c.error(_join(path, i), f"Unknown {kind} reference '{ref}'", "unknown_reference")


def _check_references(
    c: _Collector,
    doc: Dict[str, Any],
    scenes: List[Dict[str, Any]],
    assets: List[Dict[str, Any]],
    jobs: List[Dict[str, Any]],
    sub_plans: Dict[str, List[Dict[str, Any]]],
):
    all_scenes = doc.get("scenes") or []
    all_assets = doc.get("assets") or []
    all_jobs = doc.get("jobs") or []
    scene_ids = _ids(all_scenes)
    asset_ids = _ids(all_assets)
    job_ids = _ids(all_jobs)

    referenced_assets: Set[str] = set()
    for scene in scenes:
        base = _join("scenes", _index_of(all_scenes, scene))
        for key in ("primary_assets", "background_assets", "overlay_assets"):
            _check_reference_list(c, scene.get(key), asset_ids, _join(base, key), "asset")
            referenced_assets.update(scene.get(key) or [])

    for asset in assets:
        base = _join("assets", _index_of(all_assets, asset))
        _check_reference_list(c, asset.get("scene_assignments"), scene_ids, _join(base, "scene_assignments"), "scene")

        timing = asset.get("timing_info")
        if timing:
            expected_end = timing["start_time_seconds"] + timing["duration_seconds"]
            if abs(timing["end_time_seconds"] - expected_end) > TIMING_EPSILON:
                c.error(
                    _join(base, "timing_info", "end_time_seconds"),
                    f"end_time_seconds ({timing['end_time_seconds']:g}) must equal "
                    f"start_time_seconds + duration_seconds ({expected_end:g})",
                    "timing_mismatch",
                )

        if not asset.get("scene_assignments") and asset["id"] not in referenced_assets:
            c.warn(base, f"Asset '{asset['id']}' is not used by any scene", "asset_unused")

    for job in jobs:
        base = _join("jobs", _index_of(all_jobs, job))
        config = job.get("job_config") or {}
        if config.get("scene_id") is not None and config["scene_id"] not in scene_ids:
            c.error(
                _join(base, "job_config", "scene_id"),
                f"Unknown scene reference '{config['scene_id']}'",
                "unknown_reference",
            )
        _check_reference_list(c, config.get("asset_ids"), asset_ids, _join(base, "job_config", "asset_ids"), "asset")

        for i, dep in enumerate(job.get("dependencies") or []):
            dep_path = _join(base, "dependencies", i, "job_id")
            if dep["job_id"] == job["id"]:
                c.error(dep_path, f"Job '{job['id']}' cannot depend on itself", "dependency_self")
            elif dep["job_id"] not in job_ids:
                c.error(dep_path, f"Unknown job reference '{dep['job_id']}'", "unknown_reference")

    for section, items in sub_plans.items():
        all_items = doc.get(section) or []
        for item in items:
            scene_ref = item.get("scene_id")
            if scene_ref is not None and scene_ref not in scene_ids:
                c.error(
                    _join(section, _index_of(all_items, item), "scene_id"),
                    f"Unknown scene reference '{scene_ref}'",
                    "unknown_reference",
                )


def _check_job_graph(c: _Collector, all_jobs: List[Any], jobs: List[Dict[str, Any]]):
    edges = [
        JobEdge(
            dependency=dep["job_id"],
            dependent=job["id"],
            kind=DependencyType(dep.get("dependency_type") or "blocking"),
        )
        for job in jobs
        for dep in job.get("dependencies") or []
        if dep["job_id"] != job["id"]
    ]
    graph = JobGraph([j["id"] for j in jobs], edges)
    cycle = graph.find_cycle()
    if cycle:
        c.error(
            "jobs",
            f"Dependency cycle detected: {' -> '.join(cycle)}",
            "dependency_cycle",
        )

    if jobs and len(jobs) == len(all_jobs):
        if not any(JobType(j["type"]) in ASSEMBLY_JOB_TYPES for j in jobs):
            c.warn("jobs", "No final_assembly or rendering job; production can never complete", "missing_final_assembly")


def _check_derived_fields(c: _Collector, doc: Dict[str, Any]):
    status = doc.get("validation_status")
    if isinstance(status, Enum):
        status = status.value
    errors = doc.get("validation_errors") or []
    if status == ValidationStatus.VALID.value and errors:
        c.error(
            "validation_status",
            f"validation_status is 'valid' but {len(errors)} validation error(s) are recorded",
            "validation_status_mismatch",
        )
    elif status == ValidationStatus.INVALID.value and not errors:
        c.error(
            "validation_status",
            "validation_status is 'invalid' but no validation errors are recorded",
            "validation_status_mismatch",
        )


# ============================================================
# Public API
# ============================================================

def validate_manifest(document: Any) -> ValidationResult:
    """
    Validate a production manifest document.

    Args:
        document: Manifest as a dict (or a ProductionManifest, which is
            converted with to_dict first)

    Returns:
        ValidationResult; `data` holds the parsed ProductionManifest when valid
    """
    if isinstance(document, ProductionManifest):
        document = document.to_dict()

    c = _Collector()
    if not isinstance(document, dict):
        c.error("root", f"Expected object, received {type(document).__name__}", "invalid_type")
        return ValidationResult.invalid(c.errors)

    # Layer 1: structure
    _check_manifest_fields(c, document)
    scenes = _check_collection(c, document, "scenes", _check_scene)
    assets = _check_collection(c, document, "assets", _check_asset)
    jobs = _check_collection(c, document, "jobs", _check_job)
    sub_plans = _check_sub_plans(c, document)

    # Layer 2: cross-references over the structurally valid subtrees
    for key in ("scenes", "assets", "jobs"):
        _check_duplicate_ids(c, key, document.get(key))
    all_scenes = document.get("scenes") if isinstance(document.get("scenes"), list) else []
    all_jobs = document.get("jobs") if isinstance(document.get("jobs"), list) else []
    _check_scene_order(c, all_scenes, scenes)
    _check_scene_timing(c, document, all_scenes, scenes)
    _check_references(c, document, scenes, assets, jobs, sub_plans)
    _check_job_graph(c, all_jobs, jobs)

    # Layer 3: derived fields
    _check_derived_fields(c, document)

    if c.errors:
        return ValidationResult.invalid(c.errors, c.warnings)
    return ValidationResult.ok(ProductionManifest.from_dict(document), c.warnings)


def validate_asset(data: Any) -> ValidationResult:
    """Validate a single asset outside of a manifest"""
    c = _Collector()
    if _check_asset(c, data, ""):
        timing = data.get("timing_info")
        if timing and abs(timing["end_time_seconds"] - (timing["start_time_seconds"] + timing["duration_seconds"])) > TIMING_EPSILON:
            c.error("timing_info.end_time_seconds", "end_time_seconds must equal start + duration", "timing_mismatch")
    if c.errors:
        return ValidationResult.invalid(c.errors)
    return ValidationResult.ok(ProductionAsset.from_dict(data))


def validate_scene(data: Any) -> ValidationResult:
    """Validate a single scene outside of a manifest"""
    c = _Collector()
    _check_scene(c, data, "")
    if c.errors:
        return ValidationResult.invalid(c.errors)
    return ValidationResult.ok(ProductionScene.from_dict(data))
