"""Test data factories and scripted workers for consistent test setup"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional

from planner.models.manifest import JobType, ManifestStatus, ProductionManifest
from planner.workers.base import GenerationWorker, WorkerResult


# ============================================================
# Manifest documents
# ============================================================

def make_scene_dict(
    order: int = 1,
    start: float = 0.0,
    duration: float = 10.0,
    **kwargs
) -> Dict[str, Any]:
    """Factory for scene dicts; id and primary asset follow the order"""
    defaults = {
        "id": f"scene_{order}",
        "scene_order": order,
        "scene_name": f"Scene {order}",
        "start_time_seconds": start,
        "duration_seconds": duration,
        "narration_text": f"Narration for scene {order}",
        "visual_description": "Product close-up",
        "primary_assets": [f"asset_{order}"],
    }
    defaults.update(kwargs)
    return defaults


def make_asset_dict(asset_id: str = "asset_1", scene_id: str = "scene_1", **kwargs) -> Dict[str, Any]:
    """Factory for asset dicts"""
    defaults = {
        "id": asset_id,
        "asset_type": "image",
        "source": "ai_generated",
        "scene_assignments": [scene_id],
        "usage_type": "primary",
    }
    defaults.update(kwargs)
    return defaults


def make_job_dict(
    job_id: str,
    job_type: str = "image_generation",
    depends_on: Iterable[Any] = (),
    **kwargs
) -> Dict[str, Any]:
    """
    Factory for job dicts.

    `depends_on` takes job ids (blocking) or (job_id, dependency_type) pairs.
    """
    dependencies = []
    for dep in depends_on:
        if isinstance(dep, tuple):
            dependencies.append({"job_id": dep[0], "dependency_type": dep[1]})
        else:
            dependencies.append({"job_id": dep, "dependency_type": "blocking"})

    defaults = {
        "id": job_id,
        "type": job_type,
        "job_config": {"estimated_cost": 0.1},
        "dependencies": dependencies,
        "max_attempts": 3,
    }
    defaults.update(kwargs)
    return defaults


def make_scene_jobs(scene_count: int = 3) -> List[Dict[str, Any]]:
    """One image job per scene, one voiceover for the first scene, then final assembly"""
    jobs = [
        make_job_dict(
            "voice_1",
            "voiceover_generation",
            job_config={"scene_id": "scene_1", "estimated_cost": 0.1},
        )
    ]
    for i in range(1, scene_count + 1):
        jobs.append(make_job_dict(
            f"img_{i}",
            "image_generation",
            job_config={"scene_id": f"scene_{i}", "asset_ids": [f"asset_{i}"], "estimated_cost": 0.1},
        ))
    jobs.append(make_job_dict(
        "assembly",
        "final_assembly",
        depends_on=[j["id"] for j in jobs],
        job_config={"estimated_cost": 0.2},
    ))
    return jobs


def make_manifest_dict(
    scene_count: int = 3,
    scene_duration: float = 10.0,
    jobs: Optional[List[Dict[str, Any]]] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Factory for a complete, valid manifest document.

    Scenes are contiguous and sum to duration_seconds; every scene has one
    primary asset; jobs default to make_scene_jobs.
    """
    scenes = [
        make_scene_dict(order=i + 1, start=i * scene_duration, duration=scene_duration)
        for i in range(scene_count)
    ]
    assets = [make_asset_dict(f"asset_{i + 1}", f"scene_{i + 1}") for i in range(scene_count)]

    defaults = {
        "id": "manifest_test",
        "duration_seconds": scene_count * scene_duration,
        "aspect_ratio": "9:16",
        "platform": "tiktok",
        "scenes": scenes,
        "assets": assets,
        "jobs": make_scene_jobs(scene_count) if jobs is None else jobs,
    }
    defaults.update(kwargs)
    return defaults


def make_approved_manifest(**kwargs) -> ProductionManifest:
    """Manifest object already approved, ready to hand to a scheduler"""
    manifest = ProductionManifest.from_dict(make_manifest_dict(**kwargs))
    manifest.status = ManifestStatus.APPROVED
    return manifest


# ============================================================
# Scripted workers
# ============================================================

class ScriptedWorker(GenerationWorker):
    """Fails the first N submissions of each listed job type, then succeeds"""

    def __init__(self, failures: Optional[Dict[JobType, int]] = None, raise_errors: bool = False):
        self.remaining = dict(failures or {})
        self.raise_errors = raise_errors
        self.calls: List[JobType] = []

    async def submit(self, job_type: JobType, job_config: Dict[str, Any]) -> WorkerResult:
        self.calls.append(job_type)
        if self.remaining.get(job_type, 0) > 0:
            self.remaining[job_type] -= 1
            if self.raise_errors:
                raise ConnectionError(f"{job_type.value} provider unavailable")
            return WorkerResult.failure(f"{job_type.value} timed out")
        return WorkerResult(success=True, result={"output_url": f"https://example.com/{job_type.value}"})


class ConcurrencyTrackingWorker(GenerationWorker):
    """Records the highest number of submissions in flight at once"""

    def __init__(self, delay: float = 0.01):
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def submit(self, job_type: JobType, job_config: Dict[str, Any]) -> WorkerResult:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        return WorkerResult(success=True)


class BlockingWorker(GenerationWorker):
    """Holds every submission until `release` is set"""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls: List[JobType] = []

    async def submit(self, job_type: JobType, job_config: Dict[str, Any]) -> WorkerResult:
        self.calls.append(job_type)
        self.started.set()
        await self.release.wait()
        return WorkerResult(success=True)


async def no_sleep(seconds: float) -> None:
    """Backoff replacement that returns immediately"""
    return None
