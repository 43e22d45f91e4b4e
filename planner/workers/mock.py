"""Mock generation worker for development and tests without external services"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional

from planner.models.manifest import JobType
from planner.workers.base import GenerationWorker, WorkerResult


class MockGenerationWorker(GenerationWorker):
    """
    Mock worker that simulates generation without hitting real APIs.

    Used for:
    - Running manifests from the CLI without credentials
    - Development without incurring costs
    - Scheduler tests
    """

    def __init__(
        self,
        delay: float = 0.0,
        cost: Optional[float] = None,
        fail_types: Iterable[JobType] = (),
        quality_score: Optional[float] = None,
        job_types: Iterable[JobType] = (),
    ):
        """
        Args:
            delay: Simulated processing time per submission (seconds)
            cost: Reported cost; falls back to job_config["estimated_cost"]
            fail_types: Job types that always fail
            quality_score: Score attached to every successful result
            job_types: Restrict the worker to these types (empty = all)
        """
        self.delay = delay
        self.cost = cost
        self.fail_types = set(fail_types)
        self.quality_score = quality_score
        self.job_types = tuple(job_types)
        self.submissions: List[Dict[str, Any]] = []

    async def submit(self, job_type: JobType, job_config: Dict[str, Any]) -> WorkerResult:
        if self.delay:
            await asyncio.sleep(self.delay)

        self.submissions.append({"job_type": job_type, "job_config": job_config})
        count = len(self.submissions)

        if job_type in self.fail_types:
            return WorkerResult.failure(f"Mock failure for {job_type.value}")

        cost = self.cost if self.cost is not None else float(job_config.get("estimated_cost") or 0.0)
        result: Dict[str, Any] = {
            "output_url": f"https://mock-cdn.example.com/{job_type.value}/{count}",
            "provider": "mock",
        }
        if job_type == JobType.FINAL_ASSEMBLY and "scene_order" in job_config:
            result["scene_order"] = list(job_config["scene_order"])

        return WorkerResult(success=True, result=result, cost=cost, quality_score=self.quality_score)

    def submitted_types(self) -> List[JobType]:
        return [s["job_type"] for s in self.submissions]

    def reset(self):
        """Reset mock state (useful for testing)"""
        self.submissions.clear()
