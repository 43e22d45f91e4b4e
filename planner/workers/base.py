"""Abstract base classes for generation workers"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from planner.models.manifest import JobType


@dataclass
class WorkerResult:
    """Result from one job submission"""
    success: bool
    result: Dict[str, Any] = None
    error: Optional[str] = None
    cost: Optional[float] = None
    quality_score: Optional[float] = None  # Checked against the quality gate when set

    def __post_init__(self):
        if self.result is None:
            self.result = {}

    @classmethod
    def failure(cls, error: str) -> "WorkerResult":
        return cls(success=False, error=error)


class GenerationWorker(ABC):
    """
    Abstract base class for generation workers.

    A worker executes one or more job types (voiceover, image, assembly...)
    and reports a result or a failure. Workers never retry; the scheduler
    owns retries. Raising from `submit` counts as a failed attempt.
    """

    #: Job types this worker accepts. Empty means any type.
    job_types: Tuple[JobType, ...] = ()

    def accepts(self, job_type: JobType) -> bool:
        return not self.job_types or job_type in self.job_types

    @abstractmethod
    async def submit(self, job_type: JobType, job_config: Dict[str, Any]) -> WorkerResult:
        """
        Execute a job.

        Args:
            job_type: Kind of work to perform
            job_config: The job's configuration, passed through untouched
                (plus `feature_flags` and, for final assembly, `scene_order`)

        Returns:
            WorkerResult with the result payload or an error
        """
        pass


class WorkerPool:
    """
    Routes job types to workers.

    Example:
        pool = WorkerPool(default=MockGenerationWorker())
        pool.register(ElevenLabsWorker())
        worker = pool.worker_for(JobType.VOICEOVER_GENERATION)
    """

    def __init__(self, workers: Iterable[GenerationWorker] = (), default: Optional[GenerationWorker] = None):
        self._workers: Dict[JobType, GenerationWorker] = {}
        self.default = default
        for worker in workers:
            self.register(worker)

    def register(self, worker: GenerationWorker) -> None:
        if not worker.job_types:
            self.default = worker
            return
        for job_type in worker.job_types:
            self._workers[job_type] = worker

    def worker_for(self, job_type: JobType) -> Optional[GenerationWorker]:
        return self._workers.get(job_type, self.default)

    async def submit(self, job_type: JobType, job_config: Dict[str, Any]) -> WorkerResult:
        worker = self.worker_for(job_type)
        if worker is None:
            return WorkerResult.failure(f"No worker registered for job type '{job_type.value}'")
        return await worker.submit(job_type, job_config)
