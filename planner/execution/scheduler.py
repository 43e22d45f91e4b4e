"""
Job scheduler - runs a manifest's job graph against generation workers

One coordinating coroutine per manifest owns every mutation of that
manifest's state. Worker calls run as tasks bounded by a semaphore shared
by all manifests this scheduler runs; their results are folded back one at
a time as they complete.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from planner.config import GovernanceConfig
from planner.errors import (
    ConcurrentModificationError,
    GovernanceRejection,
    JobExecutionError,
    ProcessingError,
    ProductionPlannerError,
)
from planner.execution.graph import FAILED_STATUSES, JobGraph
from planner.governance import GovernanceEngine
from planner.models.manifest import (
    ASSEMBLY_JOB_TYPES,
    AssetStatus,
    DependencyType,
    JobStatus,
    ManifestStatus,
    ProcessingPhase,
    ProductionJob,
    ProductionManifest,
    SceneStatus,
)
from planner.repository.base import ManifestRepository
from planner.state_machine import ManifestStateMachine
from planner.workers.base import GenerationWorker, WorkerPool, WorkerResult

logger = logging.getLogger(__name__)


@dataclass
class SchedulerConfig:
    """
    Attributes:
        max_concurrent_jobs: Worker calls in flight at once, across all manifests
        backoff_seconds: Overrides the profile's retry backoff when set
    """
    max_concurrent_jobs: int = 3
    backoff_seconds: Optional[float] = None

    @classmethod
    def from_governance(cls, config: GovernanceConfig) -> "SchedulerConfig":
        return cls(max_concurrent_jobs=config.max_concurrent_jobs)


@dataclass
class SchedulerReport:
    """Outcome of one manifest run"""
    manifest_id: str
    status: ManifestStatus
    completed_jobs: List[str] = field(default_factory=list)
    failed_jobs: Dict[str, str] = field(default_factory=dict)     # job id -> error
    rejected_jobs: Dict[str, str] = field(default_factory=dict)   # job id -> governance reason
    cancelled_jobs: List[str] = field(default_factory=list)
    blocked_jobs: Dict[str, str] = field(default_factory=dict)    # job id -> failed root
    attempts: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[ProductionPlannerError] = field(default_factory=list)
    total_cost: float = 0.0
    scene_order: List[str] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ManifestStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "manifest_id": self.manifest_id,
            "status": self.status.value,
            "completed_jobs": list(self.completed_jobs),
            "failed_jobs": dict(self.failed_jobs),
            "rejected_jobs": dict(self.rejected_jobs),
            "cancelled_jobs": list(self.cancelled_jobs),
            "blocked_jobs": dict(self.blocked_jobs),
            "attempts": dict(self.attempts),
            "warnings": list(self.warnings),
            "errors": [e.to_dict() for e in self.errors],
            "total_cost": round(self.total_cost, 4),
            "scene_order": list(self.scene_order),
            "error_message": self.error_message,
        }


@dataclass
class _Run:
    """Coordinator state for one manifest"""
    manifest: ProductionManifest
    graph: JobGraph
    report: SchedulerReport
    tasks: Dict[asyncio.Task, str] = field(default_factory=dict)       # worker call -> job id
    backoffs: Dict[asyncio.Task, str] = field(default_factory=dict)    # retry wait -> job id
    admitted: Set[str] = field(default_factory=set)
    cancel_requests: Set[str] = field(default_factory=set)
    cancelled: bool = False
    spent_cost: float = 0.0
    planned_seconds: float = 0.0
    version: Optional[int] = None
    conflicted: bool = False
    wakeup: asyncio.Event = field(default_factory=asyncio.Event)

    def in_flight_cost(self) -> float:
        return sum(self.manifest.get_job(job_id).estimated_cost for job_id in self.tasks.values())

    def waiting(self) -> Set[str]:
        return set(self.tasks.values()) | set(self.backoffs.values())


class JobScheduler:
    """
    Dispatches ready jobs, retries failures and drives the manifest to a
    terminal state.

    Example:
        scheduler = JobScheduler(
            workers=MockGenerationWorker(),
            governance=GovernanceEngine(config),
            config=SchedulerConfig.from_governance(config),
        )
        report = await scheduler.run(manifest)   # manifest must be approved
    """

    def __init__(
        self,
        workers: Union[WorkerPool, GenerationWorker],
        governance: Optional[GovernanceEngine] = None,
        config: Optional[SchedulerConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        repository: Optional[ManifestRepository] = None,
        state_machine: Optional[ManifestStateMachine] = None,
    ):
        """
        Args:
            workers: Pool (or single worker) that executes jobs
            governance: Admission and quality checks (defaults to default caps)
            config: Concurrency and backoff settings
            sleep: Awaitable used for retry backoff; inject a no-op in tests
            repository: When set, job and manifest updates are persisted
            state_machine: Status guard (a fresh one by default)
        """
        self.workers = workers if isinstance(workers, WorkerPool) else WorkerPool(default=workers)
        self.governance = governance or GovernanceEngine()
        self.config = config or SchedulerConfig.from_governance(self.governance.config)
        self.repository = repository
        self.state_machine = state_machine or ManifestStateMachine()
        self._sleep = sleep
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop: Optional[asyncio.AbstractEventLoop] = None
        self._runs: Dict[str, _Run] = {}

    # ------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------

    async def run(self, manifest: ProductionManifest) -> SchedulerReport:
        """
        Run every job of an approved manifest to a terminal state.

        Raises:
            ProcessingError: The job graph has a cycle or an unknown
                reference; nothing is dispatched
            InvalidTransitionError: The manifest cannot enter production
        """
        graph = JobGraph.from_jobs(manifest.jobs)
        self._check_graph(manifest, graph)
        self._bind_semaphore()

        if manifest.status != ManifestStatus.IN_PRODUCTION:
            self.state_machine.transition(manifest, ManifestStatus.IN_PRODUCTION)

        run = _Run(
            manifest=manifest,
            graph=graph,
            report=SchedulerReport(manifest_id=manifest.id, status=manifest.status),
        )
        self._runs[manifest.id] = run
        await self._save_manifest(run)

        try:
            await self._coordinate(run)
        finally:
            for task in list(run.tasks) + list(run.backoffs):
                task.cancel()
            self._runs.pop(manifest.id, None)

        await self._finish(run)
        return run.report

    def _bind_semaphore(self) -> None:
        """One concurrency ceiling per event loop, created on the loop that uses it"""
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_jobs))
            self._semaphore_loop = loop

    def cancel(self, manifest_id: str) -> bool:
        """Cancel a running manifest: all non-terminal jobs, then the manifest itself"""
        run = self._runs.get(manifest_id)
        if run is None:
            return False
        run.cancelled = True
        for task in run.tasks:
            task.cancel()
        run.wakeup.set()
        logger.info(f"Cancellation requested for manifest {manifest_id}")
        return True

    def cancel_job(self, job_id: str) -> bool:
        """Cancel one job; blocking dependents can then never become ready"""
        for run in self._runs.values():
            job = run.manifest.get_job(job_id)
            if job is None or job.is_terminal:
                continue
            run.cancel_requests.add(job_id)
            for task, task_job_id in run.tasks.items():
                if task_job_id == job_id:
                    task.cancel()
            run.wakeup.set()
            logger.info(f"Cancellation requested for job {job_id}")
            return True
        return False

    # ------------------------------------------------------------
    # Coordinator
    # ------------------------------------------------------------

    def _check_graph(self, manifest: ProductionManifest, graph: JobGraph) -> None:
        cycle = graph.find_cycle()
        if cycle:
            raise ProcessingError(
                f"Circular job dependency: {' -> '.join(cycle)}",
                ProcessingPhase.VALIDATION,
                manifest_id=manifest.id,
                details={"cycle": cycle},
            )
        unknown = graph.unknown_references()
        if unknown:
            refs = ", ".join(f"{e.dependent} -> {e.dependency}" for e in unknown)
            raise ProcessingError(
                f"Job dependencies reference unknown jobs: {refs}",
                ProcessingPhase.VALIDATION,
                manifest_id=manifest.id,
            )

    async def _coordinate(self, run: _Run) -> None:
        manifest = run.manifest
        for job in manifest.jobs:
            if job.status == JobStatus.PROCESSING:
                # Interrupted by an earlier run; start over
                self.state_machine.transition_job(job, JobStatus.PENDING)
        for job in manifest.jobs:
            if job.status in FAILED_STATUSES:
                self._record_optional_failure(run, job)

        while True:
            await self._apply_cancel_requests(run)
            if run.cancelled:
                break

            await self._dispatch_ready(run)
            if not run.tasks and not run.backoffs:
                break

            wake = asyncio.ensure_future(run.wakeup.wait())
            try:
                done, _ = await asyncio.wait(
                    list(run.tasks) + list(run.backoffs) + [wake],
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                if not wake.done():
                    wake.cancel()
            run.wakeup.clear()

            for task in done:
                if task in run.backoffs:
                    job_id = run.backoffs.pop(task)
                    logger.debug(f"Backoff finished for job {job_id}")
                elif task in run.tasks:
                    job_id = run.tasks.pop(task)
                    await self._handle_result(run, manifest.get_job(job_id), task)

    async def _apply_cancel_requests(self, run: _Run) -> None:
        if run.cancelled:
            for task in list(run.tasks) + list(run.backoffs):
                task.cancel()
            run.tasks.clear()
            run.backoffs.clear()
            targets = [j for j in run.manifest.jobs if not j.is_terminal]
        else:
            # Running jobs are settled when their cancelled task reports back
            running = set(run.tasks.values())
            targets = [
                j for j in run.manifest.jobs
                if j.id in run.cancel_requests and not j.is_terminal and j.id not in running
            ]
            target_ids = {j.id for j in targets}
            for task, job_id in list(run.backoffs.items()):
                if job_id in target_ids:
                    task.cancel()
                    del run.backoffs[task]
            run.cancel_requests &= running

        for job in targets:
            self._mark_cancelled(run, job)
            await self._save_job(run, job)

    def _mark_cancelled(self, run: _Run, job: ProductionJob) -> None:
        self.state_machine.transition_job(job, JobStatus.CANCELLED, error="Cancelled")
        run.report.cancelled_jobs.append(job.id)
        self._record_optional_failure(run, job)

    async def _dispatch_ready(self, run: _Run) -> None:
        manifest = run.manifest
        profile = manifest.profile_id
        position = {job.id: i for i, job in enumerate(manifest.jobs)}

        # Rejections change statuses, so keep going until nothing new is ready
        while True:
            statuses = {job.id: job.status for job in manifest.jobs}
            waiting = run.waiting()
            ready = [
                manifest.get_job(job_id) for job_id in run.graph.ready_jobs(statuses)
                if job_id not in waiting
            ]
            ready = [job for job in ready if job.type not in ASSEMBLY_JOB_TYPES or self._scenes_finalized(run)]
            if not ready:
                return
            ready.sort(key=lambda j: (-j.priority, position[j.id]))
            ready = self._group_parallel(run, ready)

            rejected = False
            for job in ready:
                if job.id not in run.admitted:
                    decision = self.governance.admit_job(
                        job,
                        spent_cost=run.spent_cost + run.in_flight_cost(),
                        elapsed_seconds=run.planned_seconds,
                        profile_id=profile,
                    )
                    run.report.warnings.extend(f"{job.id}: {w}" for w in decision.warnings)
                    if not decision.allowed:
                        await self._reject(run, job, decision.reason)
                        rejected = True
                        continue
                    run.admitted.add(job.id)
                    run.planned_seconds += job.estimated_duration_seconds or 0.0

                await self._dispatch(run, job)

            if not rejected:
                return

    @staticmethod
    def _group_parallel(run: _Run, ready: List[ProductionJob]) -> List[ProductionJob]:
        """Pull ready parallel partners up behind the first job of their group"""
        by_id = {job.id: job for job in ready}
        ordered: List[ProductionJob] = []
        placed = set()
        for job in ready:
            if job.id in placed:
                continue
            group = [job.id]
            for job_id in group:
                for partner in run.graph.parallel_partners(job_id):
                    if partner in by_id and partner not in group:
                        group.append(partner)
            for job_id in group:
                if job_id not in placed:
                    ordered.append(by_id[job_id])
                    placed.add(job_id)
        return ordered

    async def _reject(self, run: _Run, job: ProductionJob, reason: str) -> None:
        error = GovernanceRejection(reason, job_id=job.id, manifest_id=run.manifest.id)
        self.state_machine.transition_job(job, JobStatus.FAILED, error=f"Governance rejection: {reason}")
        run.report.rejected_jobs[job.id] = reason
        run.report.errors.append(error)
        self._record_optional_failure(run, job)
        await self._save_job(run, job)

    async def _dispatch(self, run: _Run, job: ProductionJob) -> None:
        manifest = run.manifest
        self.state_machine.transition_job(job, JobStatus.PROCESSING)

        scene = manifest.get_scene(job.scene_id) if job.scene_id else None
        if scene and scene.status == SceneStatus.PENDING:
            scene.status = SceneStatus.PROCESSING
        for asset_id in job.job_config.get("asset_ids") or []:
            asset = manifest.get_asset(asset_id)
            if asset and asset.status == AssetStatus.PENDING:
                asset.status = AssetStatus.PROCESSING
                asset.processing_job_id = job.id

        payload = self.governance.apply_flags_to_job(dict(job.job_config), manifest.profile_id)
        if job.type in ASSEMBLY_JOB_TYPES:
            run.report.scene_order = [s.id for s in manifest.ordered_scenes()]
            payload["scene_order"] = list(run.report.scene_order)

        logger.info(f"Dispatching job {job.id} ({job.type.value}), attempt {job.attempts + 1}")
        timeout = self.governance.job_timeout(manifest.profile_id)
        task = asyncio.ensure_future(self._execute(job, payload, timeout))
        run.tasks[task] = job.id
        await self._save_job(run, job)

    async def _execute(
        self,
        job: ProductionJob,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> WorkerResult:
        # The limit covers the worker call only, not the wait for a slot
        async with self._semaphore:
            try:
                return await asyncio.wait_for(self.workers.submit(job.type, payload), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Job {job.id} timed out (limit {timeout}s)")
                return WorkerResult.failure(f"Timed out (limit {timeout}s)")
            except Exception as e:
                logger.debug(f"Worker raised for job {job.id}", exc_info=True)
                return WorkerResult.failure(f"{type(e).__name__}: {e}")

    async def _handle_result(self, run: _Run, job: ProductionJob, task: asyncio.Task) -> None:
        if task.cancelled():
            if job.status == JobStatus.PROCESSING:
                self._mark_cancelled(run, job)
                run.cancel_requests.discard(job.id)
                await self._save_job(run, job)
            return

        result: WorkerResult = task.result()
        job.attempts += 1
        run.report.attempts[job.id] = job.attempts

        if result.success:
            run.spent_cost += result.cost if result.cost is not None else job.estimated_cost
        elif result.cost:
            run.spent_cost += result.cost
        run.report.total_cost = run.spent_cost

        error = result.error
        if result.success and result.quality_score is not None:
            gate = self.governance.check_quality_gate(result.quality_score, run.manifest.profile_id)
            if not gate.passed:
                error = gate.reason

        if result.success and error is None:
            await self._complete(run, job, result)
        else:
            await self._fail_attempt(run, job, error or "Worker reported failure")

    async def _complete(self, run: _Run, job: ProductionJob, result: WorkerResult) -> None:
        manifest = run.manifest
        job.result = dict(result.result)
        if result.quality_score is not None:
            job.result.setdefault("quality_score", result.quality_score)
        job.error = None
        self.state_machine.transition_job(job, JobStatus.COMPLETED)
        run.report.completed_jobs.append(job.id)
        logger.info(f"Job {job.id} completed")

        for asset_id in job.job_config.get("asset_ids") or []:
            asset = manifest.get_asset(asset_id)
            if asset is None:
                continue
            asset.status = AssetStatus.READY
            asset.processing_job_id = job.id
            asset.processed_url = result.result.get("output_url", asset.processed_url)
            if result.quality_score is not None:
                asset.quality_score = result.quality_score

        await self._save_job(run, job)
        self._finalize_scenes(run)

    async def _fail_attempt(self, run: _Run, job: ProductionJob, error: str) -> None:
        policy = self.governance.retry_policy(run.manifest.profile_id)
        limit = max(1, min(job.max_attempts, policy.max_retries))

        if job.attempts < limit:
            backoff = self.config.backoff_seconds
            if backoff is None:
                backoff = policy.backoff_seconds
            logger.warning(
                f"Job {job.id} failed (attempt {job.attempts}/{limit}): {error}; retrying in {backoff:g}s"
            )
            job.error = error
            self.state_machine.transition_job(job, JobStatus.PENDING)
            task = asyncio.ensure_future(self._sleep(backoff))
            run.backoffs[task] = job.id
            await self._save_job(run, job)
            return

        logger.error(f"Job {job.id} failed after {job.attempts} attempts: {error}")
        self.state_machine.transition_job(job, JobStatus.FAILED, error=error)
        run.report.failed_jobs[job.id] = error
        run.report.errors.append(JobExecutionError(
            f"Job {job.id} failed after {job.attempts} attempts: {error}",
            job_type=job.type.value,
            job_id=job.id,
            manifest_id=run.manifest.id,
        ))
        for asset_id in job.job_config.get("asset_ids") or []:
            asset = run.manifest.get_asset(asset_id)
            if asset is not None:
                asset.status = AssetStatus.FAILED

        self._record_optional_failure(run, job)
        if job.scene_id and self._optional_only(run, job.id):
            run.report.warnings.append(f"Scene {job.scene_id}: optional job {job.id} failed")
        await self._save_job(run, job)
        self._finalize_scenes(run)

    def _record_optional_failure(self, run: _Run, job: ProductionJob) -> None:
        for dependent_id in run.graph.dependents_of(job.id, DependencyType.OPTIONAL):
            dependent = run.manifest.get_job(dependent_id)
            failures = dependent.metadata.setdefault("optional_failures", [])
            if job.id not in failures:
                failures.append(job.id)
                logger.info(f"Job {dependent_id}: optional dependency {job.id} {job.status.value}")

    # ------------------------------------------------------------
    # Scenes
    # ------------------------------------------------------------

    @staticmethod
    def _optional_only(run: _Run, job_id: str) -> bool:
        """Job feeds other work, but never through a blocking edge"""
        return bool(run.graph.dependents_of(job_id)) and not run.graph.dependents_of(
            job_id, DependencyType.BLOCKING
        )

    def _finalize_scenes(self, run: _Run) -> None:
        """
        Mark scenes ready or failed.

        A scene is ready once its blocking work completed and all of its
        assets are ready. Jobs whose only dependents are optional (and the
        assets only they produce) neither gate nor fail the scene. An asset
        no job produces counts as ready unless it is marked failed.
        """
        manifest = run.manifest
        optional_jobs = {j.id for j in manifest.jobs if self._optional_only(run, j.id)}
        produced = {
            asset_id
            for job in manifest.jobs
            if job.id not in optional_jobs
            for asset_id in job.job_config.get("asset_ids") or []
        }
        optional_assets = {
            asset_id
            for job in manifest.jobs
            if job.id in optional_jobs
            for asset_id in job.job_config.get("asset_ids") or []
        } - produced

        for scene in manifest.scenes:
            if scene.status in (SceneStatus.READY, SceneStatus.FAILED):
                continue
            scene_jobs = [
                j for j in manifest.jobs
                if j.scene_id == scene.id and j.type not in ASSEMBLY_JOB_TYPES and j.id not in optional_jobs
            ]
            if any(j.status in FAILED_STATUSES for j in scene_jobs):
                scene.status = SceneStatus.FAILED
                logger.info(f"Scene {scene.id} failed")
                continue
            if not all(j.status == JobStatus.COMPLETED for j in scene_jobs):
                continue

            assets = [manifest.get_asset(a) for a in scene.all_asset_ids()]
            assets = [a for a in assets if a is not None and a.id not in optional_assets]
            if any(a.status == AssetStatus.FAILED for a in assets):
                scene.status = SceneStatus.FAILED
                logger.info(f"Scene {scene.id} failed: asset not produced")
                continue
            if any(a.id in produced and a.status != AssetStatus.READY for a in assets):
                continue

            for asset in assets:
                if asset.status not in (AssetStatus.READY, AssetStatus.SKIPPED):
                    asset.status = AssetStatus.READY
            scene.status = SceneStatus.READY
            logger.info(f"Scene {scene.id} ready")

    def _scenes_finalized(self, run: _Run) -> bool:
        self._finalize_scenes(run)
        return all(s.status == SceneStatus.READY for s in run.manifest.scenes)

    # ------------------------------------------------------------
    # Terminal state
    # ------------------------------------------------------------

    async def _finish(self, run: _Run) -> None:
        manifest = run.manifest
        report = run.report
        statuses = {job.id: job.status for job in manifest.jobs}
        report.blocked_jobs = run.graph.blocked_jobs(statuses)
        for job_id, root in report.blocked_jobs.items():
            manifest.get_job(job_id).metadata["blocked_by"] = root

        if run.cancelled:
            message = "Production cancelled"
            phase = ProcessingPhase.FAILED
        elif self.state_machine.can_transition(manifest, ManifestStatus.COMPLETED):
            self.state_machine.transition(manifest, ManifestStatus.COMPLETED)
            message = None
        else:
            message, phase = self._failure_reason(run)

        if message:
            report.errors.append(ProcessingError(message, phase, manifest_id=manifest.id))
            self.state_machine.fail(manifest, message)
            logger.error(f"Manifest {manifest.id} failed: {message}")
        else:
            logger.info(f"Manifest {manifest.id} completed")

        report.status = manifest.status
        report.error_message = manifest.error_message
        await self._save_manifest(run)

    def _failure_reason(self, run: _Run):
        manifest = run.manifest
        blocking_ids = {
            dep.job_id
            for job in manifest.jobs
            for dep in job.dependencies
            if dep.dependency_type == DependencyType.BLOCKING
        }
        assembly_ids = {j.id for j in manifest.assembly_jobs()}

        for job in manifest.jobs:
            if job.status in FAILED_STATUSES and (job.id in blocking_ids or job.id in assembly_ids):
                phase = ProcessingPhase.FINAL_ASSEMBLY if job.id in assembly_ids else ProcessingPhase.SCENE_PROCESSING
                return f"Job {job.id} ({job.type.value}) {job.status.value}: {job.error}", phase

        failed_scenes = [s.id for s in manifest.scenes if s.status == SceneStatus.FAILED]
        if failed_scenes:
            return f"Scenes failed: {', '.join(failed_scenes)}", ProcessingPhase.SCENE_PROCESSING

        if not assembly_ids:
            return "Manifest has no final assembly job", ProcessingPhase.FINAL_ASSEMBLY
        return "Final assembly did not complete", ProcessingPhase.FINAL_ASSEMBLY

    # ------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------

    async def _save_job(self, run: _Run, job: ProductionJob) -> None:
        if self.repository is None:
            return
        result = await self.repository.update_job(run.manifest.id, job)
        if not result.success:
            run.report.warnings.append(f"Could not persist job {job.id}: {result.error}")

    async def _save_manifest(self, run: _Run) -> None:
        if self.repository is None or run.conflicted:
            return
        manifest = run.manifest

        if run.version is None:
            current = await self.repository.get_manifest(manifest.id)
            if not current.success:
                run.report.warnings.append(f"Could not persist manifest: {current.error}")
                return
            run.version = current.data.version

        partial = {
            "status": manifest.status,
            "error_message": manifest.error_message,
            "manifest_data": manifest.to_dict(),
            "started_at": manifest.started_at,
            "completed_at": manifest.completed_at,
        }
        result = await self.repository.update_manifest(manifest.id, partial, expected_version=run.version)
        if result.success:
            run.version = result.data.version
            return

        if result.code == "CONFLICT":
            # Someone else wrote the record; leave their version in place
            current = await self.repository.get_manifest(manifest.id)
            actual = current.data.version if current.success else -1
            error = ConcurrentModificationError(manifest.id, run.version, actual)
            logger.error(f"{error.message}; no further manifest writes from this run")
            run.report.errors.append(error)
            run.conflicted = True
        else:
            run.report.warnings.append(f"Could not persist manifest: {result.error}")
