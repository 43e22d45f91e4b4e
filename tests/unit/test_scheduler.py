"""Unit tests for the job scheduler

All tests use in-process workers and an injected backoff sleep, so no test
waits on real retry delays.
"""

import asyncio

import pytest

from planner.config import GovernanceConfig
from planner.errors import (
    ConcurrentModificationError,
    GovernanceRejection,
    JobExecutionError,
    ProcessingError,
)
from planner.execution.scheduler import JobScheduler, SchedulerConfig
from planner.governance import GovernanceEngine
from planner.models.manifest import (
    AssetStatus,
    JobStatus,
    JobType,
    ManifestStatus,
    ProcessingPhase,
    ProductionManifest,
    SceneStatus,
)
from planner.planner import ProductionPlanner
from planner.repository import InMemoryManifestRepository
from planner.workers import MockGenerationWorker, WorkerPool
from tests.mocks.fixtures import (
    BlockingWorker,
    ConcurrencyTrackingWorker,
    ScriptedWorker,
    make_approved_manifest,
    make_job_dict,
    make_manifest_dict,
    no_sleep,
)


def make_scheduler(workers, governance=None, max_concurrent_jobs=3, sleep=no_sleep, **kwargs):
    return JobScheduler(
        workers=workers,
        governance=governance or GovernanceEngine(GovernanceConfig()),
        config=SchedulerConfig(max_concurrent_jobs=max_concurrent_jobs),
        sleep=sleep,
        **kwargs
    )


def approved(jobs, **kwargs) -> ProductionManifest:
    return make_approved_manifest(jobs=jobs, **kwargs)


# ============================================================
# Happy path
# ============================================================

class TestRunToCompletion:

    @pytest.mark.asyncio
    async def test_completes_manifest(self, approved_manifest, mock_worker):
        scheduler = make_scheduler(mock_worker)

        report = await scheduler.run(approved_manifest)

        assert report.succeeded
        assert approved_manifest.status == ManifestStatus.COMPLETED
        assert approved_manifest.started_at is not None
        assert approved_manifest.completed_at is not None
        assert sorted(report.completed_jobs) == ["assembly", "img_1", "img_2", "img_3", "voice_1"]
        assert all(j.status == JobStatus.COMPLETED for j in approved_manifest.jobs)
        assert report.total_cost == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_final_assembly_runs_last(self, approved_manifest, mock_worker):
        await make_scheduler(mock_worker).run(approved_manifest)

        assert mock_worker.submitted_types()[-1] == JobType.FINAL_ASSEMBLY

    @pytest.mark.asyncio
    async def test_scenes_and_assets_become_ready(self, approved_manifest, mock_worker):
        await make_scheduler(mock_worker).run(approved_manifest)

        assert all(s.status == SceneStatus.READY for s in approved_manifest.scenes)
        asset = approved_manifest.get_asset("asset_2")
        assert asset.status == AssetStatus.READY
        assert asset.processing_job_id == "img_2"
        assert asset.processed_url.startswith("https://mock-cdn.example.com/")

    @pytest.mark.asyncio
    async def test_assembly_receives_scene_order(self, mock_worker):
        manifest = make_approved_manifest()
        manifest.scenes.reverse()

        report = await make_scheduler(mock_worker).run(manifest)

        assembly_call = mock_worker.submissions[-1]
        assert assembly_call["job_config"]["scene_order"] == ["scene_1", "scene_2", "scene_3"]
        assert report.scene_order == ["scene_1", "scene_2", "scene_3"]
        assert manifest.get_job("assembly").result["scene_order"] == ["scene_1", "scene_2", "scene_3"]

    @pytest.mark.asyncio
    async def test_workers_receive_feature_flags(self, mock_worker):
        manifest = make_approved_manifest(profile_id="educational_explainer")

        await make_scheduler(mock_worker).run(manifest)

        flags = mock_worker.submissions[0]["job_config"]["feature_flags"]
        assert flags["prompt_enhancement_mode"] == "strict"
        assert flags["max_cost_per_job"] == 0.50

    @pytest.mark.asyncio
    async def test_higher_priority_dispatches_first(self, mock_worker):
        jobs = [
            make_job_dict("low", "image_generation", priority=0),
            make_job_dict("high", "voiceover_generation", priority=5),
            make_job_dict("assembly", "final_assembly", depends_on=["low", "high"]),
        ]
        manifest = approved(jobs)

        await make_scheduler(mock_worker, max_concurrent_jobs=1).run(manifest)

        assert mock_worker.submitted_types()[:2] == [JobType.VOICEOVER_GENERATION, JobType.IMAGE_GENERATION]

    @pytest.mark.asyncio
    async def test_parallel_partners_dispatch_together(self, mock_worker):
        jobs = [
            make_job_dict("img_1", "image_generation"),
            make_job_dict("voice_1", "voiceover_generation"),
            make_job_dict("music_1", "music_generation", depends_on=[("img_1", "parallel")]),
            make_job_dict("assembly", "final_assembly", depends_on=["img_1", "voice_1", "music_1"]),
        ]
        manifest = approved(jobs)

        report = await make_scheduler(mock_worker, max_concurrent_jobs=1).run(manifest)

        assert report.succeeded
        assert mock_worker.submitted_types()[:3] == [
            JobType.IMAGE_GENERATION,
            JobType.MUSIC_GENERATION,
            JobType.VOICEOVER_GENERATION,
        ]

    @pytest.mark.asyncio
    async def test_routes_by_job_type(self):
        voice = MockGenerationWorker(job_types=[JobType.VOICEOVER_GENERATION])
        fallback = MockGenerationWorker()
        pool = WorkerPool([voice], default=fallback)

        report = await make_scheduler(pool).run(make_approved_manifest())

        assert report.succeeded
        assert voice.submitted_types() == [JobType.VOICEOVER_GENERATION]
        assert JobType.VOICEOVER_GENERATION not in fallback.submitted_types()


# ============================================================
# Cycles and governance
# ============================================================

class TestAdmission:

    @pytest.mark.asyncio
    async def test_cycle_is_never_dispatched(self, mock_worker):
        jobs = [
            make_job_dict("a", "analysis", depends_on=["c"]),
            make_job_dict("b", "storyboard", depends_on=["a"]),
            make_job_dict("c", "final_assembly", depends_on=["b"]),
        ]
        manifest = approved(jobs)

        with pytest.raises(ProcessingError) as exc_info:
            await make_scheduler(mock_worker).run(manifest)

        assert exc_info.value.phase == ProcessingPhase.VALIDATION
        assert mock_worker.submissions == []
        assert manifest.status == ManifestStatus.APPROVED
        assert all(j.status == JobStatus.PENDING for j in manifest.jobs)

    @pytest.mark.asyncio
    async def test_unknown_reference_is_never_dispatched(self, mock_worker):
        jobs = [make_job_dict("assembly", "final_assembly", depends_on=["ghost"])]

        with pytest.raises(ProcessingError):
            await make_scheduler(mock_worker).run(approved(jobs))

        assert mock_worker.submissions == []

    @pytest.mark.asyncio
    async def test_over_budget_job_is_rejected_before_dispatch(self, mock_worker):
        jobs = [
            make_job_dict("img_1", job_config={"scene_id": "scene_1", "estimated_cost": 0.60}),
            make_job_dict("assembly", "final_assembly", depends_on=["img_1"]),
        ]
        manifest = approved(jobs, profile_id="educational_explainer")

        report = await make_scheduler(mock_worker).run(manifest)

        job = manifest.get_job("img_1")
        assert job.status == JobStatus.FAILED
        assert job.error == "Governance rejection: Job cost would exceed limit: 0.60 > 0.50"
        assert job.attempts == 0
        assert report.rejected_jobs == {"img_1": "Job cost would exceed limit: 0.60 > 0.50"}
        assert any(isinstance(e, GovernanceRejection) for e in report.errors)
        assert mock_worker.submissions == []
        assert manifest.status == ManifestStatus.FAILED

    @pytest.mark.asyncio
    async def test_total_cost_counts_spent_and_in_flight(self, mock_worker):
        # Three 0.4 jobs against a 0.95 total cap: the third does not fit
        jobs = [
            make_job_dict(f"img_{i}", job_config={"estimated_cost": 0.4})
            for i in range(1, 4)
        ]
        jobs.append(make_job_dict("assembly", "final_assembly", job_config={"estimated_cost": 0.0},
                                  depends_on=["img_1", "img_2", ("img_3", "optional")]))
        manifest = approved(jobs)
        governance = GovernanceEngine(GovernanceConfig(max_total_cost=0.95))

        report = await make_scheduler(mock_worker, governance=governance).run(manifest)

        assert list(report.rejected_jobs) == ["img_3"]
        assert report.total_cost == pytest.approx(0.8)
        assert any("Approaching total cost limit" in w for w in report.warnings)
        assert report.succeeded

    @pytest.mark.asyncio
    async def test_timeout_cap_uses_planned_seconds(self, mock_worker):
        jobs = [
            make_job_dict("render_1", "render", estimated_duration_seconds=400),
            make_job_dict("render_2", "render", estimated_duration_seconds=400),
            make_job_dict("assembly", "final_assembly", depends_on=[("render_2", "optional"), "render_1"]),
        ]
        governance = GovernanceEngine(GovernanceConfig(max_total_timeout=600))

        report = await make_scheduler(mock_worker, governance=governance).run(approved(jobs))

        assert list(report.rejected_jobs) == ["render_2"]
        assert report.succeeded


# ============================================================
# Retries and failure propagation
# ============================================================

class TestRetries:

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, approved_manifest):
        worker = ScriptedWorker({JobType.VOICEOVER_GENERATION: 2})
        delays = []

        async def record_sleep(seconds):
            delays.append(seconds)

        report = await make_scheduler(worker, sleep=record_sleep).run(approved_manifest)

        assert report.succeeded
        assert report.attempts["voice_1"] == 3
        assert approved_manifest.get_job("voice_1").error is None
        assert delays == [30.0, 30.0]

    @pytest.mark.asyncio
    async def test_backoff_override(self, approved_manifest):
        worker = ScriptedWorker({JobType.IMAGE_GENERATION: 1})
        delays = []

        async def record_sleep(seconds):
            delays.append(seconds)

        scheduler = JobScheduler(
            workers=worker,
            config=SchedulerConfig(backoff_seconds=0.5),
            sleep=record_sleep,
        )
        await scheduler.run(approved_manifest)

        assert delays == [0.5]

    @pytest.mark.asyncio
    async def test_raising_worker_counts_as_failed_attempt(self, approved_manifest):
        worker = ScriptedWorker({JobType.IMAGE_GENERATION: 1}, raise_errors=True)

        report = await make_scheduler(worker).run(approved_manifest)

        assert report.succeeded
        assert sum(report.attempts[j] for j in ("img_1", "img_2", "img_3")) == 4

    @pytest.mark.asyncio
    async def test_attempts_limited_by_job_max_attempts(self):
        jobs = [
            make_job_dict("voice_1", "voiceover_generation", max_attempts=1),
            make_job_dict("assembly", "final_assembly", depends_on=["voice_1"]),
        ]
        worker = MockGenerationWorker(fail_types=[JobType.VOICEOVER_GENERATION])

        report = await make_scheduler(worker).run(approved(jobs))

        assert report.attempts["voice_1"] == 1
        assert not report.succeeded

    @pytest.mark.asyncio
    async def test_attempts_limited_by_profile_retries(self, approved_manifest):
        worker = MockGenerationWorker(fail_types=[JobType.VOICEOVER_GENERATION])
        governance = GovernanceEngine(GovernanceConfig(max_retries=2))

        report = await make_scheduler(worker, governance=governance).run(approved_manifest)

        assert report.attempts["voice_1"] == 2

    @pytest.mark.asyncio
    async def test_blocking_failure_fails_manifest_but_optional_sibling_completes(self):
        jobs = [
            make_job_dict("voice_1", "voiceover_generation", job_config={"scene_id": "scene_1"}),
            make_job_dict("subtitles_1", "subtitle_generation", depends_on=[("voice_1", "optional")]),
            make_job_dict("assembly", "final_assembly", depends_on=["voice_1", "subtitles_1"]),
        ]
        manifest = approved(jobs)
        worker = MockGenerationWorker(fail_types=[JobType.VOICEOVER_GENERATION])

        report = await make_scheduler(worker).run(manifest)

        voice = manifest.get_job("voice_1")
        subtitles = manifest.get_job("subtitles_1")
        assembly = manifest.get_job("assembly")

        assert voice.status == JobStatus.FAILED
        assert voice.attempts == 3
        assert subtitles.status == JobStatus.COMPLETED
        assert subtitles.metadata["optional_failures"] == ["voice_1"]
        assert assembly.status == JobStatus.PENDING
        assert assembly.metadata["blocked_by"] == "voice_1"

        assert manifest.status == ManifestStatus.FAILED
        assert "voice_1" in manifest.error_message
        assert report.blocked_jobs == {"assembly": "voice_1"}
        assert manifest.get_scene("scene_1").status == SceneStatus.FAILED
        assert any(isinstance(e, JobExecutionError) and e.job_id == "voice_1" for e in report.errors)
        assert JobType.FINAL_ASSEMBLY not in worker.submitted_types()

    @pytest.mark.asyncio
    async def test_failed_asset_fails_its_scene(self, approved_manifest):
        worker = MockGenerationWorker(fail_types=[JobType.IMAGE_GENERATION])

        report = await make_scheduler(worker).run(approved_manifest)

        assert approved_manifest.get_asset("asset_1").status == AssetStatus.FAILED
        assert approved_manifest.get_scene("scene_2").status == SceneStatus.FAILED
        assert not report.succeeded

    @pytest.mark.asyncio
    async def test_failed_optional_scene_job_keeps_scene_ready(self):
        jobs = [
            make_job_dict(
                "img_1", "image_generation",
                job_config={"scene_id": "scene_1", "asset_ids": ["asset_1"], "estimated_cost": 0.1},
            ),
            make_job_dict(
                "sfx_1", "sound_effects",
                job_config={"scene_id": "scene_1", "estimated_cost": 0.1},
            ),
            make_job_dict("assembly", "final_assembly", depends_on=["img_1", ("sfx_1", "optional")]),
        ]
        manifest = approved(jobs, scene_count=1)
        worker = MockGenerationWorker(fail_types=[JobType.SOUND_EFFECTS])

        report = await make_scheduler(worker).run(manifest)

        assert report.succeeded
        assert manifest.get_job("sfx_1").status == JobStatus.FAILED
        assert manifest.get_job("assembly").status == JobStatus.COMPLETED
        assert manifest.get_job("assembly").metadata["optional_failures"] == ["sfx_1"]
        assert manifest.get_scene("scene_1").status == SceneStatus.READY
        assert "Scene scene_1: optional job sfx_1 failed" in report.warnings

    @pytest.mark.asyncio
    async def test_hung_worker_times_out_as_failed_attempt(self):
        jobs = [
            make_job_dict("voice_1", "voiceover_generation", max_attempts=1),
            make_job_dict("assembly", "final_assembly", depends_on=["voice_1"]),
        ]
        manifest = approved(jobs)
        worker = BlockingWorker()
        governance = GovernanceEngine(GovernanceConfig(max_job_timeout=1))

        report = await asyncio.wait_for(make_scheduler(worker, governance=governance).run(manifest), 10)

        voice = manifest.get_job("voice_1")
        assert voice.status == JobStatus.FAILED
        assert voice.attempts == 1
        assert "Timed out" in report.failed_jobs["voice_1"]
        assert manifest.status == ManifestStatus.FAILED

    @pytest.mark.asyncio
    async def test_quality_gate_failure_is_a_failed_attempt(self, approved_manifest):
        worker = MockGenerationWorker(quality_score=0.1)

        report = await make_scheduler(worker).run(approved_manifest)

        assert not report.succeeded
        assert "Quality score below minimum" in report.failed_jobs["voice_1"]
        assert report.attempts["voice_1"] == 3

    @pytest.mark.asyncio
    async def test_quality_gate_can_be_disabled(self, approved_manifest):
        worker = MockGenerationWorker(quality_score=0.1)
        governance = GovernanceEngine(GovernanceConfig(enable_quality_gates=False))

        report = await make_scheduler(worker, governance=governance).run(approved_manifest)

        assert report.succeeded
        assert approved_manifest.get_asset("asset_1").quality_score == 0.1

    @pytest.mark.asyncio
    async def test_manifest_without_assembly_fails(self, mock_worker):
        jobs = [make_job_dict("img_1", job_config={"scene_id": "scene_1"})]
        manifest = approved(jobs)

        report = await make_scheduler(mock_worker).run(manifest)

        assert report.completed_jobs == ["img_1"]
        assert manifest.status == ManifestStatus.FAILED
        assert manifest.error_message == "Manifest has no final assembly job"


# ============================================================
# Concurrency and cancellation
# ============================================================

class TestConcurrency:

    @pytest.mark.asyncio
    async def test_respects_concurrency_ceiling(self):
        jobs = [make_job_dict(f"img_{i}") for i in range(6)]
        jobs.append(make_job_dict("assembly", "final_assembly", depends_on=[j["id"] for j in jobs]))
        worker = ConcurrencyTrackingWorker()

        report = await make_scheduler(worker, max_concurrent_jobs=2).run(approved(jobs))

        assert report.succeeded
        assert worker.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_ceiling_is_shared_across_manifests(self):
        worker = ConcurrencyTrackingWorker()
        scheduler = make_scheduler(worker, max_concurrent_jobs=3)
        first = make_approved_manifest(id="manifest_a")
        second = make_approved_manifest(id="manifest_b")

        reports = await asyncio.gather(scheduler.run(first), scheduler.run(second))

        assert all(r.succeeded for r in reports)
        assert worker.max_in_flight == 3

    def test_scheduler_reusable_across_event_loops(self):
        worker = ConcurrencyTrackingWorker()
        scheduler = make_scheduler(worker, max_concurrent_jobs=1)

        first = asyncio.run(scheduler.run(make_approved_manifest(id="manifest_a")))
        second = asyncio.run(scheduler.run(make_approved_manifest(id="manifest_b")))

        assert first.succeeded
        assert second.succeeded
        assert worker.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_cancel_manifest(self, approved_manifest):
        worker = BlockingWorker()
        scheduler = make_scheduler(worker)

        run = asyncio.ensure_future(scheduler.run(approved_manifest))
        await worker.started.wait()
        assert scheduler.cancel(approved_manifest.id)
        report = await run

        assert approved_manifest.status == ManifestStatus.FAILED
        assert approved_manifest.error_message == "Production cancelled"
        assert all(j.status == JobStatus.CANCELLED for j in approved_manifest.jobs)
        assert sorted(report.cancelled_jobs) == sorted(j.id for j in approved_manifest.jobs)

    @pytest.mark.asyncio
    async def test_cancel_unknown_manifest(self, mock_worker):
        assert make_scheduler(mock_worker).cancel("nope") is False

    @pytest.mark.asyncio
    async def test_cancel_running_job_blocks_dependents(self):
        jobs = [
            make_job_dict("voice_1", "voiceover_generation"),
            make_job_dict("assembly", "final_assembly", depends_on=["voice_1"]),
        ]
        manifest = approved(jobs)
        worker = BlockingWorker()
        scheduler = make_scheduler(worker)

        run = asyncio.ensure_future(scheduler.run(manifest))
        await worker.started.wait()
        assert scheduler.cancel_job("voice_1")
        report = await run

        assert manifest.get_job("voice_1").status == JobStatus.CANCELLED
        assert report.blocked_jobs == {"assembly": "voice_1"}
        assert manifest.status == ManifestStatus.FAILED


# ============================================================
# Persistence
# ============================================================

class TestPersistence:

    @pytest.mark.asyncio
    async def test_job_updates_are_persisted(self, manifest_dict, mock_worker):
        repository = InMemoryManifestRepository()
        scheduler = make_scheduler(mock_worker, repository=repository)
        planner = ProductionPlanner(repository, scheduler)

        record = await planner.create_manifest(manifest_dict, user_id="user_1")
        await planner.approve(record.id)
        await planner.produce(record.id)

        stored = (await repository.get_manifest(record.id)).data
        jobs = (await repository.get_jobs(record.id)).data
        assert stored.status == ManifestStatus.COMPLETED
        assert stored.completed_at is not None
        assert all(j.status == JobStatus.COMPLETED for j in jobs)
        assert stored.version > record.version

    @pytest.mark.asyncio
    async def test_competing_write_is_not_overwritten(self, manifest_dict, mock_worker):
        repository = CompetingWriteRepository()
        scheduler = make_scheduler(mock_worker, repository=repository)
        planner = ProductionPlanner(repository, scheduler)

        record = await planner.create_manifest(manifest_dict, user_id="user_1")
        await planner.approve(record.id)
        report = await planner.produce(record.id)

        stored = (await repository.get_manifest(record.id)).data
        assert stored.error_message == "edited elsewhere"
        assert stored.status == ManifestStatus.IN_PRODUCTION
        conflicts = [e for e in report.errors if isinstance(e, ConcurrentModificationError)]
        assert len(conflicts) == 1
        assert conflicts[0].code == "CONFLICT"
        assert conflicts[0].actual_version == conflicts[0].expected_version + 1


class CompetingWriteRepository(InMemoryManifestRepository):
    """Lands another writer's update just before the first terminal status write"""

    def __init__(self):
        super().__init__()
        self.interfered = False

    async def update_manifest(self, manifest_id, partial, expected_version=None):
        terminal = partial.get("status") in (ManifestStatus.COMPLETED, ManifestStatus.FAILED)
        if terminal and not self.interfered:
            self.interfered = True
            await super().update_manifest(manifest_id, {"error_message": "edited elsewhere"})
        return await super().update_manifest(manifest_id, partial, expected_version)
