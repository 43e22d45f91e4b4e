"""Unit tests for the job dependency graph

Covers the readiness rules the scheduler relies on:
1. Only blocking dependencies gate readiness
2. A failed or cancelled blocking dependency blocks every dependent downstream
3. Optional failures are reported but never block
"""

import pytest

from planner.execution.graph import JobEdge, JobGraph, edges_from_pairs
from planner.models.manifest import DependencyType, JobDependency, JobStatus, JobType, ProductionJob


BLOCKING = DependencyType.BLOCKING
OPTIONAL = DependencyType.OPTIONAL
PARALLEL = DependencyType.PARALLEL


# ============================================================
# Test Fixtures
# ============================================================

@pytest.fixture
def lipsync_graph():
    """
    [voice_1] ══blocking══> [lipsync_1] ══blocking══> [assembly]
    [img_1]   ──optional──> [lipsync_1]
    [music_1] ··parallel··> [voice_1]
    """
    jobs = [
        ProductionJob("voice_1", JobType.VOICEOVER_GENERATION),
        ProductionJob("img_1", JobType.IMAGE_GENERATION),
        ProductionJob("music_1", JobType.MUSIC_GENERATION),
        ProductionJob("lipsync_1", JobType.LIPSYNC_PROCESSING, dependencies=[
            JobDependency("voice_1"),
            JobDependency("img_1", OPTIONAL),
        ]),
        ProductionJob("assembly", JobType.FINAL_ASSEMBLY, dependencies=[JobDependency("lipsync_1")]),
    ]
    jobs[0].dependencies.append(JobDependency("music_1", PARALLEL))
    return JobGraph.from_jobs(jobs)


def statuses(**overrides):
    base = {
        "voice_1": JobStatus.PENDING,
        "img_1": JobStatus.PENDING,
        "music_1": JobStatus.PENDING,
        "lipsync_1": JobStatus.PENDING,
        "assembly": JobStatus.PENDING,
    }
    base.update({k: JobStatus(v) for k, v in overrides.items()})
    return base


# ============================================================
# Readiness
# ============================================================

class TestReadiness:

    def test_roots_are_ready(self, lipsync_graph):
        # Parallel hints never gate readiness
        assert lipsync_graph.ready_jobs(statuses()) == ["voice_1", "img_1", "music_1"]

    def test_optional_dependency_does_not_gate(self, lipsync_graph):
        ready = lipsync_graph.ready_jobs(statuses(voice_1="completed"))
        assert "lipsync_1" in ready

    def test_blocking_dependency_gates(self, lipsync_graph):
        ready = lipsync_graph.ready_jobs(statuses(img_1="completed"))
        assert "lipsync_1" not in ready

    def test_only_pending_jobs_are_ready(self, lipsync_graph):
        ready = lipsync_graph.ready_jobs(statuses(voice_1="processing"))
        assert "voice_1" not in ready


# ============================================================
# Failure propagation
# ============================================================

class TestFailurePropagation:

    def test_blocking_failure_blocks_transitively(self, lipsync_graph):
        blocked = lipsync_graph.blocked_jobs(statuses(voice_1="failed"))
        assert blocked == {"lipsync_1": "voice_1", "assembly": "voice_1"}

    def test_cancelled_counts_as_failed(self, lipsync_graph):
        blocked = lipsync_graph.blocked_jobs(statuses(voice_1="cancelled"))
        assert "lipsync_1" in blocked

    def test_optional_failure_does_not_block(self, lipsync_graph):
        state = statuses(img_1="failed")

        assert lipsync_graph.blocked_jobs(state) == {}
        assert lipsync_graph.optional_failures("lipsync_1", state) == ["img_1"]

    def test_parallel_partners(self, lipsync_graph):
        assert lipsync_graph.parallel_partners("voice_1") == ["music_1"]
        assert lipsync_graph.parallel_partners("music_1") == ["voice_1"]


# ============================================================
# Structure
# ============================================================

class TestStructure:

    def test_topological_order(self, lipsync_graph):
        order = lipsync_graph.topological_order()

        assert order.index("voice_1") < order.index("lipsync_1") < order.index("assembly")
        assert order.index("img_1") < order.index("lipsync_1")

    def test_execution_waves_follow_blocking_edges(self, lipsync_graph):
        waves = lipsync_graph.get_execution_waves()
        assert waves == [["voice_1", "img_1", "music_1"], ["lipsync_1"], ["assembly"]]

    def test_find_cycle(self):
        graph = JobGraph(["a", "b", "c"], edges_from_pairs([
            ("b", "a", BLOCKING),
            ("c", "b", BLOCKING),
            ("a", "c", OPTIONAL),
        ]))

        cycle = graph.find_cycle()

        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b", "c"}
        with pytest.raises(ValueError):
            graph.topological_order()

    def test_acyclic_graph_has_no_cycle(self, lipsync_graph):
        assert lipsync_graph.find_cycle() is None
        assert lipsync_graph.validate() == []

    def test_validate_reports_problems(self):
        graph = JobGraph(["a", "b"], [
            JobEdge(dependency="a", dependent="a"),
            JobEdge(dependency="ghost", dependent="b"),
            JobEdge(dependency="a", dependent="b"),
            JobEdge(dependency="a", dependent="b"),
        ])

        errors = graph.validate()

        assert any("depends on itself" in e for e in errors)
        assert any("unknown job 'ghost'" in e for e in errors)
        assert any("more than once" in e for e in errors)
        assert any("Circular" in e for e in errors)

    def test_dependency_queries(self, lipsync_graph):
        assert lipsync_graph.dependencies_of("lipsync_1") == ["voice_1", "img_1"]
        assert lipsync_graph.dependencies_of("lipsync_1", BLOCKING) == ["voice_1"]
        assert lipsync_graph.dependents_of("voice_1") == ["lipsync_1"]
        assert "assembly" in lipsync_graph
