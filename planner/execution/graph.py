"""Job dependency graph for mixed blocking/optional/parallel generation jobs"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from planner.models.manifest import DependencyType, JobStatus, ProductionJob


FAILED_STATUSES = (JobStatus.FAILED, JobStatus.CANCELLED)


@dataclass(frozen=True)
class JobEdge:
    """`dependent` declares a dependency of `kind` on `dependency`"""
    dependency: str
    dependent: str
    kind: DependencyType = DependencyType.BLOCKING


class JobGraph:
    """
    Directed graph of job dependencies.

    Example:
        graph = JobGraph.from_jobs([
            ProductionJob("voice_1", JobType.VOICEOVER_GENERATION),
            ProductionJob("img_1", JobType.IMAGE_GENERATION),
            ProductionJob("lipsync_1", JobType.LIPSYNC_PROCESSING, dependencies=[
                JobDependency("voice_1"),
                JobDependency("img_1", DependencyType.OPTIONAL),
            ]),
        ])

    This means:
    - voice_1 and img_1 have no dependencies and are ready immediately
    - lipsync_1 becomes ready as soon as voice_1 completes
    - if img_1 fails, lipsync_1 still runs and the failure is recorded on it

    Visual:
        [voice_1] ══blocking══> [lipsync_1]
        [img_1]   ──optional──> [lipsync_1]
    """

    def __init__(self, job_ids: Iterable[str], edges: Iterable[JobEdge] = ()):
        self.job_ids: List[str] = list(dict.fromkeys(job_ids))
        self.edges: List[JobEdge] = list(edges)

        self._deps: Dict[str, List[JobEdge]] = defaultdict(list)
        self._dependents: Dict[str, List[JobEdge]] = defaultdict(list)
        for edge in self.edges:
            self._deps[edge.dependent].append(edge)
            self._dependents[edge.dependency].append(edge)

    @classmethod
    def from_jobs(cls, jobs: Iterable[ProductionJob]) -> "JobGraph":
        jobs = list(jobs)
        edges = [
            JobEdge(dependency=dep.job_id, dependent=job.id, kind=dep.dependency_type)
            for job in jobs
            for dep in job.dependencies
        ]
        return cls([j.id for j in jobs], edges)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self.job_ids

    def dependencies_of(self, job_id: str, kind: Optional[DependencyType] = None) -> List[str]:
        return [
            e.dependency for e in self._deps.get(job_id, [])
            if kind is None or e.kind == kind
        ]

    def dependents_of(self, job_id: str, kind: Optional[DependencyType] = None) -> List[str]:
        return [
            e.dependent for e in self._dependents.get(job_id, [])
            if kind is None or e.kind == kind
        ]

    # ------------------------------------------------------------
    # Structure checks
    # ------------------------------------------------------------

    def unknown_references(self) -> List[JobEdge]:
        known = set(self.job_ids)
        return [e for e in self.edges if e.dependency not in known]

    def find_cycle(self) -> Optional[List[str]]:
        """
        Find one dependency cycle.

        Every dependency kind counts as an edge. Returns the cycle as a path
        that starts and ends on the same job id (e.g. ["a", "b", "c", "a"]),
        or None when the graph is acyclic.
        """
        known = set(self.job_ids)
        visited: Set[str] = set()

        def visit(job_id: str, path: List[str], on_path: Set[str]) -> Optional[List[str]]:
            visited.add(job_id)
            path.append(job_id)
            on_path.add(job_id)

            for dep in self.dependencies_of(job_id):
                if dep not in known:
                    continue
                if dep in on_path:
                    start = path.index(dep)
                    return path[start:] + [dep]
                if dep not in visited:
                    cycle = visit(dep, path, on_path)
                    if cycle:
                        return cycle

            path.pop()
            on_path.remove(job_id)
            return None

        for job_id in self.job_ids:
            if job_id not in visited:
                cycle = visit(job_id, [], set())
                if cycle:
                    return cycle
        return None

    def validate(self) -> List[str]:
        """
        Validate the graph.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        seen: Set[str] = set()
        for edge in self.edges:
            key = (edge.dependent, edge.dependency)
            if edge.dependent == edge.dependency:
                errors.append(f"Job '{edge.dependent}' depends on itself")
            elif key in seen:
                errors.append(f"Job '{edge.dependent}' declares '{edge.dependency}' more than once")
            seen.add(key)

        for edge in self.unknown_references():
            errors.append(f"Job '{edge.dependent}' references unknown job '{edge.dependency}'")

        cycle = self.find_cycle()
        if cycle:
            errors.append(f"Circular dependency detected: {' -> '.join(cycle)}")

        return errors

    def topological_order(self) -> List[str]:
        """
        Job ids ordered so every dependency precedes its dependents.

        Ties keep declaration order. Raises ValueError on a cycle.
        """
        known = set(self.job_ids)
        in_degree = {
            job_id: len([d for d in self.dependencies_of(job_id) if d in known])
            for job_id in self.job_ids
        }
        order: List[str] = []
        queue = [j for j in self.job_ids if in_degree[j] == 0]

        while queue:
            job_id = queue.pop(0)
            order.append(job_id)
            for dependent in self.dependents_of(job_id):
                if dependent not in in_degree:
                    continue
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(order) != len(self.job_ids):
            raise ValueError(f"Job graph contains a cycle: {self.find_cycle()}")
        return order

    def get_execution_waves(self) -> List[List[str]]:
        """
        Group jobs into waves; jobs in one wave only wait on earlier waves.

        Only blocking edges order the waves, matching readiness.
        """
        known = set(self.job_ids)
        level: Dict[str, int] = {}
        for job_id in self.topological_order():
            blocking = [d for d in self.dependencies_of(job_id, DependencyType.BLOCKING) if d in known]
            level[job_id] = 1 + max((level[d] for d in blocking), default=-1)

        waves: List[List[str]] = []
        for job_id in self.job_ids:
            while len(waves) <= level[job_id]:
                waves.append([])
            waves[level[job_id]].append(job_id)
        return waves

    # ------------------------------------------------------------
    # Runtime queries
    # ------------------------------------------------------------

    def is_ready(self, job_id: str, statuses: Mapping[str, JobStatus]) -> bool:
        """Pending, and every blocking dependency completed"""
        if statuses.get(job_id) != JobStatus.PENDING:
            return False
        return all(
            statuses.get(dep) == JobStatus.COMPLETED
            for dep in self.dependencies_of(job_id, DependencyType.BLOCKING)
        )

    def ready_jobs(self, statuses: Mapping[str, JobStatus]) -> List[str]:
        return [j for j in self.job_ids if self.is_ready(j, statuses)]

    def blocked_jobs(self, statuses: Mapping[str, JobStatus]) -> Dict[str, str]:
        """
        Non-terminal jobs that can never become ready.

        A job is blocked when a blocking dependency failed or was cancelled,
        or is itself blocked.

        Returns:
            Mapping of blocked job id -> id of the failed job at the root
        """
        blocked: Dict[str, str] = {}
        for job_id in self.topological_order():
            if statuses.get(job_id) not in (JobStatus.PENDING, None):
                continue
            for dep in self.dependencies_of(job_id, DependencyType.BLOCKING):
                if statuses.get(dep) in FAILED_STATUSES:
                    blocked[job_id] = dep
                    break
                if dep in blocked:
                    blocked[job_id] = blocked[dep]
                    break
        return blocked

    def optional_failures(self, job_id: str, statuses: Mapping[str, JobStatus]) -> List[str]:
        return [
            dep for dep in self.dependencies_of(job_id, DependencyType.OPTIONAL)
            if statuses.get(dep) in FAILED_STATUSES
        ]

    def parallel_partners(self, job_id: str) -> List[str]:
        """Jobs linked to `job_id` by a parallel hint in either direction"""
        partners = self.dependencies_of(job_id, DependencyType.PARALLEL)
        partners += self.dependents_of(job_id, DependencyType.PARALLEL)
        return list(dict.fromkeys(partners))


def edges_from_pairs(pairs: Iterable[Tuple[str, str, DependencyType]]) -> List[JobEdge]:
    """Build edges from (dependent, dependency, kind) tuples"""
    return [JobEdge(dependency=dep, dependent=job, kind=kind) for job, dep, kind in pairs]
