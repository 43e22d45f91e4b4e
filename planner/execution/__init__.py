"""Job graph and scheduling"""

from .graph import JobEdge, JobGraph, edges_from_pairs
from .scheduler import JobScheduler, SchedulerConfig, SchedulerReport

__all__ = [
    "JobEdge",
    "JobGraph",
    "edges_from_pairs",
    "JobScheduler",
    "SchedulerConfig",
    "SchedulerReport",
]
