"""Generation worker interfaces"""

from .base import GenerationWorker, WorkerPool, WorkerResult
from .mock import MockGenerationWorker

__all__ = [
    "GenerationWorker",
    "WorkerPool",
    "WorkerResult",
    "MockGenerationWorker",
]
