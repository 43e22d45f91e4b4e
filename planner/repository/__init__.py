"""Repository gateway for manifests, scenes, assets and jobs"""

from .base import ManifestRecord, ManifestRepository, RepositoryResult, STATUS_TIMESTAMPS
from .memory import InMemoryManifestRepository
from .local import LocalManifestRepository

__all__ = [
    "ManifestRecord",
    "ManifestRepository",
    "RepositoryResult",
    "STATUS_TIMESTAMPS",
    "InMemoryManifestRepository",
    "LocalManifestRepository",
]
