"""
Local JSON file repository for development.

Stores each manifest, with its scenes, assets and jobs, as one file:
    artifacts/manifests/<manifest_id>.json

This allows:
- Inspecting production state by hand during development
- Keeping manifests across CLI runs
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from planner.errors import ProductionPlannerError
from planner.repository.memory import CHILD_KINDS, InMemoryManifestRepository

logger = logging.getLogger(__name__)


class LocalManifestRepository(InMemoryManifestRepository):
    """
    File-backed repository.

    All files under `base_path` are loaded at construction; every write
    rewrites the affected manifest's file.
    """

    def __init__(self, base_path: str = "artifacts/manifests"):
        """
        Args:
            base_path: Directory holding one JSON file per manifest
        """
        super().__init__()
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._load_all()

    def _check_id(self, manifest_id: str) -> Optional[ProductionPlannerError]:
        # Ids become file names
        if not isinstance(manifest_id, str) or manifest_id in (".", "..") or any(
            sep in manifest_id for sep in ("/", "\\", "\0")
        ):
            return ProductionPlannerError(
                f"Manifest id cannot be used as a file name: {manifest_id!r}",
                "INVALID_RECORD",
                manifest_id=manifest_id,
            )
        return None

    def _path_for(self, manifest_id: str) -> Path:
        invalid = self._check_id(manifest_id)
        if invalid is not None:
            raise invalid
        return self.base_path / f"{manifest_id}.json"

    def _load_all(self) -> None:
        for file_path in sorted(self.base_path.glob("*.json")):
            try:
                with open(file_path, "r") as f:
                    data = json.load(f)
                manifest = data["manifest"]
                manifest_id = manifest["id"]
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                logger.warning(f"Skipping unreadable manifest file {file_path}: {e}")
                continue
            if self._check_id(manifest_id) is not None:
                logger.warning(f"Skipping manifest file {file_path}: invalid id {manifest_id!r}")
                continue

            self._manifests[manifest_id] = manifest
            for kind in CHILD_KINDS:
                self._children[kind][manifest_id] = list(data.get(kind) or [])

        logger.debug(f"Loaded {len(self._manifests)} manifests from {self.base_path}")

    def _persist(self, manifest_id: str) -> None:
        data = {
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "manifest": self._manifests[manifest_id],
        }
        for kind in CHILD_KINDS:
            data[kind] = self._children[kind].get(manifest_id, [])

        file_path = self._path_for(manifest_id)
        tmp_path = file_path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2, default=str)
        tmp_path.replace(file_path)

    def _forget(self, manifest_id: str) -> None:
        file_path = self._path_for(manifest_id)
        if file_path.exists():
            file_path.unlink()
