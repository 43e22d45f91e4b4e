"""In-memory repository for tests and single-process runs"""

import asyncio
import copy
import logging
from typing import Any, Callable, Dict, List, Optional

from planner.errors import ConcurrentModificationError, ProductionPlannerError, RecordNotFoundError
from planner.models.manifest import (
    ManifestStatus,
    ProductionAsset,
    ProductionJob,
    ProductionScene,
    ValidationStatus,
    _parse_dt,
    utcnow,
)
from planner.repository.base import (
    ORDERABLE_FIELDS,
    STATUS_TIMESTAMPS,
    UPDATABLE_FIELDS,
    ManifestRecord,
    ManifestRepository,
    RepositoryResult,
)

logger = logging.getLogger(__name__)

CHILD_KINDS = ("scenes", "assets", "jobs")

_CHILD_FACTORIES: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "scenes": ProductionScene.from_dict,
    "assets": ProductionAsset.from_dict,
    "jobs": ProductionJob.from_dict,
}


def _record(data: Dict[str, Any]) -> ManifestRecord:
    return ManifestRecord.from_dict(copy.deepcopy(data))


class InMemoryManifestRepository(ManifestRepository):
    """
    Repository backed by plain dicts.

    Records are stored in their dict form and rebuilt on every read, so
    callers never share mutable state with the store. Writes are serialized
    by one asyncio lock.
    """

    def __init__(self):
        self._manifests: Dict[str, Dict[str, Any]] = {}
        self._children: Dict[str, Dict[str, List[Dict[str, Any]]]] = {kind: {} for kind in CHILD_KINDS}
        self._lock = asyncio.Lock()

    # Persistence hooks, overridden by file-backed subclasses
    def _persist(self, manifest_id: str) -> None:
        pass

    def _forget(self, manifest_id: str) -> None:
        pass

    def _check_id(self, manifest_id: str) -> Optional[ProductionPlannerError]:
        return None

    def _failure(self, exc: ProductionPlannerError) -> RepositoryResult:
        logger.warning(f"Repository operation failed: {exc.message}")
        return RepositoryResult.fail(exc)

    # ------------------------------------------------------------
    # Manifests
    # ------------------------------------------------------------

    async def create_manifest(self, record: ManifestRecord) -> RepositoryResult:
        async with self._lock:
            if not record.id:
                record.id = record.manifest_data.get("id") or ""
            if not record.id:
                return self._failure(ProductionPlannerError("Manifest record has no id", "INVALID_RECORD"))
            invalid = self._check_id(record.id)
            if invalid is not None:
                return self._failure(invalid)
            if record.id in self._manifests:
                return self._failure(
                    ProductionPlannerError(f"Manifest already exists: {record.id}", "DUPLICATE", manifest_id=record.id)
                )

            now = utcnow()
            record.created_at = now
            record.updated_at = now
            record.version = 1
            self._manifests[record.id] = copy.deepcopy(record.to_dict())
            for kind in CHILD_KINDS:
                self._children[kind].setdefault(record.id, [])
            self._persist(record.id)

            logger.debug(f"Created manifest {record.id}")
            return RepositoryResult.ok(_record(self._manifests[record.id]))

    async def get_manifest(self, manifest_id: str) -> RepositoryResult:
        data = self._manifests.get(manifest_id)
        if data is None:
            return self._failure(RecordNotFoundError("Manifest", manifest_id))
        return RepositoryResult.ok(_record(data))

    async def update_manifest(
        self,
        manifest_id: str,
        partial: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> RepositoryResult:
        async with self._lock:
            data = self._manifests.get(manifest_id)
            if data is None:
                return self._failure(RecordNotFoundError("Manifest", manifest_id))

            if expected_version is not None and data["version"] != expected_version:
                return self._failure(ConcurrentModificationError(manifest_id, expected_version, data["version"]))

            unknown = sorted(set(partial) - UPDATABLE_FIELDS)
            if unknown:
                return self._failure(ProductionPlannerError(
                    f"Cannot update fields: {', '.join(unknown)}", "INVALID_UPDATE", manifest_id=manifest_id
                ))

            record = _record(data)
            for key, value in partial.items():
                if key == "status":
                    value = ManifestStatus(value) if not isinstance(value, ManifestStatus) else value
                elif key == "validation_status":
                    value = ValidationStatus(value) if not isinstance(value, ValidationStatus) else value
                elif key.endswith("_at"):
                    value = _parse_dt(value)
                elif key == "manifest_data":
                    value = copy.deepcopy(value)
                setattr(record, key, value)

            now = utcnow()
            stamp = STATUS_TIMESTAMPS.get(record.status) if "status" in partial else None
            if stamp and getattr(record, stamp) is None:
                setattr(record, stamp, now)

            record.updated_at = now
            record.version += 1
            self._manifests[manifest_id] = record.to_dict()
            self._persist(manifest_id)

            logger.debug(f"Updated manifest {manifest_id} to version {record.version}")
            return RepositoryResult.ok(_record(self._manifests[manifest_id]))

    async def list_manifests(
        self,
        user_id: str,
        status: Optional[ManifestStatus] = None,
        limit: int = 20,
        offset: int = 0,
        order_by: str = "created_at",
        order_direction: str = "desc",
    ) -> RepositoryResult:
        if order_by not in ORDERABLE_FIELDS:
            return self._failure(ProductionPlannerError(f"Cannot order by '{order_by}'", "INVALID_QUERY"))

        records = [
            _record(d) for d in self._manifests.values()
            if d["user_id"] == user_id and (status is None or d["status"] == status.value)
        ]
        # None sorts last in either direction
        present = [r for r in records if getattr(r, order_by) is not None]
        missing = [r for r in records if getattr(r, order_by) is None]
        present.sort(key=lambda r: getattr(r, order_by), reverse=order_direction == "desc")

        ordered = present + missing
        return RepositoryResult.ok(ordered[offset:offset + limit], total_count=len(ordered))

    async def delete_manifest(self, manifest_id: str) -> RepositoryResult:
        async with self._lock:
            if manifest_id not in self._manifests:
                return self._failure(RecordNotFoundError("Manifest", manifest_id))

            del self._manifests[manifest_id]
            for kind in CHILD_KINDS:
                self._children[kind].pop(manifest_id, None)
            self._forget(manifest_id)

            logger.info(f"Deleted manifest {manifest_id} with its scenes, assets and jobs")
            return RepositoryResult.ok()

    # ------------------------------------------------------------
    # Children
    # ------------------------------------------------------------

    async def _create_children(self, kind: str, manifest_id: str, items: List[Any]) -> RepositoryResult:
        async with self._lock:
            if manifest_id not in self._manifests:
                return self._failure(RecordNotFoundError("Manifest", manifest_id))

            stored = self._children[kind].setdefault(manifest_id, [])
            existing = {d["id"] for d in stored}
            for item in items:
                if item.id in existing:
                    return self._failure(ProductionPlannerError(
                        f"Duplicate {kind[:-1]} id: {item.id}", "DUPLICATE", manifest_id=manifest_id
                    ))
                existing.add(item.id)

            stored.extend(copy.deepcopy(item.to_dict()) for item in items)
            self._persist(manifest_id)
            return RepositoryResult.ok([_CHILD_FACTORIES[kind](item.to_dict()) for item in items])

    async def _get_children(self, kind: str, manifest_id: str) -> RepositoryResult:
        if manifest_id not in self._manifests:
            return self._failure(RecordNotFoundError("Manifest", manifest_id))
        items = [_CHILD_FACTORIES[kind](copy.deepcopy(d)) for d in self._children[kind].get(manifest_id, [])]
        return RepositoryResult.ok(items, total_count=len(items))

    async def _update_child(self, kind: str, manifest_id: str, item: Any) -> RepositoryResult:
        async with self._lock:
            stored = self._children[kind].get(manifest_id)
            if stored is None or manifest_id not in self._manifests:
                return self._failure(RecordNotFoundError("Manifest", manifest_id))

            for i, data in enumerate(stored):
                if data["id"] == item.id:
                    stored[i] = copy.deepcopy(item.to_dict())
                    self._persist(manifest_id)
                    return RepositoryResult.ok(_CHILD_FACTORIES[kind](copy.deepcopy(stored[i])))

            return self._failure(RecordNotFoundError(kind[:-1].capitalize(), item.id))

    async def create_assets(self, manifest_id: str, assets: List[ProductionAsset]) -> RepositoryResult:
        return await self._create_children("assets", manifest_id, assets)

    async def get_assets(self, manifest_id: str) -> RepositoryResult:
        return await self._get_children("assets", manifest_id)

    async def update_asset(self, manifest_id: str, asset: ProductionAsset) -> RepositoryResult:
        return await self._update_child("assets", manifest_id, asset)

    async def create_scenes(self, manifest_id: str, scenes: List[ProductionScene]) -> RepositoryResult:
        return await self._create_children("scenes", manifest_id, scenes)

    async def get_scenes(self, manifest_id: str) -> RepositoryResult:
        result = await self._get_children("scenes", manifest_id)
        if result.success:
            result.data.sort(key=lambda s: s.scene_order)
        return result

    async def update_scene(self, manifest_id: str, scene: ProductionScene) -> RepositoryResult:
        return await self._update_child("scenes", manifest_id, scene)

    async def create_jobs(self, manifest_id: str, jobs: List[ProductionJob]) -> RepositoryResult:
        return await self._create_children("jobs", manifest_id, jobs)

    async def get_jobs(self, manifest_id: str) -> RepositoryResult:
        return await self._get_children("jobs", manifest_id)

    async def update_job(self, manifest_id: str, job: ProductionJob) -> RepositoryResult:
        return await self._update_child("jobs", manifest_id, job)

    async def replace_children(
        self,
        manifest_id: str,
        scenes: List[ProductionScene],
        assets: List[ProductionAsset],
        jobs: List[ProductionJob],
    ) -> RepositoryResult:
        async with self._lock:
            if manifest_id not in self._manifests:
                return self._failure(RecordNotFoundError("Manifest", manifest_id))
            for kind, items in (("scenes", scenes), ("assets", assets), ("jobs", jobs)):
                self._children[kind][manifest_id] = [item.to_dict() for item in items]
            self._persist(manifest_id)
            return RepositoryResult.ok()
