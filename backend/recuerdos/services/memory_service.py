"""Create, update and delete memories without letting row and photo drift apart.

Ordering rules:

* create: upload the photo, then insert the row. No row exists without a blob.
* update with a new photo: upload the new blob, update the row to point at it,
  then remove the old blob.
* delete: remove the row, then the blob.

Removing a blob that is no longer referenced is best-effort: a failure there is
logged and swallowed because the row is already consistent. A failure in any
step that the row depends on aborts the operation, and a blob uploaded for a
row write that then failed is removed again.
"""

from __future__ import annotations

import logging

from recuerdos.core.errors import InvalidInput, NotFound, RecuerdosError, StorageUnavailable
from recuerdos.core.security import CallerIdentity
from recuerdos.models.memory import Memory
from recuerdos.schemas import MemoryCreate, MemoryFilters, MemoryUpdate
from recuerdos.services.memory_store import MemoryStore
from recuerdos.services.photos import PhotoUpload, validate_photo
from recuerdos.services.storage import ObjectStorage, build_storage_key, discard_blob

logger = logging.getLogger(__name__)


class MemoryService:
    def __init__(self, store: MemoryStore, storage: ObjectStorage | None, max_photo_bytes: int) -> None:
        self.store = store
        self.storage = storage
        self.max_photo_bytes = max_photo_bytes

    def _require_storage(self) -> ObjectStorage:
        if self.storage is None:
            logger.error("memory_service event=storage_not_configured")
            raise StorageUnavailable("El almacenamiento de imágenes no está configurado")
        return self.storage

    def _check_photo(self, photo: PhotoUpload | None) -> PhotoUpload:
        if photo is None:
            raise InvalidInput("La foto es obligatoria")
        return validate_photo(photo.filename, photo.content_type, photo.data, self.max_photo_bytes)

    async def _upload(self, caller: CallerIdentity, photo: PhotoUpload) -> tuple[str, str]:
        storage = self._require_storage()
        key = build_storage_key(caller.user_id, photo.filename)
        url = await storage.upload(key, photo.data, photo.content_type)
        return url, key

    async def _discard_blob(self, key: str, reason: str) -> None:
        await discard_blob(self.storage, key, reason)

    async def list_memories(self, caller: CallerIdentity, filters: MemoryFilters) -> list[Memory]:
        return await self.store.list(caller.user_id, filters)

    async def get_memory(self, caller: CallerIdentity, memory_id: int) -> Memory:
        memory = await self.store.get(caller.user_id, memory_id)
        if memory is None:
            raise NotFound()
        return memory

    async def create_memory(
        self,
        caller: CallerIdentity,
        data: MemoryCreate,
        photo: PhotoUpload | None,
    ) -> Memory:
        photo = self._check_photo(photo)
        url, key = await self._upload(caller, photo)

        try:
            memory = await self.store.insert(
                owner_id=caller.user_id,
                title=data.title,
                description=data.description,
                memory_date=data.date,
                photo_url=url,
                photo_storage_key=key,
            )
        except RecuerdosError:
            await self._discard_blob(key, "insert_failed")
            raise

        logger.info("memory_service event=created user_id=%s memory_id=%s key=%s", caller.user_id, memory.id, key)
        return memory

    async def update_memory(
        self,
        caller: CallerIdentity,
        memory_id: int,
        data: MemoryUpdate,
        photo: PhotoUpload | None,
    ) -> None:
        existing = await self.get_memory(caller, memory_id)
        changes = data.changes()

        if photo is None:
            updated = await self.store.update(caller.user_id, memory_id, changes)
            if not updated:
                raise NotFound()
            logger.info("memory_service event=updated user_id=%s memory_id=%s", caller.user_id, memory_id)
            return

        photo = self._check_photo(photo)
        previous_key = existing.photo_storage_key
        url, key = await self._upload(caller, photo)
        changes.update(photo_url=url, photo_storage_key=key)

        try:
            updated = await self.store.update(caller.user_id, memory_id, changes)
        except RecuerdosError:
            await self._discard_blob(key, "update_failed")
            raise
        if not updated:
            # deleted concurrently between the fetch and the update
            await self._discard_blob(key, "update_missed")
            raise NotFound()

        await self._discard_blob(previous_key, "replaced")
        logger.info(
            "memory_service event=photo_replaced user_id=%s memory_id=%s old_key=%s new_key=%s",
            caller.user_id,
            memory_id,
            previous_key,
            key,
        )

    async def delete_memory(self, caller: CallerIdentity, memory_id: int) -> None:
        existing = await self.get_memory(caller, memory_id)
        # row before blob: a failed row delete must not leave the row pointing at a removed photo
        deleted = await self.store.delete(caller.user_id, memory_id)
        if not deleted:
            raise NotFound()
        await self._discard_blob(existing.photo_storage_key, "deleted")
        logger.info("memory_service event=deleted user_id=%s memory_id=%s", caller.user_id, memory_id)
