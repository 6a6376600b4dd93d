"""Keeps a record and the object-store blob it references consistent.

The database and the object store share no transaction, so every
workflow here orders its side effects and compensates on failure:

- create: upload, then insert. A failed insert deletes the new blob.
- replace: upload new, update the row, then delete the old blob. A
  failed update deletes the new blob and leaves the old state alone. A
  failed delete of the old blob is a tolerated leak, reported on the
  outcome instead of as an error.
- delete: delete the blob(s), then the row. A failed blob delete does
  not stop the row delete. A failed row delete is reported even though
  the blob may already be gone.

Compensation failures are logged and never change the error the caller
sees. Nothing is retried here.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import DeleteFailed, InvalidAsset, NotFound, PersistFailed, UploadFailed
from .repositories import Repository
from .storage import ObjectStore, StoredAsset

logger = logging.getLogger("cyberwhisper.media")

IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
GIF_TYPE = "image/gif"


@dataclass(frozen=True)
class AssetPolicy:
    """Which uploads a media slot accepts."""
    max_bytes: int
    allow_gif: bool = False

    def allowed_types(self) -> Tuple[str, ...]:
        return IMAGE_TYPES + ((GIF_TYPE,) if self.allow_gif else ())

    def check(self, payload: bytes, mime_type: Optional[str]) -> None:
        allowed = self.allowed_types()
        if (mime_type or "").lower() not in allowed:
            raise InvalidAsset(f"invalid file type {mime_type!r}; allowed: {', '.join(allowed)}")
        if not payload:
            raise InvalidAsset("empty file")
        if len(payload) > self.max_bytes:
            raise InvalidAsset(f"file too large; limit is {self.max_bytes} bytes")


@dataclass(frozen=True)
class MediaSlot:
    """One (url, handle) column pair on a table and where its blobs live."""
    name: str
    namespace: str
    url_column: str
    handle_column: str
    policy: AssetPolicy


@dataclass(frozen=True)
class MediaOutcome:
    """Result of a successful lifecycle call.

    `orphaned_handles` lists blobs that could not be deleted and are no
    longer referenced by any record; non-empty means "succeeded with a
    warning". `retained_handles` lists blobs kept on purpose because the
    caller asked not to delete them.
    """
    record: Any
    orphaned_handles: Tuple[str, ...] = ()
    retained_handles: Tuple[str, ...] = ()

    @property
    def has_warning(self) -> bool:
        return bool(self.orphaned_handles)


def _log(level: int, event: str, **payload: Any) -> None:
    logger.log(level, "%s %s", event, json.dumps(payload, ensure_ascii=True, default=str))


class MediaLifecycleManager:
    """Coordinates uploads, row writes and compensating deletes for one table.

    The manager is the only component that issues the coupled object-store
    and record-store calls for the slots it is given.
    """

    def __init__(self, repository: Repository, object_store: ObjectStore, slots: Sequence[MediaSlot]):
        if not slots:
            raise ValueError("at least one media slot is required")
        self.repository = repository
        self.object_store = object_store
        self.slots: Dict[str, MediaSlot] = {s.name: s for s in slots}
        self.default_slot = slots[0].name
        self.kind = repository.kind

    def slot(self, name: Optional[str] = None) -> MediaSlot:
        try:
            return self.slots[name or self.default_slot]
        except KeyError:
            raise ValueError(f"unknown media slot for {self.kind}: {name}") from None

    # -- workflows ----------------------------------------------------

    def create_with_media(
        self,
        payload: bytes,
        mime_type: str,
        metadata: Mapping[str, Any],
        *,
        slot: Optional[str] = None,
    ) -> MediaOutcome:
        """Upload `payload`, then insert the record referencing it."""
        media = self.slot(slot)
        media.policy.check(payload, mime_type)
        asset = self._upload(media, payload, mime_type)
        values = dict(metadata)
        values[media.url_column] = asset.url
        values[media.handle_column] = asset.handle
        try:
            record = self.repository.create(values)
            if record is None:
                raise RuntimeError("insert returned no row")
        except Exception as exc:
            _log(logging.ERROR, "persist_failed", kind=self.kind, op="create", handle=asset.handle, error=str(exc))
            self._compensate(asset.handle, op="create")
            raise PersistFailed(f"could not save {self.kind}", cause=exc) from exc
        return MediaOutcome(record=record)

    def replace_media(
        self,
        record_id: Any,
        payload: bytes,
        mime_type: str,
        *,
        slot: Optional[str] = None,
    ) -> MediaOutcome:
        """Point the record at a newly uploaded blob, then drop the old one."""
        media = self.slot(slot)
        current = self.repository.get(record_id)
        if current is None:
            raise NotFound(self.kind, record_id)
        media.policy.check(payload, mime_type)
        old_handle = getattr(current, media.handle_column)
        asset = self._upload(media, payload, mime_type)
        changes = {media.url_column: asset.url, media.handle_column: asset.handle}
        try:
            updated = self.repository.update(record_id, changes)
        except Exception as exc:
            _log(logging.ERROR, "persist_failed", kind=self.kind, op="replace", id=record_id, handle=asset.handle, error=str(exc))
            self._compensate(asset.handle, op="replace")
            raise PersistFailed(f"could not update {self.kind} media", cause=exc) from exc
        if updated is None:
            # deleted by a concurrent request between the load and the update
            self._compensate(asset.handle, op="replace")
            raise NotFound(self.kind, record_id)

        orphaned: Tuple[str, ...] = ()
        if old_handle and old_handle != asset.handle:
            if not self._delete_blob(old_handle):
                _log(logging.WARNING, "old_blob_orphaned", kind=self.kind, id=record_id, handle=old_handle)
                orphaned = (old_handle,)
        return MediaOutcome(record=updated, orphaned_handles=orphaned)

    def delete_with_media(self, record_id: Any, delete_blob: bool = True) -> MediaOutcome:
        """Delete the record's blobs first, then the row itself."""
        current = self.repository.get(record_id)
        if current is None:
            raise NotFound(self.kind, record_id)
        handles = [h for h in (getattr(current, s.handle_column) for s in self.slots.values()) if h]

        orphaned: List[str] = []
        retained: Tuple[str, ...] = ()
        if delete_blob:
            for handle in handles:
                if not self._delete_blob(handle):
                    _log(logging.WARNING, "blob_delete_failed", kind=self.kind, id=record_id, handle=handle)
                    orphaned.append(handle)
        else:
            retained = tuple(handles)

        try:
            deleted = self.repository.delete(record_id)
        except Exception as exc:
            _log(logging.ERROR, "row_delete_failed", kind=self.kind, id=record_id, blobs_deleted=delete_blob, error=str(exc))
            raise DeleteFailed(f"failed to delete {self.kind}", cause=exc) from exc
        if not deleted:
            _log(logging.ERROR, "row_delete_failed", kind=self.kind, id=record_id, blobs_deleted=delete_blob, error="no row deleted")
            raise DeleteFailed(f"failed to delete {self.kind}")
        return MediaOutcome(record=current, orphaned_handles=tuple(orphaned), retained_handles=retained)

    # -- object store calls -------------------------------------------

    def _upload(self, media: MediaSlot, payload: bytes, mime_type: str) -> StoredAsset:
        try:
            return self.object_store.upload(payload, mime_type, media.namespace)
        except Exception as exc:
            _log(logging.ERROR, "upload_failed", kind=self.kind, namespace=media.namespace, error=str(exc))
            raise UploadFailed(f"image upload failed: {exc}", cause=exc) from exc

    def _delete_blob(self, handle: str) -> bool:
        """Best-effort delete; False on a refusal or an exception."""
        try:
            return bool(self.object_store.delete(handle))
        except Exception as exc:
            _log(logging.WARNING, "blob_delete_error", kind=self.kind, handle=handle, error=str(exc))
            return False

    def _compensate(self, handle: str, *, op: str) -> bool:
        ok = self._delete_blob(handle)
        if ok:
            _log(logging.INFO, "compensation_ok", kind=self.kind, op=op, handle=handle)
        else:
            _log(logging.ERROR, "compensation_failed", kind=self.kind, op=op, handle=handle)
        return ok
