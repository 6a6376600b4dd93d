"""Object store backends for uploaded images.

`ObjectStore` is the interface the media lifecycle manager depends on:
`upload()` returns a durable URL plus a deletable handle, `delete()`
removes by handle. Calls are independent of the database and may fail
on their own.

Two implementations:
- `CloudinaryObjectStore`: production backend on the cloudinary SDK.
- `InMemoryObjectStore`: dict-backed store for local development and tests.
"""

from __future__ import annotations

import base64
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Protocol, Tuple, runtime_checkable

import cloudinary
import cloudinary.api
import cloudinary.uploader

from .config import Settings
from .errors import ObjectStoreError

logger = logging.getLogger("cyberwhisper.storage")


@dataclass(frozen=True)
class StoredAsset:
    """Where an uploaded blob lives: public URL and the handle to delete it."""
    url: str
    handle: str


@runtime_checkable
class ObjectStore(Protocol):
    """Storage protocol for uploaded binary assets."""

    def init(self) -> None:
        ...

    def shutdown(self) -> None:
        ...

    def upload(self, payload: bytes, mime_type: str, namespace: str) -> StoredAsset:
        """Store bytes under `namespace`; raise ObjectStoreError on failure."""
        ...

    def delete(self, handle: str) -> bool:
        """Delete by handle. True when the blob is gone (deleted or already absent)."""
        ...


def join_namespace(root: str, namespace: str) -> str:
    parts = [p.strip("/") for p in (root, namespace) if p and p.strip("/")]
    return "/".join(parts)


class InMemoryObjectStore:
    """In-memory object store for development and testing."""

    def __init__(self, root_folder: str = ""):
        self.root_folder = root_folder
        self._blobs: Dict[str, Tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def init(self) -> None:
        logger.info("object_store_ready %s", json.dumps({"backend": "memory"}))

    def shutdown(self) -> None:
        with self._lock:
            self._blobs.clear()

    def upload(self, payload: bytes, mime_type: str, namespace: str) -> StoredAsset:
        handle = f"{join_namespace(self.root_folder, namespace)}/{uuid.uuid4().hex}"
        with self._lock:
            self._blobs[handle] = (bytes(payload), mime_type)
        return StoredAsset(url=f"memory://{handle}", handle=handle)

    def delete(self, handle: str) -> bool:
        with self._lock:
            self._blobs.pop(handle, None)
        return True

    def exists(self, handle: str) -> bool:
        with self._lock:
            return handle in self._blobs

    def handles(self, namespace: str = "") -> Tuple[str, ...]:
        """List stored handles, optionally restricted to one namespace."""
        prefix = join_namespace(self.root_folder, namespace)
        with self._lock:
            keys = sorted(self._blobs)
        if not prefix:
            return tuple(keys)
        return tuple(k for k in keys if k.startswith(prefix + "/"))


class CloudinaryObjectStore:
    """Cloudinary-backed object store.

    The blob handle is Cloudinary's `public_id`; uploads go to
    `<root_folder>/<namespace>` with automatic quality/format.
    """

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, root_folder: str = ""):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.root_folder = root_folder

    def init(self) -> None:
        cloudinary.config(
            cloud_name=self.cloud_name,
            api_key=self.api_key,
            api_secret=self.api_secret,
            secure=True,
        )
        try:
            cloudinary.api.ping()
        except Exception as exc:
            # the store may recover later; individual calls report their own failures
            logger.warning(
                "object_store_ping_failed %s",
                json.dumps({"backend": "cloudinary", "error": str(exc)}, ensure_ascii=True),
            )
        else:
            logger.info("object_store_ready %s", json.dumps({"backend": "cloudinary"}))

    def shutdown(self) -> None:
        pass

    def upload(self, payload: bytes, mime_type: str, namespace: str) -> StoredAsset:
        data_uri = f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"
        try:
            result = cloudinary.uploader.upload(
                data_uri,
                folder=join_namespace(self.root_folder, namespace),
                resource_type="image",
                quality="auto",
                fetch_format="auto",
            )
        except Exception as exc:
            raise ObjectStoreError(f"cloudinary upload failed: {exc}") from exc
        url = result.get("secure_url")
        public_id = result.get("public_id")
        if not url or not public_id:
            raise ObjectStoreError("cloudinary upload returned no secure_url/public_id")
        return StoredAsset(url=url, handle=public_id)

    def delete(self, handle: str) -> bool:
        try:
            result = cloudinary.uploader.destroy(handle, resource_type="image")
        except Exception as exc:
            raise ObjectStoreError(f"cloudinary delete failed: {exc}") from exc
        return result.get("result") in ("ok", "not found")


def build_object_store(settings: Settings) -> ObjectStore:
    """Return the backend selected by `OBJECT_STORE`."""
    if settings.OBJECT_STORE == "cloudinary":
        return CloudinaryObjectStore(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            root_folder=settings.MEDIA_ROOT_FOLDER,
        )
    return InMemoryObjectStore(root_folder=settings.MEDIA_ROOT_FOLDER)
