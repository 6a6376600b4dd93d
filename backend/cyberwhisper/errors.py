"""Typed errors raised by the media lifecycle and content services.

The HTTP layer maps each class to a status code; services and the
lifecycle manager never build responses themselves.
"""

from typing import Optional


class CyberWhisperError(Exception):
    """Base exception for all application errors."""


class ObjectStoreError(CyberWhisperError):
    """Raised by an object store backend when an upload or delete is rejected."""


class MediaError(CyberWhisperError):
    """Base class for failures reported by the media lifecycle manager."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class InvalidAsset(MediaError):
    """Bad mime type or size. Nothing was uploaded."""


class UploadFailed(MediaError):
    """The object store rejected or could not take the upload."""


class PersistFailed(MediaError):
    """The database write failed after a successful upload.

    The freshly uploaded blob has already been handed to a compensating
    delete by the time this is raised.
    """


class NotFound(MediaError):
    """No record exists for the requested id."""

    def __init__(self, kind: str, record_id):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class DeleteFailed(MediaError):
    """The row delete failed. The blob may already be gone."""


class SlugConflict(CyberWhisperError):
    """An explicitly supplied slug is already taken."""

    def __init__(self, slug: str):
        super().__init__(f"slug already exists: {slug}")
        self.slug = slug


class DuplicateRecord(CyberWhisperError):
    """A unique field (email, phone) already belongs to another record."""

    def __init__(self, field: str, value):
        super().__init__(f"{field} already registered")
        self.field = field
        self.value = value
