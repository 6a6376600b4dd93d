"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the media lifecycle manager and slug assignment. Services are thin: they
perform validation, execute domain logic and persist through
repositories. They raise the typed errors from `cyberwhisper.errors`
(or `ValueError` for simple bad input) and never build HTTP responses.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from . import models, repositories, schemas
from .config import Settings
from .database import RecordStore
from .errors import DuplicateRecord, NotFound, SlugConflict
from .media import AssetPolicy, MediaLifecycleManager, MediaOutcome, MediaSlot
from .query import UNSET
from .utils.slugs import SlugSuffixer, slugify
from .storage import ObjectStore

logger = logging.getLogger("cyberwhisper.services")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SLUG_ATTEMPTS = 3
_default_suffixer = SlugSuffixer()


def _repo(cls, store: RecordStore, settings: Settings):
    return cls(store, max_page_size=settings.MAX_PAGE_SIZE, default_page_size=settings.DEFAULT_PAGE_SIZE)


def _filters(filters: Optional[BaseModel]) -> Dict[str, Any]:
    return filters.model_dump() if filters is not None else {}


def _changes(payload: BaseModel, required: Iterable[str] = ()) -> Dict[str, Any]:
    """Fields the client actually sent.

    A null on a column that cannot be null means "leave it alone" and is
    turned into UNSET so the query builder skips it.
    """
    changes = payload.model_dump(mode="json", exclude_unset=True)
    for name in required:
        if name in changes and changes[name] is None:
            changes[name] = UNSET
    return changes


def _join_tags(tags: Optional[List[str]]) -> Optional[str]:
    return ",".join(tags) if tags else None


class GalleryService:
    """Gallery images: one media slot, gif allowed."""

    def __init__(self, store: RecordStore, object_store: ObjectStore, settings: Settings):
        self.repo = _repo(repositories.GalleryRepository, store, settings)
        self.media = MediaLifecycleManager(
            self.repo,
            object_store,
            [
                MediaSlot(
                    name="image",
                    namespace="gallery",
                    url_column="image_url",
                    handle_column="public_id",
                    policy=AssetPolicy(max_bytes=settings.MAX_MEDIA_BYTES, allow_gif=True),
                )
            ],
        )

    def upload(self, payload: bytes, mime_type: str, meta: schemas.GalleryMeta) -> MediaOutcome:
        values = meta.model_dump()
        values["tags"] = _join_tags(meta.tags)
        return self.media.create_with_media(payload, mime_type, values)

    def list(self, filters: Optional[schemas.GalleryFilters] = None, search: Optional[str] = None,
             limit: Optional[int] = None, offset: Optional[int] = None) -> repositories.Page:
        return self.repo.list(_filters(filters), search, limit, offset)

    def get(self, image_id: int) -> models.GalleryImage:
        image = self.repo.get(image_id)
        if image is None:
            raise NotFound(self.repo.kind, image_id)
        return image

    def contexts(self) -> List[str]:
        return self.repo.contexts()

    def update(self, image_id: int, payload: schemas.GalleryUpdate) -> models.GalleryImage:
        changes = _changes(payload, required=("title", "is_active", "sort_order"))
        if "tags" in changes:
            changes["tags"] = _join_tags(changes["tags"])
        updated = self.repo.update(image_id, changes)
        if updated is None:
            raise NotFound(self.repo.kind, image_id)
        return updated

    def replace_image(self, image_id: int, payload: bytes, mime_type: str) -> MediaOutcome:
        return self.media.replace_media(image_id, payload, mime_type)

    def delete(self, image_id: int, delete_blob: bool = True) -> MediaOutcome:
        return self.media.delete_with_media(image_id, delete_blob=delete_blob)

    def reorder(self, items: List[schemas.ReorderItem]) -> int:
        return self.repo.reorder([item.model_dump() for item in items])


class BlogService:
    """Blog posts with slug assignment and thumbnail/banner media."""

    REQUIRED = (
        "title", "slug", "category_id", "author_id", "content", "is_popular", "is_sticky",
        "show_on_homepage", "allow_comments", "status", "visibility",
    )

    def __init__(self, store: RecordStore, object_store: ObjectStore, settings: Settings,
                 suffixer: Optional[SlugSuffixer] = None):
        self.repo = _repo(repositories.BlogRepository, store, settings)
        self.suffixer = suffixer or _default_suffixer
        policy = AssetPolicy(max_bytes=settings.MAX_MEDIA_BYTES, allow_gif=True)
        self.media = MediaLifecycleManager(
            self.repo,
            object_store,
            [
                MediaSlot("thumbnail", "blogs/thumbnails", "thumbnail_url", "thumbnail_public_id", policy),
                MediaSlot("banner", "blogs/banners", "banner_url", "banner_public_id", policy),
            ],
        )

    def _slug_taken(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        existing = self.repo.get_by_slug(slug)
        return existing is not None and existing.id != exclude_id

    @staticmethod
    def _clean_slug(requested: str) -> str:
        slug = slugify(requested)
        if not slug:
            raise ValueError("slug must contain at least one letter or digit")
        return slug

    def create(self, payload: schemas.BlogIn) -> models.Blog:
        """Insert a post with a unique slug.

        An explicit slug is normalised and must be free. Without one the
        slug comes from the title; a taken base gets a time suffix, and a
        unique-constraint hit at insert time retries with a fresh suffix.
        """
        values = payload.model_dump(mode="json", exclude_none=True)
        requested = values.pop("slug", None)
        if requested:
            slug = self._clean_slug(requested)
            if self._slug_taken(slug):
                raise SlugConflict(slug)
            try:
                return self.repo.create({**values, "slug": slug})
            except IntegrityError as exc:
                if self._slug_taken(slug):
                    raise SlugConflict(slug) from exc
                raise

        base = slugify(payload.title) or "post"
        slug = self.suffixer(base) if self._slug_taken(base) else base
        for attempt in range(1, SLUG_ATTEMPTS + 1):
            try:
                return self.repo.create({**values, "slug": slug})
            except IntegrityError as exc:
                if not self._slug_taken(slug):
                    raise
                if attempt == SLUG_ATTEMPTS:
                    raise SlugConflict(slug) from exc
                logger.warning(
                    "slug_collision_retry %s",
                    json.dumps({"slug": slug, "attempt": attempt}, ensure_ascii=True),
                )
                slug = self.suffixer(base)

    def list(self, filters: Optional[schemas.BlogFilters] = None, search: Optional[str] = None,
             limit: Optional[int] = None, offset: Optional[int] = None) -> repositories.Page:
        return self.repo.list(_filters(filters), search, limit, offset)

    def popular(self, limit: int = 5) -> List[models.Blog]:
        return self.repo.featured("is_popular", limit)

    def sticky(self, limit: int = 5) -> List[models.Blog]:
        return self.repo.featured("is_sticky", limit)

    def homepage(self, limit: int = 10) -> List[models.Blog]:
        return self.repo.featured("show_on_homepage", limit)

    def get(self, blog_id: int) -> models.Blog:
        blog = self.repo.get(blog_id)
        if blog is None:
            raise NotFound(self.repo.kind, blog_id)
        return blog

    def get_by_slug(self, slug: str) -> models.Blog:
        blog = self.repo.get_by_slug(slug)
        if blog is None:
            raise NotFound(self.repo.kind, slug)
        return blog

    def update(self, blog_id: int, payload: schemas.BlogUpdate) -> models.Blog:
        """Partial update; a changed slug is re-validated, a changed title keeps the slug."""
        changes = _changes(payload, required=self.REQUIRED)
        requested = changes.get("slug")
        if requested:
            slug = self._clean_slug(requested)
            if self._slug_taken(slug, exclude_id=blog_id):
                raise SlugConflict(slug)
            changes["slug"] = slug
        try:
            updated = self.repo.update(blog_id, changes)
        except IntegrityError as exc:
            if requested:
                raise SlugConflict(changes["slug"]) from exc
            raise
        if updated is None:
            raise NotFound(self.repo.kind, blog_id)
        return updated

    def replace_media(self, blog_id: int, slot: str, payload: bytes, mime_type: str) -> MediaOutcome:
        return self.media.replace_media(blog_id, payload, mime_type, slot=slot)

    def delete(self, blog_id: int, delete_media: bool = True) -> MediaOutcome:
        return self.media.delete_with_media(blog_id, delete_blob=delete_media)


class UserService:
    """User accounts; passwords are hashed and never returned."""

    REQUIRED = ("first_name", "last_name", "email", "phone", "role", "is_instructor", "status")

    def __init__(self, store: RecordStore, object_store: ObjectStore, settings: Settings):
        self.repo = _repo(repositories.UserRepository, store, settings)
        self.skills = _repo(repositories.SkillRepository, store, settings)
        self.media = MediaLifecycleManager(
            self.repo,
            object_store,
            [
                MediaSlot(
                    name="profile",
                    namespace="users/profiles",
                    url_column="profile_image_url",
                    handle_column="profile_image_public_id",
                    policy=AssetPolicy(max_bytes=settings.MAX_PROFILE_BYTES),
                )
            ],
        )

    def _ensure_unique(self, email: Optional[str], phone: Optional[str], exclude_id: Optional[int] = None):
        if email:
            other = self.repo.get_by_email(email)
            if other is not None and other.id != exclude_id:
                raise DuplicateRecord("email", email)
        if phone:
            other = self.repo.get_by_phone(phone)
            if other is not None and other.id != exclude_id:
                raise DuplicateRecord("phone", phone)

    def create(self, payload: schemas.UserIn) -> models.User:
        """Register a user with a hashed password.

        Email and phone must both be unused. Listed skills are attached
        once each, ignoring case.
        """
        email = payload.email.lower()
        self._ensure_unique(email, payload.phone)
        values = payload.model_dump(exclude={"password", "skills"}, exclude_none=True)
        values["email"] = email
        values["password_hash"] = PWD_CTX.hash(payload.password)
        try:
            user = self.repo.create(values)
        except IntegrityError as exc:
            # registered concurrently between the check and the insert
            raise DuplicateRecord("email or phone", email) from exc
        seen = set()
        for skill in payload.skills:
            if skill.lower() not in seen:
                seen.add(skill.lower())
                self.skills.create({"user_id": user.id, "skill": skill})
        return user

    def list(self, filters: Optional[schemas.UserFilters] = None, search: Optional[str] = None,
             limit: Optional[int] = None, offset: Optional[int] = None) -> repositories.Page:
        return self.repo.list(_filters(filters), search, limit, offset)

    def get(self, user_id: int) -> models.User:
        user = self.repo.get(user_id)
        if user is None:
            raise NotFound(self.repo.kind, user_id)
        return user

    def update(self, user_id: int, payload: schemas.UserUpdate) -> models.User:
        changes = _changes(payload, required=self.REQUIRED)
        if changes.get("email"):
            changes["email"] = changes["email"].lower()
        self._ensure_unique(changes.get("email"), changes.get("phone"), exclude_id=user_id)
        try:
            updated = self.repo.update(user_id, changes)
        except IntegrityError as exc:
            raise DuplicateRecord("email or phone", changes.get("email") or changes.get("phone")) from exc
        if updated is None:
            raise NotFound(self.repo.kind, user_id)
        return updated

    def replace_profile_image(self, user_id: int, payload: bytes, mime_type: str) -> MediaOutcome:
        return self.media.replace_media(user_id, payload, mime_type)

    def delete(self, user_id: int) -> MediaOutcome:
        """Drop the user's skills, then the profile image and the row.

        Skills go first because they reference the user row.
        """
        self.get(user_id)
        removed = self.skills.delete_for_user(user_id)
        if removed:
            logger.info("user_skills_removed %s", json.dumps({"user_id": user_id, "count": removed}))
        return self.media.delete_with_media(user_id, delete_blob=True)


class CourseService:
    """Read-only access to the course catalogue."""

    def __init__(self, store: RecordStore, settings: Settings):
        self.repo = _repo(repositories.CourseRepository, store, settings)

    def list(self, filters: Optional[schemas.CourseFilters] = None, search: Optional[str] = None,
             limit: Optional[int] = None, offset: Optional[int] = None) -> repositories.Page:
        return self.repo.list(_filters(filters), search, limit, offset)

    def get(self, course_id: int) -> models.Course:
        course = self.repo.get(course_id)
        if course is None:
            raise NotFound(self.repo.kind, course_id)
        return course

    def top(self, limit: int = 10) -> List[models.Course]:
        return self.list(schemas.CourseFilters(is_top_course=1), limit=limit).items


class BatchService:
    REQUIRED = (
        "program_name", "program_type", "start_date", "start_time", "end_time", "schedule_type",
        "instructor_id", "price", "status",
    )

    def __init__(self, store: RecordStore, settings: Settings):
        self.repo = _repo(repositories.BatchRepository, store, settings)
        self.courses = _repo(repositories.CourseRepository, store, settings)

    def create(self, payload: schemas.BatchIn) -> models.Batch:
        if self.courses.get(payload.course_id) is None:
            raise NotFound(self.courses.kind, payload.course_id)
        if payload.end_date and payload.end_date < payload.start_date:
            raise ValueError("end_date must not be before start_date")
        return self.repo.create(payload.model_dump(mode="json", exclude_none=True))

    def list(self, filters: Optional[schemas.BatchFilters] = None, search: Optional[str] = None,
             limit: Optional[int] = None, offset: Optional[int] = None) -> repositories.Page:
        return self.repo.list(_filters(filters), search, limit, offset)

    def upcoming_active(self, limit: int = 10) -> List[models.Batch]:
        return self.repo.upcoming_active(limit)

    def get(self, batch_id: int) -> models.Batch:
        batch = self.repo.get(batch_id)
        if batch is None:
            raise NotFound(self.repo.kind, batch_id)
        return batch

    def update(self, batch_id: int, payload: schemas.BatchUpdate) -> models.Batch:
        updated = self.repo.update(batch_id, _changes(payload, required=self.REQUIRED))
        if updated is None:
            raise NotFound(self.repo.kind, batch_id)
        return updated

    def delete(self, batch_id: int) -> None:
        if not self.repo.delete(batch_id):
            raise NotFound(self.repo.kind, batch_id)


class QuoteService:
    """Quotation requests from the contact form. No email is sent from here."""

    def __init__(self, store: RecordStore, settings: Settings):
        self.repo = _repo(repositories.QuoteRepository, store, settings)

    def create(self, payload: schemas.QuoteIn) -> models.Quote:
        quote = self.repo.create(payload.model_dump(exclude_none=True))
        logger.info("quote_received %s", json.dumps({"id": quote.id}, ensure_ascii=True))
        return quote

    def list(self, search: Optional[str] = None, limit: Optional[int] = None,
             offset: Optional[int] = None) -> repositories.Page:
        return self.repo.list(None, search, limit, offset)

    def by_email(self, email: str) -> List[models.Quote]:
        return self.repo.by_email(email.strip())

    def get(self, quote_id: int) -> models.Quote:
        quote = self.repo.get(quote_id)
        if quote is None:
            raise NotFound(self.repo.kind, quote_id)
        return quote

    def delete(self, quote_id: int) -> None:
        if not self.repo.delete(quote_id):
            raise NotFound(self.repo.kind, quote_id)


class NewsletterService:
    def __init__(self, store: RecordStore, settings: Settings):
        self.repo = _repo(repositories.NewsletterRepository, store, settings)

    def subscribe(self, email: str) -> Tuple[models.NewsletterSubscriber, bool]:
        """Add `email` to the list; the flag is False when it was already there."""
        email = email.strip().lower()
        is_new = self.repo.get_by_email(email) is None
        return self.repo.subscribe(email), is_new

    def list(self, limit: Optional[int] = None, offset: Optional[int] = None) -> repositories.Page:
        return self.repo.list(None, None, limit, offset)

    def find(self, email: str) -> Optional[models.NewsletterSubscriber]:
        return self.repo.get_by_email(email.strip().lower())

    def unsubscribe(self, email: str) -> None:
        email = email.strip().lower()
        if not self.repo.unsubscribe(email):
            raise NotFound(self.repo.kind, email)

    def delete(self, subscriber_id: int) -> None:
        if not self.repo.delete(subscriber_id):
            raise NotFound(self.repo.kind, subscriber_id)

    def count(self) -> int:
        return self.repo.count()


class SkillService:
    """Skills listed on user profiles; one row per (user, skill), ignoring case."""

    MIN_SEARCH = 2

    def __init__(self, store: RecordStore, settings: Settings):
        self.repo = _repo(repositories.SkillRepository, store, settings)
        self.users = _repo(repositories.UserRepository, store, settings)

    def _require_user(self, user_id: int) -> None:
        if self.users.get(user_id) is None:
            raise NotFound(self.users.kind, user_id)

    def add(self, payload: schemas.SkillIn) -> models.UserSkill:
        self._require_user(payload.user_id)
        if self.repo.user_has_skill(payload.user_id, payload.skill):
            raise ValueError("user already has this skill")
        return self.repo.create(payload.model_dump())

    def for_user(self, user_id: int) -> List[models.UserSkill]:
        self._require_user(user_id)
        return self.repo.for_user(user_id)

    def get(self, skill_id: int) -> models.UserSkill:
        skill = self.repo.get(skill_id)
        if skill is None:
            raise NotFound(self.repo.kind, skill_id)
        return skill

    def update(self, skill_id: int, payload: schemas.SkillUpdate) -> models.UserSkill:
        current = self.get(skill_id)
        if self.repo.user_has_skill(current.user_id, payload.skill, exclude_id=skill_id):
            raise ValueError("user already has this skill")
        updated = self.repo.update(skill_id, {"skill": payload.skill})
        if updated is None:
            raise NotFound(self.repo.kind, skill_id)
        return updated

    def delete(self, skill_id: int) -> None:
        if not self.repo.delete(skill_id):
            raise NotFound(self.repo.kind, skill_id)

    def search(self, term: str) -> List[models.UserSkill]:
        term = term.strip()
        if len(term) < self.MIN_SEARCH:
            raise ValueError(f"skill search term must be at least {self.MIN_SEARCH} characters")
        return self.repo.matching(term)

    def unique(self) -> List[str]:
        return self.repo.unique_skills()
