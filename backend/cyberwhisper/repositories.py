"""Repository classes encapsulating database operations.

Each repository is small and focused on a single table. All of them
share `Repository`, which turns a static `TableSpec` into statements via
the query builder, runs them on the `RecordStore` and validates returned
rows into SQLModel objects.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, Type, TypeVar

from sqlmodel import SQLModel

from . import models
from .database import ExecResult, RecordStore
from .query import CONTAINS, FilterField, QueryBuilder, Statement, TableSpec, clamp_page

ModelT = TypeVar("ModelT", bound=SQLModel)


@dataclass
class Page(Generic[ModelT]):
    items: List[ModelT]
    total: int
    limit: int
    offset: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> Dict[str, int]:
        return {"total": self.total, "limit": self.limit, "offset": self.offset, "pages": self.pages}


class Repository(Generic[ModelT]):
    """CRUD helpers shared by every table."""
    model: Type[ModelT]
    table: TableSpec
    kind: str = "record"

    def __init__(self, store: RecordStore, *, max_page_size: int = 100, default_page_size: int = 20):
        self.store = store
        self.queries = QueryBuilder(self.table, max_page_size=max_page_size, default_page_size=default_page_size)

    def _row(self, row: Optional[Mapping[str, Any]]) -> Optional[ModelT]:
        if row is None:
            return None
        return self.model.model_validate(dict(row))

    def _rows(self, result: ExecResult) -> List[ModelT]:
        return [self._row(r) for r in result.rows]

    def run(self, statement: Statement) -> ExecResult:
        return self.store.execute(statement)

    def get(self, record_id: Any) -> Optional[ModelT]:
        """Return the row with primary key `record_id` or None."""
        return self._row(self.run(self.queries.get(record_id)).first())

    def find_by(self, column: str, value: Any) -> Optional[ModelT]:
        return self._row(self.run(self.queries.find_by(column, value)).first())

    def list(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[ModelT]:
        """Return one page of rows plus the total matching the same filters."""
        pq = self.queries.page(filters, search, limit, offset)
        count_row = self.run(pq.count).first() or {}
        total = int(count_row.get("total") or 0)
        items = self._rows(self.run(pq.select))
        return Page(items=items, total=total, limit=pq.limit, offset=pq.offset)

    def create(self, values: Mapping[str, Any]) -> ModelT:
        """Insert a row and return it as stored."""
        return self._row(self.run(self.queries.insert(values)).first())

    def update(self, record_id: Any, changes: Mapping[str, Any]) -> Optional[ModelT]:
        """Apply a partial update.

        With no usable fields this is a no-op that returns the current
        row. Returns None when the row does not exist.
        """
        statement = self.queries.update(record_id, changes)
        if statement is None:
            return self.get(record_id)
        return self._row(self.run(statement).first())

    def delete(self, record_id: Any) -> bool:
        """Delete a row; True when one was removed."""
        return self.run(self.queries.delete(record_id)).rowcount > 0


class GalleryRepository(Repository[models.GalleryImage]):
    """Queries for `GalleryImage` rows."""
    model = models.GalleryImage
    kind = "gallery image"
    table = TableSpec(
        name="gallery_cw",
        filters={
            "context": FilterField("context", CONTAINS),
            "is_active": FilterField("is_active"),
        },
        search_columns=("title", "context", "alt_text"),
        writable=frozenset(
            {"title", "context", "image_url", "public_id", "alt_text", "tags", "is_active", "sort_order"}
        ),
        order_by=(("sort_order", "ASC"), ("created_at", "DESC")),
    )

    def contexts(self) -> List[str]:
        """Return every distinct non-null context, sorted."""
        return [row["context"] for row in self.run(self.queries.distinct("context")).rows]

    def reorder(self, orders: Iterable[Mapping[str, int]]) -> int:
        """Apply `{id, sort_order}` pairs and return how many rows changed."""
        changed = 0
        for item in orders:
            if self.update(item["id"], {"sort_order": item["sort_order"]}) is not None:
                changed += 1
        return changed


class BlogRepository(Repository[models.Blog]):
    """Queries for `Blog` rows."""
    model = models.Blog
    kind = "blog"
    table = TableSpec(
        name="blogs_cw",
        filters={
            "category_id": FilterField("category_id"),
            "status": FilterField("status"),
            "visibility": FilterField("visibility"),
            "is_popular": FilterField("is_popular"),
            "is_sticky": FilterField("is_sticky"),
            "show_on_homepage": FilterField("show_on_homepage"),
        },
        search_columns=("title", "keywords"),
        writable=frozenset(
            {
                "title", "slug", "category_id", "author_id", "content", "keywords",
                "short_description", "reading_time", "thumbnail_url", "thumbnail_public_id",
                "banner_url", "banner_public_id", "image_alt_text", "is_popular", "is_sticky",
                "show_on_homepage", "allow_comments", "status", "visibility", "seo_title",
                "seo_description",
            }
        ),
    )

    def get_by_slug(self, slug: str) -> Optional[models.Blog]:
        return self.find_by("slug", slug)

    def featured(self, flag: str, limit: int) -> List[models.Blog]:
        """Newest published posts whose boolean `flag` column is set."""
        if flag not in self.table.filters:
            raise ValueError(f"not a blog filter: {flag}")
        return self.list({flag: True, "status": "PUBLISHED"}, limit=limit).items


class UserRepository(Repository[models.User]):
    """Queries for `User` rows."""
    model = models.User
    kind = "user"
    table = TableSpec(
        name="users_cw",
        filters={
            "role": FilterField("role"),
            "status": FilterField("status"),
            "is_instructor": FilterField("is_instructor"),
        },
        search_columns=("first_name", "last_name", "email"),
        writable=frozenset(
            {
                "first_name", "last_name", "title", "email", "phone", "password_hash", "address",
                "biography", "linkedin_url", "github_url", "profile_image_url",
                "profile_image_public_id", "role", "is_instructor", "status",
            }
        ),
    )

    def get_by_email(self, email: str) -> Optional[models.User]:
        return self.find_by("email", email)

    def get_by_phone(self, phone: str) -> Optional[models.User]:
        return self.find_by("phone", phone)


class CourseRepository(Repository[models.Course]):
    """Queries for the read-only course catalogue."""
    model = models.Course
    kind = "course"
    table = TableSpec(
        name="course",
        filters={
            "category_id": FilterField("category_id"),
            "status": FilterField("status"),
            "level": FilterField("level"),
            "creator": FilterField("creator"),
            "is_free_course": FilterField("is_free_course"),
            "is_top_course": FilterField("is_top_course"),
        },
        search_columns=("title", "short_description"),
        writable=frozenset(
            {
                "title", "short_description", "description", "language", "category_id", "level",
                "price", "discounted_price", "is_free_course", "is_top_course", "status",
                "thumbnail", "creator", "date_added",
            }
        ),
        order_by=(("date_added", "DESC"), ("id", "DESC")),
        touch_column=None,
    )


class BatchRepository(Repository[models.Batch]):
    """Queries for `Batch` rows."""
    model = models.Batch
    kind = "batch"
    table = TableSpec(
        name="batches_cw",
        filters={
            "course_id": FilterField("course_id"),
            "status": FilterField("status"),
            "instructor_id": FilterField("instructor_id"),
        },
        search_columns=("program_name", "program_type", "description"),
        writable=frozenset(
            {
                "course_id", "program_name", "program_type", "start_date", "end_date",
                "start_time", "end_time", "schedule_type", "max_students", "duration_weeks",
                "instructor_id", "price", "discount_price", "description", "status",
            }
        ),
        order_by=(("start_date", "DESC"), ("created_at", "DESC")),
    )

    def upcoming_active(self, limit: int = 10) -> List[models.Batch]:
        """ACTIVE batches that have not started yet, soonest first."""
        limit, _ = clamp_page(limit, 0, default_limit=10, max_limit=self.queries.max_page_size)
        statement = Statement(
            'SELECT * FROM "batches_cw" WHERE "status" = :p1 AND "start_date" >= CURRENT_DATE '
            'ORDER BY "start_date" ASC LIMIT :p2',
            ("ACTIVE", limit),
        )
        return self._rows(self.run(statement))


class QuoteRepository(Repository[models.Quote]):
    """Queries for quotation requests."""
    model = models.Quote
    kind = "quote"
    table = TableSpec(
        name="get_quotes",
        search_columns=("name", "email", "message"),
        writable=frozenset({"name", "email", "phone", "message"}),
        touch_column=None,
    )

    def by_email(self, email: str) -> List[models.Quote]:
        statement = Statement(
            'SELECT * FROM "get_quotes" WHERE LOWER("email") = LOWER(:p1) ORDER BY "created_at" DESC, "id" DESC',
            (email,),
        )
        return self._rows(self.run(statement))


class NewsletterRepository(Repository[models.NewsletterSubscriber]):
    """Subscribe/unsubscribe helpers for the newsletter list."""
    model = models.NewsletterSubscriber
    kind = "subscriber"
    table = TableSpec(
        name="newsletter_subscribers",
        writable=frozenset({"email"}),
        touch_column=None,
    )

    def subscribe(self, email: str) -> models.NewsletterSubscriber:
        """Insert `email`, or refresh `created_at` when it is already listed."""
        statement = Statement(
            'INSERT INTO "newsletter_subscribers" ("email") VALUES (:p1) '
            'ON CONFLICT ("email") DO UPDATE SET "created_at" = CURRENT_TIMESTAMP RETURNING *',
            (email,),
        )
        return self._row(self.run(statement).first())

    def get_by_email(self, email: str) -> Optional[models.NewsletterSubscriber]:
        return self.find_by("email", email)

    def unsubscribe(self, email: str) -> bool:
        statement = Statement('DELETE FROM "newsletter_subscribers" WHERE "email" = :p1', (email,))
        return self.run(statement).rowcount > 0

    def count(self) -> int:
        return self.list(limit=1).total


class SkillRepository(Repository[models.UserSkill]):
    """Skills attached to user profiles."""
    model = models.UserSkill
    kind = "skill"
    table = TableSpec(
        name="user_skills",
        filters={"user_id": FilterField("user_id")},
        search_columns=("skill",),
        writable=frozenset({"user_id", "skill"}),
        order_by=(("created_at", "DESC"), ("id", "DESC")),
        touch_column=None,
    )

    def for_user(self, user_id: int) -> List[models.UserSkill]:
        return self._rows(self.run(self.queries.select({"user_id": user_id})))

    def matching(self, term: str) -> List[models.UserSkill]:
        """Every skill row containing `term`, case-insensitively."""
        return self._rows(self.run(self.queries.select(search=term)))

    def user_has_skill(self, user_id: int, skill: str, exclude_id: Optional[int] = None) -> bool:
        statement = Statement(
            'SELECT "id" FROM "user_skills" WHERE "user_id" = :p1 AND LOWER("skill") = LOWER(:p2)',
            (user_id, skill),
        )
        return any(row["id"] != exclude_id for row in self.run(statement).rows)

    def delete_for_user(self, user_id: int) -> int:
        statement = Statement('DELETE FROM "user_skills" WHERE "user_id" = :p1', (user_id,))
        return self.run(statement).rowcount

    def unique_skills(self) -> List[str]:
        return [row["skill"] for row in self.run(self.queries.distinct("skill")).rows]
