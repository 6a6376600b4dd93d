"""SQLModel data models.

This module defines the platform's database tables using SQLModel. The
classes double as the typed row objects returned by the repositories:
rows fetched through the query builder are validated into these models.

Timestamps (`CURRENT_TIMESTAMP`) and column defaults are filled by the
database because rows are written with plain parameterized statements,
not through the ORM unit of work.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import text
from sqlmodel import Field, SQLModel


def _now_default():
    return {"server_default": text("CURRENT_TIMESTAMP")}


def _db_default(sql: str):
    return {"server_default": text(sql)}


class GalleryImage(SQLModel, table=True):
    """An image in the public gallery.

    `image_url`/`public_id` reference the blob in the object store and are
    only written by the media lifecycle manager. `tags` is stored
    comma-joined.
    """
    __tablename__ = "gallery_cw"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    context: Optional[str] = Field(default=None, index=True)
    image_url: str
    public_id: str = Field(index=True, max_length=255)
    alt_text: Optional[str] = Field(default=None, max_length=255)
    tags: Optional[str] = None
    is_active: bool = Field(default=True, index=True, sa_column_kwargs=_db_default("true"))
    sort_order: int = Field(default=0, index=True, sa_column_kwargs=_db_default("0"))
    created_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())


class Blog(SQLModel, table=True):
    """A blog post with optional thumbnail and banner images."""
    __tablename__ = "blogs_cw"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    slug: str = Field(unique=True, index=True)
    category_id: int = Field(index=True)
    author_id: int
    content: str
    keywords: Optional[str] = None
    short_description: Optional[str] = None
    reading_time: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_public_id: Optional[str] = None
    banner_url: Optional[str] = None
    banner_public_id: Optional[str] = None
    image_alt_text: Optional[str] = None
    is_popular: bool = Field(default=False, sa_column_kwargs=_db_default("false"))
    is_sticky: bool = Field(default=False, sa_column_kwargs=_db_default("false"))
    show_on_homepage: bool = Field(default=True, sa_column_kwargs=_db_default("true"))
    allow_comments: bool = Field(default=True, sa_column_kwargs=_db_default("true"))
    status: str = Field(default="DRAFT", index=True, sa_column_kwargs=_db_default("'DRAFT'"))
    visibility: str = Field(default="PUBLIC", sa_column_kwargs=_db_default("'PUBLIC'"))
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())


class User(SQLModel, table=True):
    """A platform user (student, instructor or admin).

    Fields:
    - `password_hash`: hashed password string (never serialized)
    - `profile_image_url`/`profile_image_public_id`: optional profile photo
    """
    __tablename__ = "users_cw"

    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    title: Optional[str] = None
    email: str = Field(unique=True, index=True)
    phone: str = Field(unique=True, index=True)
    password_hash: str
    address: Optional[str] = None
    biography: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    profile_image_url: Optional[str] = None
    profile_image_public_id: Optional[str] = None
    role: str = Field(default="STUDENT", index=True, sa_column_kwargs=_db_default("'STUDENT'"))
    is_instructor: bool = Field(default=False, sa_column_kwargs=_db_default("false"))
    status: str = Field(default="ACTIVE", sa_column_kwargs=_db_default("'ACTIVE'"))
    created_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())


class Course(SQLModel, table=True):
    """A catalogue course. The API exposes courses read-only."""
    __tablename__ = "course"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: Optional[str] = None
    short_description: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None
    category_id: Optional[int] = Field(default=None, index=True)
    level: Optional[str] = None
    price: Optional[float] = None
    discounted_price: Optional[float] = None
    is_free_course: Optional[int] = None
    is_top_course: int = Field(default=0, sa_column_kwargs=_db_default("0"))
    status: Optional[str] = None
    thumbnail: Optional[str] = None
    creator: Optional[int] = None
    date_added: Optional[int] = None


class Batch(SQLModel, table=True):
    """A scheduled run of a course."""
    __tablename__ = "batches_cw"

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    program_name: str
    program_type: str
    start_date: date
    end_date: Optional[date] = None
    start_time: str
    end_time: str
    schedule_type: str
    max_students: Optional[int] = None
    duration_weeks: Optional[int] = None
    instructor_id: int = Field(index=True)
    price: float
    discount_price: Optional[float] = None
    description: Optional[str] = None
    status: str = Field(default="ACTIVE", index=True, sa_column_kwargs=_db_default("'ACTIVE'"))
    created_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())


class Quote(SQLModel, table=True):
    """A quotation request left through the contact form."""
    __tablename__ = "get_quotes"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True)
    phone: str
    message: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())


class NewsletterSubscriber(SQLModel, table=True):
    """A newsletter list entry, unique per email."""
    __tablename__ = "newsletter_subscribers"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    created_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())


class UserSkill(SQLModel, table=True):
    """A free-text skill listed on a user's profile."""
    __tablename__ = "user_skills"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users_cw.id", index=True)
    skill: str = Field(max_length=255)
    created_at: Optional[datetime] = Field(default=None, sa_column_kwargs=_now_default())
