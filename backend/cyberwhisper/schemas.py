"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. The `*Filters` models are the only way a
list request can name columns: each field maps to an allow-listed filter
on the repository's table.
"""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

BlogStatus = Literal["DRAFT", "PUBLISHED", "SCHEDULED"]
BlogVisibility = Literal["PUBLIC", "PRIVATE"]
UserRole = Literal["STUDENT", "INSTRUCTOR", "ADMIN"]
UserStatus = Literal["ACTIVE", "INACTIVE"]
BatchStatus = Literal["ACTIVE", "INACTIVE", "COMPLETED", "UPCOMING"]


def split_tags(value) -> List[str]:
    """Accept a comma-joined string or a list and return clean tags."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(t).strip() for t in value if str(t).strip()]


# -- filters -------------------------------------------------------------


class GalleryFilters(BaseModel):
    context: Optional[str] = None
    is_active: Optional[bool] = None


class BlogFilters(BaseModel):
    category_id: Optional[int] = None
    status: Optional[BlogStatus] = None
    visibility: Optional[BlogVisibility] = None
    is_popular: Optional[bool] = None
    is_sticky: Optional[bool] = None
    show_on_homepage: Optional[bool] = None


class UserFilters(BaseModel):
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    is_instructor: Optional[bool] = None


class CourseFilters(BaseModel):
    category_id: Optional[int] = None
    status: Optional[str] = None
    level: Optional[str] = None
    creator: Optional[int] = None
    is_free_course: Optional[int] = None
    is_top_course: Optional[int] = None


class BatchFilters(BaseModel):
    course_id: Optional[int] = None
    status: Optional[BatchStatus] = None
    instructor_id: Optional[int] = None


# -- gallery -------------------------------------------------------------


class GalleryMeta(BaseModel):
    """Metadata sent alongside a gallery upload."""
    title: str = Field(min_length=1, max_length=255)
    context: Optional[str] = None
    alt_text: Optional[str] = Field(default=None, max_length=255)
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True
    sort_order: int = 0

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value):
        return split_tags(value)


class GalleryUpdate(BaseModel):
    """Partial metadata update; media is replaced through its own route."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    context: Optional[str] = None
    alt_text: Optional[str] = Field(default=None, max_length=255)
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value):
        return None if value is None else split_tags(value)


class ReorderItem(BaseModel):
    id: int
    sort_order: int


class ReorderIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_orders: List[ReorderItem] = Field(alias="imageOrders", min_length=1)


class GalleryOut(BaseModel):
    """Gallery row as returned to clients (tags as a list)."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    context: Optional[str] = None
    image_url: str
    public_id: str
    alt_text: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_active: bool
    sort_order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value):
        return split_tags(value)


# -- blogs ---------------------------------------------------------------


class BlogIn(BaseModel):
    """Request body for creating a blog post; media is attached afterwards."""
    title: str = Field(min_length=1)
    slug: Optional[str] = None
    category_id: int
    author_id: int
    content: str = Field(min_length=1)
    keywords: Optional[str] = None
    short_description: Optional[str] = None
    reading_time: Optional[str] = None
    image_alt_text: Optional[str] = None
    is_popular: bool = False
    is_sticky: bool = False
    show_on_homepage: bool = True
    allow_comments: bool = True
    status: BlogStatus = "DRAFT"
    visibility: BlogVisibility = "PUBLIC"
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None


class BlogUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1)
    slug: Optional[str] = Field(default=None, min_length=1)
    category_id: Optional[int] = None
    author_id: Optional[int] = None
    content: Optional[str] = None
    keywords: Optional[str] = None
    short_description: Optional[str] = None
    reading_time: Optional[str] = None
    image_alt_text: Optional[str] = None
    is_popular: Optional[bool] = None
    is_sticky: Optional[bool] = None
    show_on_homepage: Optional[bool] = None
    allow_comments: Optional[bool] = None
    status: Optional[BlogStatus] = None
    visibility: Optional[BlogVisibility] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None


# -- users ---------------------------------------------------------------


class UserIn(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str = Field(min_length=3, max_length=32)
    password: str = Field(min_length=6)
    title: Optional[str] = None
    address: Optional[str] = None
    biography: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    role: UserRole = "STUDENT"
    is_instructor: bool = False
    skills: List[str] = Field(default_factory=list)

    @field_validator("skills", mode="before")
    @classmethod
    def clean_skills(cls, value):
        return split_tags(value)


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    title: Optional[str] = None
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(default=None, min_length=3, max_length=32)
    address: Optional[str] = None
    biography: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    role: Optional[UserRole] = None
    is_instructor: Optional[bool] = None
    status: Optional[UserStatus] = None


class UserOut(BaseModel):
    """User as returned to clients; the password hash is never included."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    title: Optional[str] = None
    email: str
    phone: str
    address: Optional[str] = None
    biography: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str
    is_instructor: bool
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# -- batches, quotes, newsletter ----------------------------------------


class BatchIn(BaseModel):
    course_id: int
    program_name: str = Field(min_length=1)
    program_type: str = Field(min_length=1)
    start_date: date
    end_date: Optional[date] = None
    start_time: str
    end_time: str
    schedule_type: str
    max_students: Optional[int] = Field(default=None, ge=0)
    duration_weeks: Optional[int] = Field(default=None, ge=0)
    instructor_id: int
    price: float = Field(ge=0)
    discount_price: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None
    status: BatchStatus = "ACTIVE"


class BatchUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    program_name: Optional[str] = Field(default=None, min_length=1)
    program_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    schedule_type: Optional[str] = None
    max_students: Optional[int] = Field(default=None, ge=0)
    duration_weeks: Optional[int] = Field(default=None, ge=0)
    instructor_id: Optional[int] = None
    price: Optional[float] = Field(default=None, ge=0)
    discount_price: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None
    status: Optional[BatchStatus] = None


class QuoteIn(BaseModel):
    """Payload for a quotation request."""
    name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str = Field(min_length=3, max_length=32)
    message: Optional[str] = None


class SubscribeIn(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)


# -- skills --------------------------------------------------------------


class SkillIn(BaseModel):
    user_id: int
    skill: str = Field(min_length=1, max_length=255)

    @field_validator("skill", mode="before")
    @classmethod
    def strip_skill(cls, value):
        return value.strip() if isinstance(value, str) else value


class SkillUpdate(BaseModel):
    skill: str = Field(min_length=1, max_length=255)

    @field_validator("skill", mode="before")
    @classmethod
    def strip_skill(cls, value):
        return value.strip() if isinstance(value, str) else value
