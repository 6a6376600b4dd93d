"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the CyberWhisper learning
platform backend. Controllers are thin: they accept requests, delegate
to services, and return JSON responses. `create_app()` wires the record
store and object store into the application and gives both an explicit
init/shutdown lifecycle; tests build their own app with fakes.

Endpoints implemented:
- /api/gallery   upload, list, by context, contexts, get, update, replace image, remove, reorder
- /api/blogs     create, list, popular, sticky, homepage, by category, by slug, get, update,
                 thumbnail, banner, delete
- /api/users     create, list, instructors, get, update, profile image, delete
- /api/skills    add, by user, search, all unique, get, update, delete
- /api/courses   list, top, free, published, by level/category/creator, get
- /api/batches   create, list, active, by course/instructor, get, update, delete
- /api/quotes    create, list, by email, get, delete
- /api/newsletter subscribe, list, check, unsubscribe, delete subscriber, count
- GET /health, GET /
"""

import io
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from PIL import Image
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import schemas, services
from .config import Settings, settings as default_settings
from .database import RecordStore
from .errors import (
    CyberWhisperError,
    DeleteFailed,
    DuplicateRecord,
    InvalidAsset,
    NotFound,
    PersistFailed,
    SlugConflict,
    UploadFailed,
)
from .media import MediaOutcome
from .storage import ObjectStore, build_object_store

logger = logging.getLogger("cyberwhisper.api")

ERROR_STATUS = (
    (InvalidAsset, 400),
    (NotFound, 404),
    (SlugConflict, 409),
    (DuplicateRecord, 409),
    (UploadFailed, 502),
    (PersistFailed, 500),
    (DeleteFailed, 500),
)


def _status_for(exc: CyberWhisperError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


def _log_request(level: int, event: str, request: Request, req_id: str, started: float, status_code=None):
    payload = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    if status_code is not None:
        payload["status_code"] = status_code
    if level >= logging.ERROR:
        logger.exception("%s %s", event, json.dumps(payload, ensure_ascii=True))
    else:
        logger.log(level, "%s %s", event, json.dumps(payload, ensure_ascii=True))


def create_app(
    settings: Optional[Settings] = None,
    record_store: Optional[RecordStore] = None,
    object_store: Optional[ObjectStore] = None,
) -> FastAPI:
    """Build the application around one record store and one object store."""
    settings = settings or default_settings
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.LOG_LEVEL)
    record_store = record_store or RecordStore(settings.DATABASE_URL)
    object_store = object_store or build_object_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        record_store.init()
        object_store.init()
        try:
            yield
        finally:
            object_store.shutdown()
            record_store.shutdown()

    app = FastAPI(title="CyberWhisper API", lifespan=lifespan)
    app.state.settings = settings
    app.state.record_store = record_store
    app.state.object_store = object_store

    # Wide-open CORS keeps local frontends working without extra config in dev.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.ALLOW_DEV_CORS else settings.cors_origins(),
        allow_credentials=not settings.ALLOW_DEV_CORS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        request.state.request_id = req_id
        started = time.perf_counter()
        response: Response
        try:
            response = await call_next(request)
        except Exception:
            if request.url.path.startswith("/api"):
                _log_request(logging.ERROR, "request_failed", request, req_id, started)
            raise
        response.headers["X-Request-ID"] = req_id
        if request.url.path.startswith("/api"):
            _log_request(logging.INFO, "request_done", request, req_id, started, response.status_code)
        return response

    @app.exception_handler(CyberWhisperError)
    async def domain_error_handler(request: Request, exc: CyberWhisperError):
        return JSONResponse(status_code=_status_for(exc), content={"success": False, "error": str(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    app.include_router(router)
    return app


# -- dependencies -------------------------------------------------------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gallery_service(request: Request) -> services.GalleryService:
    state = request.app.state
    return services.GalleryService(state.record_store, state.object_store, state.settings)


def get_blog_service(request: Request) -> services.BlogService:
    state = request.app.state
    return services.BlogService(state.record_store, state.object_store, state.settings)


def get_user_service(request: Request) -> services.UserService:
    state = request.app.state
    return services.UserService(state.record_store, state.object_store, state.settings)


def get_course_service(request: Request) -> services.CourseService:
    return services.CourseService(request.app.state.record_store, request.app.state.settings)


def get_batch_service(request: Request) -> services.BatchService:
    return services.BatchService(request.app.state.record_store, request.app.state.settings)


def get_quote_service(request: Request) -> services.QuoteService:
    return services.QuoteService(request.app.state.record_store, request.app.state.settings)


def get_newsletter_service(request: Request) -> services.NewsletterService:
    return services.NewsletterService(request.app.state.record_store, request.app.state.settings)


def get_skill_service(request: Request) -> services.SkillService:
    return services.SkillService(request.app.state.record_store, request.app.state.settings)


# -- helpers ------------------------------------------------------------


def _sniff_image(payload: bytes) -> None:
    try:
        Image.open(io.BytesIO(payload)).verify()
    except Exception:
        raise HTTPException(status_code=415, detail="unsupported file content; expected an image")


def _read_image(file: UploadFile, max_bytes: int) -> Tuple[bytes, str]:
    """Read at most one byte past the limit so the size check can fire."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="no file")
    payload = file.file.read(max_bytes + 1)
    if payload:
        _sniff_image(payload)
    return payload, (file.content_type or "")


def _page_body(page, serialize=None) -> dict:
    items = [serialize(item) for item in page.items] if serialize else page.items
    return {"success": True, "data": items, "pagination": page.pagination()}


def _media_body(outcome: MediaOutcome, data, message: str) -> dict:
    body = {"success": True, "message": message, "data": data}
    if outcome.has_warning:
        body["warning"] = {
            "message": "previous image could not be removed from storage",
            "orphaned_handles": list(outcome.orphaned_handles),
        }
    return body


def _delete_body(outcome: MediaOutcome, message: str) -> dict:
    body = {
        "success": True,
        "message": message,
        "data": {
            "id": outcome.record.id,
            "media_deleted": not outcome.retained_handles and not outcome.orphaned_handles,
            "retained_handles": list(outcome.retained_handles),
        },
    }
    if outcome.has_warning:
        body["warning"] = {
            "message": "record deleted but its image could not be removed from storage",
            "orphaned_handles": list(outcome.orphaned_handles),
        }
    return body


def _gallery_out(image) -> schemas.GalleryOut:
    return schemas.GalleryOut.model_validate(image)


def _user_out(user) -> schemas.UserOut:
    return schemas.UserOut.model_validate(user)


router = APIRouter()


@router.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8" /><title>CyberWhisper API</title></head>
    <body>
      <h1>CyberWhisper API</h1>
      <ul>
        <li><a href="/docs">Swagger UI</a></li>
        <li><a href="/health">Health</a></li>
      </ul>
    </body>
    </html>
    """


@router.get("/health")
def health(settings: Settings = Depends(get_settings)):
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok", "env": settings.ENV, "object_store": settings.OBJECT_STORE}


# -- gallery ------------------------------------------------------------


@router.post("/api/gallery/upload", status_code=201)
def upload_gallery_image(
    image: UploadFile = File(...),
    title: str = Form(...),
    context: Optional[str] = Form(None),
    alt_text: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_active: bool = Form(True),
    sort_order: int = Form(0),
    svc: services.GalleryService = Depends(get_gallery_service),
    settings: Settings = Depends(get_settings),
):
    """Upload an image and create its gallery entry.

    The image goes to the object store first; if saving the row fails
    the upload is removed again and the request fails.
    """
    try:
        meta = schemas.GalleryMeta(
            title=title, context=context, alt_text=alt_text, tags=tags,
            is_active=is_active, sort_order=sort_order,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False, include_context=False))
    payload, mime_type = _read_image(image, settings.MAX_MEDIA_BYTES)
    outcome = svc.upload(payload, mime_type, meta)
    return _media_body(outcome, _gallery_out(outcome.record), "image uploaded")


@router.get("/api/gallery")
def list_gallery(
    filters: schemas.GalleryFilters = Depends(),
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.GalleryService = Depends(get_gallery_service),
):
    return _page_body(svc.list(filters, search, limit, offset), _gallery_out)


@router.get("/api/gallery/context/{context}")
def gallery_by_context(
    context: str,
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.GalleryService = Depends(get_gallery_service),
):
    """Active images whose context contains `context`."""
    filters = schemas.GalleryFilters(context=context, is_active=True)
    return _page_body(svc.list(filters, None, limit, offset), _gallery_out)


@router.get("/api/gallery/contexts")
def gallery_contexts(svc: services.GalleryService = Depends(get_gallery_service)):
    return {"success": True, "data": svc.contexts()}


@router.post("/api/gallery/reorder")
def reorder_gallery(payload: schemas.ReorderIn, svc: services.GalleryService = Depends(get_gallery_service)):
    """Set `sort_order` for several images at once."""
    changed = svc.reorder(payload.image_orders)
    return {"success": True, "message": "gallery reordered", "data": {"updated": changed}}


@router.get("/api/gallery/{image_id}")
def get_gallery_image(image_id: int, svc: services.GalleryService = Depends(get_gallery_service)):
    return {"success": True, "data": _gallery_out(svc.get(image_id))}


@router.post("/api/gallery/{image_id}")
def update_gallery_image(
    image_id: int,
    payload: schemas.GalleryUpdate,
    svc: services.GalleryService = Depends(get_gallery_service),
):
    if not payload.model_fields_set:
        raise HTTPException(status_code=400, detail="no fields to update")
    return {"success": True, "message": "image updated", "data": _gallery_out(svc.update(image_id, payload))}


@router.post("/api/gallery/{image_id}/image")
def replace_gallery_image(
    image_id: int,
    image: UploadFile = File(...),
    svc: services.GalleryService = Depends(get_gallery_service),
    settings: Settings = Depends(get_settings),
):
    payload, mime_type = _read_image(image, settings.MAX_MEDIA_BYTES)
    outcome = svc.replace_image(image_id, payload, mime_type)
    return _media_body(outcome, _gallery_out(outcome.record), "image replaced")


@router.delete("/api/gallery/{image_id}/remove")
def remove_gallery_image(
    image_id: int,
    delete_from_cloudinary: bool = Query(True, alias="deleteFromCloudinary"),
    svc: services.GalleryService = Depends(get_gallery_service),
):
    """Delete the stored image (unless told not to), then the row."""
    outcome = svc.delete(image_id, delete_blob=delete_from_cloudinary)
    return _delete_body(outcome, "image deleted")


# -- blogs --------------------------------------------------------------


@router.post("/api/blogs", status_code=201)
def create_blog(payload: schemas.BlogIn, svc: services.BlogService = Depends(get_blog_service)):
    """Create a post. Without a slug one is derived from the title."""
    try:
        blog = svc.create(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "blog created", "data": blog}


@router.get("/api/blogs")
def list_blogs(
    filters: schemas.BlogFilters = Depends(),
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.BlogService = Depends(get_blog_service),
):
    return _page_body(svc.list(filters, search, limit, offset))


@router.get("/api/blogs/popular")
def popular_blogs(limit: int = 5, svc: services.BlogService = Depends(get_blog_service)):
    return {"success": True, "data": svc.popular(limit)}


@router.get("/api/blogs/sticky")
def sticky_blogs(limit: int = 5, svc: services.BlogService = Depends(get_blog_service)):
    return {"success": True, "data": svc.sticky(limit)}


@router.get("/api/blogs/homepage")
def homepage_blogs(limit: int = 10, svc: services.BlogService = Depends(get_blog_service)):
    return {"success": True, "data": svc.homepage(limit)}


@router.get("/api/blogs/category/{category_id}")
def blogs_by_category(
    category_id: int,
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.BlogService = Depends(get_blog_service),
):
    """Published posts in one category."""
    filters = schemas.BlogFilters(category_id=category_id, status="PUBLISHED")
    return _page_body(svc.list(filters, None, limit, offset))


@router.get("/api/blogs/slug/{slug}")
def get_blog_by_slug(slug: str, svc: services.BlogService = Depends(get_blog_service)):
    return {"success": True, "data": svc.get_by_slug(slug)}


@router.get("/api/blogs/{blog_id}")
def get_blog(blog_id: int, svc: services.BlogService = Depends(get_blog_service)):
    return {"success": True, "data": svc.get(blog_id)}


@router.put("/api/blogs/{blog_id}")
def update_blog(blog_id: int, payload: schemas.BlogUpdate, svc: services.BlogService = Depends(get_blog_service)):
    try:
        blog = svc.update(blog_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "blog updated", "data": blog}


@router.post("/api/blogs/{blog_id}/thumbnail")
def replace_blog_thumbnail(
    blog_id: int,
    image: UploadFile = File(...),
    svc: services.BlogService = Depends(get_blog_service),
    settings: Settings = Depends(get_settings),
):
    payload, mime_type = _read_image(image, settings.MAX_MEDIA_BYTES)
    outcome = svc.replace_media(blog_id, "thumbnail", payload, mime_type)
    return _media_body(outcome, outcome.record, "thumbnail updated")


@router.post("/api/blogs/{blog_id}/banner")
def replace_blog_banner(
    blog_id: int,
    image: UploadFile = File(...),
    svc: services.BlogService = Depends(get_blog_service),
    settings: Settings = Depends(get_settings),
):
    payload, mime_type = _read_image(image, settings.MAX_MEDIA_BYTES)
    outcome = svc.replace_media(blog_id, "banner", payload, mime_type)
    return _media_body(outcome, outcome.record, "banner updated")


@router.delete("/api/blogs/{blog_id}")
def delete_blog(blog_id: int, delete_media: bool = True, svc: services.BlogService = Depends(get_blog_service)):
    return _delete_body(svc.delete(blog_id, delete_media=delete_media), "blog deleted")


# -- users --------------------------------------------------------------


@router.post("/api/users", status_code=201)
def create_user(payload: schemas.UserIn, svc: services.UserService = Depends(get_user_service)):
    return {"success": True, "message": "user created", "data": _user_out(svc.create(payload))}


@router.get("/api/users")
def list_users(
    filters: schemas.UserFilters = Depends(),
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.UserService = Depends(get_user_service),
):
    return _page_body(svc.list(filters, search, limit, offset), _user_out)


@router.get("/api/users/instructors")
def list_instructors(
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.UserService = Depends(get_user_service),
):
    filters = schemas.UserFilters(role="INSTRUCTOR", status="ACTIVE")
    return _page_body(svc.list(filters, None, limit, offset), _user_out)


@router.get("/api/users/{user_id}")
def get_user(user_id: int, svc: services.UserService = Depends(get_user_service)):
    return {"success": True, "data": _user_out(svc.get(user_id))}


@router.post("/api/users/{user_id}/update")
def update_user(user_id: int, payload: schemas.UserUpdate, svc: services.UserService = Depends(get_user_service)):
    return {"success": True, "message": "user updated", "data": _user_out(svc.update(user_id, payload))}


@router.post("/api/users/{user_id}/profile-image")
def replace_profile_image(
    user_id: int,
    image: UploadFile = File(...),
    svc: services.UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    payload, mime_type = _read_image(image, settings.MAX_PROFILE_BYTES)
    outcome = svc.replace_profile_image(user_id, payload, mime_type)
    return _media_body(outcome, _user_out(outcome.record), "profile image updated")


@router.delete("/api/users/{user_id}")
def delete_user(user_id: int, svc: services.UserService = Depends(get_user_service)):
    return _delete_body(svc.delete(user_id), "user deleted")


# -- skills -------------------------------------------------------------


@router.post("/api/skills", status_code=201)
def add_skill(payload: schemas.SkillIn, svc: services.SkillService = Depends(get_skill_service)):
    try:
        skill = svc.add(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "skill added", "data": skill}


@router.get("/api/skills/user/{user_id}")
def user_skills(user_id: int, svc: services.SkillService = Depends(get_skill_service)):
    return {"success": True, "data": svc.for_user(user_id)}


@router.get("/api/skills/search/{term}")
def search_skills(term: str, svc: services.SkillService = Depends(get_skill_service)):
    """Skill rows (with their user ids) whose name contains `term`."""
    try:
        skills = svc.search(term)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": skills}


@router.get("/api/skills/all-unique")
def unique_skills(svc: services.SkillService = Depends(get_skill_service)):
    return {"success": True, "data": svc.unique()}


@router.get("/api/skills/{skill_id}")
def get_skill(skill_id: int, svc: services.SkillService = Depends(get_skill_service)):
    return {"success": True, "data": svc.get(skill_id)}


@router.post("/api/skills/{skill_id}/update")
def update_skill(skill_id: int, payload: schemas.SkillUpdate, svc: services.SkillService = Depends(get_skill_service)):
    try:
        skill = svc.update(skill_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "skill updated", "data": skill}


@router.delete("/api/skills/{skill_id}")
def delete_skill(skill_id: int, svc: services.SkillService = Depends(get_skill_service)):
    svc.delete(skill_id)
    return {"success": True, "message": "skill deleted"}


# -- courses ------------------------------------------------------------


@router.get("/api/courses")
def list_courses(
    filters: schemas.CourseFilters = Depends(),
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.CourseService = Depends(get_course_service),
):
    return _page_body(svc.list(filters, search, limit, offset))


@router.get("/api/courses/top/featured")
def top_courses(limit: int = 10, svc: services.CourseService = Depends(get_course_service)):
    return {"success": True, "data": svc.top(limit)}


def _course_page(svc: services.CourseService, limit: Optional[int], offset: int, **filters) -> dict:
    return _page_body(svc.list(schemas.CourseFilters(**filters), None, limit, offset))


@router.get("/api/courses/free/list")
def free_courses(limit: Optional[int] = None, offset: int = 0,
                 svc: services.CourseService = Depends(get_course_service)):
    return _course_page(svc, limit, offset, is_free_course=1)


@router.get("/api/courses/published/list")
def published_courses(limit: Optional[int] = None, offset: int = 0,
                      svc: services.CourseService = Depends(get_course_service)):
    return _course_page(svc, limit, offset, status="published")


@router.get("/api/courses/level/{level}")
def courses_by_level(level: str, limit: Optional[int] = None, offset: int = 0,
                     svc: services.CourseService = Depends(get_course_service)):
    return _course_page(svc, limit, offset, level=level)


@router.get("/api/courses/category/{category_id}")
def courses_by_category(category_id: int, limit: Optional[int] = None, offset: int = 0,
                        svc: services.CourseService = Depends(get_course_service)):
    return _course_page(svc, limit, offset, category_id=category_id)


@router.get("/api/courses/creator/{creator_id}")
def courses_by_creator(creator_id: int, limit: Optional[int] = None, offset: int = 0,
                       svc: services.CourseService = Depends(get_course_service)):
    return _course_page(svc, limit, offset, creator=creator_id)


@router.get("/api/courses/{course_id}")
def get_course(course_id: int, svc: services.CourseService = Depends(get_course_service)):
    return {"success": True, "data": svc.get(course_id)}


# -- batches ------------------------------------------------------------


@router.post("/api/batches", status_code=201)
def create_batch(payload: schemas.BatchIn, svc: services.BatchService = Depends(get_batch_service)):
    try:
        batch = svc.create(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "batch created", "data": batch}


@router.get("/api/batches")
def list_batches(
    filters: schemas.BatchFilters = Depends(),
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.BatchService = Depends(get_batch_service),
):
    return _page_body(svc.list(filters, search, limit, offset))


@router.get("/api/batches/active")
def active_batches(limit: int = 10, svc: services.BatchService = Depends(get_batch_service)):
    """ACTIVE batches starting today or later."""
    return {"success": True, "data": svc.upcoming_active(limit)}


@router.get("/api/batches/course/{course_id}")
def batches_by_course(course_id: int, limit: Optional[int] = None, offset: int = 0,
                      svc: services.BatchService = Depends(get_batch_service)):
    return _page_body(svc.list(schemas.BatchFilters(course_id=course_id), None, limit, offset))


@router.get("/api/batches/instructor/{instructor_id}")
def batches_by_instructor(instructor_id: int, limit: Optional[int] = None, offset: int = 0,
                          svc: services.BatchService = Depends(get_batch_service)):
    return _page_body(svc.list(schemas.BatchFilters(instructor_id=instructor_id), None, limit, offset))


@router.get("/api/batches/{batch_id}")
def get_batch(batch_id: int, svc: services.BatchService = Depends(get_batch_service)):
    return {"success": True, "data": svc.get(batch_id)}


@router.put("/api/batches/{batch_id}")
def update_batch(batch_id: int, payload: schemas.BatchUpdate, svc: services.BatchService = Depends(get_batch_service)):
    return {"success": True, "message": "batch updated", "data": svc.update(batch_id, payload)}


@router.delete("/api/batches/{batch_id}")
def delete_batch(batch_id: int, svc: services.BatchService = Depends(get_batch_service)):
    svc.delete(batch_id)
    return {"success": True, "message": "batch deleted"}


# -- quotes -------------------------------------------------------------


@router.post("/api/quotes", status_code=201)
def create_quote(payload: schemas.QuoteIn, svc: services.QuoteService = Depends(get_quote_service)):
    return {"success": True, "message": "quote request received", "data": svc.create(payload)}


@router.get("/api/quotes")
def list_quotes(
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.QuoteService = Depends(get_quote_service),
):
    return _page_body(svc.list(search, limit, offset))


@router.get("/api/quotes/email/{email}")
def quotes_by_email(email: str, svc: services.QuoteService = Depends(get_quote_service)):
    quotes = svc.by_email(email)
    return {"success": True, "data": quotes, "count": len(quotes)}


@router.get("/api/quotes/{quote_id}")
def get_quote(quote_id: int, svc: services.QuoteService = Depends(get_quote_service)):
    return {"success": True, "data": svc.get(quote_id)}


@router.delete("/api/quotes/{quote_id}")
def delete_quote(quote_id: int, svc: services.QuoteService = Depends(get_quote_service)):
    svc.delete(quote_id)
    return {"success": True, "message": "quote deleted"}


# -- newsletter ---------------------------------------------------------


@router.post("/api/newsletter/subscribe", status_code=201)
def subscribe(
    payload: schemas.SubscribeIn,
    response: Response,
    svc: services.NewsletterService = Depends(get_newsletter_service),
):
    """Subscribe an email; 201 when new, 200 when it was already listed."""
    subscriber, is_new = svc.subscribe(payload.email)
    if not is_new:
        response.status_code = 200
        return {"success": True, "message": "email already subscribed", "data": subscriber}
    return {"success": True, "message": "subscribed", "data": subscriber}


@router.get("/api/newsletter/subscribers")
def list_subscribers(
    limit: Optional[int] = None,
    offset: int = 0,
    svc: services.NewsletterService = Depends(get_newsletter_service),
):
    return _page_body(svc.list(limit, offset))


@router.get("/api/newsletter/check/{email}")
def check_subscription(email: str, svc: services.NewsletterService = Depends(get_newsletter_service)):
    subscriber = svc.find(email)
    return {
        "success": True,
        "data": {
            "email": email,
            "subscribed": subscriber is not None,
            "subscribed_at": subscriber.created_at if subscriber else None,
        },
    }


@router.delete("/api/newsletter/unsubscribe")
def unsubscribe(payload: schemas.SubscribeIn, svc: services.NewsletterService = Depends(get_newsletter_service)):
    svc.unsubscribe(payload.email)
    return {"success": True, "message": "unsubscribed"}


@router.delete("/api/newsletter/subscribers/{subscriber_id}")
def delete_subscriber(subscriber_id: int, svc: services.NewsletterService = Depends(get_newsletter_service)):
    svc.delete(subscriber_id)
    return {"success": True, "message": "subscriber deleted"}


@router.get("/api/newsletter/count")
def subscriber_count(svc: services.NewsletterService = Depends(get_newsletter_service)):
    return {"success": True, "data": {"count": svc.count()}}


app = create_app()
