"""Portfolio CMS  --  Main FastAPI application."""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import (
    FastAPI, Request, Depends, HTTPException, BackgroundTasks, Body, status,
)
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from config import CHAT_RATE_LIMIT, SITE_OWNER, SITE_TAGLINE, ACCESS_TOKEN_EXPIRE_MINUTES
from database import get_db, init_db, check_connection, SessionLocal
from models import AdminUser
from auth import (
    AdminLoginRequired, authenticate_admin, create_access_token, get_current_admin,
    get_optional_admin, seed_admin,
)
from catalog import (
    SORT_OPTIONS, active_filter_count, criteria_from_query, criteria_to_query,
    days_remaining, facets, filter_and_sort, is_default, matches_search,
)
from chat_engine import ChatError, build_context, chat as chat_completion
from editor import EDITORS, FormValidationError, SubmissionInProgress, slugify
from repository import (
    BlogPostRepository, ConflictError, NotFoundError, ProjectRepository,
    RepositoryError, SkillRepository,
)
from revalidation import CONTENT_TYPES, page_cache, revalidate, validate_revalidation_secret
from schemas import (
    BlogPostIn, BlogTagsUpdate, ChatRequest, FeaturedToggle, LoginRequest, ProjectIn,
    RevalidateRequest, SkillIn,
)

# ---------- Logging ----------
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# ---------- App setup ----------
app = FastAPI(title="Portfolio CMS", version="1.0.0")

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

BASE_DIR = Path(__file__).resolve().parent
STATIC_DIR = BASE_DIR / "static"
if STATIC_DIR.is_dir():
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
templates.env.globals.update(
    site_owner=SITE_OWNER,
    site_tagline=SITE_TAGLINE,
    days_remaining=days_remaining,
    criteria_to_query=criteria_to_query,
    urlencode=urlencode,
    slugify=slugify,
    sort_options=SORT_OPTIONS,
)

# admin section -> (content type for revalidation, heading, project kind)
SECTIONS: Dict[str, Dict[str, Any]] = {
    "projects": {"content_type": "projects", "title": "Projects", "kind": "project"},
    "research-projects": {"content_type": "research-projects", "title": "Research Projects", "kind": "research"},
    "blog": {"content_type": "blog", "title": "Blog Posts", "kind": None},
    "skills": {"content_type": "skills", "title": "Skills", "kind": None},
}
API_SECTIONS = {"projects": "projects", "research-projects": "research-projects", "blog-posts": "blog", "skills": "skills"}
SECTION_SCHEMAS = {"projects": ProjectIn, "research-projects": ProjectIn, "blog": BlogPostIn, "skills": SkillIn}
PUBLIC_KINDS = {"projects": "project", "research": "research"}


def repository_for(db: Session, section: str):
    if section == "projects":
        return ProjectRepository(db, "project")
    if section == "research-projects":
        return ProjectRepository(db, "research")
    if section == "blog":
        return BlogPostRepository(db)
    if section == "skills":
        return SkillRepository(db)
    raise NotFoundError("section", section)


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/")


@app.on_event("startup")
def on_startup():
    init_db()
    if check_connection():
        db = SessionLocal()
        try:
            seed_admin(db)
        finally:
            db.close()
    logger.info("Portfolio CMS started")


# ========================================================================
# Error handling
# ========================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error("Validation error for %s: %s", request.url, exc.errors())
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc.errors())})


def jsonable_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors]


@app.exception_handler(AdminLoginRequired)
async def login_required_handler(request: Request, exc: AdminLoginRequired):
    if _is_api(request):
        return JSONResponse(status_code=401, content={"detail": exc.detail})
    return RedirectResponse(url="/login?" + urlencode({"next": request.url.path}), status_code=302)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.info("Not found: %s", exc)
    if _is_api(request):
        return JSONResponse(status_code=404, content={"detail": "Not found"})
    return templates.TemplateResponse(request, "not_found.html", {"user": None}, status_code=404)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and not _is_api(request):
        return templates.TemplateResponse(request, "not_found.html", {"user": None}, status_code=404)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception for %s: %s", request.url, exc, exc_info=True)
    if _is_api(request):
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return templates.TemplateResponse(request, "error.html", {"user": None}, status_code=500)


# ========================================================================
# Public pages (HTML, cached)
# ========================================================================

def _cache_key(request: Request) -> str:
    query = request.url.query
    return request.url.path + (f"?{query}" if query else "")


def cached_page(request: Request, render: Callable[[], HTMLResponse]) -> HTMLResponse:
    """Serve from the page cache, rendering and storing on a miss.  Pages
    marked ``no-store`` (rendered with a section missing) are not kept."""
    key = _cache_key(request)
    body = page_cache.get(key)
    if body is not None:
        return HTMLResponse(body)
    response = render()
    if response.status_code == 200 and response.headers.get("cache-control") != "no-store":
        page_cache[key] = response.body
    return response


def _section_or_empty(db: Session, label: str, fetch: Callable[[], List[Any]], failed: List[str]) -> List[Any]:
    try:
        return fetch()
    except (SQLAlchemyError, RepositoryError) as e:
        logger.error("Failed to load %s for the home page: %s", label, e)
        db.rollback()
        failed.append(label)
        return []


@app.get("/", response_class=HTMLResponse)
async def home(request: Request, db: Session = Depends(get_db)):
    def render():
        failed: List[str] = []
        response = templates.TemplateResponse(request, "home.html", {
            "projects": _section_or_empty(
                db, "projects", lambda: ProjectRepository(db, "project").list_public(featured=True, limit=3), failed,
            ),
            "research": _section_or_empty(
                db, "research", lambda: ProjectRepository(db, "research").list_public(featured=True, limit=3), failed,
            ),
            "posts": _section_or_empty(
                db, "blog posts", lambda: BlogPostRepository(db).list(published=True, limit=3), failed,
            ),
            "skills": _section_or_empty(
                db, "skills", lambda: SkillRepository(db).list(featured=True, limit=12), failed,
            ),
        })
        if failed:
            response.headers["cache-control"] = "no-store"
        return response
    return cached_page(request, render)


def _listing_page(request: Request, db: Session, route: str):
    kind = PUBLIC_KINDS[route]
    projects = ProjectRepository(db, kind).list_public()
    criteria = criteria_from_query(request.query_params)
    visible = filter_and_sort(projects, criteria)
    return templates.TemplateResponse(request, "projects.html", {
        "route": route,
        "heading": "Research" if kind == "research" else "Projects",
        "projects": visible,
        "total": len(projects),
        "criteria": criteria,
        "facets": facets(projects),
        "filter_count": active_filter_count(criteria),
        "is_default": is_default(criteria),
    })


def _detail_page(request: Request, db: Session, route: str, slug: str):
    kind = PUBLIC_KINDS[route]
    project = ProjectRepository(db, kind).get_public(slug)
    if project is None:
        raise NotFoundError(kind, slug)
    return templates.TemplateResponse(request, "project_detail.html", {"route": route, "project": project})


@app.get("/projects", response_class=HTMLResponse)
async def projects_page(request: Request, db: Session = Depends(get_db)):
    return cached_page(request, lambda: _listing_page(request, db, "projects"))


@app.get("/projects/{slug}", response_class=HTMLResponse)
async def project_page(request: Request, slug: str, db: Session = Depends(get_db)):
    return cached_page(request, lambda: _detail_page(request, db, "projects", slug))


@app.get("/research", response_class=HTMLResponse)
async def research_page(request: Request, db: Session = Depends(get_db)):
    return cached_page(request, lambda: _listing_page(request, db, "research"))


@app.get("/research/{slug}", response_class=HTMLResponse)
async def research_project_page(request: Request, slug: str, db: Session = Depends(get_db)):
    return cached_page(request, lambda: _detail_page(request, db, "research", slug))


@app.get("/blog", response_class=HTMLResponse)
async def blog_page(request: Request, category: Optional[str] = None, db: Session = Depends(get_db)):
    repo = BlogPostRepository(db)

    def render():
        return templates.TemplateResponse(request, "blog.html", {
            "posts": repo.list(published=True, category=category),
            "categories": repo.list_categories(),
            "active_category": category,
        })
    return cached_page(request, render)


@app.get("/blog/tag/{slug}", response_class=HTMLResponse)
async def blog_tag_page(request: Request, slug: str, db: Session = Depends(get_db)):
    repo = BlogPostRepository(db)
    tag = repo.get_tag(slug)
    if tag is None:
        raise NotFoundError("blog tag", slug)

    def render():
        return templates.TemplateResponse(request, "blog.html", {
            "posts": repo.list(published=True, tag=tag.slug),
            "categories": [],
            "active_category": None,
            "tag": tag,
        })
    return cached_page(request, render)


@app.get("/blog/{slug}", response_class=HTMLResponse)
async def blog_post_page(request: Request, slug: str, db: Session = Depends(get_db)):
    repo = BlogPostRepository(db)
    post = repo.get_by_slug(slug)
    if post is None or not post.published:
        raise NotFoundError("blog post", slug)
    try:
        repo.increment_views(post.slug)
    except RepositoryError as e:
        logger.warning("View not counted for blog post %s: %s", post.slug, e)
    return cached_page(request, lambda: templates.TemplateResponse(request, "blog_post.html", {"post": post}))


@app.get("/skills", response_class=HTMLResponse)
async def skills_page(request: Request, db: Session = Depends(get_db)):
    return cached_page(request, lambda: templates.TemplateResponse(
        request, "skills.html", {"groups": SkillRepository(db).by_category()}
    ))


# ========================================================================
# Auth
# ========================================================================

def _login_response(url: str, token: str, payload: Optional[dict] = None):
    resp = JSONResponse(payload) if payload is not None else RedirectResponse(url=url, status_code=303)
    resp.set_cookie(
        "access_token", token, httponly=True, samesite="lax",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60, path="/",
    )
    return resp


@app.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, next: str = "/admin"):
    return templates.TemplateResponse(request, "login.html", {"next": next, "error": None})


@app.post("/login")
async def login_form(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    next_url = str(form.get("next") or "/admin")
    if not next_url.startswith("/admin"):
        next_url = "/admin"
    admin = authenticate_admin(db, str(form.get("username", "")), str(form.get("password", "")))
    if not admin:
        return templates.TemplateResponse(
            request, "login.html", {"next": next_url, "error": "Invalid credentials"},
            status_code=401,
        )
    token = create_access_token({"sub": admin.username, "role": "admin"})
    return _login_response(next_url, token)


@app.post("/api/login")
async def api_login(payload: LoginRequest, db: Session = Depends(get_db)):
    admin = authenticate_admin(db, payload.username, payload.password)
    if not admin:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token({"sub": admin.username, "role": "admin"})
    return _login_response("/admin", token, {"message": "Logged in", "token": token})


@app.post("/api/logout")
async def api_logout():
    resp = JSONResponse({"message": "Logged out"})
    resp.delete_cookie("access_token", path="/")
    return resp


@app.post("/logout")
async def logout():
    resp = RedirectResponse(url="/", status_code=303)
    resp.delete_cookie("access_token", path="/")
    return resp


# ========================================================================
# Admin pages (HTML)
# ========================================================================

def _section(section: str) -> Dict[str, Any]:
    if section not in SECTIONS:
        raise NotFoundError("section", section)
    return SECTIONS[section]


def _admin_rows(section: str, items: List[Any], criteria) -> List[Any]:
    if section in ("projects", "research-projects"):
        return filter_and_sort(items, criteria)
    if section == "blog":
        rows = [p for p in items if matches_search(p, criteria.search)]
        if criteria.status == "published":
            rows = [p for p in rows if p.published]
        elif criteria.status == "draft":
            rows = [p for p in rows if not p.published]
        return rows
    needle = criteria.search.lower()
    return [s for s in items if needle in s.name.lower() or needle in s.category.lower()]


@app.get("/admin", response_class=HTMLResponse)
async def admin_dashboard(
    request: Request,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    counts = {name: len(repository_for(db, name).list()) for name in SECTIONS}
    return templates.TemplateResponse(request, "admin/dashboard.html", {
        "user": admin, "sections": SECTIONS, "counts": counts,
        "content_types": CONTENT_TYPES,
    })


@app.get("/admin/{section}", response_class=HTMLResponse)
async def admin_listing(
    request: Request,
    section: str,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    info = _section(section)
    items = repository_for(db, section).list()
    criteria = criteria_from_query(request.query_params)
    return templates.TemplateResponse(request, "admin/list.html", {
        "user": admin,
        "section": section,
        "info": info,
        "rows": _admin_rows(section, items, criteria),
        "total": len(items),
        "criteria": criteria,
        "facets": facets(items) if info["kind"] else {"categories": [], "statuses": []},
        "notice": request.query_params.get("notice"),
    })


def _editor_context(section: str, editor, admin: AdminUser, db: Session) -> Dict[str, Any]:
    ctx = {"user": admin, "section": section, "info": SECTIONS[section], "editor": editor}
    if section == "blog":
        ctx["categories"] = BlogPostRepository(db).list_categories()
    return ctx


def _form_template(section: str) -> str:
    if section in ("projects", "research-projects"):
        return "admin/project_form.html"
    if section == "blog":
        return "admin/blog_form.html"
    return "admin/skill_form.html"


@app.get("/admin/{section}/new", response_class=HTMLResponse)
async def admin_new(
    request: Request,
    section: str,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    _section(section)
    editor_cls, kwargs = EDITORS[section]
    editor = editor_cls.blank(**kwargs)
    return templates.TemplateResponse(request, _form_template(section), _editor_context(section, editor, admin, db))


@app.get("/admin/{section}/edit/{entity_id}", response_class=HTMLResponse)
async def admin_edit(
    request: Request,
    section: str,
    entity_id: int,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    _section(section)
    entity = repository_for(db, section).get(entity_id)
    if entity is None:
        raise NotFoundError(section, entity_id)
    editor_cls, kwargs = EDITORS[section]
    editor = editor_cls.from_entity(entity, **kwargs)
    return templates.TemplateResponse(request, _form_template(section), _editor_context(section, editor, admin, db))


async def _save(
    request: Request,
    section: str,
    entity_id: Optional[int],
    admin: AdminUser,
    db: Session,
    background_tasks: BackgroundTasks,
):
    info = _section(section)
    repo = repository_for(db, section)
    if entity_id is not None and repo.get(entity_id) is None:
        raise NotFoundError(section, entity_id)

    form = await request.form()
    editor_cls, kwargs = EDITORS[section]
    editor = editor_cls.from_form(form, entity_id=entity_id, **kwargs)
    template = _form_template(section)

    # secondary buttons re-render the form instead of saving
    action = form.get("action")
    if action == "generate-slug":
        editor.generate_slug(force=True)
        return templates.TemplateResponse(request, template, _editor_context(section, editor, admin, db))

    schema = SECTION_SCHEMAS[section]

    async def persist(payload: Dict[str, Any]):
        model = schema.model_validate(payload)
        if entity_id is None:
            return repo.create(model)
        return repo.update(entity_id, model)

    def on_success(entity):
        background_tasks.add_task(revalidate, info["content_type"], getattr(entity, "slug", None))

    try:
        result = await editor.submit(persist, on_success=on_success)
    except FormValidationError:
        return templates.TemplateResponse(
            request, template, _editor_context(section, editor, admin, db), status_code=400,
        )
    except SubmissionInProgress:
        raise HTTPException(status_code=409, detail="Save already in progress")

    if not result.ok:
        return templates.TemplateResponse(
            request, template, _editor_context(section, editor, admin, db), status_code=400,
        )
    return RedirectResponse(url=f"{result.redirect_to}?notice=saved", status_code=303)


@app.post("/admin/{section}/new")
async def admin_create(
    request: Request,
    section: str,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return await _save(request, section, None, admin, db, background_tasks)


@app.post("/admin/{section}/edit/{entity_id}")
async def admin_update(
    request: Request,
    section: str,
    entity_id: int,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return await _save(request, section, entity_id, admin, db, background_tasks)


@app.post("/admin/{section}/delete/{entity_id}")
async def admin_delete(
    request: Request,
    section: str,
    entity_id: int,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    info = _section(section)
    try:
        repository_for(db, section).delete(entity_id)
    except RepositoryError as e:
        if isinstance(e, NotFoundError):
            raise
        logger.error("Failed to delete %s id=%s: %s", section, entity_id, e)
        return RedirectResponse(url=f"/admin/{section}?notice=delete-failed", status_code=303)
    background_tasks.add_task(revalidate, info["content_type"])
    return RedirectResponse(url=f"/admin/{section}?notice=deleted", status_code=303)


# ========================================================================
# Public JSON API
# ========================================================================

def _project_list(db: Session, kind: str, request: Request):
    items = ProjectRepository(db, kind).list_public()
    criteria = criteria_from_query(request.query_params)
    if request.query_params.get("featured") in ("true", "1"):
        items = [p for p in items if p.is_featured]
    return filter_and_sort(items, criteria)


@app.get("/api/projects")
async def api_projects(request: Request, db: Session = Depends(get_db)):
    return _project_list(db, "project", request)


@app.get("/api/projects/featured")
async def api_featured_projects(limit: int = 3, db: Session = Depends(get_db)):
    return ProjectRepository(db, "project").list_public(featured=True, limit=limit)


@app.get("/api/projects/{slug}")
async def api_project(slug: str, db: Session = Depends(get_db)):
    project = ProjectRepository(db, "project").get_public(slug)
    if project is None:
        raise NotFoundError("project", slug)
    return project


@app.get("/api/research-projects")
async def api_research_projects(request: Request, db: Session = Depends(get_db)):
    return _project_list(db, "research", request)


@app.get("/api/research-projects/featured")
async def api_featured_research(limit: int = 3, db: Session = Depends(get_db)):
    return ProjectRepository(db, "research").list_public(featured=True, limit=limit)


@app.get("/api/research-projects/slug/{slug}")
async def api_research_project(slug: str, db: Session = Depends(get_db)):
    project = ProjectRepository(db, "research").get_public(slug)
    if project is None:
        raise NotFoundError("research project", slug)
    return project


@app.get("/api/blog-posts")
async def api_blog_posts(
    category: Optional[str] = None,
    tag: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return BlogPostRepository(db).list(published=True, category=category, tag=tag)


@app.get("/api/blog-categories")
async def api_blog_categories(db: Session = Depends(get_db)):
    return BlogPostRepository(db).list_categories()


@app.get("/api/blog-tags")
async def api_blog_tags(db: Session = Depends(get_db)):
    return BlogPostRepository(db).list_tags()


@app.get("/api/skills")
async def api_skills(
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    return SkillRepository(db).list(featured=featured, category=category)


# ========================================================================
# Admin JSON API
# ========================================================================

def _api_section(name: str) -> str:
    if name not in API_SECTIONS:
        raise NotFoundError("section", name)
    return API_SECTIONS[name]


def _validated(section: str, payload: Dict[str, Any]):
    try:
        return SECTION_SCHEMAS[section].model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=jsonable_errors(e.errors()))


def _write(fn: Callable[[], Any]):
    try:
        return fn()
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NotFoundError:
        raise
    except RepositoryError as e:
        logger.error("Admin API write failed: %s", e)
        raise HTTPException(status_code=503, detail="The content store is unavailable")


@app.get("/api/admin/{name}")
async def api_admin_list(name: str, admin: AdminUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    return repository_for(db, _api_section(name)).list()


@app.post("/api/admin/blog-categories", status_code=status.HTTP_201_CREATED)
async def api_admin_create_category(
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    name = str(payload.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=422, detail="Category name is required")
    slug = payload.get("slug") or slugify(name)
    category = _write(lambda: BlogPostRepository(db).create_category(name, slug, payload.get("color")))
    background_tasks.add_task(revalidate, "blog")
    return category


@app.get("/api/admin/blog-posts/{entity_id}/tags")
async def api_admin_post_tags(
    entity_id: int,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return BlogPostRepository(db).tags_for(entity_id)


@app.put("/api/admin/blog-posts/{entity_id}/tags")
async def api_admin_set_post_tags(
    entity_id: int,
    payload: BlogTagsUpdate,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    tags = _write(lambda: BlogPostRepository(db).set_tags(entity_id, payload.tags))
    background_tasks.add_task(revalidate, "blog")
    return tags


@app.post("/api/admin/{name}", status_code=status.HTTP_201_CREATED)
async def api_admin_create(
    name: str,
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    section = _api_section(name)
    model = _validated(section, payload)
    entity = _write(lambda: repository_for(db, section).create(model))
    background_tasks.add_task(revalidate, SECTIONS[section]["content_type"], getattr(entity, "slug", None))
    return entity


@app.get("/api/admin/{name}/{entity_id}")
async def api_admin_get(
    name: str, entity_id: int,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    section = _api_section(name)
    entity = repository_for(db, section).get(entity_id)
    if entity is None:
        raise NotFoundError(section, entity_id)
    return entity


@app.put("/api/admin/{name}/{entity_id}")
async def api_admin_update(
    name: str,
    entity_id: int,
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    section = _api_section(name)
    model = _validated(section, payload)
    entity = _write(lambda: repository_for(db, section).update(entity_id, model))
    background_tasks.add_task(revalidate, SECTIONS[section]["content_type"], getattr(entity, "slug", None))
    return entity


@app.put("/api/admin/{name}/{entity_id}/featured")
async def api_admin_feature(
    name: str,
    entity_id: int,
    background_tasks: BackgroundTasks,
    payload: FeaturedToggle,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    section = _api_section(name)
    if section not in ("projects", "research-projects"):
        raise HTTPException(status_code=400, detail="Only projects can be featured")
    entity = _write(lambda: repository_for(db, section).set_featured(entity_id, payload.featured))
    background_tasks.add_task(revalidate, SECTIONS[section]["content_type"], entity.slug)
    return entity


@app.delete("/api/admin/{name}/{entity_id}")
async def api_admin_delete(
    name: str,
    entity_id: int,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    section = _api_section(name)
    _write(lambda: repository_for(db, section).delete(entity_id))
    background_tasks.add_task(revalidate, SECTIONS[section]["content_type"])
    return {"deleted": entity_id}


# ========================================================================
# Revalidation & chat
# ========================================================================

@app.post("/api/revalidate")
async def api_revalidate(
    payload: RevalidateRequest,
    admin: Optional[AdminUser] = Depends(get_optional_admin),
):
    if admin is None and not validate_revalidation_secret(payload.secret):
        raise HTTPException(status_code=401, detail="Invalid revalidation secret.")
    if payload.type not in CONTENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown content type: {payload.type}")
    evicted = revalidate(payload.type, payload.slug)
    return {"revalidated": True, "type": payload.type, "evicted": evicted}


@app.post("/api/chat")
@limiter.limit(CHAT_RATE_LIMIT)
async def chat_endpoint(
    request: Request,
    payload: ChatRequest,
    db: Session = Depends(get_db),
):
    context = build_context(
        ProjectRepository(db, "project").list_public(featured=True, limit=5),
        SkillRepository(db).list(featured=True),
    )
    try:
        answer = await chat_completion([m.model_dump() for m in payload.messages], context)
    except ChatError as e:
        logger.error("Chat failed: %s", e)
        return JSONResponse(status_code=503, content={"error": "Failed to generate response"})
    return {"response": answer}
