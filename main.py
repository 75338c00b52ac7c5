from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple, Type

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from auth import (
    CredentialStore,
    Identity,
    get_current_admin,
    get_current_user,
    get_optional_admin,
    issue_token,
    public_account,
)
from config import settings
from controllers import (
    AchievementController,
    BlogController,
    CategoryController,
    CurrentWorkController,
    InterestController,
    ProjectController,
    ResearchController,
    SettingsController,
    SkillController,
    total_pages,
)
from database import ensure_indexes, get_db
from errors import ValidationError, register_error_handlers
from logger import setup_logging
from resources import ResourceController, controller_dependency
from schemas import DetailsUpdate, LoginRequest, PasswordUpdate

# ==================
# FastAPI app config
# ==================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    try:
        await run_in_threadpool(ensure_indexes, get_db())
        logger.info("Database indexes verified")
    except PyMongoError as e:
        logger.warning(f"Could not verify indexes: {e}")
    yield
    logger.info("Portfolio API stopped")


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

# =========
# Utilities
# =========

async def read_payload(request: Request) -> Tuple[Dict[str, Any], Dict[str, List[UploadFile]]]:
    """Body fields and uploaded files from a JSON, urlencoded or multipart request."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        fields: Dict[str, List[Any]] = {}
        files: Dict[str, List[UploadFile]] = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if value.filename:
                    files.setdefault(key, []).append(value)
            else:
                fields.setdefault(key.removesuffix("[]"), []).append(value)
        payload = {key: values[0] if len(values) == 1 else values for key, values in fields.items()}
        return payload, files

    body = await request.body()
    if not body:
        return {}, {}
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Malformed JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")
    return payload, {}


def ok(data: Any = None, **extra: Any) -> Dict[str, Any]:
    return {"success": True, "data": data, **extra}


def add_resource_routes(
    router: APIRouter,
    controller_cls: Type[ResourceController],
    toggles: Optional[Dict[str, str]] = None,
    include_list: bool = True,
    include_get: bool = True,
) -> APIRouter:
    """Standard list/get/create/update/delete (+ toggle) endpoints for one collection."""
    get_controller = controller_dependency(controller_cls)

    if include_list:
        @router.get("")
        def list_items(request: Request, controller: ResourceController = Depends(get_controller)):
            items = controller.list(dict(request.query_params))
            return ok(items, count=len(items))

    if include_get:
        @router.get("/{identifier}")
        def get_item(identifier: str, controller: ResourceController = Depends(get_controller)):
            return ok(controller.get(identifier))

    @router.post("", status_code=201)
    async def create_item(
        request: Request,
        _: Identity = Depends(get_current_admin),
        controller: ResourceController = Depends(get_controller),
    ):
        payload, files = await read_payload(request)
        return ok(await run_in_threadpool(controller.create, payload, files))

    @router.put("/{identifier}")
    async def update_item(
        identifier: str,
        request: Request,
        _: Identity = Depends(get_current_admin),
        controller: ResourceController = Depends(get_controller),
    ):
        payload, files = await read_payload(request)
        return ok(await run_in_threadpool(controller.update, identifier, payload, files))

    @router.delete("/{identifier}")
    def delete_item(
        identifier: str,
        _: Identity = Depends(get_current_admin),
        controller: ResourceController = Depends(get_controller),
    ):
        return ok(controller.delete(identifier), message=f"{controller.label} deleted successfully")

    for path, flag in (toggles or {}).items():
        router.add_api_route(f"/{{identifier}}/{path}", toggle_endpoint(get_controller, flag), methods=["PUT"])

    return router


def toggle_endpoint(get_controller, flag: str):
    def toggle_item(
        identifier: str,
        _: Identity = Depends(get_current_admin),
        controller: ResourceController = Depends(get_controller),
    ):
        return ok(controller.toggle(identifier, flag))

    toggle_item.__name__ = f"toggle_{flag}"
    return toggle_item


# ======
# Routes
# ======

@app.get("/")
def root():
    return {"status": "ok", "service": "portfolio-api"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    try:
        collections = db.list_collection_names()
        connected = True
    except PyMongoError as e:
        logger.warning(f"Database check failed: {e}")
        collections, connected = [], False
    return {"backend": "running", "database": "connected" if connected else "not-available", "collections": collections[:10]}


# Auth
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/login")
def login(data: LoginRequest, db: Database = Depends(get_db)):
    account = CredentialStore(db).verify(data.email, data.password)
    logger.info(f"Admin login: {account['email']}")
    return ok(public_account(account), token=issue_token(account), token_type="bearer")


@auth_router.get("/me")
def me(identity: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    return ok(public_account(CredentialStore(db).get(identity.id)))


@auth_router.put("/updatepassword")
def update_password(data: PasswordUpdate, identity: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    account = CredentialStore(db).change_password(identity.id, data.currentPassword, data.newPassword)
    return ok(public_account(account), token=issue_token(account), token_type="bearer")


@auth_router.put("/updatedetails")
def update_details(data: DetailsUpdate, identity: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    account = CredentialStore(db).update_details(identity.id, name=data.name, email=data.email)
    return ok(public_account(account))


# Projects
projects_router = add_resource_routes(APIRouter(prefix="/api/projects", tags=["projects"]), ProjectController, {"featured": "featured"})

# Skills
skills_router = APIRouter(prefix="/api/skills", tags=["skills"])
get_skill_controller = controller_dependency(SkillController)


@skills_router.post("/bulk", status_code=201)
async def bulk_create_skills(
    request: Request,
    _: Identity = Depends(get_current_admin),
    controller: SkillController = Depends(get_skill_controller),
):
    payload, _files = await read_payload(request)
    items = await run_in_threadpool(controller.bulk_create, payload.get("skills"))
    return ok(items, count=len(items))


add_resource_routes(skills_router, SkillController)

# Research
research_router = add_resource_routes(APIRouter(prefix="/api/research", tags=["research"]), ResearchController, {"featured": "featured"})

# Achievements
achievements_router = add_resource_routes(
    APIRouter(prefix="/api/achievements", tags=["achievements"]), AchievementController, {"featured": "featured"}
)

# Blog
blogs_router = APIRouter(prefix="/api/blogs", tags=["blogs"])
get_blog_controller = controller_dependency(BlogController)


@blogs_router.get("")
def list_blogs(
    request: Request,
    admin: Optional[Identity] = Depends(get_optional_admin),
    controller: BlogController = Depends(get_blog_controller),
):
    items, total, page, limit = controller.page(dict(request.query_params), include_unpublished=admin is not None)
    return ok(items, count=len(items), total=total, totalPages=total_pages(total, limit), currentPage=page)


@blogs_router.get("/tags")
def list_blog_tags(controller: BlogController = Depends(get_blog_controller)):
    return ok(controller.tags())


@blogs_router.get("/{identifier}")
def get_blog(
    identifier: str,
    admin: Optional[Identity] = Depends(get_optional_admin),
    controller: BlogController = Depends(get_blog_controller),
):
    # Admin previews do not count as views
    return ok(controller.get(identifier, count_view=admin is None))


add_resource_routes(
    blogs_router, BlogController, {"publish": "published", "featured": "featured"},
    include_list=False, include_get=False,
)

# Categories
categories_router = APIRouter(prefix="/api/categories", tags=["categories"])
get_category_controller = controller_dependency(CategoryController)


@categories_router.post("/seed")
def seed_categories(
    _: Identity = Depends(get_current_admin),
    controller: CategoryController = Depends(get_category_controller),
):
    added, items = controller.seed()
    return ok(items, count=len(items), message=f"Seeded {added} new categories")


add_resource_routes(categories_router, CategoryController, {"toggle": "isActive"})

# Interests
interests_router = add_resource_routes(APIRouter(prefix="/api/interests", tags=["interests"]), InterestController, {"toggle": "isActive"})

# Current work
current_work_router = APIRouter(prefix="/api/current-work", tags=["current-work"])
get_current_work_controller = controller_dependency(CurrentWorkController)


@current_work_router.put("/{identifier}/progress")
async def update_progress(
    identifier: str,
    request: Request,
    _: Identity = Depends(get_current_admin),
    controller: CurrentWorkController = Depends(get_current_work_controller),
):
    payload, _files = await read_payload(request)
    if payload.get("progress") is None:
        raise ValidationError("progress is required")
    return ok(await run_in_threadpool(controller.update_progress, identifier, payload["progress"]))


add_resource_routes(current_work_router, CurrentWorkController, {"featured": "isFeatured"})

# Settings
settings_router = APIRouter(prefix="/api/settings", tags=["settings"])
get_settings_controller = controller_dependency(SettingsController)


@settings_router.get("")
def get_site_settings(controller: SettingsController = Depends(get_settings_controller)):
    return ok(controller.get())


@settings_router.put("")
async def update_site_settings(
    request: Request,
    _: Identity = Depends(get_current_admin),
    controller: SettingsController = Depends(get_settings_controller),
):
    payload, files = await read_payload(request)
    return ok(await run_in_threadpool(controller.update, None, payload, files))


@settings_router.put("/profile-image")
async def upload_profile_image(
    request: Request,
    _: Identity = Depends(get_current_admin),
    controller: SettingsController = Depends(get_settings_controller),
):
    _payload, files = await read_payload(request)
    uploads = files.get("profileImage") or []
    data = await run_in_threadpool(controller.upload_profile_image, uploads[0] if uploads else None)
    return ok(data, profileImage=data.get("profileImage"))


for router in (
    auth_router,
    projects_router,
    skills_router,
    research_router,
    achievements_router,
    blogs_router,
    categories_router,
    interests_router,
    current_work_router,
    settings_router,
):
    app.include_router(router)
