import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware

from auth import CurrentUser, get_current_user, require_role
from config import get_settings
from database import DbSession, ensure_indexes, get_db
from errors import register_error_handlers
from logger import setup_logging
from schemas import (
    AdminRatingOut,
    AdminStoreOut,
    AdminStoreSortField,
    AdminUserOut,
    AuthResponse,
    CreateStoreRequest,
    CreateUserRequest,
    DashboardStats,
    LoginRequest,
    Message,
    OwnerDashboard,
    RatingOut,
    RatingRequest,
    RatingSortField,
    RegisterRequest,
    Role,
    SortOrder,
    StoreOut,
    UpdatePasswordRequest,
    UserOut,
    UserSortField,
    UserStoreOut,
    UserStoreSortField,
)
from services import RatingService, StoreService, UserService, dashboard_stats

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = get_db()
    ensure_indexes(db)
    if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
        try:
            if UserService(db).seed_admin(settings.ADMIN_NAME, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD):
                logger.info("Seeded system administrator %s", settings.ADMIN_EMAIL)
        except ValueError as exc:
            logger.error("Admin seed skipped: %s", exc)
    logger.info("%s started", settings.APP_NAME)
    yield


# App and CORS
app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

admin_only = require_role(Role.SYSTEM_ADMIN)


# Auth Routes
@app.post("/api/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: DbSession):
    return UserService(db).register(payload)


@app.post("/api/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: DbSession):
    return UserService(db).login(payload.email, payload.password)


@app.get("/api/auth/me", response_model=UserOut)
def me(db: DbSession, current_user: CurrentUser = Depends(get_current_user)):
    return UserService(db).get_profile(current_user.id)


@app.put("/api/auth/update-password", response_model=Message)
def update_password(payload: UpdatePasswordRequest, db: DbSession, current_user: CurrentUser = Depends(get_current_user)):
    UserService(db).update_password(current_user.id, payload.old_password, payload.new_password)
    return {"message": "Password updated successfully"}


# Admin Routes
@app.get("/api/admin/dashboard-stats", response_model=DashboardStats)
def admin_dashboard(db: DbSession, admin: CurrentUser = Depends(admin_only)):
    return dashboard_stats(db)


@app.post("/api/admin/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def admin_create_user(payload: CreateUserRequest, db: DbSession, admin: CurrentUser = Depends(admin_only)):
    return UserService(db).create_user(payload)


@app.get("/api/admin/users", response_model=List[AdminUserOut])
def admin_list_users(
    db: DbSession,
    name: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    role: Optional[Role] = None,
    sort_by: UserSortField = UserSortField.name,
    order: SortOrder = SortOrder.asc,
    admin: CurrentUser = Depends(admin_only),
):
    return UserService(db).list_users(name=name, email=email, address=address, role=role, sort_by=sort_by, order=order)


@app.post("/api/admin/stores", response_model=StoreOut, status_code=status.HTTP_201_CREATED)
def admin_create_store(payload: CreateStoreRequest, db: DbSession, admin: CurrentUser = Depends(admin_only)):
    return StoreService(db).create_store(payload)


@app.get("/api/admin/stores", response_model=List[AdminStoreOut])
def admin_list_stores(
    db: DbSession,
    name: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    sort_by: AdminStoreSortField = AdminStoreSortField.name,
    order: SortOrder = SortOrder.asc,
    admin: CurrentUser = Depends(admin_only),
):
    return StoreService(db).list_stores_admin(name=name, email=email, address=address, sort_by=sort_by, order=order)


@app.get("/api/admin/ratings", response_model=List[AdminRatingOut])
def admin_list_ratings(
    db: DbSession,
    sort_by: RatingSortField = RatingSortField.created_at,
    order: SortOrder = SortOrder.asc,
    admin: CurrentUser = Depends(admin_only),
):
    return RatingService(db).list_ratings(sort_by=sort_by, order=order)


# Stores and Ratings for Users
@app.get("/api/users/stores", response_model=List[UserStoreOut])
def list_stores(
    db: DbSession,
    name: Optional[str] = None,
    address: Optional[str] = None,
    sort_by: UserStoreSortField = UserStoreSortField.name,
    order: SortOrder = SortOrder.asc,
    current_user: CurrentUser = Depends(require_role(Role.NORMAL_USER, Role.SYSTEM_ADMIN)),
):
    return StoreService(db).list_stores_for_user(current_user.id, name=name, address=address, sort_by=sort_by, order=order)


@app.post("/api/ratings", response_model=RatingOut, status_code=status.HTTP_201_CREATED)
def submit_rating(payload: RatingRequest, db: DbSession, current_user: CurrentUser = Depends(require_role(Role.NORMAL_USER))):
    return RatingService(db).submit(current_user.id, payload.store_id, payload.value)


@app.put("/api/ratings", response_model=RatingOut)
def modify_rating(payload: RatingRequest, db: DbSession, current_user: CurrentUser = Depends(require_role(Role.NORMAL_USER))):
    return RatingService(db).modify(current_user.id, payload.store_id, payload.value)


# Owner routes
@app.get("/api/owner/dashboard", response_model=OwnerDashboard)
def owner_dashboard(db: DbSession, current_owner: CurrentUser = Depends(require_role(Role.STORE_OWNER))):
    return StoreService(db).owner_dashboard(current_owner.id)


# Utility endpoints
@app.get("/")
def root():
    return {"message": "Store Rating API is running"}


@app.get("/api/health")
def health(db: DbSession):
    try:
        db.command("ping")
        return {"backend": "ok", "database": "ok"}
    except Exception as e:
        logger.warning("Database ping failed: %s", e)
        return {"backend": "ok", "database": "unreachable"}
