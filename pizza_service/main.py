import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pizza_service.core.config import (
    ADMIN_BOOTSTRAP_EMAIL,
    ADMIN_BOOTSTRAP_NAME,
    ADMIN_BOOTSTRAP_PASSWORD,
    CORS_ORIGINS,
    DATABASE_URL,
    DEV_BOOTSTRAP_ALLOW,
    IS_PROD,
)
from pizza_service.core.context import build_context
from pizza_service.core.database import Base, SessionLocal, engine
from pizza_service.core.errors import ServiceError
from pizza_service.core.logging_setup import configure_logging
from pizza_service.core.startup_checks import ensure_migrations_applied, validate_database_environment
from pizza_service.middleware.observability import ObservabilityMiddleware
import pizza_service.models  # registers every model on Base.metadata before create_all

from pizza_service.services.admin_bootstrap import ensure_users_table, upsert_admin_user
from pizza_service.routers.auth import router as auth_router
from pizza_service.routers.users import router as users_router
from pizza_service.routers.franchises import router as franchises_router
from pizza_service.routers.orders import router as orders_router
from pizza_service.routers.internal_metrics import router as internal_metrics_router

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[ADMIN_BOOTSTRAP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Pizza Service API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)
app.state.services = build_context()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)


async def service_error_handler(_: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(_: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "invalid request", "errors": errors})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "internal server error"})


def register_exception_handlers(target: FastAPI) -> None:
    """Render every error as a `{"message": ...}` body."""
    target.add_exception_handler(ServiceError, service_error_handler)
    target.add_exception_handler(RequestValidationError, request_validation_handler)
    target.add_exception_handler(Exception, unhandled_error_handler)


register_exception_handlers(app)


def _bootstrap_initial_admin() -> None:
    if not ADMIN_BOOTSTRAP_EMAIL or not ADMIN_BOOTSTRAP_PASSWORD:
        logger.info("%s skipped: configure ADMIN_BOOTSTRAP_EMAIL and ADMIN_BOOTSTRAP_PASSWORD.", BOOTSTRAP_PREFIX)
        return
    if IS_PROD and not DEV_BOOTSTRAP_ALLOW:
        logger.warning("%s skipped in production: set DEV_BOOTSTRAP_ALLOW=1 to allow it.", BOOTSTRAP_PREFIX)
        return

    ensure_users_table(engine)
    services = app.state.services
    logger.info("%s start email=%s", BOOTSTRAP_PREFIX, ADMIN_BOOTSTRAP_EMAIL)

    db = SessionLocal()
    try:
        admin, created = upsert_admin_user(
            db,
            hasher=services.hasher,
            registry=services.registry,
            email=ADMIN_BOOTSTRAP_EMAIL,
            name=ADMIN_BOOTSTRAP_NAME,
            password=ADMIN_BOOTSTRAP_PASSWORD,
        )
        logger.info("%s %s id=%s email=%s", BOOTSTRAP_PREFIX, "created" if created else "updated", admin.id, admin.email)
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        else:
            ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        _bootstrap_initial_admin()
    except Exception:
        logger.exception("%s ERROR startup failed", BOOTSTRAP_PREFIX)
        raise


# Routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(franchises_router)
app.include_router(orders_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
