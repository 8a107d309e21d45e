import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from backend.app.api.v1.router import api_router
from backend.app.core.config import settings
from backend.app.core.exceptions import (
    AccountNotFound,
    InvalidStateError,
    SecureRandomUnavailable,
    StorageFailure,
    UpdateConflict,
)
from backend.app.db.base import Base
from backend.app.db.session import engine

# Import models so SQLAlchemy registers their tables
from backend.app.models import user  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Two-factor error → HTTP mapping
# Starlette picks the most specific handler by walking the exception's MRO,
# so UpdateConflict and AccountNotFound win over StorageFailure.
# ─────────────────────────────────────────────────────────────────────────────
@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(UpdateConflict)
async def update_conflict_handler(request: Request, exc: UpdateConflict):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Two-factor settings changed in another request, please retry"},
    )


@app.exception_handler(AccountNotFound)
async def account_not_found_handler(request: Request, exc: AccountNotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "User not found"})


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    logger.error("Account store failure: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Account store unavailable"},
    )


@app.exception_handler(SecureRandomUnavailable)
async def secure_random_handler(request: Request, exc: SecureRandomUnavailable):
    logger.critical("Secure random source unavailable, enrollment aborted")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Two-factor enrollment is temporarily unavailable"},
    )


app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}
