import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.deps import get_backend_guard, get_settings
from src.core.errors import AssetError
from src.rules.loader import load_rules

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "validation_error": 422,
    "not_found": 404,
    "access_denied": 403,
    "backend_error": 503,
    "conflict": 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and validate on startup (fail-fast)
    try:
        load_rules(settings.rules_path)
        logger.info("Rules loaded from %s", settings.rules_path)
    except (OSError, ValueError) as e:
        logger.critical("Rules load failed: %s", e)
        sys.exit(1)

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    SQLiteMigrator(settings.db_path, str(settings.migrations_dir)).run_migrations()

    yield

    abandoned = get_backend_guard().abandoned
    if abandoned:
        logger.warning("Shutting down with %d backend call(s) still running", abandoned)


app = FastAPI(
    title="Asset Access Service",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(AssetError)
async def asset_error_handler(request: Request, exc: AssetError) -> JSONResponse:
    status_code = STATUS_BY_CODE.get(exc.code, 500)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, **exc.to_dict()})


# --- Routers ---
from src.api.routes import access, assets, files  # noqa: E402

app.include_router(access.router, prefix="/api/assets/access", tags=["Access Links"])
app.include_router(assets.router, prefix="/api/assets", tags=["Assets"])
app.include_router(files.router, prefix="/files", tags=["Files"])


# CORS (Allow Frontend)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "assets"}
