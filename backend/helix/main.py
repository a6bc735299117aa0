"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from helix import __version__
from helix.api.v1.api import api_router
from helix.core.config import settings
from helix.core.logger import logger
from helix.db.database import init_db
from helix.middleware.correlation import CorrelationMiddleware
from helix.services.background_jobs import shutdown_scheduler, start_scheduler
from helix.utils.exceptions import HelixError, StoreError, ValidationError


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Helix API starting")
    if settings.DB_AUTO_CREATE:
        init_db()
    start_scheduler()
    try:
        yield
    finally:
        shutdown_scheduler()
        logger.info("Helix API shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(api_router, prefix="/api")

# ── Correlation ID middleware (must be added before CORS) ─────────────────────
app.add_middleware(CorrelationMiddleware)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)


# ── Error mapping ─────────────────────────────────────────────────────────────

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse({"message": exc.message, "fields": exc.fields}, status_code=400)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    fields = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        fields[".".join(loc) or "body"] = error.get("msg", "invalid")
    return JSONResponse({"message": "Invalid request", "fields": fields}, status_code=400)


@app.exception_handler(HelixError)
async def helix_error_handler(request: Request, exc: HelixError):
    if isinstance(exc, StoreError) and exc.status_code >= 500:
        logger.error(
            "%s %s failed: kind=%s operation=%s error=%s",
            request.method, request.url.path, exc.kind, exc.operation, exc.message,
        )
    return JSONResponse({"message": exc.message}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"message": "Internal server error"}, status_code=500)


@app.get("/")
def read_root():
    return {"message": "Helix API is running", "version": __version__, "docs": "/docs"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
