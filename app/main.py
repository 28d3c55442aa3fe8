from contextlib import asynccontextmanager
from datetime import datetime, timezone
import os
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.config import settings
from app.core.database import init_db
from app.core.logging import configure_logging, get_logger
from app.routers import admin, admin_auth, auth, properties
from app.schemas.common import ApiResponse

configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = get_logger(__name__)

# Machine-readable codes carried in the envelope's `error` field
ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("%s started", settings.APP_NAME)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Evidence-backed property listings and their verification workflow",
    version="1.0.0",
    lifespan=lifespan,
)

# Static media folder: evidence files are stored here after upload
os.makedirs(os.path.join(settings.MEDIA_ROOT, "properties"), exist_ok=True)
os.makedirs(os.path.join(settings.MEDIA_ROOT, "documents"), exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_ROOT), name="media")


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Error envelopes ──────────────────────────────────────────────────────────

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    body = ApiResponse(
        success=False,
        message=str(exc.detail),
        error=ERROR_CODES.get(exc.status_code, "server_error" if exc.status_code >= 500 else "error"),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json"),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    first = fields[0] if fields else {"field": "", "message": "Invalid request"}
    body = ApiResponse(
        success=False,
        message=f"{first['field']}: {first['message']}" if first["field"] else first["message"],
        data=fields,
        error="validation_error",
    )
    return JSONResponse(status_code=422, content=body.model_dump(mode="json"))


# Include routers
app.include_router(auth.router, prefix="/api/v1")
app.include_router(properties.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1/admin")
app.include_router(admin_auth.router, prefix="/api/v1/admin")

@app.get("/")
def root():
    return {
        "message": settings.APP_NAME,
        "version": "1.0.0",
        "status": "active",
        "documentation": "/docs"
    }

@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "timestamp": datetime.now(timezone.utc)
    }
