"""Marketplace admin API application"""

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admin_audit.config import settings
from admin_audit.core.database import init_db, SessionLocal
from admin_audit.core.exceptions import BaseAPIException
from admin_audit.api.v1 import admin, audit, auth, orders, products, users
from admin_audit.schemas.audit import StoreStatus
from admin_audit.services.audit_store import audit_store
from admin_audit.services.user_service import user_service


def configure_logging() -> None:
    log_file = Path(settings.get_log_file())
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file), logging.StreamHandler()],
    )


configure_logging()
logger = logging.getLogger(__name__)

HTTP_REQUESTS = Counter(
    "marketplace_http_requests_total",
    "HTTP requests served",
    ["method", "route", "status"],
)
HTTP_LATENCY = Histogram(
    "marketplace_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "route"],
)
AUDIT_STORE_READY = Gauge("marketplace_audit_store_ready", "Audit store provisioned (1 ready, 0 absent)")

SLOW_REQUEST_SECONDS = 1.0
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def record_store_status(db: Session) -> StoreStatus:
    """Probe the audit store and publish the result as a gauge"""
    store = audit_store.probe(db)
    AUDIT_STORE_READY.set(1 if store is StoreStatus.READY else 0)
    return store


def bootstrap() -> None:
    """
    Prepare the schema, the configured super admin and the store gauge.

    Schema failures abort startup; a failed super admin bootstrap is only logged
    so the API can still serve existing accounts.
    """
    settings.validate_security_settings()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    init_db()

    db = SessionLocal()
    try:
        boss = user_service.ensure_super_admin(db)
        logger.info(f"Super admin account: {boss.email}")
        if record_store_status(db) is StoreStatus.ABSENT:
            logger.warning("Audit store absent; activity feed will be reconstructed until setup runs")
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Super admin bootstrap failed: {exc}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    bootstrap()
    yield
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def observe_request(request: Request, call_next):
    """Tag the request id, apply security headers and record latency"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    response.headers.update(SECURITY_HEADERS)
    response.headers["X-Request-ID"] = request_id

    # templated route path keeps label cardinality bounded
    route = getattr(request.scope.get("route"), "path", request.url.path)
    HTTP_REQUESTS.labels(request.method, route, str(response.status_code)).inc()
    HTTP_LATENCY.labels(request.method, route).observe(elapsed)
    if elapsed > SLOW_REQUEST_SECONDS:
        logger.warning(f"Slow request {request.method} {route}: {elapsed:.2f}s request_id={request_id}")

    return response


def error_response(
    request: Request,
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Uniform error envelope shared by every handler"""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "details": details or {},
            "path": request.url.path,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


@app.exception_handler(BaseAPIException)
async def handle_api_error(request: Request, exc: BaseAPIException):
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return error_response(request, exc.status_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.warning(f"Validation failed on {request.method} {request.url.path}: {errors}")
    return error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", {"errors": errors})


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}", exc_info=exc)
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "A database error occurred. Please try again later.",
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.critical(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred.")


@app.get("/health")
def health_check():
    """Liveness plus database and audit store readiness"""
    database = {"ok": True, "error": None}
    store = StoreStatus.ABSENT
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        store = record_store_status(db)
    except SQLAlchemyError as exc:
        database = {"ok": False, "error": str(exc)}
    finally:
        db.close()

    return {
        "status": "healthy" if database["ok"] else "degraded",
        "version": settings.APP_VERSION,
        "timestamp": datetime.utcnow().isoformat(),
        "readiness": {"database": database, "audit_store": store.value},
    }


@app.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs" if settings.DEBUG else "disabled",
    }


API_ROUTERS = [
    (auth.router, "auth", "Authentication"),
    (users.router, "users", "Users"),
    (admin.router, "admin", "Admin"),
    (audit.router, "audit", "Audit"),
    (orders.router, "orders", "Orders"),
    (products.router, "products", "Products"),
]
for router, prefix, tag in API_ROUTERS:
    app.include_router(router, prefix=f"/api/v1/{prefix}", tags=[tag])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "admin_audit.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS
    )
