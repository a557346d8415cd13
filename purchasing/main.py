from fastapi import FastAPI, Depends, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from purchasing.config import settings
from purchasing.database import init_db, close_db, get_db
from purchasing.errors import WorkflowError
from purchasing.logging_config import setup_logging
from purchasing.middleware.correlation import CorrelationIdMiddleware
from purchasing.services.locks import EntityLocks

# Import models so they are registered with Base.metadata
import purchasing.models  # noqa: F401

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("starting_purchasing", env=settings.ENVIRONMENT)
    await init_db()
    yield
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Per-process lock registry shared by all requests
app.state.entity_locks = EntityLocks(timeout=settings.LOCK_TIMEOUT_SECONDS)


# ---------------------------------------------------------------------------
# Global exception handlers: every error renders as
# {"error": {"code": "...", "message": "...", "details"?: ..., "retryable"?: true}}
# ---------------------------------------------------------------------------

@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "workflow_error",
        code=exc.code,
        message=exc.message,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, str):
        detail = {"error": {"code": "HTTP_ERROR", "message": detail}}
    elif isinstance(detail, dict) and "error" not in detail:
        detail = {"error": detail}
    return JSONResponse(status_code=exc.status_code, content=detail, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_encoder(exc.errors()),
            }
        },
    )


app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Request-ID"],
)


@app.get("/health", tags=["System"])
async def health(response: Response, db: AsyncSession = Depends(get_db)):
    health_status = {"status": "healthy", "version": settings.APP_VERSION, "checks": {}}

    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["db"] = "ok"
    except Exception as e:
        logger.error("health_check_db_failed", error=str(e))
        health_status["checks"]["db"] = "error"
        health_status["status"] = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    health_status["checks"]["entity_locks_held"] = len(app.state.entity_locks)
    return health_status


# --- Routers ---
from purchasing.routes.purchase_orders import router as po_router  # noqa: E402
from purchasing.routes.change_requests import router as change_requests_router  # noqa: E402
from purchasing.routes.vendors import router as vendors_router  # noqa: E402
from purchasing.routes.items import router as items_router  # noqa: E402
from purchasing.routes.audit_logs import router as audit_logs_router  # noqa: E402

app.include_router(po_router, prefix="/api/v1/purchase-orders", tags=["Purchase Orders"])
app.include_router(change_requests_router, prefix="/api/v1/change-requests", tags=["Change Requests"])
app.include_router(vendors_router, prefix="/api/v1/vendors", tags=["Vendors"])
app.include_router(items_router, prefix="/api/v1/items", tags=["Items"])
app.include_router(audit_logs_router, prefix="/api/v1/audit-logs", tags=["Audit Logs"])
