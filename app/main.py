from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
import structlog

from app.shared.core.config import get_settings
from app.shared.core.exceptions import CloudLensException
from app.shared.core.logging import setup_logging
from app.shared.core.middleware import RequestIDMiddleware
from app.shared.core.tracing import setup_tracing
from app.modules.inventory.api.v1.instances import router as inventory_router
from app.modules.monitoring.api.v1.metrics import router as monitoring_router
from app.modules.reporting.api.v1.billing import router as billing_router
from app.modules.governance.api.v1.organizations import router as organizations_router

# Configure logging
setup_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("app_starting", app=settings.APP_NAME, environment=settings.ENVIRONMENT)
    yield
    logger.info("app_stopping", app=settings.APP_NAME)


settings = get_settings()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan)

setup_tracing(app)

# Initialize Prometheus Metrics
Instrumentator().instrument(app).expose(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIDMiddleware)


@app.exception_handler(CloudLensException)
async def cloudlens_exception_handler(request: Request, exc: CloudLensException):
    logger.warning(
        "request_failed",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": exc.message, "details": exc.details},
    )


app.include_router(inventory_router, prefix="/inventory")
app.include_router(monitoring_router, prefix="/monitoring")
app.include_router(billing_router, prefix="/billing")
app.include_router(organizations_router, prefix="/organizations")


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "app": settings.APP_NAME,
        "version": settings.VERSION,
    }
