"""Main FastAPI application"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from app.core.config import settings
from app.core.exceptions import PanelError, ValidationError
from app.core.init import init_system
from app.core.logging_config import setup_logging
from app.core.redis import redis_client
from app.tasks.scheduler import ReconcileSupervisor

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    await redis_client.connect()
    await init_system()
    supervisor = ReconcileSupervisor.from_settings(settings)
    app.state.supervisor = supervisor
    if settings.RECONCILE_BACKEND == "inprocess":
        supervisor.start_sweep()
    yield
    # Shutdown
    await supervisor.shutdown()
    await redis_client.disconnect()


app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PanelError)
async def panel_error_handler(request: Request, exc: PanelError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    )
    error = ValidationError(f"Invalid request: {details}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Import and include routers
from app.api.v1 import domains, optimized_endpoints, certificates, providers

# API routes
app.include_router(domains.router, prefix="/api/v1/domains", tags=["domains"])
app.include_router(optimized_endpoints.router, prefix="/api/v1/optimized-endpoints", tags=["optimized-endpoints"])
app.include_router(certificates.router, prefix="/api/v1/certificates", tags=["certificates"])
app.include_router(providers.router, prefix="/api/v1/providers", tags=["providers"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}
