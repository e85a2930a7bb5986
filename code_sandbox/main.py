from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import asyncio
import logging

from code_sandbox.config import settings
from code_sandbox.execution.errors import InfrastructureError
from code_sandbox.execution.service import SandboxService, get_sandbox_service
from code_sandbox.logging_config import configure_logging
from code_sandbox.observability.tracing import configure_tracing
from code_sandbox.routers import analysis, executions
from code_sandbox.schemas.execution import HealthResponse

VERSION = "1.0.0"

configure_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic"""
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    configure_tracing(settings)

    service = get_sandbox_service()
    try:
        await asyncio.to_thread(service.container_sandbox.remove_stale_containers)
    except InfrastructureError as e:
        logger.warning(f"Skipping stale container cleanup: {e}")

    yield

    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    description="Secure multi-language code execution sandbox",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global error handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc) if settings.DEBUG else "An error occurred"
        },
    )


# Health check
@app.get("/health")
async def health_check(service: SandboxService = Depends(get_sandbox_service)):
    checks = await asyncio.to_thread(service.health_report)
    healthy = bool(checks) and all(checks.values())
    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=VERSION,
        environment=settings.ENVIRONMENT,
        checks=checks,
    )
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump())


# Include API routers
app.include_router(
    executions.router,
    prefix=f"{settings.API_V1_PREFIX}/executions",
    tags=["executions"],
)
app.include_router(
    analysis.router,
    prefix=f"{settings.API_V1_PREFIX}/analysis",
    tags=["analysis"],
)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
