"""
FastAPI service carrying the MCP tool-invocation protocol over HTTP.

Serves the Streamable HTTP (/mcp) and legacy HTTP+SSE (/sse, /messages)
transports, plus the durable Session Store and Resource Cache sub-protocols.
"""

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from constants import SESSION_HEADER
from core.container import container
from core.config import Settings
from core.errors import install_exception_handlers
from core.health import get_health_status, set_startup_time
from core.logging import configure_logging, get_logger
from routers import cache, mcp, sessions

# Initialize settings and logging
settings = Settings()
configure_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    logger.info("Starting MCP calendar service")
    set_startup_time()

    await container.storage().startup()
    await container.cleanup().start()

    logger.info("Services started successfully",
                storage_backend=container.storage().backend,
                keep_alive_interval=container.settings().keep_alive_interval)
    yield

    # Shutdown: streams first so no timer outlives its binding
    closed = container.transport_manager().shutdown()
    logger.info("Transport bindings closed", count=closed)

    await container.cleanup().stop()
    await container.storage().shutdown()
    logger.info("Services shutdown complete")


app = FastAPI(
    title="MCP Nextcloud Calendar",
    version=settings.server_version,
    description="MCP session, transport and cache coordination service",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return ORJSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Internal server error"}
            )


install_exception_handlers(app)
app.add_middleware(CatchAllExceptionsMiddleware)

# Add CORS middleware (must be AFTER exception middleware)
logger.info("Configuring CORS middleware",
           origins_count=len(settings.cors_origins),
           origins=settings.cors_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[SESSION_HEADER, "X-Cache", "X-Cache-Age"],
)

# Include routers
app.include_router(mcp.router)
app.include_router(sessions.router)
app.include_router(cache.router)


@app.get("/health")
async def health_check():
    """Detailed health check."""
    report = await get_health_status(
        container.storage(),
        container.transport_manager(),
        container.settings(),
    )
    report["timestamp"] = datetime.now().isoformat()
    return report


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting MCP calendar service",
               host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_dirs=["."] if settings.debug else None,
        reload_excludes=["*.pyc", "__pycache__", "*.log", "*.db"] if settings.debug else None,
        workers=1 if settings.debug else settings.workers
    )
