"""FastAPI application entry point.

Wires the store layer into a process: connects Redis on startup, brings the
search indexes up and exposes a health check. Business endpoints live with
the callers of the services, not here.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bookstore.services import BookService, CartService, UserService
from bookstore.settings import get_settings
from bookstore.stores.redis import close_redis, init_redis

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()

    # Initialize Redis (skip in tests if no Redis available)
    try:
        client = await init_redis()
    except Exception:
        logger.exception("Redis init failed")
    else:
        users = UserService(client)
        app.state.books = BookService(client)
        app.state.users = users
        app.state.carts = CartService(client, users)
        if settings.create_indexes_on_startup:
            await app.state.books.create_index()
            await app.state.carts.create_index()

    yield

    # Shutdown
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Redis-backed users, books and carts",
        lifespan=lifespan,
    )

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": str(exc) if settings.debug else "Internal server error",
                    "detail": None,
                }
            },
        )

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "bookstore.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
