"""Main FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cardstack.api import cards, chat, collections, decks
from cardstack.core.config import get_settings
from cardstack.core.logging_config import get_logger, setup_logging
from cardstack.middleware.logging_middleware import REQUEST_ID_HEADER, RequestLoggingMiddleware
from cardstack.services.database import dispose_database, init_database

VERSION = "0.1.0"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    setup_logging(log_level=settings.log_level, enable_file=settings.log_to_file)
    init_database()
    logger.info("CardStack API started", extra={"extra_data": {"version": VERSION}})
    yield
    dispose_database()


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 Bad Request."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def create_app() -> FastAPI:
    """Build the API application with middleware and routers."""
    settings = get_settings()

    app = FastAPI(
        title="CardStack API",
        description="Flashcard decks, collections and an AI study assistant",
        version=VERSION,
        lifespan=lifespan,
    )

    # Request logging (added first so it wraps everything)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(decks.router, prefix="/api/decks", tags=["decks"])
    app.include_router(collections.router, prefix="/api/collections", tags=["collections"])
    app.include_router(cards.router, prefix="/api/cards", tags=["cards"])
    app.include_router(chat.router, prefix="/api/chat", tags=["chat"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "CardStack API",
            "version": VERSION,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
