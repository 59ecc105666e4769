"""
Ephemeral Pastebin - FastAPI application factory and server entrypoint.
"""
import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pastebin.config import Settings
from pastebin.database import InMemoryStore, RecordStore, open_store
from pastebin.errors import InvalidInput, NotFound, StoreUnavailable
from pastebin.ids import generate_id
from pastebin.routes import health, pastes
from pastebin.service import PasteService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidInput)
    async def invalid_input(request: Request, exc: InvalidInput):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if not errors:
            return JSONResponse(status_code=400, content={"error": "invalid request body"})
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "invalid value")
        if field:
            message = f"{field}: {message}"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound):
        logger.info(f"404 for paste {exc.paste_id} ({exc.reason.value})")
        return JSONResponse(status_code=404, content={"error": "not found"})

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable(request: Request, exc: StoreUnavailable):
        logger.error(f"Store unavailable: {exc}")
        return JSONResponse(status_code=503, content={"error": "store unavailable"})


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    clock=None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings, read from the environment if omitted
        store: Record store to use, connected from settings if omitted
        clock: Clock source for the service (system clock if omitted)

    Returns:
        Configured FastAPI app
    """
    if settings is None:
        settings = Settings.from_env()
        configure_logging(settings.LOG_LEVEL)
    if store is None:
        store = open_store(settings)

    service = PasteService(
        store,
        clock=clock,
        id_generator=partial(generate_id, settings.PASTE_ID_LENGTH),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Pastebin application starting...")
        if isinstance(store, InMemoryStore):
            logger.warning("DATABASE: Using IN-MEMORY storage (Redis not available)")
            logger.warning("   Data will NOT persist across server restarts!")
        else:
            logger.info("DATABASE: Connected to Redis")
        if settings.TEST_MODE:
            logger.warning("TEST_MODE enabled: x-test-now-ms header overrides the clock")
        yield
        logger.info("Pastebin application shutting down...")
        store.close()

    app = FastAPI(
        title="Ephemeral Pastebin",
        description="Share text that self-destructs after a deadline or a number of views",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(pastes.router)
    return app


def main() -> None:
    """Run the server with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "pastebin.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    main()
