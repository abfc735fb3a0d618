from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi_pagination import add_pagination

from swapchat.config import get_settings
from swapchat.core.app_state import AppState
from swapchat.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    NotParticipantError,
    SwapChatError,
    TransportError,
    ValidationError,
)
from swapchat.infra.logging_config import configure_logging, get_logger
from swapchat.routers import (
    chat_rooms_router,
    notifications_router,
    ratings_router,
    swap_requests_router,
    system,
)

logger = get_logger("main")

# Most specific first; NotParticipantError is a ValidationError.
ERROR_STATUS_CODES = (
    (NotParticipantError, 403),
    (ValidationError, 400),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (InvalidStateError, 409),
    (TransportError, 503),
)


async def swapchat_error_handler(request: Request, exc: SwapChatError) -> JSONResponse:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            break
    else:
        status_code = 500
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(testing: bool = False, app_state: Optional[AppState] = None) -> FastAPI:
    """
    Build the API application.

    app_state is the process-scoped connection handle; one is created when
    not given. It is initialised on startup and torn down on shutdown.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    state = app_state or AppState()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await state.init(settings)
        logger.info("%s started (%s)", settings.app_name, settings.environment)
        try:
            yield
        finally:
            await state.teardown()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.app_state = state

    app.include_router(swap_requests_router.router)
    app.include_router(chat_rooms_router.router)
    app.include_router(ratings_router.router)
    app.include_router(notifications_router.router)
    app.include_router(system.router)
    app.add_exception_handler(SwapChatError, swapchat_error_handler)
    add_pagination(app)

    if not testing:
        app.mount(
            "/storage",
            StaticFiles(directory=settings.storage_dir, check_dir=False),
            name="storage",
        )
    return app


app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run("swapchat.main:app", host="0.0.0.0", port=settings.port)
