from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from loguru import logger

from contextcore.engine.errors import (
    NotInitializedError,
    SessionNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from contextcore.engine.factory import create_engine, create_state_store
from contextcore.engine.log import setup_logging
from contextcore.engine.settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)

    logger.info("Context engine starting (host={}, port={})", settings.host, settings.port)

    _app.state.engine = None

    store = create_state_store(settings)
    await store.connect()
    _app.state.engine = create_engine(store, settings)
    logger.info("Context engine: initialised (store={})", type(store).__name__)

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Context engine shutting down")
    await store.close()
    _app.state.engine = None


app = FastAPI(title="Context Engine", lifespan=lifespan)
app.state.engine = None


# ---------------------------------------------------------------------------
# Domain errors -> HTTP status.  Managers never raise HTTPException.
# ---------------------------------------------------------------------------


@app.exception_handler(SessionNotFoundError)
async def _session_not_found(_request: Request, exc: SessionNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def _invalid_input(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(StoreUnavailableError)
@app.exception_handler(NotInitializedError)
async def _store_unavailable(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("State store unavailable: {}", exc)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from contextcore.engine.routers.preferences import router as preferences_router  # noqa: E402
from contextcore.engine.routers.sessions import router as sessions_router  # noqa: E402

api.include_router(sessions_router)
api.include_router(preferences_router)

app.include_router(api)
