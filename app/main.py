from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import api
from app.api import include_routers
from app.core.config import settings
from app.core.logging import setup_logging, get_logger
from app.database import init_databases, close_databases
from app.database.mysql import AsyncSessionLocal
from app.infrastructure.cache import create_cache
from app.infrastructure.event_bus import create_event_bus
from app.middleware.error_handler import (
    ErrorHandlerMiddleware,
    create_http_exception_handler,
    create_validation_exception_handler
)
from app.middleware.logging_middleware import LoggingMiddleware
from app.websockets import ConnectionManager, InboxPushSubscriber

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_databases()

    cache = create_cache()
    event_bus = create_event_bus()
    await event_bus.start()

    manager = ConnectionManager()
    subscriber = InboxPushSubscriber(manager, AsyncSessionLocal, cache, event_bus)
    subscriber.register()

    app.state.cache = cache
    app.state.event_bus = event_bus
    app.state.connection_manager = manager
    app.state.session_factory = AsyncSessionLocal
    logger.info(
        f"Swap inbox service started (cache={settings.cache_backend}, event_bus={settings.event_bus_backend})"
    )

    yield

    # Shutdown
    subscriber.unregister()
    await event_bus.stop()
    await close_databases()


app = FastAPI(title="Swap Inbox API", lifespan=lifespan)
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(StarletteHTTPException, create_http_exception_handler())
app.add_exception_handler(RequestValidationError, create_validation_exception_handler())

# Include routers
include_routers(app, "api", api.__path__)


@app.get("/")
async def root():
    return {"service": "swap-inbox", "status": "running"}
