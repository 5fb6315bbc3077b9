"""
Front Desk Console - live walk-in queue for clinic assistants

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import Database
from .exceptions import LedgerUnavailable, ScopeNotSelected, SubscriptionFault, WriteRejected
from .routers import console_router
from .services.front_desk import FrontDeskConsole
from .services.memory_store import InMemoryQueueStore
from .services.mongo_store import MongoChangeFeed, MongoQueueStore

settings = get_settings()
logger = logging.getLogger("frontdesk")


async def create_console(settings) -> FrontDeskConsole:
    """Build the console on the configured primary store."""
    if settings.STORE_BACKEND == "memory":
        store = InMemoryQueueStore(message_backlog=settings.MESSAGE_BACKLOG)
        return FrontDeskConsole.from_settings(settings, store=store, feed=store)

    await Database.connect()
    return FrontDeskConsole.from_settings(
        settings,
        store=MongoQueueStore(Database.db),
        feed=MongoChangeFeed(Database.db, message_backlog=settings.MESSAGE_BACKLOG),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)

    # A console may be installed beforehand (embedding application, tests)
    owns_console = getattr(app.state, "console", None) is None
    if owns_console:
        app.state.console = await create_console(settings)
    await app.state.console.start()

    yield

    # Shutdown
    await app.state.console.close()
    if owns_console:
        app.state.console = None
    await Database.disconnect()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Trace Middleware
@app.middleware("http")
async def trace_middleware(request: Request, call_next):
    logger.debug("INCOMING %s %s", request.method, request.url.path)
    response = await call_next(request)
    logger.debug("OUTGOING %s %s -> %s", request.method, request.url.path, response.status_code)
    return response


@app.exception_handler(WriteRejected)
async def write_rejected_handler(request: Request, exc: WriteRejected):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": exc.detail, "entry_id": exc.entry_id}
    )


@app.exception_handler(ScopeNotSelected)
async def scope_not_selected_handler(request: Request, exc: ScopeNotSelected):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(SubscriptionFault)
async def subscription_fault_handler(request: Request, exc: SubscriptionFault):
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


@app.exception_handler(LedgerUnavailable)
async def ledger_unavailable_handler(request: Request, exc: LedgerUnavailable):
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


# Include routers
app.include_router(console_router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - health check."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    console = getattr(app.state, "console", None)
    scope = console.synchronizer.scope if console else None
    return {
        "status": "healthy",
        "store": settings.STORE_BACKEND,
        "database": "connected" if Database.client else "disconnected",
        "scope": scope.key if scope else None,
        "subscription_fault": str(console.synchronizer.fault) if console and console.synchronizer.fault else None,
        "message_fault": str(console.synchronizer.message_fault) if console and console.synchronizer.message_fault else None,
        "pending_secondary_writes": console.runner.pending if console else 0,
        "dropped_secondary_writes": len(console.runner.failures) if console else 0,
        "version": settings.APP_VERSION
    }


# Entry point for running directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "frontdesk.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
