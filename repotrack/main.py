"""
FastAPI backend for repository dependency tracking.
Main application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from repotrack import __version__
from repotrack.api import projects, repositories
from repotrack.config import Settings
from repotrack.services.broadcaster import Broadcaster, SocketIOBroadcaster, create_socket_server
from repotrack.services.indexing.client import IndexingClient
from repotrack.services.orchestrator import StatusOrchestrator
from repotrack.services.store.base import GraphStore
from repotrack.services.store.memory import InMemoryGraphStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> GraphStore:
    """PostgreSQL when APP_DATABASE_URL is set, in-memory otherwise."""
    if settings.database_url:
        from repotrack.services.store.postgres import PostgresGraphStore
        logger.info("Using PostgreSQL graph store")
        return PostgresGraphStore(settings.database_url)

    logger.warning("APP_DATABASE_URL not set; using in-memory graph store (data is lost on restart)")
    return InMemoryGraphStore()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[GraphStore] = None,
    indexing_client: Optional[IndexingClient] = None,
    broadcaster: Optional[Broadcaster] = None
) -> FastAPI:
    """
    Wire up the application.

    Any collaborator left as None is built from settings; tests pass fakes.
    """
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    store = store or build_store(settings)
    indexing_client = indexing_client or IndexingClient(settings.indexing_service_url)

    sio = None
    if broadcaster is None:
        sio = create_socket_server(cors_allowed_origins=[settings.frontend_origin])
        broadcaster = SocketIOBroadcaster(sio)

    orchestrator = StatusOrchestrator(store, indexing_client, broadcaster)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if hasattr(store, "open"):
            store.open()
        logger.info(f"Indexing server: {settings.indexing_service_url}")
        yield
        await orchestrator.shutdown()
        if hasattr(store, "close"):
            store.close()

    app = FastAPI(
        title="Repository Tracking API",
        description="Tracks repository dependencies and keeps indexing status in sync",
        version=__version__,
        lifespan=lifespan
    )

    # CORS middleware for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.store = store
    app.state.indexing_client = indexing_client
    app.state.orchestrator = orchestrator
    app.state.sio = sio

    # Rate limiting for the reindex endpoint
    app.state.limiter = repositories.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(projects.router)
    app.include_router(repositories.router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "Repository Tracking API",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "projects": "/api/projects",
                "repositories": "/api/repositories",
                "dependencies": "/api/dependencies",
                "graph": "/api/graph"
            }
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        try:
            store.ping()
            return {
                "status": "healthy",
                "store": "connected",
                "indexing_in_flight": orchestrator.in_flight
            }
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}

    return app


app = create_app()

# Socket.IO clients connect at /socket.io; everything else goes to FastAPI
asgi_app = socketio.ASGIApp(app.state.sio, other_asgi_app=app) if app.state.sio else app


if __name__ == "__main__":
    import uvicorn
    settings = app.state.settings
    print(f"Starting Repository Tracking API on port {settings.port}...")
    print(f"API docs available at: http://localhost:{settings.port}/docs")
    uvicorn.run(asgi_app, host="0.0.0.0", port=settings.port)
