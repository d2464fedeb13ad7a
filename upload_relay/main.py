"""Main application module for the upload relay service."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from upload_relay.api.middlewares.ray_id import ray_id_middleware
from upload_relay.api.upload import router as upload_router
from upload_relay.api.upload_blob import router as upload_blob_router
from upload_relay.api.upload_chunk import router as upload_chunk_router
from upload_relay.api.upload_large import router as upload_large_router
from upload_relay.config import Config
from upload_relay.config import get_config
from upload_relay.errors import UploadRelayError
from upload_relay.errors import unhandled_error_handler
from upload_relay.errors import upload_relay_error_handler
from upload_relay.logging_config import setup_loki_logging
from upload_relay.services.assembler import get_assembler
from upload_relay.services.dispatcher import ProcessingDispatcher
from upload_relay.services.object_store import ObjectStore
from upload_relay.services.s3_object_store import S3ObjectStore


logger = logging.getLogger(__name__)


def create_backend_client(config: Config) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        # The dispatcher enforces the overall deadline; this only bounds individual phases
        timeout=httpx.Timeout(config.backend_timeout_seconds, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        follow_redirects=False,
    )


def wire_services(app: FastAPI, object_store: ObjectStore, backend_client: httpx.AsyncClient) -> None:
    config: Config = app.state.config
    app.state.object_store = object_store
    app.state.backend_client = backend_client
    app.state.assembler = get_assembler(config.chunk_assembly_strategy, object_store, config.chunk_key_prefix)
    app.state.dispatcher = ProcessingDispatcher(object_store, backend_client, config.backend_timeout_seconds)
    logger.info(f"Services wired: assembly strategy={config.chunk_assembly_strategy}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the storage adapter and backend client unless they were injected."""
    owned_store: S3ObjectStore | None = None
    owned_client: httpx.AsyncClient | None = getattr(app.state, "owned_backend_client", None)
    try:
        if getattr(app.state, "object_store", None) is None:
            config: Config = app.state.config
            owned_store = S3ObjectStore.from_config(config)
            owned_client = create_backend_client(config)
            wire_services(app, owned_store, owned_client)
            logger.info(f"S3 object store initialized: bucket={config.s3_bucket}")

        yield

    finally:
        if owned_client is not None:
            try:
                await owned_client.aclose()
                logger.info("Backend client closed")
            except Exception:
                logger.exception("Error shutting down backend client")

        if owned_store is not None:
            try:
                await owned_store.close()
                logger.info("Object store closed")
            except Exception:
                logger.exception("Error shutting down object store")


def factory(
    config: Config | None = None,
    object_store: ObjectStore | None = None,
    backend_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Factory function to create and configure the FastAPI application.

    ``object_store`` and ``backend_client`` may be injected (tests, embedding);
    otherwise they are created from configuration on startup.
    """
    load_dotenv()
    config = config or get_config()
    setup_loki_logging(config, "upload-relay")

    app = FastAPI(
        title="Upload Relay",
        description="Relays browser uploads through transient object storage to the processing backend",
        docs_url="/docs" if config.enable_api_docs else None,
        redoc_url="/redoc" if config.enable_api_docs else None,
        lifespan=lifespan,
        debug=config.debug,
    )
    app.state.config = config
    app.state.object_store = None
    app.state.owned_backend_client = None

    if object_store is not None:
        if backend_client is None:
            backend_client = app.state.owned_backend_client = create_backend_client(config)
        wire_services(app, object_store, backend_client)

    app.middleware("http")(ray_id_middleware)
    app.add_exception_handler(UploadRelayError, upload_relay_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health", include_in_schema=False, response_class=JSONResponse)
    async def health():
        """Health check endpoint for monitoring."""
        return JSONResponse(content={"status": "healthy"})

    app.include_router(upload_router, prefix="")
    app.include_router(upload_large_router, prefix="")
    app.include_router(upload_chunk_router, prefix="")
    app.include_router(upload_blob_router, prefix="")

    return app


app = factory()
