import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nbn_lookup.api.routes import router
from nbn_lookup.config import settings
from nbn_lookup.exceptions import NbnLookupError
from nbn_lookup.pipeline.lookup_service import NbnLookupService

logger = logging.getLogger(__name__)


def create_app(service: NbnLookupService | None = None) -> FastAPI:
    """
    Build the API app.

    Args:
        service: Pre-built lookup service (tests inject one backed by a mock
            upstream). When omitted the lifespan builds one from settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = service is None
        if owned:
            settings.setup()
            try:
                app.state.service = NbnLookupService.from_settings(settings)
            except NbnLookupError as e:
                # Keep serving /health so the failure is visible
                logger.error("Failed to initialize lookup service: %s", e)
                app.state.service = None
        else:
            app.state.service = service

        if app.state.service is not None and settings.cache.sweep_on_startup:
            app.state.service.sweep_cache()

        yield

        if owned and app.state.service is not None:
            await app.state.service.aclose()

    app = FastAPI(
        title="NBN Lookup API",
        description="Per-address NBN connection technology for Australian suburbs, from cached snapshot data.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.get("/health")
    def health_check():
        """Simple health check endpoint."""
        return {"status": "healthy", "service_ready": app.state.service is not None}

    return app


app = create_app()
