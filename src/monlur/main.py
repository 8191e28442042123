"""Main entry point for the Mønlur service."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from monlur import __version__
from monlur.api.deps import init_pipeline, reset_pipeline
from monlur.api.middleware import install_error_handlers, install_middleware
from monlur.api.routes import health, obfuscate
from monlur.config import Settings, settings
from monlur.logging_config import configure_logging


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Build the pipeline and run the workspace sweep while serving."""
        app_settings.ensure_directories()
        pipeline = init_pipeline(app_settings)
        pipeline.workspaces.start()
        try:
            yield
        finally:
            await pipeline.workspaces.stop()
            reset_pipeline()

    app = FastAPI(
        title="Mønlur Obfuscator",
        description="Lua source obfuscation service",
        version=__version__,
        lifespan=lifespan,
    )

    install_middleware(app, app_settings)
    install_error_handlers(app)

    app.include_router(health.router)
    app.include_router(obfuscate.router)

    return app


app = create_app()


def main() -> None:
    """Run the application."""
    configure_logging(settings.log_level)
    settings.ensure_directories()
    uvicorn.run(
        "monlur.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
