from contextlib import asynccontextmanager

from fastapi import FastAPI

from history_replicator import __version__
from history_replicator.config.state import ConfigState, load_config
from history_replicator.infrastructure.observability import get_api_logger
from history_replicator.runtime import Runtime, build_runtime
from history_replicator.storage.query import ReadService
from history_replicator_api.errors import register_error_handlers
from history_replicator_api.health import router as health_router
from history_replicator_api.routes import intervals_router


def create_app(
    settings: ConfigState | None = None,
    runtime: Runtime | None = None,
    read_service: ReadService | None = None,
) -> FastAPI:
    """
    Build the read API.

    With neither ``runtime`` nor ``read_service`` the backends are connected
    on startup and closed on shutdown.
    """
    if read_service is None and runtime is not None:
        read_service = runtime.read_service

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: Runtime | None = None
        if read_service is None:
            owned = await build_runtime(settings or load_config())
            app.state.read_service = owned.read_service
        logger = get_api_logger()
        logger.info("api_started", stores=app.state.read_service.availability())
        try:
            yield
        finally:
            if owned is not None:
                await owned.close()

    app = FastAPI(title="History Replicator API", version=__version__, lifespan=lifespan)
    if read_service is not None:
        app.state.read_service = read_service

    register_error_handlers(app)
    app.include_router(health_router, prefix="")  # /health directly
    app.include_router(intervals_router)

    @app.get("/")
    async def root():
        return {"message": "History Replicator API is running"}

    return app


app = create_app()


if __name__ == "__main__":
    import sys

    from history_replicator.cli import main

    # host and port come from ApiConfig; global flags pass through
    sys.exit(main([*sys.argv[1:], "serve"]))
