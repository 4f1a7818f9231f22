from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from api.dependencies import Services
from api.errors import register_error_handlers
from api.routes.commits import router as commits_router
from api.routes.contexts import router as contexts_router
from api.routes.health import router as health_router
from api.routes.repos import router as repos_router
from config.models import Config
from core.commit.builder import AtomicCommitBuilder
from core.context.sweeper import ContextSweeper
from core.contracts.object_store import ObjectStoreClient
from core.contracts.store import ContextStore
from core.router import get_context_store, get_object_store
from utils.logger import logger


def create_app(
    config: Optional[Config] = None,
    store: Optional[ContextStore] = None,
    object_store: Optional[ObjectStoreClient] = None,
) -> FastAPI:
    """
    Builds the HTTP application.

    The store and object store are created from the config unless given,
    which lets tests inject in-memory backends.
    """
    config = config or Config()
    store = store if store is not None else get_context_store(config.context_store)
    object_store = object_store if object_store is not None else get_object_store(config.object_store)
    services = Services(
        config=config,
        store=store,
        object_store=object_store,
        builder=AtomicCommitBuilder(object_store),
        sweeper=ContextSweeper(store, config.context_store.sweep_interval_sec),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.sweeper.start()
        logger.info(f"ctxcommit ready (object store: {config.object_store.provider})")
        try:
            yield
        finally:
            await services.sweeper.stop()
            await services.object_store.aclose()
            logger.info("ctxcommit stopped")

    app = FastAPI(
        title="ctxcommit",
        description="Session-scoped file contexts and atomic multi-file commits to hosted Git repositories.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(contexts_router)
    app.include_router(commits_router)
    app.include_router(repos_router)
    return app
