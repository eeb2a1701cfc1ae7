from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import chat, customers, embeddings, health, products
from app.core.config import settings
from app.core.exceptions import register_exception_handlers
from app.core.logging import get_logger
from app.dependencies import ServiceContainer, build_default_container

logger = get_logger(__name__)


def _allowed_origins() -> list[str]:
    allowed_origins = ["http://localhost:5173", "http://localhost:8080", "http://localhost:3000"]
    if settings.ALLOWED_ORIGINS and settings.ALLOWED_ORIGINS != "*":
        allowed_origins = [origin.strip() for origin in settings.ALLOWED_ORIGINS.split(",")] + allowed_origins
    elif settings.ALLOWED_ORIGINS == "*":
        allowed_origins = ["*"]
    return allowed_origins


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the API application.

    A prepared container can be passed in (tests do this); otherwise one is
    wired from settings at startup and disposed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = container is None
        app.state.container = container or build_default_container()
        logger.info(f"{settings.PROJECT_NAME} is starting up...")
        yield
        if owned:
            await app.state.container.close()
        logger.info(f"{settings.PROJECT_NAME} shut down")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(health, tags=["Health"])
    app.include_router(chat, prefix=f"{settings.API_V1_STR}/chat", tags=["Chat"])
    app.include_router(customers, prefix=f"{settings.API_V1_STR}/customers", tags=["Customers"])
    app.include_router(embeddings, prefix=f"{settings.API_V1_STR}/embeddings", tags=["Embeddings"])
    app.include_router(products, prefix=f"{settings.API_V1_STR}/products", tags=["Products"])
    return app


app = create_app()
