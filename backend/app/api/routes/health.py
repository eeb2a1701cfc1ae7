from fastapi import APIRouter, Depends

from app.core.config import settings
from app.dependencies import ServiceContainer, get_container

router = APIRouter()

@router.get("/health")
async def health_check(container: ServiceContainer = Depends(get_container)):
    """Health check endpoint."""
    body = {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "ai_configured": container.ai_service is not None,
        "embeddings": await container.vector_repository.count(),
    }
    cache = getattr(container.ai_service, "embedding_cache", None)
    if cache is not None:
        body["embedding_cache"] = cache.stats()
    return body

@router.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}
