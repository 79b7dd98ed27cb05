"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from folio.api.routes.documents import router as documents_router
from folio.api.routes.health import router as health_router
from folio.api.routes.public import router as public_router
from folio.api.routes.publications import router as publications_router
from folio.api.routes.spaces import router as spaces_router


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(spaces_router, tags=["spaces"])
    api_router.include_router(documents_router, tags=["documents"])
    api_router.include_router(publications_router, tags=["publications"])
    api_router.include_router(public_router, tags=["public"])
    return api_router


__all__ = ["create_api_router"]
