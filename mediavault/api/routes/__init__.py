"""MediaVault API Routes.

Provides modular routing for different API endpoints.
"""

from mediavault.api.routes.health import router as health_router
from mediavault.api.routes.images import router as images_router
from mediavault.api.routes.upload import router as upload_router

__all__ = ["health_router", "images_router", "upload_router"]
