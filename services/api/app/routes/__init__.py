"""API routes."""

from fastapi import APIRouter

from app.routes import me, packages, presets, tags
from app.schemas import ERROR_RESPONSES

api_router = APIRouter(responses=ERROR_RESPONSES)

# Caller profile
api_router.include_router(me.router, prefix="/v1/me", tags=["me"])

# Presets and likes
api_router.include_router(presets.router, prefix="/v1/presets", tags=["presets"])

# Package catalog
api_router.include_router(packages.router, prefix="/v1/packages", tags=["packages"])

# Category tags
api_router.include_router(tags.router, prefix="/v1/tags", tags=["tags"])
