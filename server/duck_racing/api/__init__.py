"""API routes aggregation."""

from fastapi import APIRouter, Depends

from duck_racing.api.admin import router as admin_router
from duck_racing.api.discord import router as discord_router
from duck_racing.api.races import router as races_router
from duck_racing.auth import require_api_token

api_router = APIRouter()

api_router.include_router(
    races_router,
    prefix="/channels",
    tags=["races"],
    dependencies=[Depends(require_api_token)],
)
api_router.include_router(
    admin_router,
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_api_token)],
)
# Authenticated by Discord's request signature instead of the API token
api_router.include_router(discord_router, prefix="/discord", tags=["discord"])
