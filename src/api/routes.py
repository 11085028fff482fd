"""FastAPI routes exposed by the service."""

from __future__ import annotations

from fastapi import APIRouter

from api.outbound_routes import router as outbound_router

router = APIRouter()


@router.get("/", tags=["health"])
async def health() -> dict[str, str]:
    return {"message": "Server is running"}


router.include_router(outbound_router)
