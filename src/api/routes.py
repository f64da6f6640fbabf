"""FastAPI routes exposing the voice bridge."""

from __future__ import annotations

from fastapi import APIRouter

from api.schemas import HealthResponse
from api.twilio_routes import router as twilio_router

router = APIRouter()
router.include_router(twilio_router)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()
