"""
Health check endpoint.
"""
from pydantic import BaseModel
from fastapi import APIRouter, Depends

from speechtask.config import APP_VERSION
from speechtask.routers.dependencies import get_provider
from speechtask.services.provider_client import SpeechProviderClient


router = APIRouter(tags=['health'])


class HealthResponse(BaseModel):
    """Health check response schema."""
    status: str
    provider_configured: bool
    version: str


@router.get('/health', response_model=HealthResponse)
async def health_check(provider: SpeechProviderClient = Depends(get_provider)) -> HealthResponse:
    """
    Check server health status.

    Fast response - no database queries.
    """
    return HealthResponse(
        status='ok',
        provider_configured=provider.is_configured,
        version=APP_VERSION,
    )
