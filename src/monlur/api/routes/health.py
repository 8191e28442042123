"""Health check endpoint."""

import time

from fastapi import APIRouter, Depends

from monlur.api.deps import get_pipeline
from monlur.api.schemas import HealthResponse
from monlur.pipeline import ObfuscationPipeline

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    pipeline: ObfuscationPipeline = Depends(get_pipeline),
) -> HealthResponse:
    """Return the health status of the application."""
    from monlur import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        engine=pipeline.engine.name,
        timestamp=int(time.time() * 1000),
    )
