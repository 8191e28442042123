"""Obfuscation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from monlur.api.deps import get_pipeline
from monlur.api.schemas import ErrorResponse, ObfuscateRequest, ObfuscateResponse
from monlur.errors import (
    EmptyInput,
    EngineTimeout,
    EngineUnavailable,
    StorageUnavailable,
)
from monlur.pipeline import ObfuscationPipeline

router = APIRouter(tags=["obfuscate"])

ERROR_STATUS: dict[str, int] = {
    EmptyInput.kind: 400,
    EngineTimeout.kind: 504,
    EngineUnavailable.kind: 503,
    StorageUnavailable.kind: 503,
}


@router.post(
    "/obfuscate",
    response_model=ObfuscateResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def obfuscate(
    req: ObfuscateRequest,
    pipeline: ObfuscationPipeline = Depends(get_pipeline),
) -> ObfuscateResponse | JSONResponse:
    job = await pipeline.run(req.code, req.preset)

    if job.error is not None:
        status_code = ERROR_STATUS.get(job.error.kind, 500)
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=job.error.message, kind=job.error.kind).model_dump(),
        )

    result = job.result
    return ObfuscateResponse(
        code=result.code,
        preset=job.preset.value,
        processing_time=result.processing_time_ms,
        original_size=result.original_size,
        obfuscated_size=result.obfuscated_size,
    )
