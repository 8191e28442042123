"""Request and response schemas for the Mønlur API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class ObfuscateRequest(BaseModel):
    code: StrictStr = Field(..., description="Lua source to obfuscate")
    # Any value is accepted; unknown presets fall back to Medium
    preset: Any = Field(None, description="Weak, Medium, Strong or Minify")


class ObfuscateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    code: str
    preset: str
    processing_time: int = Field(..., alias="processingTime")
    original_size: int = Field(..., alias="originalSize")
    obfuscated_size: int = Field(..., alias="obfuscatedSize")


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    kind: str | None = None


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    engine: str
    timestamp: int
