"""Obfuscation job pipeline."""

from monlur.pipeline.job_pipeline import ObfuscationPipeline

__all__ = ["ObfuscationPipeline"]
