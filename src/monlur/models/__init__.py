"""Data models for Mønlur."""

from monlur.models.job import Job, JobError, JobStatus, TransformResult
from monlur.models.preset import Preset

__all__ = [
    "Job",
    "JobError",
    "JobStatus",
    "Preset",
    "TransformResult",
]
