"""Quota and generation event models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class QuotaStatus:
    """Remaining daily calls for a user."""

    remaining: int
    daily_limit: int
    resets_at: datetime


@dataclass(frozen=True)
class GenerationEvent:
    """Append-only analytics record of one generation attempt."""

    user_id: str
    operation: str
    input_hash: str
    duration_ms: int
    error_code: str | None = None
    calories: float | None = None
    protein_g: float | None = None
    carbs_g: float | None = None
    fat_g: float | None = None
