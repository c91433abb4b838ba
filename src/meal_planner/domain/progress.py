"""Weekly generation progress models."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum


class GenerationPhase(StrEnum):
    """Phases of a weekly batch, in order."""

    INITIALIZING = "initializing"
    GENERATING_DAYS = "generating_days"
    AUTO_FIXING = "auto_fixing"
    VALIDATING = "validating"
    COMPLETE = "complete"
    ERROR = "error"


PHASE_ORDER: tuple[GenerationPhase, ...] = (
    GenerationPhase.INITIALIZING,
    GenerationPhase.GENERATING_DAYS,
    GenerationPhase.AUTO_FIXING,
    GenerationPhase.VALIDATING,
    GenerationPhase.COMPLETE,
)

TERMINAL_PHASES = frozenset({GenerationPhase.COMPLETE, GenerationPhase.ERROR})


class FixMethod(StrEnum):
    """How a day was brought toward its targets."""

    NONE = "none"
    SCALING = "scaling"
    REGENERATION = "regeneration"
    FAILED = "failed"


@dataclass(frozen=True)
class DayFixResult:
    """Repair outcome for one day."""

    date: date
    method: FixMethod
    original_out_of_range: bool
    fixed_in_range: bool
    attempt_count: int | None = None


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time view of a weekly batch."""

    phase: GenerationPhase
    days_generated: int
    days_auto_fixed: int
    total_days: int
    days_within_tolerance_first_pass: int
    days_fixed_by_scaling: int
    days_fixed_by_regeneration: int
    days_still_out_of_range: int
    auto_fix_results: tuple[DayFixResult, ...]
    started_at: datetime
    ended_at: datetime | None
    error: str | None
    quality_summary: str
