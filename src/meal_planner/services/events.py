"""Append-only analytics log of generation attempts."""

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Protocol

from meal_planner.domain.nutrition import MacroProfile
from meal_planner.domain.quota import GenerationEvent

_logger = logging.getLogger(__name__)


class GenerationEventRepository(Protocol):
    """Persistence interface for generation events."""

    def create_event(self, event: GenerationEvent) -> None:
        """Append one event row."""


def hash_input(payload: dict[str, object]) -> str:
    """Return a stable sha256 digest of a request payload."""
    canonical = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class GenerationEventLog:
    """Writes generation outcomes for analytics; never read back."""

    repository: GenerationEventRepository

    def record(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        operation: str,
        payload: dict[str, object],
        duration_ms: int,
        macros: MacroProfile | None = None,
        error_code: str | None = None,
    ) -> None:
        """Persist an event; write failures are logged and dropped."""
        event = GenerationEvent(
            user_id=user_id,
            operation=operation,
            input_hash=hash_input(payload),
            duration_ms=duration_ms,
            error_code=error_code,
            calories=None if macros is None else round(macros.calories),
            protein_g=None if macros is None else round(macros.protein_g, 1),
            carbs_g=None if macros is None else round(macros.carbs_g, 1),
            fat_g=None if macros is None else round(macros.fat_g, 1),
        )
        try:
            self.repository.create_event(event)
        except Exception:
            _logger.exception("Failed to record generation event: operation=%s", operation)
