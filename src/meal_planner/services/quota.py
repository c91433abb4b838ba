"""Durable per-user daily quota with an admin kill switch."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol

from meal_planner.domain.quota import QuotaStatus
from meal_planner.errors import DisabledForUserError, QuotaExceededError

_logger = logging.getLogger(__name__)


class QuotaRepository(Protocol):
    """Persistence interface for quota counters and the kill switch."""

    def ensure_user(self, user_id: str) -> bool:
        """Create the user with AI enabled if missing and return the flag."""

    def set_ai_enabled(self, user_id: str, enabled: bool) -> None:
        """Set the per-user kill switch."""

    def consume_call(self, user_id: str, usage_date: date, daily_limit: int) -> int | None:
        """Atomically increment the counter if below the limit.

        Returns the count after incrementing, or None when the limit is reached.
        """

    def get_calls_used(self, user_id: str, usage_date: date) -> int:
        """Return calls already used on a date."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def next_utc_midnight(now: datetime) -> datetime:
    """Return the start of the next UTC day."""
    tomorrow = now.astimezone(UTC).date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=UTC)


def _usage_date(now: datetime) -> date:
    """Counters roll over at UTC midnight, matching ``next_utc_midnight``."""
    return now.astimezone(UTC).date()


@dataclass
class QuotaGuard:
    """Gate generation calls on the durable daily counter."""

    repository: QuotaRepository
    daily_limit: int = 100
    clock: Callable[[], datetime] = _utc_now

    async def check_and_consume(self, user_id: str) -> QuotaStatus:
        """Consume one call or raise DisabledForUserError / QuotaExceededError."""
        now = self.clock()
        enabled = await asyncio.to_thread(self.repository.ensure_user, user_id)
        if not enabled:
            raise DisabledForUserError("AI generation is disabled for this account.")

        if self.daily_limit > 0:
            used = await asyncio.to_thread(
                self.repository.consume_call, user_id, _usage_date(now), self.daily_limit
            )
        else:
            used = None
        resets_at = next_utc_midnight(now)
        if used is None:
            _logger.info("Daily quota exhausted: user=%s limit=%s", user_id, self.daily_limit)
            raise QuotaExceededError(
                f"Daily limit of {self.daily_limit} generations reached. "
                f"Try again after {resets_at.isoformat()}.",
                resets_at=resets_at,
            )
        return QuotaStatus(
            remaining=max(0, self.daily_limit - used),
            daily_limit=self.daily_limit,
            resets_at=resets_at,
        )

    async def status(self, user_id: str) -> QuotaStatus:
        """Return the user's remaining calls without consuming one."""
        now = self.clock()
        used = await asyncio.to_thread(self.repository.get_calls_used, user_id, _usage_date(now))
        return QuotaStatus(
            remaining=max(0, self.daily_limit - used),
            daily_limit=self.daily_limit,
            resets_at=next_utc_midnight(now),
        )

    async def set_ai_enabled(self, user_id: str, enabled: bool) -> None:
        """Flip the admin kill switch for a user."""
        await asyncio.to_thread(self.repository.set_ai_enabled, user_id, enabled)
        _logger.info("AI generation %s for user=%s", "enabled" if enabled else "disabled", user_id)
