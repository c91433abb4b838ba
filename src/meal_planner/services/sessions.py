"""Short-lived registry of background weekly generation runs."""

import asyncio
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

from meal_planner.domain.plans import WeeklyPlan
from meal_planner.errors import PlanningError
from meal_planner.services.progress import ProgressTracker


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class GenerationSession:
    """One weekly batch that callers can poll or cancel."""

    session_id: str
    user_id: str
    week_start_date: date
    tracker: ProgressTracker
    created_at: datetime
    cancel_event: threading.Event = field(default_factory=threading.Event)
    task: "asyncio.Task[None] | None" = None
    result: WeeklyPlan | None = None
    error: PlanningError | None = None

    def cancel(self) -> None:
        """Ask the batch to stop before its next day."""
        self.cancel_event.set()


class GenerationSessionStore:
    """Thread-safe in-memory session map; entries are removed by cleanup."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, GenerationSession] = {}

    def create(
        self, user_id: str, week_start_date: date, tracker: ProgressTracker
    ) -> GenerationSession:
        session = GenerationSession(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            week_start_date=week_start_date,
            tracker=tracker,
            created_at=self._clock(),
        )
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> GenerationSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> GenerationSession | None:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def list_sessions(self) -> list[GenerationSession]:
        with self._lock:
            return list(self._sessions.values())

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def cleanup_older_than(self, max_age_seconds: int = 3600) -> int:
        """Drop sessions older than the age limit and return how many went."""
        cutoff = self._clock() - timedelta(seconds=max_age_seconds)
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.created_at < cutoff
            ]
            for session_id in expired:
                session = self._sessions.pop(session_id)
                session.cancel()
        return len(expired)
