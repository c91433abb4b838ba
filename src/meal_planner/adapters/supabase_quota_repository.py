"""Supabase-backed quota repository."""

from dataclasses import dataclass
from datetime import date

from supabase import Client

from meal_planner.services.quota import QuotaRepository


@dataclass
class SupabaseQuotaRepository(QuotaRepository):
    """Quota counters and kill switch stored in Supabase."""

    client: Client

    def ensure_user(self, user_id: str) -> bool:
        """Return the AI flag, creating the user row when missing."""
        response = (
            self.client.table("ai_users")
            .select("id, ai_enabled")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if response.data:
            return bool(response.data[0]["ai_enabled"])
        self.client.table("ai_users").upsert(
            {"id": user_id, "ai_enabled": True},
            on_conflict="id",
            ignore_duplicates=True,
        ).execute()
        return True

    def set_ai_enabled(self, user_id: str, enabled: bool) -> None:
        """Upsert the kill switch for a user."""
        self.client.table("ai_users").upsert(
            {"id": user_id, "ai_enabled": enabled}, on_conflict="id"
        ).execute()

    def consume_call(self, user_id: str, usage_date: date, daily_limit: int) -> int | None:
        """Increment today's counter through a single-statement RPC."""
        response = self.client.rpc(
            "consume_ai_quota",
            {
                "p_user_id": user_id,
                "p_usage_date": usage_date.isoformat(),
                "p_daily_limit": daily_limit,
            },
        ).execute()
        return _scalar(response.data)

    def get_calls_used(self, user_id: str, usage_date: date) -> int:
        """Return the stored counter for a date, zero if no row exists."""
        response = (
            self.client.table("ai_usage_daily")
            .select("calls_used")
            .eq("user_id", user_id)
            .eq("usage_date", usage_date.isoformat())
            .limit(1)
            .execute()
        )
        if not response.data:
            return 0
        return int(response.data[0]["calls_used"])


def _scalar(data: object) -> int | None:
    """Unwrap an RPC result that may arrive bare or wrapped in a row."""
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        data = next(iter(data.values()), None)
    if data is None:
        return None
    return int(data)
