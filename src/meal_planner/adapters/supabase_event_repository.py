"""Supabase repository for generation events."""

from dataclasses import asdict, dataclass

from supabase import Client

from meal_planner.domain.quota import GenerationEvent
from meal_planner.services.events import GenerationEventRepository


@dataclass
class SupabaseGenerationEventRepository(GenerationEventRepository):
    """Supabase-backed generation event repository."""

    client: Client

    def create_event(self, event: GenerationEvent) -> None:
        """Insert a generation event row."""
        self.client.table("generation_events").insert(asdict(event)).execute()
