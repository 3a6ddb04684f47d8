"""Supabase repository for nutrition documents."""

from dataclasses import dataclass

from supabase import Client

from calorie_tracker.api.schemas import NutritionDocumentModel
from calorie_tracker.domain.nutrition import NutritionDocument
from calorie_tracker.services.nutrition_documents import NutritionDocumentRepository

_TABLE = "nutrition_documents"


@dataclass
class SupabaseNutritionDocumentRepository(NutritionDocumentRepository):
    """Supabase implementation storing one JSON document per user."""

    client: Client

    def get_document(self, user_id: str) -> NutritionDocument | None:
        """Return the stored document for a user."""
        response = (
            self.client.table(_TABLE)
            .select("document,updated_at")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        payload = dict(row.get("document") or {})
        payload.setdefault("updatedAt", row.get("updated_at"))
        return NutritionDocumentModel.model_validate(payload).to_domain()

    def save_document(self, user_id: str, document: NutritionDocument) -> None:
        """Upsert the document keyed by user id."""
        payload = NutritionDocumentModel.from_domain(document).to_wire()
        self.client.table(_TABLE).upsert(
            {
                "user_id": user_id,
                "document": payload,
                "updated_at": payload.get("updatedAt"),
            },
            on_conflict="user_id",
        ).execute()
