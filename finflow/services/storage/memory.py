"""In-memory state storage for tests and offline development."""

from typing import Optional

from pydantic import ValidationError

from finflow.models.ledger import AppState
from finflow.services.storage.interface import StateStorageInterface, StorageError


class InMemoryStateStorage(StateStorageInterface):
    """
    Keeps serialized documents in a dict keyed by user id.

    Documents are stored in their JSON form so that a load always goes
    through the same parsing path as a real backend.
    """

    def __init__(self, documents: Optional[dict[str, dict]] = None):
        self.documents: dict[str, dict] = dict(documents or {})
        self.save_count = 0

    async def load_state(self, user_id: str) -> Optional[AppState]:
        document = self.documents.get(user_id)
        if document is None:
            return None
        try:
            return AppState.from_document(document)
        except ValidationError as e:
            raise StorageError(f"Stored state is invalid: {e}") from e

    async def save_state(self, user_id: str, state: AppState) -> bool:
        self.documents[user_id] = state.to_document()
        self.save_count += 1
        return True
