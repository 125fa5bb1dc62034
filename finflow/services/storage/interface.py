"""
Abstract Storage Interface

DESIGN DECISION: The remote store holds exactly one JSON document per
user and is read and written wholesale. We define an abstract interface
so that:
1. The REST backend (GET/POST /user-state/{id}) can be swapped for
   Google Sheets or anything else
2. Tests use in-memory storage
3. The state store stays decoupled from transport details

There is no merging and no versioning on the remote side:
the last write wins.
"""

from abc import ABC, abstractmethod
from typing import Optional

from finflow.models.ledger import AppState


class StateStorageInterface(ABC):
    """
    Abstract interface for the per-user state document.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def load_state(self, user_id: str) -> Optional[AppState]:
        """
        Fetch the stored document for a user.

        Args:
            user_id: Opaque key supplied by the host runtime

        Returns:
            The stored state, or None if the user has no document yet

        Raises:
            StorageError: If the backend is unreachable or answers with an error
        """
        pass

    @abstractmethod
    async def save_state(self, user_id: str, state: AppState) -> bool:
        """
        Replace (upsert) the stored document for a user.

        Args:
            user_id: Opaque key supplied by the host runtime
            state: The complete state to store

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class DocumentTooLargeError(StorageError):
    """The serialized state does not fit the backend's size limit."""
    pass
