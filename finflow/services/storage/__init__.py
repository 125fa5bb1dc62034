"""
Storage Services Package

Provides the abstract state document interface and concrete backends:
the REST persistence server, Google Sheets, and an in-memory store.
"""

from finflow.services.storage.interface import (
    ConnectionError,
    DocumentTooLargeError,
    StateStorageInterface,
    StorageError,
)
from finflow.services.storage.memory import InMemoryStateStorage
from finflow.services.storage.rest import RestStateStorage
from finflow.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsStateStorage,
)

__all__ = [
    # Interfaces
    "StateStorageInterface",
    # Exceptions
    "ConnectionError",
    "DocumentTooLargeError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsStateStorage",
    "InMemoryStateStorage",
    "RestStateStorage",
]
