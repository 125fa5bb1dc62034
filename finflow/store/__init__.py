"""
State Store Package

Holds the session's AppState and syncs it to the remote document store.
"""

from finflow.store.state_store import StateStore, SyncStatus

__all__ = [
    "StateStore",
    "SyncStatus",
]
