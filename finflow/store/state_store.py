"""
State Store & Sync

Owns the one AppState of the active session and keeps the remote
document in step with it.

DESIGN DECISION: Persistence is a single-slot pending write.
Every mutation (re)starts one debounce timer; a new mutation inside
the window cancels the timer and starts a fresh one, so only the
latest state is ever sent. A save that is already in flight is not
cancelled. It simply becomes stale, and the next cycle sends the
newer state.

CRITICAL: Storage failures never propagate out of the store.
They turn into SyncStatus.ERROR; the in-memory state stays the
source of truth and the user keeps working offline.
"""

import asyncio
from enum import Enum
from typing import Optional

import structlog

from finflow.audit.logger import AuditLogger
from finflow.ledger.legacy import migrate_legacy_state
from finflow.models.audit import AuditEventBuilder
from finflow.models.ledger import (
    CURRENT_SCHEMA_VERSION,
    AppState,
    default_accounts,
    default_categories,
    default_state,
)
from finflow.services.storage.interface import StateStorageInterface, StorageError


logger = structlog.get_logger(__name__)


class SyncStatus(str, Enum):
    """What the sync indicator shows."""
    LOCAL = "local"        # unsaved changes, a save is scheduled
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class StateStore:
    """
    In-memory application state with debounced remote persistence.

    Usage:
        store = StateStore(storage, user_id="42")
        await store.load()
        store.update(profile=new_profile)   # schedules a save
        await store.flush()                 # e.g. before shutdown
    """

    def __init__(
        self,
        storage: StateStorageInterface,
        user_id: str,
        debounce_seconds: float = 2.0,
        load_timeout_seconds: float = 5.0,
        audit_logger: Optional[AuditLogger] = None,
        initial_state: Optional[AppState] = None,
    ):
        self._storage = storage
        self._user_id = user_id
        self._debounce_seconds = debounce_seconds
        self._load_timeout_seconds = load_timeout_seconds
        self._audit = audit_logger or AuditLogger()

        self._state = initial_state or default_state()
        self._loaded = False
        self._dirty = False
        self._timer: Optional[asyncio.Task] = None
        self._save_task: Optional[asyncio.Task] = None

        self.status = SyncStatus.LOCAL
        self.last_error: Optional[str] = None

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def dirty(self) -> bool:
        """True while there are changes the remote store has not seen."""
        return self._dirty

    @property
    def has_pending_write(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # =========================================================================
    # LOADING
    # =========================================================================

    async def load(self) -> AppState:
        """
        Load the user's document, bounded by the load timeout.

        A missing document keeps the default state. A failed or timed
        out load also keeps it, with status ERROR, so the UI never
        blocks on the network.
        """
        self.status = SyncStatus.SYNCING

        try:
            stored = await asyncio.wait_for(
                self._storage.load_state(self._user_id),
                timeout=self._load_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._fail("load", f"timed out after {self._load_timeout_seconds}s")
            self._loaded = True
            return self._state
        except StorageError as e:
            self._fail("load", str(e))
            self._loaded = True
            return self._state
        except Exception as e:
            self._fail("load", str(e))
            self._audit.log_error("state_load_unexpected", str(e))
            self._loaded = True
            return self._state

        if stored is not None:
            self._state = self._prepare(stored)

        self._loaded = True
        self._dirty = False
        self.status = SyncStatus.SYNCED
        self.last_error = None
        self._audit.log(
            AuditEventBuilder.state_loaded(
                self._user_id,
                len(self._state.transactions),
                found=stored is not None,
            )
        )
        return self._state

    def _prepare(self, stored: AppState) -> AppState:
        state = stored

        if state.schema_version < CURRENT_SCHEMA_VERSION:
            from_version = state.schema_version
            state, changes = migrate_legacy_state(state)
            self._audit.log(
                AuditEventBuilder.legacy_state_migrated(
                    from_version, state.schema_version, changes
                )
            )

        fill = {}
        if not state.categories:
            fill["categories"] = default_categories()
        if not state.accounts:
            fill["accounts"] = default_accounts()
        if fill:
            state = state.model_copy(update=fill)

        return state

    # =========================================================================
    # MUTATION
    # =========================================================================

    def update(self, **changes) -> AppState:
        """
        Replace top-level collections of the state in one step.

        Example: store.update(transactions=[...], debts=[...])
        """
        unknown = set(changes) - set(AppState.model_fields)
        if unknown:
            raise ValueError(f"Unknown state fields: {sorted(unknown)}")
        return self.replace(self._state.model_copy(update=changes))

    def replace(self, state: AppState) -> AppState:
        self._state = state
        self.schedule_persist()
        return self._state

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def schedule_persist(self) -> None:
        """
        (Re)start the debounce timer.

        Without a running event loop the change is only marked dirty;
        the caller is expected to flush() later.
        """
        self._dirty = True
        self.status = SyncStatus.LOCAL

        if not self._loaded:
            # Never overwrite the remote document before it has been read
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        self._cancel_timer()
        self._timer = loop.create_task(self._debounced_save())

    async def _debounced_save(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        self._save_task = asyncio.create_task(self._persist())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def flush(self) -> bool:
        """
        Send the latest state now, skipping the debounce delay.

        Returns:
            True if the remote store holds the current state afterwards
        """
        self._cancel_timer()

        if self._save_task is not None and not self._save_task.done():
            await self._save_task

        if not self._dirty:
            return self.status != SyncStatus.ERROR

        return await self._persist()

    async def _persist(self) -> bool:
        snapshot = self._state
        self._dirty = False
        self.status = SyncStatus.SYNCING

        try:
            await self._storage.save_state(self._user_id, snapshot)
        except StorageError as e:
            self._dirty = True
            self._fail("save", str(e))
            return False
        except Exception as e:
            self._dirty = True
            self._fail("save", str(e))
            self._audit.log_error("state_save_unexpected", str(e))
            return False

        self._audit.log(
            AuditEventBuilder.state_saved(self._user_id, len(snapshot.transactions))
        )

        if self._state is snapshot and not self._dirty:
            self.status = SyncStatus.SYNCED
            self.last_error = None
        else:
            # Changed while the save was in flight; the next cycle sends it
            self.status = SyncStatus.LOCAL
        return True

    def _fail(self, operation: str, message: str) -> None:
        self.status = SyncStatus.ERROR
        self.last_error = message
        logger.warning("state_sync_failed", operation=operation, error=message)
        self._audit.log(
            AuditEventBuilder.sync_failed(self._user_id, operation, message)
        )

    async def close(self) -> None:
        """Flush pending changes and stop the timer."""
        await self.flush()
        self._cancel_timer()
