"""
Main Orchestrator for FinFlow

Wires the state store, ledger services, planner, host bridge and
AI agents for one user session.

DESIGN DECISION: Every flow goes through one FinFlowSession:
- All ledger writes go through the mutation/entity services
- All persistence goes through the state store (debounced)
- Every step is audited

A session can be built without any external service configured:
storage falls back to memory and the AI agents report themselves
unavailable instead of failing at startup.
"""

from datetime import date
from typing import Optional

import structlog

from finflow.agents import FinanceChatAgent, ReceiptScanAgent
from finflow.audit import AuditLogger
from finflow.config import get_settings
from finflow.ledger import (
    EntityService,
    PlannerService,
    TransactionService,
    dashboard_stats,
    due_reminders,
)
from finflow.ledger.engine import DashboardStats
from finflow.ledger.planner import Reminder
from finflow.models.ledger import AppState, Transaction, default_state
from finflow.services.host import HostBridge, NullHostBridge
from finflow.services.storage import (
    GoogleSheetsStateStorage,
    InMemoryStateStorage,
    RestStateStorage,
    StateStorageInterface,
)
from finflow.store import StateStore
from finflow.validation import TransactionForm, TransactionValidator, ValidationResult


logger = structlog.get_logger(__name__)


class FinFlowSession:
    """
    Everything the presentation layer needs for one signed-in user.

    Flow:
    1. start() loads the user's document (bounded by a timeout)
    2. The UI reads `state` and the engine functions for display
    3. Writes go through `transactions`, `entities` and `planner`
    4. The store persists changes after the debounce delay
    5. close() flushes whatever is still pending
    """

    def __init__(
        self,
        store: StateStore,
        host: HostBridge,
        audit_logger: AuditLogger,
        chat_agent: Optional[FinanceChatAgent] = None,
        receipt_agent: Optional[ReceiptScanAgent] = None,
    ):
        self.store = store
        self.host = host
        self.audit_logger = audit_logger
        self.transactions = TransactionService(store, audit_logger)
        self.entities = EntityService(store, audit_logger)
        self.planner = PlannerService(store, self.transactions, host, audit_logger)
        self.chat_agent = chat_agent
        self.receipt_agent = receipt_agent

    @property
    def state(self) -> AppState:
        return self.store.state

    async def start(self) -> AppState:
        return await self.store.load()

    async def close(self) -> None:
        await self.store.close()

    def validate(self, form: TransactionForm, today: Optional[date] = None) -> ValidationResult:
        return TransactionValidator(self.state).validate(form, today)

    def submit(
        self,
        form: TransactionForm,
        editing: Optional[Transaction] = None,
    ) -> tuple[Optional[Transaction], ValidationResult]:
        """
        Validate a form and save it when it has no errors.

        Returns:
            (saved transaction or None, validation result)
        """
        result = self.validate(form)
        if not result.is_valid:
            self.host.haptic_error()
            return None, result

        transaction = self.transactions.save(
            TransactionValidator.to_draft(form),
            editing=editing,
            new_debt_name=form.new_debt_name,
        )
        self.host.haptic_success()
        return transaction, result

    def dashboard(self, today: Optional[date] = None) -> DashboardStats:
        return dashboard_stats(self.state, today or date.today())

    def reminders(self, today: Optional[date] = None) -> list[Reminder]:
        return due_reminders(self.state, today or date.today())


def create_storage(backend: Optional[str] = None) -> StateStorageInterface:
    """
    Storage backend named by STATE_STORE_BACKEND (or `backend`).

    Falls back to memory if the configured backend cannot be set up.
    """
    backend = backend or get_settings().state_store.backend

    try:
        if backend == "rest":
            return RestStateStorage()
        if backend == "sheets":
            return GoogleSheetsStateStorage()
    except Exception as e:
        # Storage not configured - continue without it
        logger.warning("storage_not_configured", backend=backend, error=str(e))

    return InMemoryStateStorage()


def create_app_components(
    host: Optional[HostBridge] = None,
    storage: Optional[StateStorageInterface] = None,
    use_ai: bool = True,
) -> FinFlowSession:
    """
    Factory function to create all application components.

    Args:
        host: Host runtime bridge; a NullHostBridge when omitted
        storage: State storage; chosen from settings when omitted
        use_ai: Whether to attach the Gemini agents.
                Set to False for testing without an API key.

    Returns:
        A session ready for start()
    """
    settings = get_settings()
    host = host or NullHostBridge()
    audit_logger = AuditLogger()

    store = StateStore(
        storage=storage or create_storage(),
        user_id=host.current_user_id(),
        debounce_seconds=settings.state_store.debounce_seconds,
        load_timeout_seconds=settings.state_store.load_timeout_seconds,
        audit_logger=audit_logger,
        initial_state=default_state(
            profile_name=settings.app.default_profile_name,
            currency=settings.app.default_currency,
        ),
    )

    chat_agent = None
    receipt_agent = None
    if use_ai:
        try:
            _ = settings.gemini
            chat_agent = FinanceChatAgent()
            receipt_agent = ReceiptScanAgent()
        except Exception as e:
            logger.warning("ai_not_configured", error=str(e))
            audit_logger.log_external_service_error("gemini", str(e))

    return FinFlowSession(
        store=store,
        host=host,
        audit_logger=audit_logger,
        chat_agent=chat_agent,
        receipt_agent=receipt_agent,
    )
