"""
Orchestrator for Piggy Budget

This module builds the concrete stores from settings and wires them into
the ledger components. It is the only place that reads configuration;
everything below receives its collaborators explicitly.

Screens use the returned LedgerComponents to:
1. Log in / sign up (accounts)
2. Open a live subscription for the current screen (subscribe)
3. Create, edit and delete expenses (ledger)
4. Build weekly / monthly / yearly reports (aggregator)
"""

from pathlib import Path
from typing import Optional

import structlog

from piggy.audit import AuditLogger, configure_logging
from piggy.config import Settings, get_settings
from piggy.identity import AccountService, IdentityResolver
from piggy.ledger import LedgerStore, SyncSubscriber
from piggy.reports import Aggregator
from piggy.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsExpenseStore,
    JsonFileSessionStore,
    LocalExpenseStore,
    OfflineRemoteStore,
    RemoteExpenseStoreInterface,
    SessionStoreInterface,
)


class LedgerComponents:
    """Everything a screen needs, built around one set of stores."""

    def __init__(
        self,
        session_store: SessionStoreInterface,
        remote: RemoteExpenseStoreInterface,
        local: LocalExpenseStore,
        identity: IdentityResolver,
        accounts: AccountService,
        ledger: LedgerStore,
        aggregator: Aggregator,
        audit_logger: AuditLogger,
    ):
        self.session_store = session_store
        self.remote = remote
        self.local = local
        self.identity = identity
        self.accounts = accounts
        self.ledger = ledger
        self.aggregator = aggregator
        self.audit_logger = audit_logger

    @property
    def remote_configured(self) -> bool:
        return not isinstance(self.remote, OfflineRemoteStore)

    async def subscribe(self) -> SyncSubscriber:
        """
        Start a fresh live subscription.

        Each call returns a new subscriber; the caller must stop() the
        previous one first (one live subscription per screen).
        """
        subscriber = SyncSubscriber(
            store=self.ledger,
            remote=self.remote,
            local=self.local,
            identity=self.identity,
            audit_logger=self.audit_logger,
        )
        await subscriber.start()
        return subscriber


def _build_remote(settings: Settings) -> RemoteExpenseStoreInterface:
    logger = structlog.get_logger(__name__)
    try:
        sheets_settings = settings.google_sheets
    except Exception as e:
        # Remote not configured - continue local-only
        logger.warning("remote_not_configured", error=str(e))
        return OfflineRemoteStore(f"Google Sheets is not configured: {e}")
    return GoogleSheetsExpenseStore(GoogleSheetsClient(sheets_settings))


def create_app_components(
    use_remote: bool = True,
    settings: Optional[Settings] = None,
    session_store: Optional[SessionStoreInterface] = None,
    remote: Optional[RemoteExpenseStoreInterface] = None,
) -> LedgerComponents:
    """
    Factory function to create all application components.

    Args:
        use_remote: Whether to connect the Google Sheets remote store.
                    Set to False to run local-only.
        settings: Settings to use instead of get_settings()
        session_store: Overrides the JSON-file session store
        remote: Overrides the remote store chosen from settings
    """
    settings = settings or get_settings()
    app_settings = settings.app
    storage_settings = settings.storage

    configure_logging(app_settings.log_level)
    audit_logger = AuditLogger()

    if session_store is None:
        session_store = JsonFileSessionStore(Path(storage_settings.session_file))

    if remote is None:
        remote = _build_remote(settings) if use_remote else OfflineRemoteStore()

    local = LocalExpenseStore(session_store, key=storage_settings.local_expenses_key)
    identity = IdentityResolver(
        session_store,
        current_user_key=storage_settings.current_user_key,
        anonymous_user_id=app_settings.anonymous_user_id,
    )
    accounts = AccountService(
        session_store,
        users_key=storage_settings.users_key,
        current_user_key=storage_settings.current_user_key,
        min_password_length=app_settings.min_password_length,
        audit_logger=audit_logger,
    )
    ledger = LedgerStore(
        remote=remote,
        local=local,
        identity=identity,
        collection=storage_settings.expenses_collection,
        audit_logger=audit_logger,
    )

    return LedgerComponents(
        session_store=session_store,
        remote=remote,
        local=local,
        identity=identity,
        accounts=accounts,
        ledger=ledger,
        aggregator=Aggregator(),
        audit_logger=audit_logger,
    )
