"""
Ledger system wiring and authentication dependencies
"""

from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..storage import StorageInterface, create_storage
from ..audit import AuditTrail
from ..particulars import ParticularManager
from ..transactions import TransactionManager
from ..dashboard import DashboardService
from ..config import PawnLedgerConfig, get_config
from ..exceptions import UnauthorizedError


# Identity used for every request while authentication is switched off
ANONYMOUS_OWNER = "test_user"


class LedgerSystem:
    """Ledger components wired to one storage backend"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 config: Optional[PawnLedgerConfig] = None):
        config = config or get_config()
        self.config = config
        self.storage = storage or create_storage(config.database_url)

        self.audit_trail = AuditTrail(self.storage, enabled=config.enable_audit_logging)
        self.particular_manager = ParticularManager(self.storage, self.audit_trail)
        self.transaction_manager = TransactionManager(
            self.storage, self.particular_manager, self.audit_trail,
            recompute_totals=config.recompute_transaction_totals
        )
        self.dashboard = DashboardService(
            self.particular_manager, self.transaction_manager,
            recent_limit=config.recent_transactions_limit
        )

    def close(self) -> None:
        self.storage.close()


# Global ledger system instance, built on first use
ledger_system: Optional[LedgerSystem] = None


def get_ledger_system() -> LedgerSystem:
    global ledger_system
    if ledger_system is None:
        ledger_system = LedgerSystem()
    return ledger_system


security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    config: PawnLedgerConfig = Depends(get_config)
) -> str:
    """
    Resolve the caller's identity from a bearer JWT

    The identity is the ``sub`` claim, or ``userId`` for tokens minted in the
    older payload shape.
    """
    if not config.auth_enabled:
        return ANONYMOUS_OWNER

    if not credentials:
        raise UnauthorizedError("Access token required")
    try:
        payload = jwt.decode(credentials.credentials, config.jwt_secret,
                             algorithms=[config.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")

    user_id = payload.get("sub") or payload.get("userId")
    if not user_id:
        raise UnauthorizedError("Invalid token")
    return str(user_id)
