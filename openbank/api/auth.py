"""
System wiring and authentication dependencies
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import OpenBankConfig, get_config
from ..errors import InvalidCredentials
from ..ledger import AccountLedger
from ..storage import StorageInterface, create_storage
from ..transactions import TransactionRecorder
from ..users import UserRegistry


class BankingSystem:
    """Core components wired over one storage backend"""

    def __init__(self, config: Optional[OpenBankConfig] = None,
                 storage: Optional[StorageInterface] = None):
        self.config = config or get_config()
        self.storage = storage or create_storage(
            self.config.database_url, timeout=self.config.store_timeout_seconds
        )
        self.registry = UserRegistry(
            self.storage, max_identifier_attempts=self.config.identifier_generation_attempts
        )
        self.recorder = TransactionRecorder(
            self.storage,
            currency_symbol=self.config.currency_symbol,
            history_limit=self.config.history_limit
        )
        self.ledger = AccountLedger(
            self.storage, self.registry, self.recorder,
            lock_timeout=self.config.store_timeout_seconds
        )


_banking_system: Optional[BankingSystem] = None


def get_banking_system() -> BankingSystem:
    """Dependency returning the process-wide system, built on first use"""
    global _banking_system
    if _banking_system is None:
        _banking_system = BankingSystem()
    return _banking_system


def issue_token(user_id: str, config: OpenBankConfig) -> str:
    """Sign a bearer credential for one user"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(days=config.jwt_expiry_days),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: BankingSystem = Depends(get_banking_system)
) -> str:
    """Dependency that validates the JWT and returns the user id"""
    if not credentials:
        raise InvalidCredentials("Not authenticated")
    try:
        payload = jwt.decode(
            credentials.credentials,
            system.config.jwt_secret,
            algorithms=[system.config.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise InvalidCredentials("Token expired")
    except jwt.InvalidTokenError:
        raise InvalidCredentials("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise InvalidCredentials("Invalid token")
    return user_id
