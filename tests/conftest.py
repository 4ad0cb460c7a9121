"""
Shared fixtures for the OpenBank test suite
"""

import pytest

from openbank.config import OpenBankConfig
from openbank.ledger import AccountLedger
from openbank.storage import InMemoryStorage, SQLiteStorage
from openbank.transactions import TransactionRecorder
from openbank.users import UserRegistry


@pytest.fixture
def test_config():
    """Configuration that never reads the developer's .env"""
    return OpenBankConfig(
        _env_file=None,
        database_url="memory://",
        jwt_secret="openbank-test-secret-0123456789abcdef",
        store_timeout_seconds=2.0,
        log_level="WARNING",
    )


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    """Every storage-dependent test runs against both backends"""
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(":memory:", timeout=2.0)
    yield backend
    backend.close()


@pytest.fixture
def registry(storage):
    return UserRegistry(storage, max_identifier_attempts=5)


@pytest.fixture
def recorder(storage):
    return TransactionRecorder(storage, currency_symbol="R", history_limit=50)


@pytest.fixture
def ledger(storage, registry, recorder):
    return AccountLedger(storage, registry, recorder, lock_timeout=2.0)


@pytest.fixture
def user(registry):
    return registry.create_account(
        first_name="Thandi",
        last_name="Mokoena",
        national_id="9001015009087",
        email="thandi@example.com",
        password="s3cret-pass",
    )
