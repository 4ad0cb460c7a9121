"""
Account Ledger Module

The sole writer of customer balances. Validates and applies deposits,
withdrawals and internal transfers between a customer's four sub-accounts,
and records each completed operation in the same atomic unit as its
balance write. Operations on one customer are serialized by a per-customer
lock so a sufficient-funds check can never pass against a stale balance.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import threading

from .accounts import Balances, SubAccount
from .config import get_config
from .errors import BankingError, SameAccountTransfer, StoreUnavailable, UnknownAccount
from .logging_config import get_logger, log_action
from .money import Money
from .storage import StorageInterface
from .transactions import TransactionRecord, TransactionRecorder, TransactionType
from .users import UserRegistry


@dataclass(frozen=True)
class Operation:
    """
    Validated operation descriptor
    """
    kind: TransactionType
    amount: Money
    source: SubAccount
    destination: Optional[SubAccount] = None
    title: Optional[str] = None

    @classmethod
    def build(
        cls,
        kind: Any,
        amount: Any,
        source: Any,
        destination: Any = None,
        title: Optional[str] = None
    ) -> 'Operation':
        """
        Parse raw caller input, failing fast in a fixed order:
        type, amount, account names, same-account transfer.

        Raises:
            InvalidTransactionType, InvalidAmount, UnknownAccount, SameAccountTransfer
        """
        kind = TransactionType.parse(kind)
        money = Money.parse_positive(amount)
        source_account = SubAccount.parse(source)

        destination_account = None
        if kind == TransactionType.TRANSFER:
            if destination is None:
                raise UnknownAccount("Invalid destination account")
            destination_account = SubAccount.parse(destination)
            if destination_account == source_account:
                raise SameAccountTransfer("Cannot transfer to same account")

        return cls(
            kind=kind,
            amount=money,
            source=source_account,
            destination=destination_account,
            title=title
        )

    def apply_to(self, balances: Balances) -> Balances:
        """Pure balance effect; raises InsufficientFunds instead of overdrawing"""
        if self.kind == TransactionType.DEPOSIT:
            return balances.credit(self.source, self.amount)
        if self.kind == TransactionType.WITHDRAWAL:
            return balances.debit(self.source, self.amount)
        return balances.debit(self.source, self.amount).credit(self.destination, self.amount)


@dataclass
class LedgerResult:
    """New balances plus the record(s) written with them"""
    balances: Balances
    records: List[TransactionRecord]

    @property
    def record(self) -> TransactionRecord:
        return self.records[0]

    @property
    def record_out(self) -> TransactionRecord:
        return self.records[0]

    @property
    def record_in(self) -> TransactionRecord:
        return self.records[1]


class AccountLedger:
    """
    Applies balance-changing operations with validation, per-customer
    serialization and all-or-nothing persistence
    """

    def __init__(
        self,
        storage: StorageInterface,
        registry: UserRegistry,
        recorder: TransactionRecorder,
        lock_timeout: Optional[float] = None
    ):
        self.storage = storage
        self.registry = registry
        self.recorder = recorder
        self.lock_timeout = lock_timeout if lock_timeout is not None else get_config().store_timeout_seconds
        self.logger = get_logger("openbank.ledger")

        # user_id -> (lock, number of callers holding or waiting on it)
        self._locks: Dict[str, List[Any]] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _account_lock(self, user_id: str):
        with self._locks_guard:
            entry = self._locks.setdefault(user_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            if not entry[0].acquire(timeout=self.lock_timeout):
                raise StoreUnavailable(f"Timed out waiting for account {user_id}")
            try:
                yield
            finally:
                entry[0].release()
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[user_id]

    def apply(self, user_id: str, operation: Operation) -> LedgerResult:
        """
        Apply one validated operation to one customer's balances

        Args:
            user_id: Customer whose sub-accounts are affected
            operation: Parsed operation descriptor

        Returns:
            LedgerResult with the committed balances and record(s)

        Raises:
            UserNotFound: If the customer does not exist
            InsufficientFunds: If a withdrawal or transfer would overdraw the source
            StoreUnavailable: If storage failed; nothing was persisted
        """
        try:
            with self._account_lock(user_id), self.storage.atomic():
                user = self.registry.require_user(user_id)
                balances = operation.apply_to(user.balances)
                self.registry.store_balances(user, balances)
                records = self.recorder.record(
                    user_id,
                    operation.kind,
                    operation.amount,
                    operation.source,
                    destination=operation.destination,
                    title=operation.title,
                    now=datetime.now(timezone.utc)
                )
        except BankingError as e:
            self._log_rejection(user_id, operation.kind.value, e)
            raise

        log_action(
            self.logger, "info", f"{records[0].title} applied",
            user_id=user_id, action=operation.kind.value, resource=f"user:{user_id}",
            extra={
                "amount": str(operation.amount),
                "source": operation.source.value,
                "destination": operation.destination.value if operation.destination else None,
                "records": [record.id for record in records],
            }
        )
        return LedgerResult(balances=balances, records=records)

    def apply_operation(
        self,
        user_id: str,
        kind: Any,
        amount: Any,
        account_name: Any,
        to_account: Any = None,
        title: Optional[str] = None
    ) -> LedgerResult:
        """Parse raw input and apply it; the entry point for the API layer"""
        try:
            operation = Operation.build(kind, amount, account_name, to_account, title)
        except BankingError as e:
            action = kind.value if isinstance(kind, TransactionType) else str(kind)
            self._log_rejection(user_id, action, e)
            raise
        return self.apply(user_id, operation)

    def apply_deposit(
        self, user_id: str, amount: Any, account_name: Any, title: Optional[str] = None
    ) -> LedgerResult:
        return self.apply_operation(user_id, TransactionType.DEPOSIT, amount, account_name, title=title)

    def apply_withdrawal(
        self, user_id: str, amount: Any, account_name: Any, title: Optional[str] = None
    ) -> LedgerResult:
        return self.apply_operation(user_id, TransactionType.WITHDRAWAL, amount, account_name, title=title)

    def apply_transfer(
        self,
        user_id: str,
        amount: Any,
        from_account: Any,
        to_account: Any,
        title: Optional[str] = None
    ) -> LedgerResult:
        return self.apply_operation(
            user_id, TransactionType.TRANSFER, amount, from_account, to_account, title
        )

    def get_balance(self, user_id: str, account_name: Any) -> Money:
        """Current balance of one sub-account"""
        account = SubAccount.parse(account_name)
        return self.registry.require_user(user_id).balances.get(account)

    def get_balances(self, user_id: str) -> Balances:
        return self.registry.require_user(user_id).balances

    def list_recent_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
        account: Any = None
    ) -> List[TransactionRecord]:
        """Newest-first history, optionally only records touching one sub-account"""
        sub_account = SubAccount.parse(account) if account is not None else None
        return self.recorder.list_recent(user_id, limit=limit, account=sub_account)

    def reconcile(self, user_id: str) -> Dict[SubAccount, Tuple[Money, Money]]:
        """
        Compare stored balances with a replay of the record history

        Returns:
            {sub_account: (stored, replayed)} for every mismatch; empty when consistent
        """
        with self._account_lock(user_id):
            balances = self.get_balances(user_id)
            replayed = self.recorder.replay_balances(user_id)

        mismatches = {
            account: (balances.get(account), replayed[account])
            for account in SubAccount
            if balances.get(account) != replayed[account]
        }
        if mismatches:
            log_action(
                self.logger, "error", "Balance replay mismatch",
                user_id=user_id, action="reconcile", resource=f"user:{user_id}",
                extra={account.value: [str(stored), str(replay)]
                       for account, (stored, replay) in mismatches.items()}
            )
        return mismatches

    def _log_rejection(self, user_id: str, action: str, error: BankingError) -> None:
        log_action(
            self.logger, "warning", f"Operation rejected: {error.message}",
            user_id=user_id, action=action, resource=f"user:{user_id}",
            extra={"error": error.code}
        )
