"""
Transaction Recording Module

Builds and persists the immutable transaction records produced by completed
deposits, withdrawals and transfers. A transfer is recorded as two legs that
share an amount, a timestamp and a transfer id, so each participating
sub-account's history shows the movement without a join.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
import uuid

from .accounts import SubAccount
from .config import get_config
from .errors import InvalidLimit, InvalidTransactionType
from .money import Money
from .storage import StorageInterface, StorageRecord


class TransactionType(Enum):
    """Kinds of balance-changing operation"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"

    @classmethod
    def parse(cls, kind: Any) -> 'TransactionType':
        if isinstance(kind, TransactionType):
            return kind
        if isinstance(kind, str):
            try:
                return cls(kind.strip().lower())
            except ValueError:
                pass
        raise InvalidTransactionType(f"Invalid transaction type: {kind}")


class TransferLeg(Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"


def capitalize(name: str) -> str:
    """Uppercase the first letter only: "checking" -> "Checking" """
    return name[:1].upper() + name[1:]


def default_title(kind: TransactionType) -> str:
    return f"{capitalize(kind.value)} transaction"


def format_display_amount(kind: TransactionType, amount: Money, symbol: str) -> str:
    """Signed, currency-prefixed amount: +R1500.00, -R250.00, or unsigned R500.00 for transfers"""
    sign = {
        TransactionType.DEPOSIT: "+",
        TransactionType.WITHDRAWAL: "-",
        TransactionType.TRANSFER: "",
    }[kind]
    return f"{sign}{amount.to_string(symbol)}"


@dataclass
class TransactionRecord(StorageRecord):
    """
    Audit entry owned by one user, written once and never updated.
    amount is always positive; direction comes from type and leg.
    """
    user_id: str
    type: TransactionType
    amount: Money
    display_amount: str
    title: str
    account: str
    date: datetime
    sequence: int
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    transfer_id: Optional[str] = None
    leg: Optional[TransferLeg] = None

    @property
    def sub_account(self) -> SubAccount:
        return SubAccount.parse(self.account)

    def signed_amount(self) -> Money:
        """Effect of this record on the balance of its account"""
        if self.type == TransactionType.WITHDRAWAL or self.leg == TransferLeg.OUTBOUND:
            return -self.amount
        return self.amount


class TransactionRecorder:
    """
    Persists transaction records and serves per-owner history
    """

    def __init__(
        self,
        storage: StorageInterface,
        currency_symbol: Optional[str] = None,
        history_limit: Optional[int] = None
    ):
        config = get_config()
        self.storage = storage
        self.table_name = "transactions"
        self.currency_symbol = currency_symbol or config.currency_symbol
        self.history_limit = history_limit or config.history_limit

        # Access path for "by owner, newest first"
        self.storage.ensure_index(self.table_name, ["user_id", "sequence"])

    def record(
        self,
        user_id: str,
        kind: TransactionType,
        amount: Money,
        source: SubAccount,
        destination: Optional[SubAccount] = None,
        title: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[TransactionRecord]:
        """
        Build and save the record(s) for one applied operation

        Must run inside the caller's atomic unit: a failure here has to undo
        the balance write that preceded it.

        Args:
            user_id: Owner of the records
            kind: Operation kind
            amount: Positive amount moved
            source: Account credited (deposit) or debited (withdrawal, transfer)
            destination: Transfer destination
            title: Caller-supplied title; blank means the generated default
            now: Timestamp shared by every record written

        Returns:
            One record, or two for a transfer (outbound leg first)
        """
        now = now or datetime.now(timezone.utc)
        title = (title or "").strip() or default_title(kind)
        display_amount = format_display_amount(kind, amount, self.currency_symbol)
        sequence = self._last_sequence(user_id)

        def build(account: SubAccount, **extra) -> TransactionRecord:
            nonlocal sequence
            sequence += 1
            return TransactionRecord(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                user_id=user_id,
                type=kind,
                amount=amount,
                display_amount=display_amount,
                title=title,
                account=account.display_name,
                date=now,
                sequence=sequence,
                **extra
            )

        if kind == TransactionType.TRANSFER:
            if destination is None:
                raise ValueError("Transfer records require a destination account")
            transfer_id = str(uuid.uuid4())
            pairing = dict(
                from_account=source.display_name,
                to_account=destination.display_name,
                transfer_id=transfer_id,
            )
            records = [
                build(source, leg=TransferLeg.OUTBOUND, **pairing),
                build(destination, leg=TransferLeg.INBOUND, **pairing),
            ]
        else:
            records = [build(source)]

        for record in records:
            self.storage.save(self.table_name, record.id, self._record_to_dict(record))

        return records

    def list_recent(
        self,
        user_id: str,
        limit: Optional[int] = None,
        account: Optional[SubAccount] = None
    ) -> List[TransactionRecord]:
        """
        Newest-first history for one owner

        Args:
            user_id: Owner
            limit: Maximum records; capped at the configured history limit
            account: Only records whose account field is this sub-account

        Returns:
            Records ordered by sequence, descending
        """
        if limit is None:
            limit = self.history_limit
        if limit < 1:
            raise InvalidLimit("limit must be at least 1")
        limit = min(limit, self.history_limit)

        filters: Dict[str, Any] = {"user_id": user_id}
        if account is not None:
            filters["account"] = account.display_name

        rows = self.storage.query(
            self.table_name, filters, order_by="sequence", descending=True, limit=limit
        )
        return [self._record_from_dict(row) for row in rows]

    def replay_balances(self, user_id: str) -> Dict[SubAccount, Money]:
        """Recompute every sub-account balance from the full record history"""
        balances = {account: Money.zero() for account in SubAccount}
        rows = self.storage.query(self.table_name, {"user_id": user_id}, order_by="sequence")
        for row in rows:
            record = self._record_from_dict(row)
            balances[record.sub_account] = balances[record.sub_account] + record.signed_amount()
        return balances

    def _last_sequence(self, user_id: str) -> int:
        rows = self.storage.query(
            self.table_name, {"user_id": user_id}, order_by="sequence", descending=True, limit=1
        )
        return rows[0]["sequence"] if rows else 0

    def _record_to_dict(self, record: TransactionRecord) -> Dict[str, Any]:
        return {
            "id": record.id,
            "created_at": record.created_at.isoformat(),
            "updated_at": record.updated_at.isoformat(),
            "user_id": record.user_id,
            "type": record.type.value,
            "amount_cents": record.amount.cents,
            "display_amount": record.display_amount,
            "title": record.title,
            "account": record.account,
            "from_account": record.from_account,
            "to_account": record.to_account,
            "transfer_id": record.transfer_id,
            "leg": record.leg.value if record.leg else None,
            "date": record.date.isoformat(),
            "sequence": record.sequence,
        }

    def _record_from_dict(self, data: Dict[str, Any]) -> TransactionRecord:
        return TransactionRecord(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            user_id=data["user_id"],
            type=TransactionType(data["type"]),
            amount=Money(int(data["amount_cents"])),
            display_amount=data["display_amount"],
            title=data["title"],
            account=data["account"],
            date=datetime.fromisoformat(data["date"]),
            sequence=int(data["sequence"]),
            from_account=data.get("from_account"),
            to_account=data.get("to_account"),
            transfer_id=data.get("transfer_id"),
            leg=TransferLeg(data["leg"]) if data.get("leg") else None
        )
