"""
Sub-Account Module

The closed set of four named balance buckets every customer holds, and the
immutable balance set the ledger reads and replaces.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional

from .errors import InsufficientFunds, UnknownAccount
from .money import Money, total


class SubAccount(Enum):
    """Named balance buckets"""
    SAVINGS = "savings"
    CHECKING = "checking"
    BUSINESS = "business"
    INVESTMENT = "investment"

    @property
    def display_name(self) -> str:
        """Human display form, e.g. "Checking" """
        return self.value[:1].upper() + self.value[1:]

    @classmethod
    def parse(cls, name: Optional[Any]) -> 'SubAccount':
        """
        Map a caller-supplied account name onto a sub-account

        Args:
            name: Account name in any letter case, or a SubAccount

        Returns:
            Matching SubAccount

        Raises:
            UnknownAccount: If the name is not one of the four accounts
        """
        if isinstance(name, SubAccount):
            return name
        if not isinstance(name, str) or not name.strip():
            raise UnknownAccount("Account name is required")
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise UnknownAccount(f"Invalid account type: {name}")


@dataclass(frozen=True)
class Balances:
    """
    One customer's four balances.
    Never negative: debit() refuses to overdraw.
    """
    savings: Money = Money(0)
    checking: Money = Money(0)
    business: Money = Money(0)
    investment: Money = Money(0)

    def get(self, account: SubAccount) -> Money:
        return getattr(self, account.value)

    def credit(self, account: SubAccount, amount: Money) -> 'Balances':
        """Return a copy with amount added to account"""
        return replace(self, **{account.value: self.get(account) + amount})

    def debit(self, account: SubAccount, amount: Money) -> 'Balances':
        """Return a copy with amount taken from account"""
        current = self.get(account)
        if current < amount:
            raise InsufficientFunds(
                f"Insufficient funds: {account.display_name} has {current}, requested {amount}"
            )
        return replace(self, **{account.value: current - amount})

    def total(self) -> Money:
        return total(self.get(account) for account in SubAccount)

    def to_dict(self) -> Dict[str, int]:
        """Stored form: cents per account"""
        return {account.value: self.get(account).cents for account in SubAccount}

    def to_display_dict(self) -> Dict[str, str]:
        """API form: two-decimal strings per account"""
        return {account.value: str(self.get(account)) for account in SubAccount}

    @classmethod
    def from_dict(cls, data: Dict[str, int]) -> 'Balances':
        return cls(**{
            account.value: Money(int(data.get(account.value, 0)))
            for account in SubAccount
        })
