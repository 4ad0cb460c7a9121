"""
Money Module

Fixed-point monetary values held as integer minor units (cents). Parsing
rounds half-up to cents once, at the boundary; all arithmetic afterwards is
exact integer arithmetic. NEVER uses float for stored monetary values.
"""

from decimal import Decimal, DecimalException, ROUND_HALF_UP
from dataclasses import dataclass
from typing import Any, Iterable
import re

from .errors import InvalidAmount


CENT = Decimal("0.01")
DEFAULT_CURRENCY_SYMBOL = "R"

# Optional sign and currency symbol, then plain digits or comma-grouped thousands
_AMOUNT_PATTERN = re.compile(
    r"^(?P<sign>-?)(?:R\s*)?(?P<whole>\d{1,3}(?:,\d{3})+|\d+)(?P<fraction>\.\d+)?$"
)


@dataclass(frozen=True, order=True)
class Money:
    """
    Immutable amount of money in cents.
    Negative values only arise from signed replay, never from stored balances.
    """
    cents: int

    def __post_init__(self):
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise TypeError(f"Money cents must be an int, got {type(self.cents).__name__}")

    @classmethod
    def zero(cls) -> 'Money':
        return cls(0)

    @classmethod
    def from_decimal(cls, value: Decimal) -> 'Money':
        """Round a Decimal half-up to cents"""
        return cls(int((value / CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP)))

    @classmethod
    def parse(cls, value: Any) -> 'Money':
        """
        Parse caller input into Money

        Args:
            value: Decimal, int, float, or numeric string such as "1,500.00" or "R 20"

        Returns:
            Money rounded half-up to cents

        Raises:
            InvalidAmount: If the value is not a finite number
        """
        if value is None or isinstance(value, bool):
            raise InvalidAmount("Invalid amount")

        if isinstance(value, Decimal):
            number = value
        elif isinstance(value, (int, float)):
            number = Decimal(str(value))
        elif isinstance(value, str):
            match = _AMOUNT_PATTERN.match(value.strip())
            if not match:
                raise InvalidAmount(f"Invalid amount: {value!r}")
            number = Decimal(
                match.group("sign")
                + match.group("whole").replace(",", "")
                + (match.group("fraction") or "")
            )
        else:
            raise InvalidAmount(f"Invalid amount type: {type(value).__name__}")

        if not number.is_finite():
            raise InvalidAmount("Amount must be a finite number")

        try:
            return cls.from_decimal(number)
        except DecimalException:
            raise InvalidAmount("Amount is out of range")

    @classmethod
    def parse_positive(cls, value: Any) -> 'Money':
        """Parse caller input and require it to be strictly greater than zero"""
        money = cls.parse(value)
        if not money.is_positive():
            raise InvalidAmount("Amount must be greater than zero")
        return money

    @property
    def amount(self) -> Decimal:
        """Amount as a two-place Decimal"""
        return (Decimal(self.cents) * CENT).quantize(CENT)

    def __add__(self, other: 'Money') -> 'Money':
        return Money(self.cents + other.cents)

    def __sub__(self, other: 'Money') -> 'Money':
        return Money(self.cents - other.cents)

    def __neg__(self) -> 'Money':
        return Money(-self.cents)

    def is_zero(self) -> bool:
        return self.cents == 0

    def is_positive(self) -> bool:
        return self.cents > 0

    def is_negative(self) -> bool:
        return self.cents < 0

    def to_string(self, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
        """Format for display: currency prefix, two decimals, no grouping"""
        if self.is_negative():
            return f"-{symbol}{-self.amount:.2f}"
        return f"{symbol}{self.amount:.2f}"

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


def total(amounts: Iterable[Money]) -> Money:
    """Sum a sequence of Money values"""
    result = Money.zero()
    for money in amounts:
        result = result + money
    return result
