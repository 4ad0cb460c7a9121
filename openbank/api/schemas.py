"""
Pydantic schemas for API requests and responses
"""

from typing import Optional, Union
from pydantic import BaseModel, Field

from ..transactions import TransactionRecord


# Auth schemas
class RegisterRequest(BaseModel):
    # Blank fields are rejected by the registry with INVALID_IDENTITY
    first_name: str = ""
    last_name: str = ""
    national_id: str = Field("", description="13-digit national ID number")
    email: str = ""
    password: str = ""
    phone_number: Optional[str] = None


class LoginRequest(BaseModel):
    national_id: str = ""
    password: str = ""


# Transaction schemas
class TransactionRequest(BaseModel):
    # Parsed by the ledger so missing or malformed values surface as coded 400s
    type: Optional[str] = Field(None, description="deposit, withdrawal or transfer")
    amount: Optional[Union[str, int, float]] = Field(None, description="Amount, e.g. \"1500.00\"")
    account_type: Optional[str] = Field(None, description="savings, checking, business or investment")
    to_account_type: Optional[str] = Field(None, description="Transfer destination")
    title: Optional[str] = None
    description: Optional[str] = None


class TransactionModel(BaseModel):
    id: str
    type: str
    title: str
    amount: str = Field(..., description="Decimal amount as string")
    display_amount: str
    account: str
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    transfer_id: Optional[str] = None
    leg: Optional[str] = None
    date: str

    @classmethod
    def from_record(cls, record: TransactionRecord) -> 'TransactionModel':
        return cls(
            id=record.id,
            type=record.type.value,
            title=record.title,
            amount=str(record.amount),
            display_amount=record.display_amount,
            account=record.account,
            from_account=record.from_account,
            to_account=record.to_account,
            transfer_id=record.transfer_id,
            leg=record.leg.value if record.leg else None,
            date=record.date.isoformat()
        )
