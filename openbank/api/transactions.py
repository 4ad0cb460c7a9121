"""
Transaction and balance endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import TransactionModel, TransactionRequest


router = APIRouter()


@router.get("")
def list_transactions(
    limit: int = Query(50, ge=1),
    account: Optional[str] = None,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Most recent transactions, newest first"""
    records = system.ledger.list_recent_transactions(user_id, limit=limit, account=account)
    return {
        "success": True,
        "count": len(records),
        "data": [TransactionModel.from_record(record).model_dump() for record in records]
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_transaction(
    request: TransactionRequest,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Apply a deposit, withdrawal or transfer"""
    result = system.ledger.apply_operation(
        user_id,
        kind=request.type,
        amount=request.amount,
        account_name=request.account_type,
        to_account=request.to_account_type,
        title=request.title or request.description
    )

    return {
        "success": True,
        "data": {
            "balances": result.balances.to_display_dict(),
            "transactions": [
                TransactionModel.from_record(record).model_dump() for record in result.records
            ],
        },
        "message": "Transaction completed successfully"
    }


@router.get("/balance/{account_type}")
def get_account_balance(
    account_type: str,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Balance of one sub-account"""
    balance = system.ledger.get_balance(user_id, account_type)
    return {
        "success": True,
        "data": {
            "account_type": account_type,
            "balance": str(balance),
            "formatted_balance": balance.to_string(system.config.currency_symbol),
        }
    }
