"""
Registration and login endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user, issue_token
from .schemas import LoginRequest, RegisterRequest


router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Register a customer and issue a bearer token"""
    user = system.registry.create_account(
        first_name=request.first_name,
        last_name=request.last_name,
        national_id=request.national_id,
        email=request.email,
        password=request.password,
        phone_number=request.phone_number
    )

    return {
        "success": True,
        "data": {
            "id": user.id,
            "name": user.full_name,
            "email": user.email,
            "account_number": user.account_number,
            "card_number": user.card_number,
            "token": issue_token(user.id, system.config),
        },
        "message": "Registration successful"
    }


@router.post("/login")
def login(
    request: LoginRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Verify credentials and issue a bearer token"""
    user = system.registry.authenticate(request.national_id, request.password)

    return {
        "success": True,
        "data": {
            "id": user.id,
            "name": user.full_name,
            "email": user.email,
            "account_number": user.account_number,
            "card_number": user.card_number,
            "balances": user.balances.to_display_dict(),
            "token": issue_token(user.id, system.config),
        },
        "message": "Login successful"
    }


@router.get("/me")
def get_me(
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Current customer's profile"""
    user = system.registry.require_user(user_id)
    return {"success": True, "data": user.to_profile()}
