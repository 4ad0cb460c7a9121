"""
Identity & Account Registry Module

Registers customers under a unique 13-digit national ID and e-mail address,
generates their account and card numbers, holds credential verifiers, and
owns the single write path for the embedded balance set.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Optional, Any
import hashlib
import hmac
import re
import secrets
import threading
import uuid

from .accounts import Balances
from .config import get_config
from .errors import (
    DuplicateIdentity, IdentifierExhausted, InvalidCredentials, InvalidIdentity,
    UserNotFound
)
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


NATIONAL_ID_PATTERN = re.compile(r"^\d{13}$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


@dataclass
class UserAccount(StorageRecord):
    """
    One customer's banking relationship
    """
    first_name: str
    last_name: str
    national_id: str
    email: str
    password_hash: str
    password_salt: str
    account_number: str
    card_number: str
    balances: Balances
    phone_number: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_profile(self) -> Dict[str, Any]:
        """Public view without credential fields"""
        return {
            "id": self.id,
            "name": self.full_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "national_id": self.national_id,
            "email": self.email,
            "phone_number": self.phone_number,
            "account_number": self.account_number,
            "card_number": self.card_number,
            "balances": self.balances.to_display_dict(),
            "created_at": self.created_at.isoformat(),
        }


def generate_account_number() -> str:
    """10 digits, first digit non-zero"""
    return str(1_000_000_000 + secrets.randbelow(9_000_000_000))


def generate_card_number() -> str:
    """16 digits, first digit non-zero, grouped in blocks of four"""
    raw = str(1_000_000_000_000_000 + secrets.randbelow(9_000_000_000_000_000))
    return " ".join(raw[i:i + 4] for i in range(0, 16, 4))


class UserRegistry:
    """
    Manages registration, identity lookups and credential verification
    """

    def __init__(self, storage: StorageInterface, max_identifier_attempts: Optional[int] = None):
        self.storage = storage
        self.table_name = "users"
        self.max_identifier_attempts = (
            max_identifier_attempts or get_config().identifier_generation_attempts
        )
        self.logger = get_logger("openbank.users")
        # Serializes the uniqueness check with the insert
        self._registration_lock = threading.Lock()

        self.storage.ensure_index(self.table_name, ["national_id"])
        self.storage.ensure_index(self.table_name, ["email"])
        self.storage.ensure_index(self.table_name, ["account_number"])

    def create_account(
        self,
        first_name: str,
        last_name: str,
        national_id: str,
        email: str,
        password: str,
        phone_number: Optional[str] = None
    ) -> UserAccount:
        """
        Register a new customer

        Args:
            first_name: Customer's first name
            last_name: Customer's last name
            national_id: 13-digit national ID number
            email: E-mail address (unique, case-insensitive)
            password: Plaintext password, stored only as a scrypt verifier
            phone_number: Optional phone number

        Returns:
            Created UserAccount with zero balances

        Raises:
            InvalidIdentity: If a required field is missing or malformed
            DuplicateIdentity: If the national ID or e-mail is already registered
            IdentifierExhausted: If no free account number could be drawn
        """
        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        national_id = (national_id or "").strip()
        email = (email or "").strip().lower()

        if not first_name or not last_name or not national_id or not email or not password:
            raise InvalidIdentity("Please include all required fields")
        if not NATIONAL_ID_PATTERN.match(national_id):
            raise InvalidIdentity("National ID number must be exactly 13 digits")
        if not EMAIL_PATTERN.match(email):
            raise InvalidIdentity("Please add a valid email")

        with self._registration_lock, self.storage.atomic():
            if self.find_by_identity(national_id) or self.get_user_by_email(email):
                raise DuplicateIdentity("User already exists with this ID or Email")

            now = datetime.now(timezone.utc)
            salt = secrets.token_hex(16)
            user = UserAccount(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                first_name=first_name,
                last_name=last_name,
                national_id=national_id,
                email=email,
                password_hash=self._hash_password(password, salt),
                password_salt=salt,
                account_number=self._allocate_account_number(),
                card_number=generate_card_number(),
                balances=Balances(),
                phone_number=(phone_number or "").strip() or None
            )
            self._save_user(user)

        log_action(
            self.logger, "info", "Customer registered",
            user_id=user.id, action="register", resource=f"user:{user.id}",
            extra={"account_number": user.account_number}
        )
        return user

    def find_by_identity(self, national_id: str) -> Optional[UserAccount]:
        """Look a customer up by national ID"""
        users = self.storage.find(self.table_name, {"national_id": national_id})
        if users:
            return self._user_from_dict(users[0])
        return None

    def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        users = self.storage.find(self.table_name, {"email": email.strip().lower()})
        if users:
            return self._user_from_dict(users[0])
        return None

    def get_user(self, user_id: str) -> Optional[UserAccount]:
        """Get customer by ID"""
        user_dict = self.storage.load(self.table_name, user_id)
        if user_dict:
            return self._user_from_dict(user_dict)
        return None

    def require_user(self, user_id: str) -> UserAccount:
        user = self.get_user(user_id)
        if not user:
            raise UserNotFound(f"User {user_id} not found")
        return user

    def authenticate(self, national_id: str, password: str) -> UserAccount:
        """
        Verify credentials

        Raises:
            InvalidCredentials: Unknown ID or wrong password, indistinguishably
        """
        user = self.find_by_identity((national_id or "").strip())
        if not user or not self._verify_password(user, password or ""):
            log_action(
                self.logger, "warning", "Authentication failed",
                action="login_failed", resource="auth"
            )
            raise InvalidCredentials("Invalid credentials")
        return user

    def store_balances(self, user: UserAccount, balances: Balances) -> UserAccount:
        """
        Persist a new balance set. The ledger is the only caller; it must
        invoke this inside its atomic unit.
        """
        user.balances = balances
        user.updated_at = datetime.now(timezone.utc)
        self._save_user(user)
        return user

    def _allocate_account_number(self) -> str:
        for _ in range(self.max_identifier_attempts):
            candidate = generate_account_number()
            if not self.storage.find(self.table_name, {"account_number": candidate}):
                return candidate
            self.logger.warning("Account number collision, drawing again")
        raise IdentifierExhausted("Could not allocate a unique account number")

    def _hash_password(self, password: str, salt: str) -> str:
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _verify_password(self, user: UserAccount, password: str) -> bool:
        expected = self._hash_password(password, user.password_salt)
        return hmac.compare_digest(expected, user.password_hash)

    def _save_user(self, user: UserAccount) -> None:
        self.storage.save(self.table_name, user.id, self._user_to_dict(user))

    def _user_to_dict(self, user: UserAccount) -> Dict[str, Any]:
        return {
            "id": user.id,
            "created_at": user.created_at.isoformat(),
            "updated_at": user.updated_at.isoformat(),
            "first_name": user.first_name,
            "last_name": user.last_name,
            "national_id": user.national_id,
            "email": user.email,
            "phone_number": user.phone_number,
            "password_hash": user.password_hash,
            "password_salt": user.password_salt,
            "account_number": user.account_number,
            "card_number": user.card_number,
            "balances": user.balances.to_dict(),
        }

    def _user_from_dict(self, data: Dict[str, Any]) -> UserAccount:
        return UserAccount(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            first_name=data["first_name"],
            last_name=data["last_name"],
            national_id=data["national_id"],
            email=data["email"],
            password_hash=data["password_hash"],
            password_salt=data["password_salt"],
            account_number=data["account_number"],
            card_number=data["card_number"],
            balances=Balances.from_dict(data.get("balances", {})),
            phone_number=data.get("phone_number")
        )
