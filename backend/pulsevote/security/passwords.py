from __future__ import annotations

import hashlib
import hmac
import re
from typing import List, Optional

from passlib.hash import argon2

from pulsevote.core.settings import get_settings

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

# Explicit Argon2id configuration
_argon = argon2.using(type="ID", time_cost=3, memory_cost=65536, parallelism=2)

_dummy_hash: Optional[str] = None


def _pepperize(password: str) -> str:
    """Combine the password with PASSWORD_PEPPER (kept outside the DB) via HMAC-SHA256."""
    pepper = get_settings().password_pepper
    if not pepper:
        return password
    return hmac.new(pepper.encode("utf-8"), password.encode("utf-8"), hashlib.sha256).hexdigest()


def password_problems(password: str) -> List[str]:
    """Return every strength rule the password breaks; empty means acceptable."""
    problems: List[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password) > MAX_PASSWORD_LENGTH:
        problems.append(f"password must be at most {MAX_PASSWORD_LENGTH} characters")
    if any(ord(ch) < 32 for ch in password):
        problems.append("password contains control characters")
    if password.strip() != password:
        problems.append("password must not have surrounding spaces")
    if not re.search(r"[a-z]", password):
        problems.append("password must include a lowercase letter")
    if not re.search(r"[A-Z]", password):
        problems.append("password must include an uppercase letter")
    if not re.search(r"\d", password):
        problems.append("password must include a digit")
    if not re.search(r"[^A-Za-z0-9]", password):
        problems.append("password must include a special character")
    return problems


def hash_password(password: str) -> str:
    return _argon.hash(_pepperize(password))


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _argon.verify(_pepperize(password), password_hash)
    except ValueError:
        # malformed or foreign hash
        return False


def burn_verification(password: str) -> None:
    """Spend one verification against a throwaway hash.

    Called when the account does not exist so a failed login takes about
    as long as a wrong password for a real account.
    """
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("Dummy-Passw0rd!")
    verify_password(password, _dummy_hash)


__all__ = [
    "password_problems",
    "hash_password",
    "verify_password",
    "burn_verification",
]
