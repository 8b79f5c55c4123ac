"""Argon2 password hashing."""

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from core.env import env_int
from core.logging import get_logger

logger = get_logger(__name__)

_PASSWORD_HASHER = PasswordHasher(
    time_cost=env_int("AUTH_ARGON2_TIME_COST", 2, minimum=1),
    memory_cost=env_int("AUTH_ARGON2_MEMORY_COST", 65536, minimum=8192),
    parallelism=env_int("AUTH_ARGON2_PARALLELISM", 1, minimum=1),
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    return _PASSWORD_HASHER.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    try:
        return _PASSWORD_HASHER.verify(password_hash, password)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError):
        logger.warning("Stored password hash could not be verified.")
        return False


__all__ = ["hash_password", "verify_password"]
