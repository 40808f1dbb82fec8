"""
Argon2 password hashing utilities for the chat relay.

Passwords are hashed with Argon2id: slow, salted, one-way.
"""

import os

from argon2 import PasswordHasher, Type, exceptions
from argon2.exceptions import VerificationError

from ..exceptions import AuthenticationError
from ..logging_config import get_logger

logger = get_logger(__name__)

# Default Argon2 parameters; overridable via ARGON2_TIME_COST, ARGON2_MEMORY_COST,
# ARGON2_PARALLELISM, ARGON2_HASH_LENGTH
# TIME_COST: 1-10 range (3 is recommended for web apps)
# MEMORY_COST: 1024-1048576 KiB range (65536 = 64MB recommended)
# PARALLELISM: 1-16 range (1 recommended for web servers)
# HASH_LENGTH: 16-64 bytes range (32 bytes = 256 bits recommended)
TIME_COST = int(os.getenv("ARGON2_TIME_COST", "3"))
MEMORY_COST = int(os.getenv("ARGON2_MEMORY_COST", "65536"))
PARALLELISM = int(os.getenv("ARGON2_PARALLELISM", "1"))
HASH_LENGTH = int(os.getenv("ARGON2_HASH_LENGTH", "32"))

if TIME_COST < 1 or TIME_COST > 10:
    raise ValueError(f"ARGON2_TIME_COST must be between 1 and 10, got {TIME_COST}")
if MEMORY_COST < 1024 or MEMORY_COST > 1048576:
    raise ValueError(f"ARGON2_MEMORY_COST must be between 1024 and 1048576, got {MEMORY_COST}")
if PARALLELISM < 1 or PARALLELISM > 16:
    raise ValueError(f"ARGON2_PARALLELISM must be between 1 and 16, got {PARALLELISM}")
if HASH_LENGTH < 16 or HASH_LENGTH > 64:
    raise ValueError(f"ARGON2_HASH_LENGTH must be between 16 and 64, got {HASH_LENGTH}")

_default_hasher = PasswordHasher(
    type=Type.ID,
    time_cost=TIME_COST,
    memory_cost=MEMORY_COST,
    parallelism=PARALLELISM,
    hash_len=HASH_LENGTH,
)


def hash_password(password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Args:
        password: Plaintext password

    Returns:
        Argon2id hash string in format: $argon2id$v=19$m=65536,t=3,p=1$...

    Raises:
        AuthenticationError: If password is not a string or hashing fails
    """
    if not isinstance(password, str):
        raise AuthenticationError("Password must be a string", auth_type="password")

    try:
        return _default_hasher.hash(password)
    except exceptions.HashingError as e:
        logger.error("Argon2 hashing error", error=str(e), error_type=type(e).__name__)
        raise AuthenticationError(
            f"Failed to hash password: {e}",
            auth_type="password",
            user_friendly="Password processing failed",
        ) from e


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a plaintext password against an Argon2 hash.

    Returns:
        True if password matches hash, False otherwise (including malformed hashes)
    """
    if not isinstance(password, str) or not hashed:
        logger.warning("Password verification failed - missing password or hash")
        return False

    try:
        return bool(_default_hasher.verify(hashed, password))
    except (VerificationError, exceptions.InvalidHashError) as e:
        logger.debug("Password verification failed", error_type=type(e).__name__)
        return False


def is_argon2_hash(hash_value: str | None) -> bool:
    """Check if a given string is an Argon2 hash."""
    return isinstance(hash_value, str) and hash_value.startswith("$argon2")


def needs_rehash(hashed: str) -> bool:
    """Check if a hash needs to be rehashed due to parameter changes."""
    if not is_argon2_hash(hashed):
        return True
    try:
        return bool(_default_hasher.check_needs_rehash(hashed))
    except (ValueError, TypeError, exceptions.InvalidHashError) as e:
        logger.error("Error checking password rehash needs", error=str(e), error_type=type(e).__name__)
        return True
