"""
Authentication package for the chat relay.

This package contains:
- Argon2id password hashing
- The credential store (accounts and password verification)
- The JWT token service
- HTTP authentication dependencies and the /login and /register endpoints
"""

from .credentials import CredentialStore, UserRecord
from .tokens import TokenService

__all__ = ["CredentialStore", "TokenService", "UserRecord"]
