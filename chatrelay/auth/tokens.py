"""
Identity token service.

Issues and verifies signed, time-limited JWTs whose "sub" claim carries the
identity (username).
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from ..exceptions import AuthenticationError, TokenExpiredError, TokenInvalidError
from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_ALGORITHM = "HS256"
DEFAULT_EXPIRE_HOURS = 24


class TokenService:
    """HS256 JWT issuer/verifier bound to one secret."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = DEFAULT_ALGORITHM,
        expire_hours: int = DEFAULT_EXPIRE_HOURS,
    ) -> None:
        if not secret_key:
            raise AuthenticationError("JWT secret must not be empty", auth_type="token")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = timedelta(hours=expire_hours)

    def issue(self, identity: str, expires_delta: timedelta | None = None) -> str:
        """
        Create a token for an identity.

        Args:
            identity: The authenticated username
            expires_delta: Override of the configured validity window

        Returns:
            Encoded JWT string
        """
        now = datetime.now(UTC)
        claims: dict[str, Any] = {
            "sub": identity,
            "username": identity,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.expires_delta),
        }
        token = jwt.encode(claims, self._secret_key, algorithm=self.algorithm)
        logger.debug("Access token issued", username=identity)
        return token

    def verify(self, token: str | None) -> str:
        """
        Validate a token and return the identity it carries.

        Raises:
            TokenExpiredError: Signature is valid but the token has expired
            TokenInvalidError: Token is missing, malformed, badly signed, or has no subject
        """
        if not token:
            raise TokenInvalidError("No token provided")

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError(details={"reason": str(e)}) from e
        except JWTError as e:
            raise TokenInvalidError(details={"reason": str(e)}) from e

        identity = payload.get("sub")
        if not isinstance(identity, str) or not identity:
            raise TokenInvalidError("Token missing subject claim")
        return identity
