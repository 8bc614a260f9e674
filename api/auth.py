"""
Authentication for the FastAPI API: password hashing, signed access tokens
and resolution of bearer tokens into the requesting user.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from api.database import APIDatabaseService, get_db_service
from catalog.errors import CatalogError, InvalidToken, TokenExpired, Unauthenticated
from catalog.models import UserRecord
from utilities.logger import bind_request_context

logger = structlog.get_logger(__name__)

BEARER_SCHEME = "Bearer"

# Missing or malformed headers are reported by AuthorizationGuard, not by HTTPBearer
security = HTTPBearer(auto_error=False)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash a password with bcrypt.

    Args:
        password: Plain-text password
        rounds: bcrypt cost factor

    Returns:
        Encoded bcrypt hash
    """
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain-text password against a stored bcrypt hash."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


class TokenService:
    """Issues and verifies signed, time-limited identity tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256", expires_in: timedelta = timedelta(days=7)):
        self.secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in

    def issue(self, user_id: str, now: Optional[datetime] = None) -> str:
        """
        Issue a token for a user.

        Args:
            user_id: Identifier embedded as the token subject
            now: Issue time, defaults to the current time

        Returns:
            Encoded JWT
        """
        issued_at = now or datetime.now(timezone.utc)
        claims = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + self.expires_in}
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """
        Verify a token and return the embedded user identifier.

        Raises:
            TokenExpired: If the token's expiry has passed
            InvalidToken: If the signature or structure is invalid
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenExpired()
        except JWTError:
            raise InvalidToken()

        user_id = payload.get("sub")
        if not user_id:
            raise InvalidToken()
        return user_id


class AuthorizationGuard:
    """Resolves bearer credentials into the authenticated user."""

    def __init__(self, tokens: TokenService, db_service: APIDatabaseService):
        self.tokens = tokens
        self.db_service = db_service

    async def authenticate(self, credentials: Optional[HTTPAuthorizationCredentials]) -> UserRecord:
        """
        Resolve the principal of a request.

        Args:
            credentials: Parsed Authorization header, None when absent or empty

        Returns:
            UserRecord of the token's owner

        Raises:
            Unauthenticated: If the header is missing or malformed, or the user no longer exists
            InvalidToken: If the token fails verification
            TokenExpired: If the token has expired
        """
        # HTTPBearer accepts any casing of the scheme
        if credentials is None or credentials.scheme != BEARER_SCHEME or not credentials.credentials:
            raise Unauthenticated()

        user_id = self.tokens.verify(credentials.credentials)

        user = await self.db_service.get_user_by_id(user_id)
        if user is None:
            logger.warning("Token subject not found", user_id=user_id)
            raise Unauthenticated("Invalid token. User not found.")

        return user


def get_token_service(request: Request) -> TokenService:
    """Token service created at application start-up."""
    tokens = getattr(request.app.state, "token_service", None)
    if tokens is None:
        raise CatalogError("Token service not available")
    return tokens


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db_service: APIDatabaseService = Depends(get_db_service),
    tokens: TokenService = Depends(get_token_service)
) -> UserRecord:
    """FastAPI dependency returning the authenticated user."""
    guard = AuthorizationGuard(tokens, db_service)
    user = await guard.authenticate(credentials)
    bind_request_context(user_id=user.id)
    return user
