"""
Security primitives: password hashing, bearer tokens, and role checks.

This module centralizes all cryptographic and authorization decisions so
they're easy to audit. Three concerns are handled here:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - Argon2id is memory-hard and time-hard; each hash gets its own random
     salt, so hashing the same password twice gives different strings
   - passlib's CryptContext provides constant-time verification

2. BEARER TOKENS (JSON Web Tokens)
   - After login, the operator receives a signed JWT carrying username
     ("sub"), role, issued-at ("iat") and expiry ("exp")
   - The token is signed with SECRET_KEY using HS256 (HMAC-SHA256)
   - The server is stateless: no session storage. A role change or deletion
     only takes effect once previously issued tokens expire

3. AUTHORIZATION
   - has_role() compares a validated identity's role against the role an
     operation requires. Exact match only; there is no role hierarchy

Hashing and verification are CPU-bound and synchronous. Async callers run
them in the thread pool (see services/user_service.py).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JOSEError, JWTClaimsError, JWTError
from passlib.context import CryptContext

from zoneguard.exceptions import AuthenticationError, PasswordHashingError, TokenSigningError
from zoneguard.models.user import Role

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

# "deprecated='auto'" lets a future scheme replace argon2 while old hashes
# still verify with the scheme that produced them.
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Args:
        plain_password: The operator's raw password input.

    Returns:
        An Argon2 hash string (e.g., "$argon2id$v=19$m=65536,t=3,p=4$...").

    Raises:
        PasswordHashingError: If the hashing backend fails. The backend's own
            message is logged, never returned to the caller.
    """
    try:
        return pwd_context.hash(plain_password)
    except (ValueError, TypeError, RuntimeError) as exc:
        logger.error("password_hash_failed", error=exc.__class__.__name__)
        raise PasswordHashingError() from exc


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plaintext password against a stored Argon2 hash.

    The comparison is constant-time. A mismatch is a normal False result;
    a stored hash that can't be parsed is also False (and logged).

    Args:
        plain_password: The password the operator just typed.
        hashed_password: The hash stored in the database.

    Returns:
        True if the password matches, False otherwise.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as exc:
        logger.warning("password_hash_unreadable", error=exc.__class__.__name__)
        return False


# ---------------------------------------------------------------------------
# 2. Bearer Tokens
# ---------------------------------------------------------------------------

# Tolerated difference between our clock and the clock that issued a token
CLOCK_SKEW = timedelta(seconds=30)


@dataclass(frozen=True)
class RequestIdentity:
    """The validated claims of a bearer token. Sole source of identity for a request."""

    username: str
    role: Role
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """
    Mints and validates signed bearer tokens.

    Built once at startup and shared by every request; the secret is
    read-only after construction.

    Usage:
        issuer = TokenIssuer(secret_key="...", expire_minutes=30)
        token = issuer.generate_token("alice", Role.ADMIN)
        identity = issuer.validate_token(token)
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 30,
    ) -> None:
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def generate_token(
        self,
        username: str,
        role: Role | str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """
        Create a signed JWT for an operator.

        Args:
            username: Stored as the standard "sub" claim.
            role: The operator's role at issuance time.
            expires_delta: Optional custom lifetime. Defaults to
                           expire_minutes.

        Returns:
            An encoded JWT string.

        Raises:
            TokenSigningError: If the token cannot be signed.
        """
        now = datetime.now(timezone.utc)
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.expire_minutes)

        claims = {
            "sub": username,
            "role": Role(role).value,
            "iat": now,
            "exp": now + expires_delta,
        }
        try:
            return jwt.encode(claims, self._secret_key, algorithm=self.algorithm)
        except JOSEError as exc:
            logger.error("token_signing_failed", error=exc.__class__.__name__)
            raise TokenSigningError() from exc

    def validate_token(self, token: str) -> RequestIdentity:
        """
        Decode and verify a JWT.

        Checks the signature, that the token has not expired, that it was not
        issued in the future, and that it names a subject and a known role.

        Raises:
            AuthenticationError: On any failure. The message is the same
                whatever went wrong; the reason is only logged.

        Returns:
            The RequestIdentity carried by the token.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"require_sub": True, "require_iat": True, "require_exp": True},
            )
        except ExpiredSignatureError:
            raise self._reject("expired") from None
        except JWTClaimsError:
            raise self._reject("invalid_claims") from None
        except JWTError:
            raise self._reject("malformed_or_bad_signature") from None

        issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
        if issued_at > datetime.now(timezone.utc) + CLOCK_SKEW:
            raise self._reject("issued_in_future")

        try:
            role = Role(payload.get("role"))
        except ValueError:
            raise self._reject("unknown_role") from None

        return RequestIdentity(
            username=payload["sub"],
            role=role,
            issued_at=issued_at,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    @staticmethod
    def _reject(reason: str) -> AuthenticationError:
        logger.info("token_rejected", reason=reason)
        return AuthenticationError()


# ---------------------------------------------------------------------------
# 3. Authorization
# ---------------------------------------------------------------------------


def has_role(identity: RequestIdentity | None, required_role: Role) -> bool:
    """
    Return True if the identity's role satisfies the required role.

    A missing identity never satisfies anything. Roles must match exactly.
    """
    if identity is None:
        return False
    return identity.role == required_role
