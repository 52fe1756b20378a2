"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like DuplicateUsernameError)
without importing HTTP concepts. The handlers registered here translate them
into HTTP responses, so every endpoint reports errors the same way:
{"detail": "...", "error_type": "..."}

Exception hierarchy:
    ZoneGuardError (base)
    ├── InputValidationError       — 400, malformed or invalid input
    │   ├── InvalidRoleError       — role outside {admin, zone_admin}
    │   └── UserDeletionError      — store refused a delete
    ├── AuthenticationError        — 401, bad credentials or bad token
    │   └── InvalidCredentialsError
    ├── AuthorizationError         — 401, missing identity or wrong role
    ├── ConflictError              — 409, uniqueness violation
    │   └── DuplicateUsernameError
    ├── NotFoundError              — 400, referenced entity absent
    │   └── UserNotFoundError
    └── InternalError              — 500, hashing/signing/storage malfunction
        ├── PasswordHashingError
        └── TokenSigningError

    StorageError (raised by the persistence layer only)
    ├── DuplicateKeyError
    └── RecordNotFoundError

Status codes follow the REST contract consumed by existing clients: an
insufficient role is 401 (not 403) and an unknown user id is 400 (not 404).
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class ZoneGuardError(Exception):
    """Base exception for all ZoneGuard domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class InputValidationError(ZoneGuardError):
    """Raised when caller input is malformed or semantically invalid."""


class InvalidRoleError(InputValidationError):
    """Raised when a user is created with a role outside the recognized set."""

    def __init__(self, role: str):
        self.role = role
        super().__init__("invalid role")


class UserDeletionError(InputValidationError):
    """Raised when the store fails to delete a user for a reason other than absence."""

    def __init__(self):
        super().__init__("unable to delete user")


class AuthenticationError(ZoneGuardError):
    """
    Raised when a credential or bearer token cannot be verified.

    The message never says which check failed (expired, bad signature,
    malformed) so the response cannot be used as an oracle.
    """

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail)


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are incorrect (unknown user or wrong password)."""

    def __init__(self):
        super().__init__("Invalid username or password")


class AuthorizationError(ZoneGuardError):
    """
    Raised when a gated operation is refused.

    Used both for "no valid identity" and "wrong role"; callers cannot tell
    the two apart.
    """

    def __init__(self):
        super().__init__("user does not have permission to access this resource")


class ConflictError(ZoneGuardError):
    """Raised when an operation would violate a uniqueness invariant."""


class DuplicateUsernameError(ConflictError):
    """Raised when creating a user whose username is already taken."""

    def __init__(self, username: str):
        self.username = username
        super().__init__("username in use")


class NotFoundError(ZoneGuardError):
    """Raised when a referenced entity does not exist."""


class UserNotFoundError(NotFoundError):
    """Raised when a user id does not match any stored user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("user does not exist")


class InternalError(ZoneGuardError):
    """Raised for failures unrelated to caller input. Details are logged, not returned."""

    def __init__(self, detail: str = "internal error"):
        super().__init__(detail)


class PasswordHashingError(InternalError):
    """Raised when the password hashing backend fails."""

    def __init__(self):
        super().__init__("unable to hash password")


class TokenSigningError(InternalError):
    """Raised when a bearer token cannot be signed."""

    def __init__(self):
        super().__init__("unable to generate token")


# ---------------------------------------------------------------------------
# Persistence exceptions
# ---------------------------------------------------------------------------

class StorageError(Exception):
    """
    Base error raised by the persistence layer.

    Repositories translate engine-specific exceptions into these so the
    service never inspects driver or ORM error types.
    """


class DuplicateKeyError(StorageError):
    """Raised when an insert violates a unique constraint."""


class RecordNotFoundError(StorageError):
    """Raised when a lookup or delete matches no row."""


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each handler maps a domain exception to an HTTP status code and
    consistent JSON response format: {"detail": "error message"}

    This is called once while building the app in main.py.
    """

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Bad bodies are 400 in this API, not FastAPI's default 422
        return JSONResponse(
            status_code=400,
            content={
                "detail": "invalid request body",
                "error_type": "invalid_input",
                "errors": jsonable_errors(exc),
            },
        )

    @app.exception_handler(InputValidationError)
    async def input_validation_handler(
        request: Request, exc: InputValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": exc.detail, "error_type": "invalid_input"},
        )

    @app.exception_handler(AuthenticationError)
    async def authentication_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "error_type": "authentication_failed"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(AuthorizationError)
    async def authorization_handler(
        request: Request, exc: AuthorizationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "error_type": "not_permitted"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ConflictError)
    async def conflict_handler(
        request: Request, exc: ConflictError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "conflict"},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(
        request: Request, exc: NotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": exc.detail, "error_type": "not_found"},
        )

    @app.exception_handler(InternalError)
    async def internal_error_handler(
        request: Request, exc: InternalError
    ) -> JSONResponse:
        logger.error(
            "internal_error",
            error=exc.__class__.__name__,
            method=request.method,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": exc.detail, "error_type": "internal_error"},
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Reduce pydantic error entries to location and message, dropping echoed input."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
