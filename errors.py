"""
Error taxonomy for the donation ledger.

Business rules raise these; ``register_exception_handlers`` turns them into
JSON responses of the form ``{"detail": "...", **extra}``.
"""

import logging
from decimal import Decimal

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"detail": self.message}
        for key, value in self.extra.items():
            body[key] = float(value) if isinstance(value, Decimal) else value
        return body


class ValidationError(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(LedgerError):
    status_code = status.HTTP_409_CONFLICT


class NotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN


class AuthError(LedgerError):
    status_code = status.HTTP_401_UNAUTHORIZED


class BudgetExceededError(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, remaining: Decimal, attempted: Decimal, budget: Decimal = None):
        message = (
            f"Expense blocked. {max(remaining, Decimal('0')):,.2f} of the budget remains; "
            f"an expense of {attempted:,.2f} would exceed the limit."
        )
        super().__init__(message, remaining=remaining, attempted=attempted)
        self.remaining = remaining
        self.attempted = attempted
        self.budget = budget


class InternalError(LedgerError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


async def ledger_error_handler(request: Request, exc: LedgerError):
    headers = None
    if isinstance(exc, AuthError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        message = error.get("msg", "Invalid value").removeprefix("Value error, ")
        messages.append(f"{field}: {message}" if field else message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "; ".join(messages) or "Invalid request", "errors": messages},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=InternalError().to_dict())


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
