"""
Custom exception classes and error handlers
Provides consistent error responses across the application
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StoreForgeException(HTTPException):
    """Base exception class for StoreForge application"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class BadRequestException(StoreForgeException):
    """400 Bad Request"""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )


class UnauthorizedException(StoreForgeException):
    """401 Unauthorized"""

    def __init__(self, detail: str = "Unauthorized", error_code: str = "UNAUTHORIZED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
            headers={"WWW-Authenticate": "Bearer"}
        )


class NotFoundException(StoreForgeException):
    """404 Not Found"""

    def __init__(self, detail: str = "Not found", error_code: str = "NOT_FOUND"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=error_code
        )


class ConflictException(StoreForgeException):
    """409 Conflict"""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code
        )


class InternalServerException(StoreForgeException):
    """500 Internal Server Error"""

    def __init__(
        self,
        detail: str = "Internal server error",
        error_code: str = "INTERNAL_ERROR"
    ):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code=error_code
        )


# Business logic exceptions
class StoreNotFoundException(NotFoundException):
    """Store missing or not active"""

    def __init__(self, detail: str = "Store not found"):
        super().__init__(detail=detail, error_code="STORE_NOT_FOUND")


class CartNotFoundException(NotFoundException):
    """Abandoned cart missing or not owned by the caller"""

    def __init__(self, detail: str = "Cart not found"):
        super().__init__(detail=detail, error_code="CART_NOT_FOUND")


class CartNotActiveException(BadRequestException):
    """Cart already recovered or expired"""

    def __init__(self, detail: str = "Cart is no longer active"):
        super().__init__(detail=detail, error_code="CART_NOT_ACTIVE")


class NoContactInfoException(BadRequestException):
    """Cart has no email address to remind"""

    def __init__(self, detail: str = "Cart has no email address"):
        super().__init__(detail=detail, error_code="NO_CONTACT_INFO")


class RecoverySequenceCompleteException(BadRequestException):
    """All reminders of the recovery sequence were already sent"""

    def __init__(self, detail: str = "All recovery emails have already been sent"):
        super().__init__(detail=detail, error_code="RECOVERY_SEQUENCE_COMPLETE")


class NoValidItemsException(BadRequestException):
    """None of the requested cart items could be validated"""

    def __init__(self, detail: str = "No valid items in cart", errors: Optional[list] = None):
        super().__init__(detail=detail, error_code="NO_VALID_ITEMS")
        self.errors = errors or []


class CouponUsageLimitException(ConflictException):
    """Limited-use coupon was exhausted by a concurrent order"""

    def __init__(self, detail: str = "This coupon has reached its usage limit"):
        super().__init__(detail=detail, error_code="COUPON_USAGE_LIMIT_REACHED")


class EmailDeliveryException(StoreForgeException):
    """Recovery email could not be delivered"""

    def __init__(self, detail: str = "Failed to send email"):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code="EMAIL_DELIVERY_FAILED"
        )


def _error_body(code: Optional[str], message: str, **extra: Any) -> Dict[str, Any]:
    body = {"success": False, "error": code or "ERROR", "message": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


async def storeforge_exception_handler(request: Request, exc: StoreForgeException) -> JSONResponse:
    errors = getattr(exc, "errors", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.error_code, exc.detail, errors=errors or None),
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("VALIDATION_ERROR", "Invalid request body", errors=errors),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("INTERNAL_ERROR", "An internal error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StoreForgeException, storeforge_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
