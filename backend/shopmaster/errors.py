# Overview: Domain exception hierarchy and the central Flask error handlers.

from __future__ import annotations

from flask import current_app
from werkzeug.exceptions import HTTPException

from .responses import failure
from .validation import ValidationError, ConflictError


class ShopError(Exception):
    """
    Base class for business-rule failures.

    Every subclass carries the HTTP status it maps to, so routes can let these
    propagate and the registered handler renders the response envelope.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ShopError):
    status_code = 404


class InsufficientStockError(ShopError):
    """Requested quantity exceeds the stock on hand."""


class InvalidStateError(ShopError):
    """Operation not allowed in the entity's current status."""


class EmptyOrderError(ShopError):
    pass


class ProductUnavailableError(ShopError):
    pass


class VariantUnavailableError(ShopError):
    pass


class ForbiddenError(ShopError):
    status_code = 403


def register_error_handlers(app) -> None:
    @app.errorhandler(ShopError)
    def handle_shop_error(exc: ShopError):
        errors = exc.details.get("errors") if exc.details else None
        return failure(exc.message, exc.status_code, errors=errors)

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return failure(str(exc), 400, errors=getattr(exc, "errors", None) or None)

    @app.errorhandler(ConflictError)
    def handle_conflict_error(exc: ConflictError):
        return failure(str(exc), 409)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return failure(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        current_app.logger.exception("Unhandled error")
        message = "Internal server error"
        if current_app.debug:
            message = f"{message}: {exc}"
        return failure(message, 500)
