# Overview: Inventory error taxonomy shared by services and routes.

"""
Inventory errors.

Services raise these; routes translate them to JSON responses using the
status_code carried on each class. Anything that reaches a route as a
different exception type is an unexpected failure (HTTP 500).
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for inventory domain errors."""

    status_code = 400
    code = "inventory_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(InventoryError):
    """Unknown item / allocation / order / count / alert / reference id."""

    status_code = 404
    code = "not_found"


class ValidationError(InventoryError, ValueError):
    """400-level input problem (malformed or out-of-range values)."""

    status_code = 400
    code = "validation_error"


class InvalidOperationError(InventoryError):
    """Operation not permitted on this entity, e.g. a direct quantity write."""

    status_code = 422
    code = "invalid_operation"


class InvalidTransitionError(InventoryError):
    """State-machine violation."""

    status_code = 409
    code = "invalid_transition"


class InsufficientStockError(InventoryError):
    """Operation would drive on-hand, available or a location balance below zero."""

    status_code = 409
    code = "insufficient_stock"


class ConflictError(InventoryError, ValueError):
    """409-level business rule conflict (blocked delete/close, duplicate code, stale row)."""

    status_code = 409
    code = "conflict"


class ForbiddenError(InventoryError):
    status_code = 403
    code = "forbidden"
