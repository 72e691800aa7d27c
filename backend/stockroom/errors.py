# Overview: Service error taxonomy shared by services and routes.

from __future__ import annotations


class ServiceError(Exception):
    """Base for failures a route can report as a structured envelope."""

    status_code = 500

    def __init__(self, message: str, *, extra: dict | None = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class ValidationError(ServiceError):
    """400-level input problem."""

    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404

    def __init__(self, entity: str, message: str | None = None, *, extra: dict | None = None):
        super().__init__(message or f"{entity} not found", extra=extra)
        self.entity = entity


class ForbiddenError(ServiceError):
    status_code = 403


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., duplicate product/unit rate)."""

    status_code = 409


class InsufficientStockError(ServiceError):
    """
    Requested quantity exceeds the clamped available quantity.

    extra carries stockDetails: available, requested, shortfall, unit.
    """

    status_code = 400


class InvalidTransferError(ValidationError):
    """Source and target inventories are the same."""


class InternalError(ServiceError):
    status_code = 500
