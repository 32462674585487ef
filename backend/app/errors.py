# backend/app/errors.py
"""
Ledger exceptions.

Routers let these propagate; app.main registers one handler that renders
them as {"success": false, "error": ...} with the status_code below.
Expected business outcomes (no invoice due, nothing prepaid, ...) are plain
return values and never raise.
"""
from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base for all ledger errors."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Caller supplied something the ledger cannot accept."""

    status_code = 422

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.field = field


class NotFoundError(LedgerError):
    status_code = 404

    def __init__(self, resource_type: str, identifier: Any, details: dict[str, Any] | None = None):
        super().__init__(f"{resource_type} not found", details)
        self.resource_type = resource_type
        self.identifier = identifier


class ConflictError(LedgerError):
    """State transition not allowed (e.g. rejecting a verified payment)."""

    status_code = 409


class InvoiceUnavailableError(LedgerError):
    """The invoice could not be created nor re-read after all upsert attempts."""

    status_code = 500

    def __init__(self, message: str = "Unable to prepare rent invoice.", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class StoreError(LedgerError):
    """Non-constraint write failure reported by the database."""

    status_code = 500
