"""Inventory error taxonomy.

Raised by the service layer and the ledger client. The API layer catches
these and turns them into JSON or HTML responses using ``status_code``.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for every error the API knows how to render."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InventoryError):
    """A required field is missing or malformed. Raised before any ledger I/O."""

    status_code = 400


class InvalidStatus(ValidationError):
    """A status string is not one of ``en route``, ``arrived`` or ``sold``."""


class SaleAlreadyLogged(ValidationError):
    """A sale was logged for a product that is already sold (resale disabled)."""


class ProductNotFound(InventoryError):
    """The ledger reports the product as absent or deleted.

    An expected business outcome, so the API answers 200 with
    ``success: false``.
    """

    status_code = 200

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product {product_id} is not registered or has been deleted.")
        self.product_id = product_id


class TransientIOError(InventoryError):
    """Network or node failure on a read; retried before it surfaces."""


class LedgerExecutionError(InventoryError):
    """A transaction reverted or a ledger call failed. Never retried."""
