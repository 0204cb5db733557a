# backend/services/errors.py
from typing import Any, Dict, Optional


# Base class for every error raised by the ledger services
class LedgerError(Exception):
    status_code = 400

    def __init__(self, message: str, **meta: Any):
        super().__init__(message)
        self.message = message
        self.meta: Dict[str, Any] = meta

    def to_dict(self) -> Dict[str, Any]:
        body = {"detail": self.message, "error": type(self).__name__}
        if self.meta:
            body["meta"] = self.meta
        return body


# Missing or invalid input, raised before any write
class ValidationError(LedgerError):
    status_code = 400


# Unknown product, sale line or return
class NotFoundError(LedgerError):
    status_code = 404

    def __init__(self, resource: str, identifier: Any, message: Optional[str] = None):
        super().__init__(message or f"{resource} {identifier} not found", resource=resource, id=identifier)
        self.resource = resource
        self.identifier = identifier


# Requested quantity exceeds what is on hand
class InsufficientStockError(LedgerError):
    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int, message: Optional[str] = None):
        super().__init__(
            message or f"Not enough stock for product {product_id}: requested {requested}, available {available}",
            product_id=product_id, requested=requested, available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


# The store failed partway through a multi-step write; the unit was rolled back
class PartialFailureError(LedgerError):
    status_code = 500

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message, step=step)
        self.step = step
