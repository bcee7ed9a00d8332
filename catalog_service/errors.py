"""
Error kinds raised by the catalog repositories and services.

The HTTP layer maps each kind to a status code through ``status_code``,
so callers never need to inspect message text.
"""
from typing import Any, Dict, List, Optional


class CatalogError(Exception):
    """Base class for every error surfaced by the catalog core"""

    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "type": self.kind}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(CatalogError):
    """Bad or missing input. Never retried."""

    status_code = 400
    kind = "validation_error"

    @classmethod
    def from_pydantic(cls, errors: List[Dict[str, Any]]) -> "ValidationError":
        """Build from pydantic's ``errors()`` output, keeping every violation"""
        details = []
        for error in errors:
            loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
            details.append({
                "field": ".".join(loc) or None,
                "message": error.get("msg", ""),
                "type": error.get("type", ""),
            })
        return cls("Validation failed", details)


class NotFoundError(CatalogError):
    """Entity is absent or soft-deleted"""

    status_code = 404
    kind = "not_found"


class ConflictError(CatalogError):
    """Request contradicts current state (duplicate keys, insufficient stock, bad parent)"""

    status_code = 409
    kind = "conflict"


class InsufficientStockError(ConflictError):
    """Stock adjustment would drive stock below zero"""

    kind = "insufficient_stock"

    def __init__(self, product_id: str, current: Optional[int], delta: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: current={current}, requested={delta}",
            [{"field": "quantity", "message": "stock cannot go below zero"}],
        )
        self.product_id = product_id
        self.current = current
        self.delta = delta


class StorageError(CatalogError):
    """Backend unreachable or rejected the operation"""

    status_code = 503
    kind = "storage_error"
