"""Storage contract shared by the relational and key-value backends"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from catalog_service.errors import ValidationError
from catalog_service.models.schemas import (
    CategoryResponse,
    DepartmentResponse,
    ProductFilter,
    ProductListResponse,
    ProductResponse,
)


class CatalogRepository(ABC):
    """
    Persistence for products, departments and categories.

    Reads only ever see active records; deletes are soft. Every method
    raises ``catalog_service.errors`` kinds, never backend exceptions.
    """

    backend: str = "abstract"

    # Products

    @abstractmethod
    def get_product(self, product_id: str) -> ProductResponse:
        """Active product by id, or NotFoundError"""

    @abstractmethod
    def list_products(self, criteria: ProductFilter) -> ProductListResponse:
        """One page of active products matching ``criteria``, ordered by (created_at, id)"""

    @abstractmethod
    def create_product(self, data: Dict[str, Any]) -> ProductResponse:
        """Insert a new active product; duplicate sku/slug raises ConflictError"""

    @abstractmethod
    def update_product(self, product_id: str, changes: Dict[str, Any]) -> ProductResponse:
        """Apply a sparse patch to an active product"""

    @abstractmethod
    def delete_product(self, product_id: str) -> None:
        """Soft delete"""

    @abstractmethod
    def adjust_stock(self, product_id: str, delta: int) -> ProductResponse:
        """Atomically add ``delta`` to stock unless the result would be negative"""

    @abstractmethod
    def list_low_stock(self) -> List[ProductResponse]:
        """Active products with stock <= min_stock"""

    # Departments

    @abstractmethod
    def get_department(self, department_id: str) -> DepartmentResponse:
        ...

    @abstractmethod
    def list_departments(self) -> List[DepartmentResponse]:
        ...

    @abstractmethod
    def create_department(self, data: Dict[str, Any]) -> DepartmentResponse:
        ...

    @abstractmethod
    def update_department(self, department_id: str, changes: Dict[str, Any]) -> DepartmentResponse:
        ...

    @abstractmethod
    def delete_department(self, department_id: str) -> None:
        ...

    # Categories

    @abstractmethod
    def get_category(self, category_id: str) -> CategoryResponse:
        ...

    @abstractmethod
    def list_categories(
        self, parent_id: Optional[str] = None, include_inactive: bool = False
    ) -> List[CategoryResponse]:
        """Categories, optionally only the direct children of ``parent_id``; inactive ones on request"""

    @abstractmethod
    def create_category(self, data: Dict[str, Any]) -> CategoryResponse:
        ...

    @abstractmethod
    def update_category(self, category_id: str, changes: Dict[str, Any]) -> CategoryResponse:
        ...

    @abstractmethod
    def delete_category(self, category_id: str) -> None:
        ...

    # Health

    @abstractmethod
    def ping(self) -> None:
        """Raise StorageError when the backend is unreachable"""

    @staticmethod
    def _require_changes(changes: Dict[str, Any]) -> None:
        if not changes:
            raise ValidationError("No fields to update")
