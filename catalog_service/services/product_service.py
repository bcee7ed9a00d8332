"""Product business logic"""
from typing import List, Optional
from opentelemetry import trace
import logging

from catalog_service.errors import NotFoundError, ValidationError
from catalog_service.models.schemas import (
    ProductCreate,
    ProductFilter,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from catalog_service.repositories.base import CatalogRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def require_id(value: Optional[str], label: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{label} is required", [{"field": "id", "message": "must not be empty"}])
    return value


class ProductService:
    """Product service for business logic"""

    def __init__(self, repository: CatalogRepository):
        self.repository = repository

    def get_product(self, product_id: str) -> ProductResponse:
        """Get active product by ID"""
        with tracer.start_as_current_span("product_service.get_product") as span:
            span.set_attribute("product.id", product_id or "")
            return self.repository.get_product(require_id(product_id, "Product ID"))

    def list_products(self, criteria: Optional[ProductFilter] = None) -> ProductListResponse:
        """List active products matching ``criteria``, one page at a time"""
        criteria = criteria or ProductFilter()
        with tracer.start_as_current_span("product_service.list_products") as span:
            span.set_attribute("storage.backend", self.repository.backend)
            span.set_attribute("page.limit", criteria.limit)
            span.set_attribute("page.offset", criteria.offset)

            response = self.repository.list_products(criteria)

            span.set_attribute("products.total", response.total_count)
            span.set_attribute("products.returned", len(response.products))
            logger.info(
                f"Listed {len(response.products)} of {response.total_count} products "
                f"(limit={criteria.limit}, offset={criteria.offset})"
            )
            return response

    def search_products(self, query: str, criteria: Optional[ProductFilter] = None) -> ProductListResponse:
        """Free-text search; an empty query lists everything"""
        return self.list_products(self._narrow(criteria, search=query or None))

    def get_products_by_category(self, category_id: str, criteria: Optional[ProductFilter] = None) -> ProductListResponse:
        return self.list_products(self._narrow(criteria, category_id=require_id(category_id, "Category ID")))

    def get_products_by_department(
        self, department_id: str, criteria: Optional[ProductFilter] = None
    ) -> ProductListResponse:
        return self.list_products(
            self._narrow(criteria, department_id=require_id(department_id, "Department ID"))
        )

    def get_products_by_brand(self, brand: str, criteria: Optional[ProductFilter] = None) -> ProductListResponse:
        if not brand:
            raise ValidationError("Brand is required", [{"field": "brand", "message": "must not be empty"}])
        return self.list_products(self._narrow(criteria, brand=brand))

    def get_products_on_sale(self, criteria: Optional[ProductFilter] = None) -> ProductListResponse:
        return self.list_products(self._narrow(criteria, is_on_sale=True))

    def create_product(self, product_data: ProductCreate) -> ProductResponse:
        """Create new product in an existing category and department"""
        with tracer.start_as_current_span("product_service.create_product") as span:
            self._check_references(product_data.category_id, product_data.department_id)

            product = self.repository.create_product(product_data.model_dump())

            span.set_attribute("product.id", product.id)
            logger.info(f"Created product {product.id}: {product.sku}")
            return product

    def update_product(self, product_id: str, product_data: ProductUpdate) -> ProductResponse:
        """Apply only the fields present in ``product_data``"""
        with tracer.start_as_current_span("product_service.update_product") as span:
            span.set_attribute("product.id", product_id or "")
            require_id(product_id, "Product ID")

            changes = product_data.changes()
            self._check_references(changes.get("category_id"), changes.get("department_id"))

            return self.repository.update_product(product_id, changes)

    def delete_product(self, product_id: str) -> None:
        """Delete product (soft delete)"""
        with tracer.start_as_current_span("product_service.delete_product") as span:
            span.set_attribute("product.id", product_id or "")
            self.repository.delete_product(require_id(product_id, "Product ID"))
            logger.info(f"Product {product_id} deactivated")

    def adjust_stock(self, product_id: str, quantity: int) -> ProductResponse:
        """Add ``quantity`` (negative to consume) without letting stock drop below zero"""
        with tracer.start_as_current_span("product_service.adjust_stock") as span:
            span.set_attribute("product.id", product_id or "")
            span.set_attribute("stock.delta", quantity)
            require_id(product_id, "Product ID")
            if quantity == 0:
                raise ValidationError(
                    "Quantity must be non-zero", [{"field": "quantity", "message": "must be non-zero"}]
                )

            product = self.repository.adjust_stock(product_id, quantity)

            span.set_attribute("stock.remaining", product.stock)
            if product.is_low_stock:
                logger.warning(f"Product {product_id} is low on stock: {product.stock} <= {product.min_stock}")
            return product

    def get_low_stock_products(self) -> List[ProductResponse]:
        """Active products at or below their reorder threshold"""
        with tracer.start_as_current_span("product_service.low_stock") as span:
            products = self.repository.list_low_stock()
            span.set_attribute("products.returned", len(products))
            return products

    @staticmethod
    def _narrow(criteria: Optional[ProductFilter], **overrides) -> ProductFilter:
        base = criteria.model_dump() if criteria else {}
        base.update(overrides)
        return ProductFilter(**base)

    def _check_references(self, category_id: Optional[str], department_id: Optional[str]) -> None:
        """Referenced category and department must exist and be active"""
        problems = []
        if category_id is not None:
            try:
                self.repository.get_category(category_id)
            except NotFoundError:
                problems.append({"field": "category_id", "message": f"category {category_id} does not exist"})
        if department_id is not None:
            try:
                self.repository.get_department(department_id)
            except NotFoundError:
                problems.append({"field": "department_id", "message": f"department {department_id} does not exist"})
        if problems:
            raise ValidationError("Invalid references", problems)
