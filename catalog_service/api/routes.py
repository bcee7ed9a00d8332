"""FastAPI routes for the Catalog Service"""
from fastapi import APIRouter, Depends, Query, Request, status
from typing import List, Optional
import logging
import math

from catalog_service.models.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    ProductCreate,
    ProductFilter,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
    StockAdjustment,
)
from catalog_service.repositories.base import CatalogRepository
from catalog_service.services.category_service import CategoryService
from catalog_service.services.department_service import DepartmentService
from catalog_service.services.product_service import ProductService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/product-service")

_TRUE = {"1", "t", "true"}
_FALSE = {"0", "f", "false"}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_repository(request: Request) -> CatalogRepository:
    """Repository built at startup and shared by all requests"""
    return request.app.state.repository


def get_product_service(repository: CatalogRepository = Depends(get_repository)) -> ProductService:
    return ProductService(repository)


def get_department_service(repository: CatalogRepository = Depends(get_repository)) -> DepartmentService:
    return DepartmentService(repository)


def get_category_service(repository: CatalogRepository = Depends(get_repository)) -> CategoryService:
    return CategoryService(repository)


# Query values that fail to parse are dropped, not rejected

def _parse_float(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def _parse_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if not value:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    return None


def page_filter(
    limit: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
) -> ProductFilter:
    """Pagination only; used by the narrowed listing endpoints"""
    values = {"limit": _parse_int(limit), "offset": _parse_int(offset)}
    return ProductFilter(**{k: v for k, v in values.items() if v is not None})


def product_filter(
    category_id: Optional[str] = Query(None),
    department_id: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    min_price: Optional[str] = Query(None),
    max_price: Optional[str] = Query(None),
    in_stock: Optional[str] = Query(None),
    is_on_sale: Optional[str] = Query(None),
    min_rating: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    tags: Optional[str] = Query(None, description="Comma-separated"),
    page: ProductFilter = Depends(page_filter),
) -> ProductFilter:
    """Full listing filter parsed from the query string"""
    values = {
        "category_id": category_id or None,
        "department_id": department_id or None,
        "brand": brand or None,
        "min_price": _parse_float(min_price),
        "max_price": _parse_float(max_price),
        "in_stock": _parse_bool(in_stock),
        "is_on_sale": _parse_bool(is_on_sale),
        "min_rating": _parse_float(min_rating),
        "search": search or None,
        "tags": [t.strip() for t in tags.split(",") if t.strip()] if tags else [],
        "limit": page.limit,
        "offset": page.offset,
    }
    return ProductFilter(**values)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

@router.get("/products", response_model=ProductListResponse, tags=["products"])
def list_products(
    criteria: ProductFilter = Depends(product_filter),
    service: ProductService = Depends(get_product_service),
):
    """List products with filters and pagination"""
    logger.info(f"Listing products: limit={criteria.limit}, offset={criteria.offset}")
    return service.list_products(criteria)


@router.get("/products/low-stock", response_model=List[ProductResponse], tags=["products"])
def list_low_stock_products(service: ProductService = Depends(get_product_service)):
    """Products at or below their reorder threshold"""
    return service.get_low_stock_products()


@router.get("/products/on-sale", response_model=ProductListResponse, tags=["products"])
def list_products_on_sale(
    page: ProductFilter = Depends(page_filter),
    service: ProductService = Depends(get_product_service),
):
    return service.get_products_on_sale(page)


@router.get("/products/search", response_model=ProductListResponse, tags=["products"])
def search_products(
    q: str = Query("", description="Free-text query"),
    criteria: ProductFilter = Depends(product_filter),
    service: ProductService = Depends(get_product_service),
):
    return service.search_products(q, criteria)


@router.get("/products/department/{department_id}", response_model=ProductListResponse, tags=["products"])
def list_products_by_department(
    department_id: str,
    page: ProductFilter = Depends(page_filter),
    service: ProductService = Depends(get_product_service),
):
    return service.get_products_by_department(department_id, page)


@router.get("/products/category/{category_id}", response_model=ProductListResponse, tags=["products"])
def list_products_by_category(
    category_id: str,
    page: ProductFilter = Depends(page_filter),
    service: ProductService = Depends(get_product_service),
):
    return service.get_products_by_category(category_id, page)


@router.get("/products/brand/{brand}", response_model=ProductListResponse, tags=["products"])
def list_products_by_brand(
    brand: str,
    page: ProductFilter = Depends(page_filter),
    service: ProductService = Depends(get_product_service),
):
    return service.get_products_by_brand(brand, page)


@router.get("/products/{product_id}", response_model=ProductResponse, tags=["products"])
def get_product(product_id: str, service: ProductService = Depends(get_product_service)):
    """Get a specific product by ID"""
    return service.get_product(product_id)


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED, tags=["products"])
def create_product(product: ProductCreate, service: ProductService = Depends(get_product_service)):
    """Create a new product"""
    return service.create_product(product)


@router.put("/products/{product_id}", response_model=ProductResponse, tags=["products"])
def update_product(
    product_id: str,
    product: ProductUpdate,
    service: ProductService = Depends(get_product_service),
):
    """Update the supplied fields of a product"""
    return service.update_product(product_id, product)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["products"])
def delete_product(product_id: str, service: ProductService = Depends(get_product_service)):
    """Delete a product (soft delete)"""
    service.delete_product(product_id)


@router.post("/products/{product_id}/stock", tags=["products"])
def adjust_stock(
    product_id: str,
    adjustment: StockAdjustment,
    service: ProductService = Depends(get_product_service),
):
    """Add to or remove from a product's stock"""
    product = service.adjust_stock(product_id, adjustment.quantity)
    return {
        "product_id": product.id,
        "adjusted_by": adjustment.quantity,
        "remaining_stock": product.stock,
        "is_low_stock": product.is_low_stock,
        "success": True
    }


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------

@router.get("/departments", response_model=List[DepartmentResponse], tags=["departments"])
def list_departments(service: DepartmentService = Depends(get_department_service)):
    return service.list_departments()


@router.get("/departments/{department_id}", response_model=DepartmentResponse, tags=["departments"])
def get_department(department_id: str, service: DepartmentService = Depends(get_department_service)):
    return service.get_department(department_id)


@router.post(
    "/departments",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["departments"],
)
def create_department(department: DepartmentCreate, service: DepartmentService = Depends(get_department_service)):
    return service.create_department(department)


@router.put("/departments/{department_id}", response_model=DepartmentResponse, tags=["departments"])
def update_department(
    department_id: str,
    department: DepartmentUpdate,
    service: DepartmentService = Depends(get_department_service),
):
    return service.update_department(department_id, department)


@router.delete("/departments/{department_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["departments"])
def delete_department(department_id: str, service: DepartmentService = Depends(get_department_service)):
    service.delete_department(department_id)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@router.get("/categories", response_model=List[CategoryResponse], tags=["categories"])
def list_categories(
    parent_id: Optional[str] = Query(None),
    include_inactive: Optional[str] = Query(None),
    service: CategoryService = Depends(get_category_service),
):
    return service.list_categories(parent_id, include_inactive=bool(_parse_bool(include_inactive)))


@router.get("/categories/{category_id}", response_model=CategoryResponse, tags=["categories"])
def get_category(category_id: str, service: CategoryService = Depends(get_category_service)):
    return service.get_category(category_id)


@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["categories"],
)
def create_category(category: CategoryCreate, service: CategoryService = Depends(get_category_service)):
    return service.create_category(category)


@router.put("/categories/{category_id}", response_model=CategoryResponse, tags=["categories"])
def update_category(
    category_id: str,
    category: CategoryUpdate,
    service: CategoryService = Depends(get_category_service),
):
    return service.update_category(category_id, category)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["categories"])
def delete_category(category_id: str, service: CategoryService = Depends(get_category_service)):
    service.delete_category(category_id)
