# catalog_service/models/schemas.py
"""
Pydantic schemas for request/response validation
"""
from pydantic import BaseModel, Field, ConfigDict, field_serializer, field_validator
from typing import List, Optional
from datetime import datetime, timezone


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Largest values the NUMERIC(10,2) and NUMERIC(10,3) columns hold
MAX_AMOUNT = 99_999_999.99
MAX_WEIGHT = 9_999_999.999


def format_timestamp(value: datetime) -> str:
    """RFC3339 in UTC; naive values are taken as UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _round_money(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, 2)


def _round_weight(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, 3)


class TimestampedResponse(BaseModel):
    """Shared serialization for persisted entities"""
    id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at")
    def serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

class Dimensions(BaseModel):
    """Package dimensions in centimetres"""
    length: float = Field(0, ge=0, le=MAX_AMOUNT)
    width: float = Field(0, ge=0, le=MAX_AMOUNT)
    height: float = Field(0, ge=0, le=MAX_AMOUNT)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("length", "width", "height")
    @classmethod
    def round_sizes(cls, value):
        return _round_money(value)


class ProductCreate(BaseModel):
    """Schema for creating a product"""
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    description: str = Field("", description="Product description")
    sku: str = Field(..., min_length=1, max_length=100, description="Stock Keeping Unit")
    slug: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., ge=0, le=MAX_AMOUNT, description="Unit price, two decimals")
    original_price: Optional[float] = Field(None, ge=0, le=MAX_AMOUNT)
    category_id: str = Field(..., min_length=1)
    department_id: str = Field(..., min_length=1)
    brand: str = Field("", max_length=100)
    unit: str = Field("", max_length=50)
    images: List[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0, description="Stock quantity")
    min_stock: int = Field(0, ge=0, description="Reorder threshold")
    weight: float = Field(0, ge=0, le=MAX_WEIGHT)
    weight_unit: str = Field("", max_length=20)
    dimensions: Dimensions = Field(default_factory=Dimensions)
    is_on_sale: bool = False
    discount: Optional[float] = Field(None, ge=0, le=100)
    tags: List[str] = Field(default_factory=list)

    @field_validator("price", "original_price", "discount")
    @classmethod
    def round_prices(cls, value):
        return _round_money(value)

    @field_validator("weight")
    @classmethod
    def round_weight(cls, value):
        return _round_weight(value)


class ProductUpdate(BaseModel):
    """Schema for updating a product (all fields optional)"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    slug: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = Field(None, ge=0, le=MAX_AMOUNT)
    original_price: Optional[float] = Field(None, ge=0, le=MAX_AMOUNT)
    category_id: Optional[str] = Field(None, min_length=1)
    department_id: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = Field(None, max_length=100)
    unit: Optional[str] = Field(None, max_length=50)
    images: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    weight: Optional[float] = Field(None, ge=0, le=MAX_WEIGHT)
    weight_unit: Optional[str] = Field(None, max_length=20)
    dimensions: Optional[Dimensions] = None
    is_on_sale: Optional[bool] = None
    discount: Optional[float] = Field(None, ge=0, le=100)
    rating: Optional[float] = Field(None, ge=0, le=5)
    reviews: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    tags: Optional[List[str]] = None

    # rating and discount are stored with two decimals, like prices
    @field_validator("price", "original_price", "discount", "rating")
    @classmethod
    def round_prices(cls, value):
        return _round_money(value)

    @field_validator("weight")
    @classmethod
    def round_weight(cls, value):
        return _round_weight(value)

    def changes(self) -> dict:
        """Fields the caller actually supplied; nulls mean "not supplied" """
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ProductResponse(TimestampedResponse):
    """Schema for product response"""
    sku: str
    slug: str
    name: str
    description: str = ""
    price: float
    original_price: Optional[float] = None
    images: List[str] = Field(default_factory=list)
    category_id: str
    department_id: str
    brand: str = ""
    unit: str = ""
    stock: int
    min_stock: int
    weight: float = 0
    weight_unit: str = ""
    dimensions: Dimensions = Field(default_factory=Dimensions)
    is_on_sale: bool = False
    discount: Optional[float] = None
    rating: float = 0
    reviews: int = 0
    tags: List[str] = Field(default_factory=list)

    @field_validator("description", "brand", "unit", "weight_unit", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return "" if value is None else value

    @field_validator("images", "tags", mode="before")
    @classmethod
    def none_as_empty_list(cls, value):
        return [] if value is None else value

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock


class ProductFilter(BaseModel):
    """Listing criteria; every supplied field narrows the result"""
    category_id: Optional[str] = None
    department_id: Optional[str] = None
    brand: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: Optional[bool] = None
    is_on_sale: Optional[bool] = None
    min_rating: Optional[float] = None
    search: Optional[str] = None
    # Accepted but not applied by any backend
    tags: List[str] = Field(default_factory=list)
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, value: int) -> int:
        if value <= 0:
            return DEFAULT_PAGE_SIZE
        return min(value, MAX_PAGE_SIZE)

    @field_validator("offset")
    @classmethod
    def clamp_offset(cls, value: int) -> int:
        return max(value, 0)


class ProductListResponse(BaseModel):
    """Schema for a page of products"""
    products: List[ProductResponse]
    total_count: int
    limit: int
    offset: int


class StockAdjustment(BaseModel):
    """Signed stock delta"""
    quantity: int = Field(..., description="Positive to restock, negative to consume")

    @field_validator("quantity")
    @classmethod
    def non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("quantity must be non-zero")
        return value


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------

class DepartmentCreate(BaseModel):
    """Schema for creating a department"""
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    icon: str = Field("", max_length=255)
    image: str = Field("", max_length=255)
    slug: str = Field(..., min_length=1, max_length=100)


class DepartmentUpdate(BaseModel):
    """Schema for updating a department (all fields optional)"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=255)
    image: Optional[str] = Field(None, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=100)
    is_active: Optional[bool] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class DepartmentResponse(TimestampedResponse):
    name: str
    description: str = ""
    icon: str = ""
    image: str = ""
    slug: str

    @field_validator("description", "icon", "image", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return "" if value is None else value


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

class CategoryCreate(BaseModel):
    """Schema for creating a category"""
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    parent_id: Optional[str] = None


class CategoryUpdate(BaseModel):
    """Schema for updating a category (all fields optional)

    ``parent_id`` is the one field where an explicit null is meaningful:
    it moves the category to the root.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    parent_id: Optional[str] = None
    is_active: Optional[bool] = None

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k == "parent_id"}


class CategoryResponse(TimestampedResponse):
    name: str
    slug: str
    description: str = ""
    parent_id: Optional[str] = None
    level: int = 0

    @field_validator("description", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return "" if value is None else value
