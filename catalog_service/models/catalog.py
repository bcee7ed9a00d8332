# catalog_service/models/catalog.py
"""
Catalog database models
"""
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text, JSON, ForeignKey
from datetime import datetime, timezone
from catalog_service.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Department(Base):
    """Department model"""
    __tablename__ = "departments"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, default="")
    icon = Column(String(255), default="")
    image = Column(String(255), default="")
    slug = Column(String(100), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Department(id={self.id}, slug={self.slug})>"


class Category(Base):
    """Category model (self-referencing tree)"""
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    description = Column(Text, default="")
    parent_id = Column(String(36), ForeignKey("categories.id"), nullable=True, index=True)
    level = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Category(id={self.id}, slug={self.slug}, level={self.level})>"


class Product(Base):
    """Product model"""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True)
    sku = Column(String(100), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    original_price = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    images = Column(JSON, default=list)

    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False, index=True)
    department_id = Column(String(36), nullable=False, index=True)
    brand = Column(String(100), default="", index=True)
    unit = Column(String(50), default="")

    stock = Column(Integer, default=0, nullable=False)
    min_stock = Column(Integer, default=0, nullable=False)

    weight = Column(Numeric(10, 3, asdecimal=False), default=0)
    weight_unit = Column(String(20), default="")
    dim_length = Column(Numeric(10, 2, asdecimal=False), default=0)
    dim_width = Column(Numeric(10, 2, asdecimal=False), default=0)
    dim_height = Column(Numeric(10, 2, asdecimal=False), default=0)

    is_on_sale = Column(Boolean, default=False, nullable=False, index=True)
    discount = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    rating = Column(Numeric(3, 2, asdecimal=False), default=0, nullable=False)
    reviews = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    tags = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def dimensions(self) -> dict:
        return {
            "length": self.dim_length or 0,
            "width": self.dim_width or 0,
            "height": self.dim_height or 0,
        }

    def __repr__(self):
        return f"<Product(id={self.id}, sku={self.sku}, stock={self.stock})>"
