"""Relational (SQLAlchemy / PostgreSQL) implementation of the catalog repository"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type
import logging
import uuid

from sqlalchemy import text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from catalog_service.errors import ConflictError, InsufficientStockError, NotFoundError, StorageError
from catalog_service.models.catalog import Category, Department, Product, utcnow
from catalog_service.models.schemas import (
    CategoryResponse,
    DepartmentResponse,
    ProductFilter,
    ProductListResponse,
    ProductResponse,
)
from catalog_service.repositories.base import CatalogRepository
from catalog_service.repositories.predicates import sql_conditions

logger = logging.getLogger(__name__)


def _product_columns(data: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten the nested dimensions into their dim_* columns"""
    columns = dict(data)
    dimensions = columns.pop("dimensions", None)
    if dimensions is not None:
        columns["dim_length"] = dimensions.get("length", 0)
        columns["dim_width"] = dimensions.get("width", 0)
        columns["dim_height"] = dimensions.get("height", 0)
    return columns


class SQLAlchemyRepository(CatalogRepository):
    """
    Catalog storage on a relational database.

    Filters compile to a single WHERE clause; the total count is a separate
    COUNT over the same clause, and pagination happens in SQL. Each call
    uses its own short-lived session from the shared pool.
    """

    backend = "postgres"

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @property
    def engine(self):
        return self.session_factory.kw.get("bind")

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Integrity violation during {operation}: {e.orig}")
            raise ConflictError(f"Failed to {operation}: conflicts with an existing record") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error during {operation}: {e}")
            raise StorageError(f"Failed to {operation}") from e
        finally:
            db.close()

    @staticmethod
    def _get_active(db: Session, model: Type, entity_id: str, label: str):
        record = db.query(model).filter(model.id == entity_id, model.is_active.is_(True)).first()
        if record is None:
            raise NotFoundError(f"{label} {entity_id} not found")
        return record

    def _patch(self, model: Type, entity_id: str, changes: Dict[str, Any], label: str):
        self._require_changes(changes)
        with self._session(f"update {label.lower()}") as db:
            record = self._get_active(db, model, entity_id, label)
            for field, value in changes.items():
                setattr(record, field, value)
            record.updated_at = utcnow()
            db.commit()
            db.refresh(record)
            return record

    def _deactivate(self, model: Type, entity_id: str, label: str) -> None:
        with self._session(f"delete {label.lower()}") as db:
            record = self._get_active(db, model, entity_id, label)
            record.is_active = False
            record.updated_at = utcnow()
            db.commit()

    def _insert(self, model: Type, columns: Dict[str, Any], label: str):
        now = utcnow()
        record = model(id=str(uuid.uuid4()), is_active=True, created_at=now, updated_at=now, **columns)
        with self._session(f"create {label.lower()}") as db:
            db.add(record)
            db.commit()
            db.refresh(record)
        logger.info(f"Created {label.lower()} {record.id}")
        return record

    # Products

    def get_product(self, product_id: str) -> ProductResponse:
        with self._session("get product") as db:
            return ProductResponse.model_validate(self._get_active(db, Product, product_id, "Product"))

    def list_products(self, criteria: ProductFilter) -> ProductListResponse:
        with self._session("list products") as db:
            query = db.query(Product).filter(*sql_conditions(criteria))

            total = query.count()
            products = (
                query.order_by(Product.created_at, Product.id)
                .offset(criteria.offset)
                .limit(criteria.limit)
                .all()
            )

            return ProductListResponse(
                products=[ProductResponse.model_validate(p) for p in products],
                total_count=total,
                limit=criteria.limit,
                offset=criteria.offset,
            )

    def create_product(self, data: Dict[str, Any]) -> ProductResponse:
        product = self._insert(Product, _product_columns(data), "Product")
        return ProductResponse.model_validate(product)

    def update_product(self, product_id: str, changes: Dict[str, Any]) -> ProductResponse:
        product = self._patch(Product, product_id, _product_columns(changes), "Product")
        return ProductResponse.model_validate(product)

    def delete_product(self, product_id: str) -> None:
        self._deactivate(Product, product_id, "Product")

    def adjust_stock(self, product_id: str, delta: int) -> ProductResponse:
        with self._session("adjust stock") as db:
            statement = (
                update(Product)
                .where(
                    Product.id == product_id,
                    Product.is_active.is_(True),
                    Product.stock + delta >= 0,
                )
                .values(stock=Product.stock + delta, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            result = db.execute(statement)

            if result.rowcount == 0:
                db.rollback()
                current = (
                    db.query(Product.stock)
                    .filter(Product.id == product_id, Product.is_active.is_(True))
                    .scalar()
                )
                if current is None:
                    raise NotFoundError(f"Product {product_id} not found")
                raise InsufficientStockError(product_id, current, delta)

            db.commit()
            product = self._get_active(db, Product, product_id, "Product")
            logger.info(f"Adjusted stock of product {product_id} by {delta}, now {product.stock}")
            return ProductResponse.model_validate(product)

    def list_low_stock(self) -> List[ProductResponse]:
        with self._session("list low stock products") as db:
            products = (
                db.query(Product)
                .filter(Product.stock <= Product.min_stock, Product.is_active.is_(True))
                .order_by(Product.created_at, Product.id)
                .all()
            )
            return [ProductResponse.model_validate(p) for p in products]

    # Departments

    def get_department(self, department_id: str) -> DepartmentResponse:
        with self._session("get department") as db:
            department = self._get_active(db, Department, department_id, "Department")
            return DepartmentResponse.model_validate(department)

    def list_departments(self) -> List[DepartmentResponse]:
        with self._session("list departments") as db:
            departments = (
                db.query(Department)
                .filter(Department.is_active.is_(True))
                .order_by(Department.created_at, Department.id)
                .all()
            )
            return [DepartmentResponse.model_validate(d) for d in departments]

    def create_department(self, data: Dict[str, Any]) -> DepartmentResponse:
        return DepartmentResponse.model_validate(self._insert(Department, data, "Department"))

    def update_department(self, department_id: str, changes: Dict[str, Any]) -> DepartmentResponse:
        department = self._patch(Department, department_id, changes, "Department")
        return DepartmentResponse.model_validate(department)

    def delete_department(self, department_id: str) -> None:
        self._deactivate(Department, department_id, "Department")

    # Categories

    def get_category(self, category_id: str) -> CategoryResponse:
        with self._session("get category") as db:
            return CategoryResponse.model_validate(self._get_active(db, Category, category_id, "Category"))

    def list_categories(
        self, parent_id: Optional[str] = None, include_inactive: bool = False
    ) -> List[CategoryResponse]:
        with self._session("list categories") as db:
            query = db.query(Category)
            if not include_inactive:
                query = query.filter(Category.is_active.is_(True))
            if parent_id is not None:
                query = query.filter(Category.parent_id == parent_id)
            categories = query.order_by(Category.created_at, Category.id).all()
            return [CategoryResponse.model_validate(c) for c in categories]

    def create_category(self, data: Dict[str, Any]) -> CategoryResponse:
        return CategoryResponse.model_validate(self._insert(Category, data, "Category"))

    def update_category(self, category_id: str, changes: Dict[str, Any]) -> CategoryResponse:
        category = self._patch(Category, category_id, changes, "Category")
        return CategoryResponse.model_validate(category)

    def delete_category(self, category_id: str) -> None:
        self._deactivate(Category, category_id, "Category")

    def ping(self) -> None:
        with self._session("reach database") as db:
            db.execute(text("SELECT 1"))
