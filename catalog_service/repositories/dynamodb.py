"""Key-value (DynamoDB) implementation of the catalog repository"""
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional
import logging
import threading
import uuid

import boto3
from boto3.dynamodb.conditions import Attr, ConditionBase
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from catalog_service.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    StorageError,
)
from catalog_service.models.catalog import utcnow
from catalog_service.models.schemas import (
    CategoryResponse,
    DepartmentResponse,
    ProductFilter,
    ProductListResponse,
    ProductResponse,
    format_timestamp,
)
from catalog_service.repositories.base import CatalogRepository
from catalog_service.repositories.predicates import dynamodb_condition, search_predicate, to_decimal

logger = logging.getLogger(__name__)

ACTIVE = Attr("id").exists() & Attr("is_active").eq(True)


def to_item(data: Any) -> Any:
    """Python values to DynamoDB-serializable values"""
    if isinstance(data, dict):
        return {key: to_item(value) for key, value in data.items()}
    if isinstance(data, list):
        return [to_item(value) for value in data]
    if isinstance(data, bool):
        return data
    if isinstance(data, float):
        return to_decimal(data)
    return data


def from_item(data: Any) -> Any:
    """DynamoDB Decimals back to int/float"""
    if isinstance(data, dict):
        return {key: from_item(value) for key, value in data.items()}
    if isinstance(data, list):
        return [from_item(value) for value in data]
    if isinstance(data, Decimal):
        return int(data) if data == data.to_integral_value() else float(data)
    return data


def _sort_key(item: Dict[str, Any]):
    # Timestamps are fixed-width RFC3339 strings, so string order is time order
    return item.get("created_at", ""), item["id"]


class DynamoDBRepository(CatalogRepository):
    """
    Catalog storage on DynamoDB, one table per entity keyed by ``id``.

    DynamoDB cannot combine filters with pagination, so listing scans the
    whole table with the pushable constraints as a FilterExpression, applies
    the free-text search in memory, then sorts, counts and slices. Writes
    use conditional updates so missing or inactive items are detected in the
    same call that modifies them.
    """

    backend = "dynamodb"

    def __init__(
        self,
        resource_factory: Callable[[], Any],
        products_table: str,
        departments_table: str,
        categories_table: str,
    ):
        # boto3 resources are not thread safe; each worker thread builds its own
        self.resource_factory = resource_factory
        self.table_names = {
            "products": products_table,
            "departments": departments_table,
            "categories": categories_table,
        }
        self._local = threading.local()

    @classmethod
    def from_settings(cls, settings) -> "DynamoDBRepository":
        boto_config = Config(
            retries={"max_attempts": 3, "mode": "standard"},
            max_pool_connections=50,
            connect_timeout=5,
            read_timeout=30,
        )

        def resource_factory():
            return boto3.session.Session().resource(
                "dynamodb",
                region_name=settings.aws_region,
                endpoint_url=settings.dynamodb_endpoint_url,
                config=boto_config,
            )

        return cls(
            resource_factory,
            products_table=settings.dynamodb_products_table,
            departments_table=settings.dynamodb_departments_table,
            categories_table=settings.dynamodb_categories_table,
        )

    @property
    def resource(self):
        resource = getattr(self._local, "resource", None)
        if resource is None:
            resource = self._local.resource = self.resource_factory()
            self._local.tables = {}
        return resource

    def _table(self, key: str):
        resource = self.resource
        table = self._local.tables.get(key)
        if table is None:
            table = self._local.tables[key] = resource.Table(self.table_names[key])
        return table

    @property
    def products(self):
        return self._table("products")

    @property
    def departments(self):
        return self._table("departments")

    @property
    def categories(self):
        return self._table("categories")

    def create_tables(self) -> None:
        """Create any missing table (local development and tests)"""
        existing = {table.name for table in self.resource.tables.all()}
        for table in (self.products, self.departments, self.categories):
            if table.name in existing:
                continue
            logger.info(f"Creating DynamoDB table {table.name}")
            self.resource.create_table(
                TableName=table.name,
                KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
                BillingMode="PAY_PER_REQUEST",
            ).wait_until_exists()

    @contextmanager
    def _call(self, operation: str) -> Iterator[None]:
        try:
            yield
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            logger.error(f"DynamoDB error during {operation}: {code}")
            raise StorageError(f"Failed to {operation}: {code}") from e
        except BotoCoreError as e:
            logger.error(f"DynamoDB unreachable during {operation}: {e}")
            raise StorageError(f"Failed to {operation}") from e

    @staticmethod
    def _is_condition_failure(error: ClientError) -> bool:
        return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"

    def _scan(self, table, condition: Optional[ConditionBase] = None) -> List[Dict[str, Any]]:
        """Every item matching ``condition``, following LastEvaluatedKey to the end"""
        kwargs: Dict[str, Any] = {}
        if condition is not None:
            kwargs["FilterExpression"] = condition

        items: List[Dict[str, Any]] = []
        while True:
            response = table.scan(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _get_active(self, table, entity_id: str, label: str) -> Dict[str, Any]:
        with self._call(f"get {label.lower()}"):
            item = table.get_item(Key={"id": entity_id}).get("Item")
        if not item or not item.get("is_active"):
            raise NotFoundError(f"{label} {entity_id} not found")
        return from_item(item)

    def _ensure_unique(self, table, label: str, entity_id: Optional[str] = None, **fields: Any) -> None:
        """
        Reject values already used by another item, soft-deleted ones included.

        Not atomic with the following write; DynamoDB has no secondary unique
        constraint to lean on.
        """
        fields = {name: value for name, value in fields.items() if value is not None}
        if not fields:
            return

        conditions = [Attr(name).eq(value) for name, value in fields.items()]
        condition = conditions[0]
        for extra in conditions[1:]:
            condition = condition | extra

        with self._call(f"check {label.lower()} uniqueness"):
            clashes = [item for item in self._scan(table, condition) if item["id"] != entity_id]
        if clashes:
            taken = [name for name, value in fields.items() if any(item.get(name) == value for item in clashes)]
            raise ConflictError(
                f"{label} with the same {' and '.join(taken)} already exists",
                [{"field": name, "message": "already exists"} for name in taken],
            )

    def _insert(self, table, data: Dict[str, Any], label: str) -> Dict[str, Any]:
        now = format_timestamp(utcnow())
        item = {**data, "id": str(uuid.uuid4()), "is_active": True, "created_at": now, "updated_at": now}
        with self._call(f"create {label.lower()}"):
            try:
                table.put_item(Item=to_item(item), ConditionExpression=Attr("id").not_exists())
            except ClientError as e:
                if self._is_condition_failure(e):
                    raise ConflictError(f"{label} {item['id']} already exists") from e
                raise
        logger.info(f"Created {label.lower()} {item['id']}")
        return item

    def _patch(self, table, entity_id: str, changes: Dict[str, Any], label: str) -> Dict[str, Any]:
        """SET the supplied fields on an active item in one conditional update"""
        self._require_changes(changes)
        values = {**changes, "updated_at": format_timestamp(utcnow())}

        # boto3 names the condition's own placeholders #n0.. and :v0..; keep clear of them
        names = {f"#u{i}": field for i, field in enumerate(values)}
        placeholders = {f":u{i}": to_item(value) for i, value in enumerate(values.values())}
        assignments = ", ".join(f"#u{i} = :u{i}" for i in range(len(values)))

        with self._call(f"update {label.lower()}"):
            try:
                response = table.update_item(
                    Key={"id": entity_id},
                    UpdateExpression=f"SET {assignments}",
                    ConditionExpression=ACTIVE,
                    ExpressionAttributeNames=names,
                    ExpressionAttributeValues=placeholders,
                    ReturnValues="ALL_NEW",
                )
            except ClientError as e:
                if self._is_condition_failure(e):
                    raise NotFoundError(f"{label} {entity_id} not found") from e
                raise
        return from_item(response["Attributes"])

    # Products

    def get_product(self, product_id: str) -> ProductResponse:
        return ProductResponse.model_validate(self._get_active(self.products, product_id, "Product"))

    def list_products(self, criteria: ProductFilter) -> ProductListResponse:
        with self._call("list products"):
            items = self._scan(self.products, dynamodb_condition(criteria))

        matches = search_predicate(criteria.search)
        filtered = sorted((item for item in items if matches(item)), key=_sort_key)
        page = filtered[criteria.offset:criteria.offset + criteria.limit]

        return ProductListResponse(
            products=[ProductResponse.model_validate(from_item(item)) for item in page],
            total_count=len(filtered),
            limit=criteria.limit,
            offset=criteria.offset,
        )

    def create_product(self, data: Dict[str, Any]) -> ProductResponse:
        self._ensure_unique(self.products, "Product", sku=data.get("sku"), slug=data.get("slug"))
        item = {"rating": 0, "reviews": 0, **data}
        return ProductResponse.model_validate(self._insert(self.products, item, "Product"))

    def update_product(self, product_id: str, changes: Dict[str, Any]) -> ProductResponse:
        if "slug" in changes:
            self._ensure_unique(self.products, "Product", entity_id=product_id, slug=changes["slug"])
        return ProductResponse.model_validate(self._patch(self.products, product_id, changes, "Product"))

    def delete_product(self, product_id: str) -> None:
        self._patch(self.products, product_id, {"is_active": False}, "Product")

    def adjust_stock(self, product_id: str, delta: int) -> ProductResponse:
        # One conditional write both checks and applies the increment
        with self._call("adjust stock"):
            try:
                response = self.products.update_item(
                    Key={"id": product_id},
                    UpdateExpression="SET #stock = #stock + :delta, #updated_at = :updated_at",
                    ConditionExpression=ACTIVE & Attr("stock").gte(-delta),
                    ExpressionAttributeNames={"#stock": "stock", "#updated_at": "updated_at"},
                    ExpressionAttributeValues={
                        ":delta": delta,
                        ":updated_at": format_timestamp(utcnow()),
                    },
                    ReturnValues="ALL_NEW",
                )
            except ClientError as e:
                if not self._is_condition_failure(e):
                    raise
                current = self._get_active(self.products, product_id, "Product")
                raise InsufficientStockError(product_id, current.get("stock"), delta) from e

        product = ProductResponse.model_validate(from_item(response["Attributes"]))
        logger.info(f"Adjusted stock of product {product_id} by {delta}, now {product.stock}")
        return product

    def list_low_stock(self) -> List[ProductResponse]:
        condition = Attr("is_active").eq(True) & Attr("stock").lte(Attr("min_stock"))
        with self._call("list low stock products"):
            items = self._scan(self.products, condition)
        return [ProductResponse.model_validate(from_item(item)) for item in sorted(items, key=_sort_key)]

    # Departments

    def get_department(self, department_id: str) -> DepartmentResponse:
        return DepartmentResponse.model_validate(self._get_active(self.departments, department_id, "Department"))

    def list_departments(self) -> List[DepartmentResponse]:
        with self._call("list departments"):
            items = self._scan(self.departments, Attr("is_active").eq(True))
        return [DepartmentResponse.model_validate(from_item(item)) for item in sorted(items, key=_sort_key)]

    def create_department(self, data: Dict[str, Any]) -> DepartmentResponse:
        self._ensure_unique(self.departments, "Department", slug=data.get("slug"))
        return DepartmentResponse.model_validate(self._insert(self.departments, data, "Department"))

    def update_department(self, department_id: str, changes: Dict[str, Any]) -> DepartmentResponse:
        if "slug" in changes:
            self._ensure_unique(self.departments, "Department", entity_id=department_id, slug=changes["slug"])
        return DepartmentResponse.model_validate(
            self._patch(self.departments, department_id, changes, "Department")
        )

    def delete_department(self, department_id: str) -> None:
        self._patch(self.departments, department_id, {"is_active": False}, "Department")

    # Categories

    def get_category(self, category_id: str) -> CategoryResponse:
        return CategoryResponse.model_validate(self._get_active(self.categories, category_id, "Category"))

    def list_categories(
        self, parent_id: Optional[str] = None, include_inactive: bool = False
    ) -> List[CategoryResponse]:
        condition = Attr("id").exists() if include_inactive else Attr("is_active").eq(True)
        if parent_id is not None:
            condition = condition & Attr("parent_id").eq(parent_id)
        with self._call("list categories"):
            items = self._scan(self.categories, condition)
        return [CategoryResponse.model_validate(from_item(item)) for item in sorted(items, key=_sort_key)]

    def create_category(self, data: Dict[str, Any]) -> CategoryResponse:
        self._ensure_unique(self.categories, "Category", slug=data.get("slug"))
        return CategoryResponse.model_validate(self._insert(self.categories, data, "Category"))

    def update_category(self, category_id: str, changes: Dict[str, Any]) -> CategoryResponse:
        if "slug" in changes:
            self._ensure_unique(self.categories, "Category", entity_id=category_id, slug=changes["slug"])
        return CategoryResponse.model_validate(self._patch(self.categories, category_id, changes, "Category"))

    def delete_category(self, category_id: str) -> None:
        self._patch(self.categories, category_id, {"is_active": False}, "Category")

    def ping(self) -> None:
        with self._call("reach DynamoDB"):
            self.resource.meta.client.describe_table(TableName=self.products.name)
