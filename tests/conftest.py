"""
Shared pytest fixtures for catalog-service tests.

This module provides common fixtures used across all test files, including:
- Repositories on in-memory SQLite and on moto's DynamoDB mock
- A ``repository`` fixture parametrized over both backends
- Factories for department, category and product payloads
"""

import os

# Settings are read once at import time; keep tests away from collectors and AWS
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

from typing import Any, Dict, Iterator

import boto3
import pytest
from moto import mock_aws
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from catalog_service.db.database import create_session_factory, create_tables
from catalog_service.models.schemas import CategoryCreate, DepartmentCreate, ProductCreate
from catalog_service.repositories.base import CatalogRepository
from catalog_service.repositories.dynamodb import DynamoDBRepository
from catalog_service.repositories.sql import SQLAlchemyRepository


# ============================================================================
# Repository Fixtures
# ============================================================================

@pytest.fixture
def sql_repository() -> Iterator[SQLAlchemyRepository]:
    """Relational repository on a private in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield SQLAlchemyRepository(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def dynamodb_repository() -> Iterator[DynamoDBRepository]:
    """Key-value repository on moto's in-process DynamoDB."""
    with mock_aws():
        repository = DynamoDBRepository(
            lambda: boto3.session.Session().resource("dynamodb", region_name="us-east-1"),
            products_table="products",
            departments_table="departments",
            categories_table="categories",
        )
        repository.create_tables()
        yield repository


@pytest.fixture(params=["postgres", "dynamodb"])
def repository(request) -> CatalogRepository:
    """Each test using this runs once per backend."""
    if request.param == "postgres":
        return request.getfixturevalue("sql_repository")
    return request.getfixturevalue("dynamodb_repository")


# ============================================================================
# Payload Factories
# ============================================================================

def department_data(**overrides: Any) -> Dict[str, Any]:
    data = {"name": "Dairy", "slug": "dairy", "description": "Milk, cheese and eggs"}
    data.update(overrides)
    return DepartmentCreate(**data).model_dump()


def category_data(**overrides: Any) -> Dict[str, Any]:
    data = {"name": "Milk", "slug": "milk"}
    data.update(overrides)
    payload = CategoryCreate(**data).model_dump()
    payload["level"] = 0 if payload["parent_id"] is None else overrides.get("level", 1)
    return payload


def product_data(category_id: str, department_id: str, **overrides: Any) -> Dict[str, Any]:
    data = {
        "name": "Whole Milk 1L",
        "sku": "SKU-0001",
        "slug": "whole-milk-1l",
        "description": "Fresh whole milk",
        "price": 1.49,
        "category_id": category_id,
        "department_id": department_id,
        "brand": "Dairyland",
        "unit": "l",
        "stock": 50,
        "min_stock": 10,
    }
    data.update(overrides)
    return ProductCreate(**data).model_dump()


@pytest.fixture
def department(repository):
    return repository.create_department(department_data())


@pytest.fixture
def category(repository):
    return repository.create_category(category_data())


@pytest.fixture
def make_product(repository, department, category):
    """Create products in the seeded department and category."""
    counter = {"n": 0}

    def _make(**overrides: Any):
        counter["n"] += 1
        n = counter["n"]
        defaults = {"sku": f"SKU-{n:04d}", "slug": f"product-{n}", "name": f"Product {n}"}
        defaults.update(overrides)
        return repository.create_product(product_data(category.id, department.id, **defaults))

    return _make


@pytest.fixture
def grocery_catalog(make_product):
    """
    Five products; three mention milk in different fields.

    Returned in creation order, which is also list order.
    """
    return [
        make_product(name="Whole Milk 1L", description="Fresh whole milk", price=1.49, stock=40),
        make_product(name="Cheddar", description="Aged cheese", brand="Valley", price=4.99, stock=0,
                     is_on_sale=True, discount=10),
        make_product(name="Oat Drink", description="Plant-based milk alternative", price=2.29, stock=12),
        make_product(name="Butter", description="Salted butter", price=3.10, stock=5, min_stock=8),
        make_product(name="Yogurt", sku="MILK-YOG-01", description="Greek style", brand="Valley",
                     price=0.99, stock=100, is_on_sale=True, discount=25),
    ]
