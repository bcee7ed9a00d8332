"""The relational and key-value backends must select the same products for the same filter."""

import pytest

from catalog_service.models.schemas import ProductFilter, ProductUpdate
from tests.conftest import category_data, department_data, product_data

PRODUCTS = [
    {"sku": "EQ-1", "name": "Whole Milk", "price": 1.49, "stock": 40, "brand": "Dairyland"},
    {"sku": "EQ-2", "name": "Cheddar 50%", "price": 4.99, "stock": 0, "brand": "Valley", "is_on_sale": True},
    {"sku": "EQ-3", "name": "Oat Drink", "description": "Milk alternative", "price": 2.29, "stock": 12},
    {"sku": "EQ-4", "name": "Butter", "price": 3.10, "stock": 5, "min_stock": 8, "brand": "Valley"},
    {"sku": "EQ-5", "name": "Yogurt", "price": 0.99, "stock": 100, "is_on_sale": True, "rating": 4.2},
    {"sku": "EQ-6", "name": "Skimmed Milk", "price": 1.29, "stock": 3, "rating": 3.9},
    {"sku": "EQ-7", "name": "Kefir", "price": 2.49, "stock": 20, "rating": 4.555},
]

FILTERS = [
    {},
    {"search": "milk"},
    {"search": "50%"},
    {"brand": "Valley"},
    {"min_price": 1.29, "max_price": 2.29},
    {"in_stock": True},
    {"is_on_sale": True},
    {"min_rating": 4},
    {"min_rating": 4.556},
    {"in_stock": True, "search": "MILK", "max_price": 2},
    {"brand": "Nobody"},
]


def _seed(repository):
    department = repository.create_department(department_data())
    category = repository.create_category(category_data())
    for spec in PRODUCTS:
        fields = dict(spec)
        rating = fields.pop("rating", None)
        fields.setdefault("slug", fields["sku"].lower())
        fields.setdefault("description", "")
        product = repository.create_product(product_data(category.id, department.id, **fields))
        if rating is not None:
            repository.update_product(product.id, ProductUpdate(rating=rating).changes())
    return department, category


@pytest.fixture
def both(sql_repository, dynamodb_repository):
    _seed(sql_repository)
    _seed(dynamodb_repository)
    return sql_repository, dynamodb_repository


@pytest.mark.parametrize("criteria", FILTERS, ids=str)
def test_same_selection(both, criteria):
    sql, dynamodb = both

    left = sql.list_products(ProductFilter(limit=100, **criteria))
    right = dynamodb.list_products(ProductFilter(limit=100, **criteria))

    assert left.total_count == right.total_count
    assert {p.sku for p in left.products} == {p.sku for p in right.products}


def test_same_low_stock(both):
    sql, dynamodb = both

    assert {p.sku for p in sql.list_low_stock()} == {p.sku for p in dynamodb.list_low_stock()} == {"EQ-2", "EQ-4", "EQ-6"}


def test_same_page_boundaries(both):
    sql, dynamodb = both

    for offset in (0, 2, 4, 6):
        left = sql.list_products(ProductFilter(limit=2, offset=offset))
        right = dynamodb.list_products(ProductFilter(limit=2, offset=offset))
        assert left.total_count == right.total_count == len(PRODUCTS)
        assert len(left.products) == len(right.products)


def test_same_stored_values(both):
    sql, dynamodb = both

    left = {p.sku: (p.price, p.rating) for p in sql.list_products(ProductFilter(limit=100)).products}
    right = {p.sku: (p.price, p.rating) for p in dynamodb.list_products(ProductFilter(limit=100)).products}

    assert left == right
    assert left["EQ-7"][1] == round(4.555, 2)
