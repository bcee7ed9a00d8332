"""Tests for the service layer business rules."""

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError as PydanticValidationError

from catalog_service.errors import ConflictError, NotFoundError, StorageError, ValidationError
from catalog_service.models.schemas import (
    CategoryCreate,
    CategoryUpdate,
    DepartmentCreate,
    DepartmentUpdate,
    ProductCreate,
    ProductFilter,
    ProductUpdate,
)
from catalog_service.repositories.base import CatalogRepository
from catalog_service.services.category_service import CategoryService
from catalog_service.services.department_service import DepartmentService
from catalog_service.services.product_service import ProductService, require_id


@pytest.fixture
def categories(repository):
    return CategoryService(repository)


@pytest.fixture
def products(repository):
    return ProductService(repository)


def _new_product(department, category, **overrides):
    data = {
        "name": "Whole Milk 1L",
        "sku": "SKU-1",
        "slug": "whole-milk-1l",
        "price": 1.49,
        "category_id": category.id,
        "department_id": department.id,
        "stock": 10,
        "min_stock": 5,
    }
    data.update(overrides)
    return ProductCreate(**data)


class TestCategoryLevels:
    """level == parent.level + 1, or 0 at the root."""

    def test_levels_follow_parents(self, categories):
        root = categories.create_category(CategoryCreate(name="Dairy", slug="dairy"))
        child = categories.create_category(CategoryCreate(name="Milk", slug="milk", parent_id=root.id))
        grandchild = categories.create_category(CategoryCreate(name="Skimmed", slug="skimmed", parent_id=child.id))

        assert (root.level, child.level, grandchild.level) == (0, 1, 2)

    def test_empty_parent_id_is_root(self, categories):
        root = categories.create_category(CategoryCreate(name="Dairy", slug="dairy", parent_id=""))

        assert root.parent_id is None
        assert root.level == 0

    def test_unknown_parent(self, categories):
        with pytest.raises(ValidationError) as excinfo:
            categories.create_category(CategoryCreate(name="Milk", slug="milk", parent_id="missing"))

        assert excinfo.value.details[0]["field"] == "parent_id"

    def test_moving_relevels_descendants(self, categories):
        a = categories.create_category(CategoryCreate(name="A", slug="a"))
        b = categories.create_category(CategoryCreate(name="B", slug="b"))
        b1 = categories.create_category(CategoryCreate(name="B1", slug="b1", parent_id=b.id))
        b2 = categories.create_category(CategoryCreate(name="B2", slug="b2", parent_id=b1.id))

        moved = categories.update_category(b.id, CategoryUpdate(parent_id=a.id))

        assert moved.level == 1
        assert categories.get_category(b1.id).level == 2
        assert categories.get_category(b2.id).level == 3

    def test_moving_to_root(self, categories):
        a = categories.create_category(CategoryCreate(name="A", slug="a"))
        b = categories.create_category(CategoryCreate(name="B", slug="b", parent_id=a.id))
        c = categories.create_category(CategoryCreate(name="C", slug="c", parent_id=b.id))

        moved = categories.update_category(b.id, CategoryUpdate(parent_id=None))

        assert moved.parent_id is None
        assert moved.level == 0
        assert categories.get_category(c.id).level == 1

    def test_rename_keeps_parent(self, categories):
        a = categories.create_category(CategoryCreate(name="A", slug="a"))
        b = categories.create_category(CategoryCreate(name="B", slug="b", parent_id=a.id))

        renamed = categories.update_category(b.id, CategoryUpdate(name="Bee"))

        assert renamed.name == "Bee"
        assert renamed.parent_id == a.id
        assert renamed.level == 1

    def test_own_parent(self, categories):
        a = categories.create_category(CategoryCreate(name="A", slug="a"))

        with pytest.raises(ConflictError):
            categories.update_category(a.id, CategoryUpdate(parent_id=a.id))

    def test_cycle_through_descendant(self, categories):
        a = categories.create_category(CategoryCreate(name="A", slug="a"))
        b = categories.create_category(CategoryCreate(name="B", slug="b", parent_id=a.id))
        c = categories.create_category(CategoryCreate(name="C", slug="c", parent_id=b.id))

        with pytest.raises(ConflictError):
            categories.update_category(a.id, CategoryUpdate(parent_id=c.id))

        assert categories.get_category(a.id).parent_id is None

    def test_cycle_through_deleted_descendant(self, categories):
        a = categories.create_category(CategoryCreate(name="A", slug="a"))
        b = categories.create_category(CategoryCreate(name="B", slug="b", parent_id=a.id))
        c = categories.create_category(CategoryCreate(name="C", slug="c", parent_id=b.id))
        categories.delete_category(b.id)

        with pytest.raises(ConflictError):
            categories.update_category(a.id, CategoryUpdate(parent_id=c.id))

        assert categories.get_category(a.id).parent_id is None
        assert categories.get_category(a.id).level == 0

    def test_list_children(self, categories):
        a = categories.create_category(CategoryCreate(name="A", slug="a"))
        b = categories.create_category(CategoryCreate(name="B", slug="b", parent_id=a.id))

        assert [c.id for c in categories.list_categories(a.id)] == [b.id]
        assert len(categories.list_categories("")) == 2


class TestProductRules:

    def test_create_checks_references(self, products, repository):
        department = repository.create_department(DepartmentCreate(name="Dairy", slug="dairy").model_dump())

        with pytest.raises(ValidationError) as excinfo:
            products.create_product(_new_product(department, MagicMock(id="missing")))

        assert [d["field"] for d in excinfo.value.details] == ["category_id"]

    def test_create_and_update(self, products, repository):
        department = DepartmentService(repository).create_department(DepartmentCreate(name="Dairy", slug="dairy"))
        category = CategoryService(repository).create_category(CategoryCreate(name="Milk", slug="milk"))
        product = products.create_product(_new_product(department, category))

        updated = products.update_product(product.id, ProductUpdate(price=1.2345, brand=None))

        assert updated.price == 1.23
        assert updated.brand == ""

    def test_update_rejects_unknown_department(self, products, repository):
        department = DepartmentService(repository).create_department(DepartmentCreate(name="Dairy", slug="dairy"))
        category = CategoryService(repository).create_category(CategoryCreate(name="Milk", slug="milk"))
        product = products.create_product(_new_product(department, category))

        with pytest.raises(ValidationError):
            products.update_product(product.id, ProductUpdate(department_id="missing"))

    def test_update_with_only_nulls(self, products, repository):
        department = DepartmentService(repository).create_department(DepartmentCreate(name="Dairy", slug="dairy"))
        category = CategoryService(repository).create_category(CategoryCreate(name="Milk", slug="milk"))
        product = products.create_product(_new_product(department, category))

        with pytest.raises(ValidationError):
            products.update_product(product.id, ProductUpdate(name=None))

    def test_zero_adjustment(self, products):
        with pytest.raises(ValidationError):
            products.adjust_stock("some-id", 0)

    def test_convenience_listings_narrow_the_filter(self):
        repository = MagicMock(spec=CatalogRepository)
        repository.backend = "mock"
        repository.list_products.return_value = MagicMock(products=[], total_count=0)
        service = ProductService(repository)

        service.get_products_by_brand("Valley", ProductFilter(limit=5, in_stock=True))
        service.get_products_on_sale()
        service.search_products("milk")

        sent = [call.args[0] for call in repository.list_products.call_args_list]
        assert (sent[0].brand, sent[0].limit, sent[0].in_stock) == ("Valley", 5, True)
        assert sent[1].is_on_sale is True
        assert sent[2].search == "milk"

    def test_blank_ids_rejected_before_storage(self):
        repository = MagicMock(spec=CatalogRepository)
        service = ProductService(repository)

        with pytest.raises(ValidationError):
            service.get_product("  ")
        with pytest.raises(ValidationError):
            service.get_products_by_brand("")

        repository.get_product.assert_not_called()

    def test_storage_errors_propagate(self):
        repository = MagicMock(spec=CatalogRepository)
        repository.get_product.side_effect = StorageError("Failed to get product")

        with pytest.raises(StorageError):
            ProductService(repository).get_product("abc")


class TestDepartmentRules:

    def test_update_and_delete(self, repository):
        service = DepartmentService(repository)
        department = service.create_department(DepartmentCreate(name="Dairy", slug="dairy"))

        assert service.update_department(department.id, DepartmentUpdate(name="Dairy & Eggs")).name == "Dairy & Eggs"

        service.delete_department(department.id)
        with pytest.raises(NotFoundError):
            service.get_department(department.id)
        assert service.list_departments() == []


class TestProductValues:
    """Inputs are held to the precision and range of the stored columns."""

    def test_rating_and_discount_use_two_decimals(self):
        changes = ProductUpdate(rating=4.567, discount=12.346, weight=0.12345).changes()

        assert changes == {"rating": 4.57, "discount": 12.35, "weight": 0.123}

    def test_price_beyond_column_range(self):
        with pytest.raises(PydanticValidationError):
            ProductUpdate(price=100_000_000)
        with pytest.raises(PydanticValidationError):
            ProductCreate(name="Gold", sku="G", slug="g", price=1e8, category_id="c", department_id="d")

    def test_largest_price_accepted(self):
        assert ProductUpdate(price=99_999_999.99).price == 99_999_999.99


class TestFilterClamping:

    @pytest.mark.parametrize("limit, expected", [(0, 20), (-5, 20), (1, 1), (100, 100), (250, 100)])
    def test_limit(self, limit, expected):
        assert ProductFilter(limit=limit).limit == expected

    def test_negative_offset(self):
        assert ProductFilter(offset=-3).offset == 0


def test_require_id():
    assert require_id("abc", "Product ID") == "abc"
    with pytest.raises(ValidationError):
        require_id(None, "Product ID")
