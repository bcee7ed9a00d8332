"""
Translation of a ProductFilter into backend-native constraints.

Both backends must select exactly the same records for the same filter:

* the relational backend receives a list of SQLAlchemy column expressions
  (AND-combined by the caller);
* the key-value backend receives a ``boto3.dynamodb.conditions`` expression
  for everything DynamoDB can evaluate during a scan, plus an in-memory
  predicate for the free-text search, which a scan cannot express.

``tags`` is part of the filter model but is not translated.
"""
from decimal import Decimal
from functools import reduce
from typing import Any, Callable, List, Mapping, Optional

from boto3.dynamodb.conditions import Attr, ConditionBase
from sqlalchemy import func, or_
from sqlalchemy.sql.elements import ColumnElement

from catalog_service.models.catalog import Product
from catalog_service.models.schemas import ProductFilter

SEARCH_FIELDS = ("name", "description", "sku", "brand", "slug")


def to_decimal(value: float) -> Decimal:
    """DynamoDB numbers must be Decimals built from their string form"""
    return Decimal(str(value))


def sql_conditions(criteria: ProductFilter) -> List[ColumnElement]:
    """Column expressions selecting the products ``criteria`` describes"""
    conditions: List[ColumnElement] = [Product.is_active.is_(True)]

    if criteria.category_id:
        conditions.append(Product.category_id == criteria.category_id)
    if criteria.department_id:
        conditions.append(Product.department_id == criteria.department_id)
    if criteria.brand:
        conditions.append(Product.brand == criteria.brand)
    if criteria.min_price is not None:
        conditions.append(Product.price >= criteria.min_price)
    if criteria.max_price is not None:
        conditions.append(Product.price <= criteria.max_price)
    if criteria.in_stock:
        conditions.append(Product.stock > 0)
    if criteria.is_on_sale:
        conditions.append(Product.is_on_sale.is_(True))
    if criteria.min_rating is not None:
        conditions.append(Product.rating >= criteria.min_rating)

    if criteria.search:
        needle = criteria.search.lower()
        # autoescape keeps % and _ literal so SQL agrees with the in-memory match
        conditions.append(or_(*[
            func.lower(getattr(Product, field)).contains(needle, autoescape=True)
            for field in SEARCH_FIELDS
        ]))

    return conditions


def dynamodb_condition(criteria: ProductFilter) -> ConditionBase:
    """Scan filter expression for every constraint except ``search``"""
    conditions: List[ConditionBase] = [Attr("is_active").eq(True)]

    if criteria.category_id:
        conditions.append(Attr("category_id").eq(criteria.category_id))
    if criteria.department_id:
        conditions.append(Attr("department_id").eq(criteria.department_id))
    if criteria.brand:
        conditions.append(Attr("brand").eq(criteria.brand))
    if criteria.min_price is not None:
        conditions.append(Attr("price").gte(to_decimal(criteria.min_price)))
    if criteria.max_price is not None:
        conditions.append(Attr("price").lte(to_decimal(criteria.max_price)))
    if criteria.in_stock:
        conditions.append(Attr("stock").gt(0))
    if criteria.is_on_sale:
        conditions.append(Attr("is_on_sale").eq(True))
    if criteria.min_rating is not None:
        conditions.append(Attr("rating").gte(to_decimal(criteria.min_rating)))

    return reduce(lambda left, right: left & right, conditions)


def search_predicate(search: Optional[str]) -> Callable[[Mapping[str, Any]], bool]:
    """In-memory case-insensitive substring match over SEARCH_FIELDS"""
    if not search:
        return lambda item: True

    needle = search.lower()

    def matches(item: Mapping[str, Any]) -> bool:
        return any(needle in str(item.get(field) or "").lower() for field in SEARCH_FIELDS)

    return matches
