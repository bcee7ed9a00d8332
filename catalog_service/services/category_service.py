"""Category business logic"""
from typing import List, Optional
from opentelemetry import trace
import logging

from catalog_service.errors import ConflictError, NotFoundError, ValidationError
from catalog_service.models.schemas import CategoryCreate, CategoryResponse, CategoryUpdate
from catalog_service.repositories.base import CatalogRepository
from catalog_service.services.product_service import require_id

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CategoryService:
    """
    Category service for business logic

    Categories form a tree. ``level`` is 0 for roots and ``parent.level + 1``
    otherwise; it is recomputed here whenever a parent changes and pushed
    down to the moved category's descendants.
    """

    def __init__(self, repository: CatalogRepository):
        self.repository = repository

    def get_category(self, category_id: str) -> CategoryResponse:
        with tracer.start_as_current_span("category_service.get_category") as span:
            span.set_attribute("category.id", category_id or "")
            return self.repository.get_category(require_id(category_id, "Category ID"))

    def list_categories(self, parent_id: Optional[str] = None, include_inactive: bool = False) -> List[CategoryResponse]:
        return self.repository.list_categories(parent_id or None, include_inactive=include_inactive)

    def create_category(self, category_data: CategoryCreate) -> CategoryResponse:
        with tracer.start_as_current_span("category_service.create_category") as span:
            data = category_data.model_dump()
            data["parent_id"] = data.get("parent_id") or None
            data["level"] = self._level_under(data["parent_id"])

            category = self.repository.create_category(data)

            span.set_attribute("category.id", category.id)
            span.set_attribute("category.level", category.level)
            logger.info(f"Created category {category.id}: {category.slug} (level {category.level})")
            return category

    def update_category(self, category_id: str, category_data: CategoryUpdate) -> CategoryResponse:
        with tracer.start_as_current_span("category_service.update_category") as span:
            span.set_attribute("category.id", category_id or "")
            require_id(category_id, "Category ID")

            current = self.repository.get_category(category_id)
            changes = category_data.changes()

            if "parent_id" in changes:
                parent_id = changes["parent_id"] or None
                if parent_id == category_id:
                    raise ConflictError(
                        "Category cannot be its own parent",
                        [{"field": "parent_id", "message": "must differ from the category id"}],
                    )
                if parent_id is not None:
                    self._reject_cycle(category_id, parent_id)
                changes["parent_id"] = parent_id
                changes["level"] = self._level_under(parent_id)

            category = self.repository.update_category(category_id, changes)

            if category.level != current.level:
                self._relevel_descendants(category)
            return category

    def delete_category(self, category_id: str) -> None:
        """Delete category (soft delete)"""
        self.repository.delete_category(require_id(category_id, "Category ID"))
        logger.info(f"Category {category_id} deactivated")

    def _level_under(self, parent_id: Optional[str]) -> int:
        if parent_id is None:
            return 0
        try:
            parent = self.repository.get_category(parent_id)
        except NotFoundError as e:
            raise ValidationError(
                f"Parent category {parent_id} not found",
                [{"field": "parent_id", "message": "parent category does not exist"}],
            ) from e
        return parent.level + 1

    def _reject_cycle(self, category_id: str, parent_id: str) -> None:
        """
        The new parent must not be the category itself or one of its descendants.

        Deleted categories keep their parent links, so the walk goes through them.
        """
        parents = {c.id: c.parent_id for c in self.repository.list_categories(include_inactive=True)}
        seen = set()
        ancestor_id: Optional[str] = parent_id
        while ancestor_id and ancestor_id not in seen:
            if ancestor_id == category_id:
                raise ConflictError(
                    "Category cannot be moved under its own descendant",
                    [{"field": "parent_id", "message": "would create a cycle"}],
                )
            seen.add(ancestor_id)
            ancestor_id = parents.get(ancestor_id)

    def _relevel_descendants(self, category: CategoryResponse) -> None:
        pending = [category]
        while pending:
            parent = pending.pop()
            for child in self.repository.list_categories(parent.id):
                if child.level != parent.level + 1:
                    pending.append(self.repository.update_category(child.id, {"level": parent.level + 1}))
                    logger.info(f"Category {child.id} moved to level {parent.level + 1}")
