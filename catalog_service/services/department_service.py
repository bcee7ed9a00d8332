"""Department business logic"""
from typing import List
from opentelemetry import trace
import logging

from catalog_service.models.schemas import DepartmentCreate, DepartmentResponse, DepartmentUpdate
from catalog_service.repositories.base import CatalogRepository
from catalog_service.services.product_service import require_id

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DepartmentService:
    """Department service for business logic"""

    def __init__(self, repository: CatalogRepository):
        self.repository = repository

    def get_department(self, department_id: str) -> DepartmentResponse:
        with tracer.start_as_current_span("department_service.get_department") as span:
            span.set_attribute("department.id", department_id or "")
            return self.repository.get_department(require_id(department_id, "Department ID"))

    def list_departments(self) -> List[DepartmentResponse]:
        return self.repository.list_departments()

    def create_department(self, department_data: DepartmentCreate) -> DepartmentResponse:
        with tracer.start_as_current_span("department_service.create_department") as span:
            department = self.repository.create_department(department_data.model_dump())
            span.set_attribute("department.id", department.id)
            logger.info(f"Created department {department.id}: {department.slug}")
            return department

    def update_department(self, department_id: str, department_data: DepartmentUpdate) -> DepartmentResponse:
        require_id(department_id, "Department ID")
        return self.repository.update_department(department_id, department_data.changes())

    def delete_department(self, department_id: str) -> None:
        """Delete department (soft delete)"""
        self.repository.delete_department(require_id(department_id, "Department ID"))
        logger.info(f"Department {department_id} deactivated")
