"""Storage backends behind the CatalogRepository contract"""
import logging

from catalog_service.repositories.base import CatalogRepository

logger = logging.getLogger(__name__)

BACKENDS = ("postgres", "dynamodb")


def build_repository(settings) -> CatalogRepository:
    """Construct the backend named by ``settings.storage_backend``"""
    backend = settings.storage_backend.lower()
    logger.info(f"Using {backend} storage backend")

    if backend == "postgres":
        from catalog_service.db.database import create_session_factory, create_tables, init_database
        from catalog_service.repositories.sql import SQLAlchemyRepository

        engine = init_database(
            settings.sqlalchemy_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
        if settings.auto_create_tables:
            create_tables(engine)
        return SQLAlchemyRepository(create_session_factory(engine))

    if backend == "dynamodb":
        from catalog_service.repositories.dynamodb import DynamoDBRepository

        repository = DynamoDBRepository.from_settings(settings)
        if settings.auto_create_tables:
            repository.create_tables()
        return repository

    raise ValueError(f"Unknown storage backend {settings.storage_backend!r}; expected one of {BACKENDS}")


__all__ = ["CatalogRepository", "build_repository"]
