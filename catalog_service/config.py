"""Catalog Service Configuration"""
from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL
from typing import Optional


class Settings(BaseSettings):
    """
    Process-wide settings, read once from the environment (and ``.env``).

    Built at startup and handed to ``build_repository``; nothing below the
    service layer reads the environment itself.
    """

    # Application
    service_name: str = "product-service"
    environment: str = "dev"
    debug: bool = False

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"
    otel_enabled: bool = True
    otel_endpoint: str = "http://localhost:4317"
    otel_service_name: Optional[str] = None

    # Storage backend: "postgres" or "dynamodb"
    storage_backend: str = "postgres"
    auto_create_tables: bool = True

    # Relational store. database_url wins over the individual parts when set.
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = ""
    db_name: str = "supermarket"
    db_ssl_mode: str = "disable"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Key-value store
    aws_region: str = "us-east-1"
    dynamodb_endpoint_url: Optional[str] = None
    dynamodb_products_table: str = "products"
    dynamodb_departments_table: str = "departments"
    dynamodb_categories_table: str = "categories"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def tracing_service_name(self) -> str:
        return self.otel_service_name or self.service_name

    @property
    def sqlalchemy_url(self) -> str:
        """Connection URL for the relational backend"""
        if self.database_url:
            return self.database_url

        url = URL.create(
            "postgresql+psycopg2",
            username=self.db_user,
            password=self.db_password or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
            query={"sslmode": self.db_ssl_mode},
        )
        return url.render_as_string(hide_password=False)


settings = Settings()
