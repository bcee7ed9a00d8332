"""Database connection and session management"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


def init_database(database_url: str, pool_size: int = 5, max_overflow: int = 10) -> Engine:
    """Create the engine and its connection pool"""
    logger.info("Initializing database connection")

    options = {"pool_pre_ping": True, "echo": False}
    if not database_url.startswith("sqlite"):
        options.update(pool_size=pool_size, max_overflow=max_overflow)

    engine = create_engine(database_url, **options)
    logger.info("Database connection initialized")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``; sessions are short-lived, one per operation"""
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine: Engine):
    """Create all tables"""
    # Registers the mapped classes on Base.metadata
    from catalog_service.models import catalog  # noqa: F401

    logger.info("Creating database tables")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
