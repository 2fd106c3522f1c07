# backend/app/database.py
from datetime import datetime
import logging
from typing import Any, Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .core.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs() -> Dict[str, Any]:
    if settings.is_sqlite:
        # SQLite is used for local runs and tests; share one connection across threads
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
            "echo": settings.database_echo,
        }
    return {
        "poolclass": QueuePool,
        "pool_size": settings.database_pool_size,  # Number of persistent connections
        "max_overflow": settings.database_max_overflow,  # Maximum overflow connections
        "pool_timeout": 30,  # Timeout for getting connection
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,  # Test connections before using
        "echo": settings.database_echo,
        "connect_args": {"connect_timeout": 10, "application_name": "tutorly_backend"},
    }


engine: Engine = create_engine(settings.get_database_url(), **_engine_kwargs())


# Log pool events for monitoring
@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    connection_record.info["connect_time"] = datetime.now()
    logger.debug("Database connection established")


@event.listens_for(engine, "checkout")
def receive_checkout(dbapi_connection: Any, connection_record: Any, connection_proxy: Any) -> None:
    logger.debug("Connection checked out from pool")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def init_db() -> None:
    """Create all tables on the configured engine (local runs and tests)."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
