"""Database setup with a lazily created, bounded connection pool"""

from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool, QueuePool
from nanoedit.config import settings
import logging

logger = logging.getLogger(__name__)

POOL_CONFIG = {
    "pool_size": settings.DATABASE_POOL_SIZE,
    "max_overflow": settings.DATABASE_MAX_OVERFLOW,
    "pool_timeout": settings.DATABASE_POOL_TIMEOUT,
    "pool_recycle": settings.DATABASE_POOL_RECYCLE,
    "pool_pre_ping": True,  # Verify connections before use
}

# One engine per process; connections are opened on first checkout
if settings.FASTAPI_CONFIG == "testing":
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args=settings.DATABASE_CONNECT_DICT,
        poolclass=NullPool,
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        poolclass=QueuePool,
        **POOL_CONFIG,
        connect_args={
            "connect_timeout": settings.DATABASE_CONNECT_TIMEOUT,
            "options": "-c statement_timeout=30000",  # 30s query timeout
        },
    )


@event.listens_for(engine, "connect")
def receive_connect(dbapi_conn, connection_record):
    """Log new connections"""
    logger.debug("New database connection created")


@event.listens_for(engine, "checkout")
def receive_checkout(dbapi_conn, connection_record, connection_proxy):
    """Track connection checkouts"""
    pool = engine.pool
    if isinstance(pool, QueuePool):
        logger.debug(
            f"Pool status: {pool.checkedout()}/{pool.size()} checked out, "
            f"{pool.overflow()} overflow"
        )


SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)

Base = declarative_base()


def get_db_session():
    """Dependency for FastAPI endpoints"""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


db_context = contextmanager(get_db_session)


def get_pool_stats() -> dict:
    """Get current pool statistics for monitoring"""
    pool_obj = engine.pool
    if not isinstance(pool_obj, QueuePool):
        return {"pool": type(pool_obj).__name__}
    return {
        "size": pool_obj.size(),
        "checked_in": pool_obj.checkedin(),
        "checked_out": pool_obj.checkedout(),
        "overflow": pool_obj.overflow(),
        "available": pool_obj.size() - pool_obj.checkedout(),
    }
