"""
Engine, session factory and declarative base shared by every domain module.
"""

import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from . import config

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """SQLite gets a thread-shareable connection, everything else a sized pool"""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=config.DB_POOL_RECYCLE,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
    )


def log_slow_queries(engine: Engine, threshold: float) -> None:
    """Warn about every statement on this engine that runs longer than threshold seconds"""

    def started(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("statement_started", []).append(time.perf_counter())

    def finished(conn, cursor, statement, parameters, context, executemany):
        elapsed = time.perf_counter() - conn.info["statement_started"].pop()
        if elapsed >= threshold:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}")

    event.listen(engine, "before_cursor_execute", started)
    event.listen(engine, "after_cursor_execute", finished)


try:
    engine = build_engine(config.DATABASE_URL)
    logger.info("✅ Database engine created successfully")
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise

if config.DB_LOG_SLOW_QUERIES:
    log_slow_queries(engine, config.DB_SLOW_QUERY_THRESHOLD)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
