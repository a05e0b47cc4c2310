import logging
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import SimpleConnectionPool
from sqlalchemy import create_engine

from syntaxmap import config
from syntaxmap.errors import AppError, map_database_error

logger = logging.getLogger(__name__)

connection_pool = None


def create_connection_pool():
    """Create the PostgreSQL connection pool"""
    global connection_pool
    try:
        connection_pool = SimpleConnectionPool(
            config.DB_POOL_MIN, config.DB_POOL_MAX, dsn=config.database_url()
        )
        logger.info("PostgreSQL connection pool created")
    except psycopg2.Error as e:
        logger.error(f"Could not create connection pool: {e}")
        raise


def close_connection_pool():
    global connection_pool
    if connection_pool:
        connection_pool.closeall()
        connection_pool = None


def get_db_connection():
    """Borrow a connection from the pool"""
    if connection_pool is None:
        create_connection_pool()
    return connection_pool.getconn()


def release_db_connection(conn):
    """Give a connection back to the pool"""
    if connection_pool:
        connection_pool.putconn(conn)


def get_db():
    """FastAPI dependency: one pooled connection per request"""
    conn = get_db_connection()
    try:
        yield conn
    finally:
        release_db_connection(conn)


def _rollback(conn):
    try:
        conn.rollback()
    except psycopg2.Error as e:
        logger.warning(f"Rollback failed: {e}")


@contextmanager
def transaction(conn):
    """Yield a dict cursor; commit on success, roll back on any failure.

    psycopg2 errors leave as the matching ``AppError`` so callers only ever
    deal with the application taxonomy. That includes a connection which is
    already closed when the cursor is requested.
    """
    cursor = None
    try:
        cursor = conn.cursor(cursor_factory=RealDictCursor)
        yield cursor
        conn.commit()
    except psycopg2.Error as e:
        _rollback(conn)
        raise map_database_error(e) from e
    except Exception:
        _rollback(conn)
        raise
    finally:
        if cursor is not None:
            cursor.close()


def table_exists(conn, table_name: str) -> bool:
    try:
        with transaction(conn) as cursor:
            cursor.execute(
                "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
                "WHERE table_name = %s) AS table_exists",
                (table_name,),
            )
            row = cursor.fetchone()
    except AppError as e:
        logger.warning(f"information_schema lookup for {table_name} failed: {e.message}")
        return False
    return bool(row and row["table_exists"])


def init_database():
    """Create every table declared in syntaxmap.models"""
    from syntaxmap.models import Base

    engine = create_engine(config.database_url())
    try:
        Base.metadata.create_all(engine)
        logger.info("Database schema initialised")
    finally:
        engine.dispose()


@contextmanager
def use_cursor(conn, cursor=None):
    """Join the caller's transaction when a cursor is given, else open one"""
    if cursor is not None:
        yield cursor
    else:
        with transaction(conn) as cur:
            yield cur
