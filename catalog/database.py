"""Database layer: connection pool, schema and transactions."""
import psycopg2
from psycopg2 import pool
from contextlib import contextmanager
from typing import Dict, Iterator
import logging

from catalog.store import CatalogStore

logger = logging.getLogger(__name__)


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS authors (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        bio TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS categories (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS books (
        id SERIAL PRIMARY KEY,
        title TEXT NOT NULL,
        isbn VARCHAR(32) UNIQUE,
        published_at DATE,
        author_id INTEGER NOT NULL REFERENCES authors (id),
        google_books_id VARCHAR(64) UNIQUE,
        publisher TEXT,
        description TEXT,
        language VARCHAR(16),
        page_count INTEGER,
        small_thumbnail TEXT,
        thumbnail TEXT,
        medium_image TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS book_categories (
        book_id INTEGER NOT NULL REFERENCES books (id) ON DELETE CASCADE,
        category_id INTEGER NOT NULL REFERENCES categories (id),
        PRIMARY KEY (book_id, category_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        username VARCHAR(255) NOT NULL UNIQUE,
        email VARCHAR(255),
        password_hash TEXT NOT NULL,
        role VARCHAR(16) NOT NULL DEFAULT 'USER' CHECK (role IN ('USER', 'ADMIN')),
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_books (
        user_id INTEGER NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        book_id INTEGER NOT NULL REFERENCES books (id) ON DELETE CASCADE,
        PRIMARY KEY (user_id, book_id)
    )
    """,
    # Indexes for the filtered search
    "CREATE INDEX IF NOT EXISTS idx_books_title_lower ON books (lower(title))",
    "CREATE INDEX IF NOT EXISTS idx_books_author ON books (author_id)",
    "CREATE INDEX IF NOT EXISTS idx_book_categories_category ON book_categories (category_id)",
]


class Database:
    """PostgreSQL database with connection pooling."""

    def __init__(self, connection_string: str, min_conn: int = 1, max_conn: int = 10):
        """
        Initialize database connection pool.

        Args:
            connection_string: PostgreSQL connection string
            min_conn: Minimum connections in pool
            max_conn: Maximum connections in pool
        """
        self.connection_pool = psycopg2.pool.SimpleConnectionPool(
            min_conn,
            max_conn,
            connection_string
        )
        logger.info("Database connection pool created successfully")

    def init_schema(self):
        """Create database tables if they don't exist."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                for statement in SCHEMA:
                    cur.execute(statement)
            conn.commit()
            logger.info("Database schema initialized successfully")
        except Exception:
            conn.rollback()
            raise
        finally:
            self.connection_pool.putconn(conn)

    @contextmanager
    def transaction(self, read_only: bool = False) -> Iterator[CatalogStore]:
        """
        Run a unit of work in one transaction.

        Commits when the block exits normally, rolls back and re-raises
        otherwise.

        Args:
            read_only: Open the transaction READ ONLY (no write locks)

        Yields:
            CatalogStore bound to the transaction's cursor
        """
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                if read_only:
                    cur.execute("SET TRANSACTION READ ONLY")
                yield CatalogStore(cur)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.connection_pool.putconn(conn)

    def get_stats(self) -> Dict[str, int]:
        """Get row counts per catalog table."""
        with self.transaction(read_only=True) as store:
            return store.count_rows()

    def close(self):
        """Close all connections in the pool."""
        if self.connection_pool:
            self.connection_pool.closeall()
            logger.info("Database connection pool closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
