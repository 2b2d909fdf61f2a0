"""Database schema and connection management for the SQLite session backend."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from server import config


def init_database(database_path: Optional[str] = None) -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    db_path = Path(database_path or config.DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(str(db_path)) as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS upload_sessions (
                upload_id TEXT PRIMARY KEY,
                file_name TEXT NOT NULL,
                total_chunks INTEGER NOT NULL,
                document_type TEXT NOT NULL,
                temp_directory TEXT NOT NULL,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_sessions_name_total
            ON upload_sessions(file_name, total_chunks, created_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_sessions_updated_at ON upload_sessions(updated_at)
        """)

        conn.commit()


@contextmanager
def get_db_connection(database_path: Optional[str] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(database_path or config.DATABASE_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
