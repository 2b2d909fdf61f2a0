"""Upload session stores: in-process map and shared SQLite table."""

import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from common.logging_config import get_logger
from common.types import DocumentType, UploadSession
from server.database import get_db_connection, init_database

logger = get_logger(__name__)


class SessionStore(ABC):
    """
    Create/lookup/delete operations for upload sessions.

    Implementations must be safe to call from concurrent request handlers.
    Stores that touch the disk set blocking_io so async callers run them in
    a worker thread.
    """

    blocking_io = False

    @abstractmethod
    def create(self, session: UploadSession) -> None:
        """Register a new session."""

    @abstractmethod
    def get(self, upload_id: str) -> Optional[UploadSession]:
        """Return the session for upload_id, or None."""

    @abstractmethod
    def find_latest(self, file_name: str, total_chunks: int) -> Optional[UploadSession]:
        """Return the most recently created session for (file_name, total_chunks)."""

    @abstractmethod
    def touch(self, upload_id: str) -> None:
        """Refresh the session's last-activity timestamp."""

    @abstractmethod
    def delete(self, upload_id: str) -> Optional[UploadSession]:
        """Forget a session, returning the removed record if there was one."""

    @abstractmethod
    def clear(self) -> int:
        """Forget every session. Returns the number removed."""

    @abstractmethod
    def list_sessions(self) -> List[UploadSession]:
        """Snapshot of all sessions."""

    def list_expired(self, cutoff: float) -> List[UploadSession]:
        """Sessions whose last activity is older than cutoff (epoch seconds)."""
        return [s for s in self.list_sessions() if s.updated_at < cutoff]


class InMemorySessionStore(SessionStore):
    """
    Process-local session map.

    A single lock is held only around dictionary access, never around file I/O.
    """

    def __init__(self):
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.Lock()

    def create(self, session: UploadSession) -> None:
        with self._lock:
            self._sessions[session.upload_id] = session

    def get(self, upload_id: str) -> Optional[UploadSession]:
        with self._lock:
            return self._sessions.get(upload_id)

    def find_latest(self, file_name: str, total_chunks: int) -> Optional[UploadSession]:
        with self._lock:
            candidates = [
                s for s in self._sessions.values()
                if s.file_name == file_name and s.total_chunks == total_chunks
            ]
        latest = None
        for session in candidates:
            if latest is None or session.created_at >= latest.created_at:
                latest = session
        return latest

    def touch(self, upload_id: str) -> None:
        with self._lock:
            session = self._sessions.get(upload_id)
            if session is not None:
                session.updated_at = time.time()

    def delete(self, upload_id: str) -> Optional[UploadSession]:
        with self._lock:
            return self._sessions.pop(upload_id, None)

    def clear(self) -> int:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        return count

    def list_sessions(self) -> List[UploadSession]:
        with self._lock:
            return list(self._sessions.values())


class SqliteSessionStore(SessionStore):
    """
    Session records kept in the upload_sessions table.

    Lets several worker processes on one host see the same sessions.
    """

    blocking_io = True

    def __init__(self, database_path: str):
        self.database_path = database_path
        init_database(database_path)
        logger.info(f"SQLite session store ready [path={database_path}]")

    @staticmethod
    def _row_to_session(row) -> UploadSession:
        return UploadSession(
            upload_id=row["upload_id"],
            file_name=row["file_name"],
            total_chunks=row["total_chunks"],
            document_type=DocumentType.normalize(row["document_type"]),
            temp_directory=row["temp_directory"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def create(self, session: UploadSession) -> None:
        with get_db_connection(self.database_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO upload_sessions
                (upload_id, file_name, total_chunks, document_type, temp_directory, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.upload_id,
                    session.file_name,
                    session.total_chunks,
                    session.document_type.value,
                    session.temp_directory,
                    session.created_at,
                    session.updated_at,
                )
            )
            conn.commit()

    def get(self, upload_id: str) -> Optional[UploadSession]:
        with get_db_connection(self.database_path) as conn:
            row = conn.execute(
                "SELECT * FROM upload_sessions WHERE upload_id = ?",
                (upload_id,)
            ).fetchone()
        return self._row_to_session(row) if row else None

    def find_latest(self, file_name: str, total_chunks: int) -> Optional[UploadSession]:
        with get_db_connection(self.database_path) as conn:
            row = conn.execute(
                """
                SELECT * FROM upload_sessions
                WHERE file_name = ? AND total_chunks = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """,
                (file_name, total_chunks)
            ).fetchone()
        return self._row_to_session(row) if row else None

    def touch(self, upload_id: str) -> None:
        with get_db_connection(self.database_path) as conn:
            conn.execute(
                "UPDATE upload_sessions SET updated_at = ? WHERE upload_id = ?",
                (time.time(), upload_id)
            )
            conn.commit()

    def delete(self, upload_id: str) -> Optional[UploadSession]:
        with get_db_connection(self.database_path) as conn:
            row = conn.execute(
                "SELECT * FROM upload_sessions WHERE upload_id = ?",
                (upload_id,)
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM upload_sessions WHERE upload_id = ?", (upload_id,))
            conn.commit()
        return self._row_to_session(row)

    def clear(self) -> int:
        with get_db_connection(self.database_path) as conn:
            cursor = conn.execute("DELETE FROM upload_sessions")
            conn.commit()
            return cursor.rowcount

    def list_sessions(self) -> List[UploadSession]:
        with get_db_connection(self.database_path) as conn:
            rows = conn.execute("SELECT * FROM upload_sessions ORDER BY created_at").fetchall()
        return [self._row_to_session(row) for row in rows]

    def list_expired(self, cutoff: float) -> List[UploadSession]:
        with get_db_connection(self.database_path) as conn:
            rows = conn.execute(
                "SELECT * FROM upload_sessions WHERE updated_at < ?",
                (cutoff,)
            ).fetchall()
        return [self._row_to_session(row) for row in rows]


def create_session_store(backend: str, database_path: Optional[str] = None) -> SessionStore:
    """
    Build the session store named by configuration.

    Args:
        backend: "memory" or "sqlite"
        database_path: SQLite file path (sqlite backend only)

    Returns:
        SessionStore instance

    Raises:
        ValueError: If backend is unknown
    """
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "sqlite":
        from server import config
        return SqliteSessionStore(database_path or config.DATABASE_PATH)
    raise ValueError(f"Unknown session backend: {backend}")
