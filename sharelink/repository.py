import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SQLiteRepository:
    def __init__(self, db_path: str):
        self.db_path = db_path

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()


class FileRepository(SQLiteRepository):
    def init(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS files (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    content_type TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    folder TEXT NOT NULL DEFAULT '',
                    uploaded_at TEXT NOT NULL,
                    is_deleted INTEGER NOT NULL DEFAULT 0,
                    is_shared INTEGER NOT NULL DEFAULT 0
                );
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_files_owner ON files(owner_id);")

    def create_file(
        self,
        *,
        owner_id: int,
        name: str,
        content_type: str,
        size: int,
        content: str,
        folder: str = "",
    ) -> dict:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO files(owner_id, name, content_type, size, content, folder, uploaded_at)
                VALUES(?, ?, ?, ?, ?, ?, ?)
                """,
                (owner_id, name, content_type, size, content, folder, utc_now_iso()),
            )
            row = conn.execute("SELECT * FROM files WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return dict(row)

    def get_file(self, file_id: int) -> dict | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM files WHERE id = ?", (file_id,)).fetchone()
        return dict(row) if row else None

    def list_files_for_owner(self, owner_id: int, *, include_deleted: bool = False) -> list[dict]:
        query = """
            SELECT id, owner_id, name, content_type, size, folder, uploaded_at, is_deleted, is_shared
            FROM files
            WHERE owner_id = ?
        """
        if not include_deleted:
            query += " AND is_deleted = 0"
        query += " ORDER BY uploaded_at DESC, id DESC"
        with self._connect() as conn:
            rows = conn.execute(query, (owner_id,)).fetchall()
        return [dict(row) for row in rows]

    def soft_delete_file(self, file_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("UPDATE files SET is_deleted = 1 WHERE id = ?", (file_id,))
        return cursor.rowcount > 0

    def restore_file(self, file_id: int) -> dict | None:
        with self._connect() as conn:
            conn.execute("UPDATE files SET is_deleted = 0 WHERE id = ?", (file_id,))
            row = conn.execute("SELECT * FROM files WHERE id = ?", (file_id,)).fetchone()
        return dict(row) if row else None

    def delete_file(self, file_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM files WHERE id = ?", (file_id,))
        return cursor.rowcount > 0

    def refresh_shared(self, file_id: int) -> None:
        """Set is_shared from the file's current share links in one statement."""
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE files
                SET is_shared = EXISTS(SELECT 1 FROM share_links WHERE file_id = ?)
                WHERE id = ?
                """,
                (file_id, file_id),
            )


class ShareLinkRepository(SQLiteRepository):
    """Token -> link record store.

    Stores exactly what it is given: no expiry defaults, no ownership or
    expiry checks. AUTOINCREMENT keeps ids from being reused after deletes.
    """

    def init(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS share_links (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    token TEXT NOT NULL UNIQUE,
                    file_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    expiry_date TEXT
                );
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_share_links_file ON share_links(file_id);")

    def create(
        self,
        *,
        token: str,
        file_id: int,
        user_id: int,
        created_at: datetime,
        expiry_date: datetime | None,
    ) -> dict:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO share_links(token, file_id, user_id, created_at, expiry_date)
                VALUES(?, ?, ?, ?, ?)
                """,
                (token, file_id, user_id, to_iso(created_at), to_iso(expiry_date)),
            )
            row = conn.execute(
                "SELECT * FROM share_links WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return dict(row)

    def find_by_token(self, token: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM share_links WHERE token = ?", (token,)).fetchone()
        return dict(row) if row else None

    def find_by_id(self, link_id: int) -> dict | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM share_links WHERE id = ?", (link_id,)).fetchone()
        return dict(row) if row else None

    def find_all_by_file_id(self, file_id: int) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM share_links WHERE file_id = ? ORDER BY id",
                (file_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def delete_by_id(self, link_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM share_links WHERE id = ?", (link_id,))
        return cursor.rowcount > 0

    def delete_all_by_file_id(self, file_id: int) -> int:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM share_links WHERE file_id = ?", (file_id,))
        return cursor.rowcount
