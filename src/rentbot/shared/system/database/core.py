import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from rentbot.shared.system.logging import Logger


class DatabaseCore:
    """
    Owns the bot's SQLite file.

    Connections are opened per cursor() block and closed on exit. The
    journal runs in WAL mode so confirmation monitor threads can read
    while the main cycle writes.
    """

    BUSY_TIMEOUT_SECONDS = 10.0

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._ensure_data_dir()
        self._init_wal_mode()

    def _ensure_data_dir(self) -> None:
        parent = os.path.dirname(os.path.abspath(self.db_path))
        os.makedirs(parent, exist_ok=True)

    def _init_wal_mode(self) -> None:
        try:
            with self.cursor(commit=True) as c:
                mode = c.execute("PRAGMA journal_mode=WAL").fetchone()[0]
                c.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.Error as e:
            Logger.warning(f"[DB] ⚠️ Could not switch {self.db_path} to WAL: {e}")
            return
        Logger.debug(f"[DB] 📦 {self.db_path} journal_mode={mode}")

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.BUSY_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def cursor(self, commit: bool = False) -> Iterator[sqlite3.Cursor]:
        """
        Yield a cursor on a fresh connection.

        With commit=True the block is one transaction: committed on clean
        exit, rolled back and re-raised on any error.
        """
        conn = self.get_connection()
        try:
            yield conn.cursor()
            if commit:
                conn.commit()
        except sqlite3.Error as e:
            if commit:
                conn.rollback()
            Logger.error(f"[DB] ❌ {type(e).__name__}: {e}")
            raise
        except Exception:
            if commit:
                conn.rollback()
            raise
        finally:
            conn.close()

    def health_check(self) -> bool:
        try:
            with self.cursor() as c:
                return c.execute("SELECT 1").fetchone() is not None
        except sqlite3.Error:
            return False

    def vacuum(self) -> None:
        """Reclaim space after old records are pruned. Runs outside a transaction."""
        conn = self.get_connection()
        try:
            conn.execute("VACUUM")
        finally:
            conn.close()
