import time
from typing import List, Optional

from rentbot.modules.storage_rent.models import ScanCursor
from rentbot.shared.system.database.repositories.base import BaseRepository


class BotStateRepository(BaseRepository):
    """
    Simple key/value bot state: scan cursor, lifecycle timestamps,
    cached wallet balance.
    """

    SCAN_OFFSET_KEY = "scan_offset"
    LAST_SCAN_HEIGHT_KEY = "last_scan_height"

    _UPSERT = "INSERT OR REPLACE INTO bot_state (key, value, updated_at) VALUES (?, ?, ?)"

    def init_table(self):
        with self.db.cursor(commit=True) as c:
            c.execute("""
            CREATE TABLE IF NOT EXISTS bot_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at REAL NOT NULL
            )
            """)

    def set_state(self, key: str, value) -> None:
        self._write(self._UPSERT, (key, str(value), time.time()))

    def get_state(self, key: str) -> Optional[str]:
        row = self._row("SELECT value FROM bot_state WHERE key = ?", (key,))
        return row["value"] if row else None

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get_state(key)
        return int(value) if value is not None else default

    def get_all_state(self) -> List[dict]:
        return self._rows("SELECT key, value, updated_at FROM bot_state ORDER BY key ASC")

    def load_cursor(self, default_offset: int) -> ScanCursor:
        """Persisted scan cursor, or a fresh one starting at `default_offset`."""
        return ScanCursor(
            offset=self.get_int(self.SCAN_OFFSET_KEY, default_offset),
            last_scan_height=self.get_int(self.LAST_SCAN_HEIGHT_KEY, 0),
        )

    def save_cursor(self, cursor: ScanCursor) -> None:
        # Both keys land in one transaction so offset and height never disagree
        now = time.time()
        self._write_many(
            self._UPSERT,
            [
                (self.SCAN_OFFSET_KEY, str(cursor.offset), now),
                (self.LAST_SCAN_HEIGHT_KEY, str(cursor.last_scan_height), now),
            ],
        )
