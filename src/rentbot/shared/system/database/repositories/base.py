from typing import Iterable, List, Optional, Sequence

from rentbot.shared.system.database.core import DatabaseCore


class BaseRepository:
    """
    Shared plumbing for the bot's SQLite repositories.

    Each subclass owns one table and creates it in init_table(). Every
    helper opens its own short-lived connection through DatabaseCore, so
    repositories are safe to share with confirmation monitor threads.
    """

    def __init__(self, db: DatabaseCore):
        self.db = db

    def _write(self, query: str, params: tuple = ()) -> int:
        """Run one statement in its own transaction. Returns affected rows."""
        with self.db.cursor(commit=True) as c:
            c.execute(query, params)
            return c.rowcount

    def _write_many(self, query: str, rows: Iterable[Sequence]) -> int:
        """Run one statement per parameter row, all in a single transaction."""
        with self.db.cursor(commit=True) as c:
            c.executemany(query, rows)
            return c.rowcount

    def _row(self, query: str, params: tuple = ()) -> Optional[dict]:
        with self.db.cursor() as c:
            row = c.execute(query, params).fetchone()
            return dict(row) if row else None

    def _rows(self, query: str, params: tuple = ()) -> List[dict]:
        with self.db.cursor() as c:
            return [dict(row) for row in c.execute(query, params).fetchall()]

    def init_table(self) -> None:
        raise NotImplementedError(f"{type(self).__name__} must create its table")
