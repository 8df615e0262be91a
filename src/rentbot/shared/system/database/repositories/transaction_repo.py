import json
import time
from typing import List, Optional

from rentbot.modules.storage_rent.models import TransactionRecord, TxStatus
from rentbot.shared.system.database.repositories.base import BaseRepository


class TransactionRepository(BaseRepository):
    """
    Append-only audit trail of broadcast claim transactions.
    Only the status column changes after insertion.
    """

    def init_table(self):
        with self.db.cursor(commit=True) as c:
            c.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                tx_id TEXT PRIMARY KEY,
                box_ids TEXT NOT NULL,
                total_rent_collected TEXT NOT NULL,
                transaction_fee TEXT NOT NULL,
                created_at REAL NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                updated_at REAL
            )
            """)
            c.execute("CREATE INDEX IF NOT EXISTS idx_transactions_status ON transactions(status)")
            c.execute("CREATE INDEX IF NOT EXISTS idx_transactions_created_at ON transactions(created_at)")

    def insert_transaction(self, record: TransactionRecord) -> None:
        self._write(
            """
            INSERT INTO transactions (
                tx_id, box_ids, total_rent_collected, transaction_fee, created_at, status
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record.tx_id,
                json.dumps(record.box_ids),
                str(record.total_rent_collected),
                str(record.fee),
                record.created_at,
                record.status.value,
            ),
        )

    def update_status(self, tx_id: str, status: TxStatus, updated_at: Optional[float] = None) -> None:
        self._write(
            "UPDATE transactions SET status = ?, updated_at = ? WHERE tx_id = ?",
            (status.value, updated_at or time.time(), tx_id),
        )

    def get_transaction(self, tx_id: str) -> Optional[TransactionRecord]:
        row = self._row("SELECT * FROM transactions WHERE tx_id = ?", (tx_id,))
        return self._row_to_record(row) if row else None

    def get_transactions(self, status: Optional[TxStatus] = None, limit: Optional[int] = None) -> List[TransactionRecord]:
        """Most recent first."""
        query = "SELECT * FROM transactions"
        params: tuple = ()
        if status is not None:
            query += " WHERE status = ?"
            params = (status.value,)
        query += " ORDER BY created_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)
        return [self._row_to_record(row) for row in self._rows(query, params)]

    def get_transaction_metrics(self) -> dict:
        rows = self._rows("SELECT status, total_rent_collected, transaction_fee FROM transactions")
        return {
            "total_fees": sum(int(r["transaction_fee"]) for r in rows),
            "total_rent_submitted": sum(int(r["total_rent_collected"]) for r in rows),
            "pending": sum(1 for r in rows if r["status"] == TxStatus.PENDING.value),
            "successful": sum(1 for r in rows if r["status"] == TxStatus.CONFIRMED.value),
            "failed": sum(1 for r in rows if r["status"] == TxStatus.FAILED.value),
        }

    @staticmethod
    def _row_to_record(row: dict) -> TransactionRecord:
        return TransactionRecord(
            tx_id=row["tx_id"],
            box_ids=json.loads(row["box_ids"]),
            total_rent_collected=int(row["total_rent_collected"]),
            fee=int(row["transaction_fee"]),
            status=TxStatus(row["status"]),
            created_at=row["created_at"],
        )
