import json
import time
from typing import Iterable, List, Optional

from rentbot.modules.storage_rent.models import (
    Asset,
    BoxStatus,
    CandidateBox,
    TERMINAL_BOX_STATUSES,
)
from rentbot.shared.system.database.repositories.base import BaseRepository


class BoxRepository(BaseRepository):
    """
    Persists discovered boxes and their lifecycle status.

    Values and rent fees are stored as decimal TEXT so no precision is
    lost above SQLite's 64-bit INTEGER range.
    """

    def init_table(self):
        with self.db.cursor(commit=True) as c:
            c.execute("""
            CREATE TABLE IF NOT EXISTS eligible_boxes (
                box_id TEXT PRIMARY KEY,
                creation_height INTEGER NOT NULL,
                current_height INTEGER NOT NULL,
                box_size INTEGER NOT NULL,
                value TEXT NOT NULL,
                rent_fee TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'discovered',
                discovered_at REAL NOT NULL,
                claimed_at REAL,
                tx_id TEXT,
                ergo_tree TEXT NOT NULL,
                assets TEXT NOT NULL DEFAULT '[]',
                additional_registers TEXT NOT NULL DEFAULT '{}',
                error_reason TEXT
            )
            """)
            c.execute("CREATE INDEX IF NOT EXISTS idx_eligible_boxes_status ON eligible_boxes(status)")
            c.execute(
                "CREATE INDEX IF NOT EXISTS idx_eligible_boxes_creation_height "
                "ON eligible_boxes(creation_height)"
            )

    _UPSERT = """
        INSERT OR REPLACE INTO eligible_boxes (
            box_id, creation_height, current_height, box_size, value, rent_fee,
            status, discovered_at, claimed_at, tx_id, ergo_tree, assets,
            additional_registers, error_reason
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """

    def upsert_box(self, box: CandidateBox) -> None:
        """Insert a box, or refresh it if already known."""
        self._write(self._UPSERT, self._box_params(box))

    def upsert_boxes(self, boxes: Iterable[CandidateBox]) -> int:
        """Bulk upsert of scan output in one transaction."""
        return self._write_many(self._UPSERT, [self._box_params(box) for box in boxes])

    @staticmethod
    def _box_params(box: CandidateBox) -> tuple:
        return (
            box.box_id,
            box.creation_height,
            box.discovered_height,
            box.box_size,
            str(box.value),
            str(box.rent_fee),
            box.status.value,
            box.discovered_at,
            None,
            box.tx_id,
            box.ergo_tree,
            json.dumps([{"tokenId": a.token_id, "amount": str(a.amount)} for a in box.assets]),
            json.dumps(box.additional_registers),
            box.error_reason,
        )

    def update_status(
        self,
        box_ids: Iterable[str],
        status: BoxStatus,
        tx_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Move boxes to a new status. `tx_id` is kept unless a new one is given."""
        claimed_at = time.time() if status == BoxStatus.SUBMITTED else None
        self._write_many(
            """
            UPDATE eligible_boxes SET
                status = ?,
                tx_id = COALESCE(?, tx_id),
                claimed_at = COALESCE(?, claimed_at),
                error_reason = ?
            WHERE box_id = ?
            """,
            [(status.value, tx_id, claimed_at, reason, box_id) for box_id in box_ids],
        )

    def update_status_by_tx(self, tx_id: str, status: BoxStatus, reason: Optional[str] = None) -> int:
        return self._write(
            "UPDATE eligible_boxes SET status = ?, error_reason = ? WHERE tx_id = ?",
            (status.value, reason, tx_id),
        )

    def get_box(self, box_id: str) -> Optional[CandidateBox]:
        row = self._row("SELECT * FROM eligible_boxes WHERE box_id = ?", (box_id,))
        return self._row_to_box(row) if row else None

    def get_status(self, box_id: str) -> Optional[BoxStatus]:
        row = self._row("SELECT status FROM eligible_boxes WHERE box_id = ?", (box_id,))
        return BoxStatus(row["status"]) if row else None

    def get_boxes(self, statuses: Iterable[BoxStatus] = ()) -> List[CandidateBox]:
        """Boxes in any of `statuses` (all boxes if empty), in discovery order."""
        statuses = list(statuses)
        query = "SELECT * FROM eligible_boxes"
        params: tuple = ()
        if statuses:
            placeholders = ", ".join("?" for _ in statuses)
            query += f" WHERE status IN ({placeholders})"
            params = tuple(s.value for s in statuses)
        query += " ORDER BY discovered_at ASC, rowid ASC"
        return [self._row_to_box(row) for row in self._rows(query, params)]

    def cleanup_old_records(self, days_to_keep: int = 30) -> int:
        """Delete terminal box records discovered more than `days_to_keep` days ago."""
        cutoff = time.time() - days_to_keep * 86400
        terminal = tuple(s.value for s in TERMINAL_BOX_STATUSES)
        placeholders = ", ".join("?" for _ in terminal)
        return self._write(
            f"DELETE FROM eligible_boxes WHERE status IN ({placeholders}) AND discovered_at < ?",
            terminal + (cutoff,),
        )

    def get_box_metrics(self) -> dict:
        rows = self._rows("SELECT status, rent_fee, current_height, discovered_at FROM eligible_boxes")
        rent_collected = sum(int(r["rent_fee"]) for r in rows if r["status"] == BoxStatus.CONFIRMED.value)
        return {
            "total_boxes_scanned": len(rows),
            "eligible_boxes_found": sum(
                1 for r in rows if r["status"] != BoxStatus.INSUFFICIENT_FUNDS.value
            ),
            "confirmed_rent_collected": rent_collected,
            "last_scan_height": max((r["current_height"] for r in rows), default=0),
            "last_discovered_at": max((r["discovered_at"] for r in rows), default=None),
        }

    @staticmethod
    def _row_to_box(row: dict) -> CandidateBox:
        return CandidateBox(
            box_id=row["box_id"],
            creation_height=row["creation_height"],
            box_size=row["box_size"],
            value=int(row["value"]),
            rent_fee=int(row["rent_fee"]),
            ergo_tree=row["ergo_tree"],
            assets=[Asset.from_dict(a) for a in json.loads(row["assets"])],
            additional_registers=json.loads(row["additional_registers"]),
            discovered_height=row["current_height"],
            status=BoxStatus(row["status"]),
            discovered_at=row["discovered_at"],
            tx_id=row["tx_id"],
            error_reason=row["error_reason"],
        )
