"""
Repository Integration Tests
============================
Box, transaction and bot-state persistence against a real SQLite file.
"""

import time

import pytest

from rentbot.modules.storage_rent.models import (
    Asset,
    BoxStatus,
    ScanCursor,
    TransactionRecord,
    TxStatus,
)

pytestmark = pytest.mark.integration


class TestBoxRepository:
    def test_upsert_and_read_back(self, repos, make_candidate):
        box_repo, _, _ = repos
        box = make_candidate(
            "01" * 32,
            value=2 ** 70,
            rent_fee=123_456_789,
            assets=[Asset(token_id="aa" * 32, amount=2 ** 65)],
            additional_registers={"R4": "0e0101"},
            discovered_height=1500,
            status=BoxStatus.QUEUED,
        )

        box_repo.upsert_box(box)
        loaded = box_repo.get_box(box.box_id)

        assert loaded.value == 2 ** 70
        assert loaded.rent_fee == 123_456_789
        assert loaded.assets == [Asset(token_id="aa" * 32, amount=2 ** 65)]
        assert loaded.additional_registers == {"R4": "0e0101"}
        assert loaded.discovered_height == 1500
        assert loaded.status == BoxStatus.QUEUED

    def test_bulk_upsert(self, repos, make_candidate):
        box_repo, _, _ = repos
        boxes = [make_candidate("01" * 32), make_candidate("02" * 32, status=BoxStatus.INSUFFICIENT_FUNDS)]

        assert box_repo.upsert_boxes(boxes) == 2

        assert box_repo.get_status("02" * 32) == BoxStatus.INSUFFICIENT_FUNDS
        assert len(box_repo.get_boxes()) == 2

    def test_unknown_box(self, repos):
        box_repo, _, _ = repos
        assert box_repo.get_box("ff" * 32) is None
        assert box_repo.get_status("ff" * 32) is None

    def test_status_transitions_keep_tx_id(self, repos, make_candidate):
        box_repo, _, _ = repos
        box_repo.upsert_box(make_candidate("01" * 32, status=BoxStatus.QUEUED))

        box_repo.update_status(["01" * 32], BoxStatus.SUBMITTED, tx_id="ab" * 32)
        box_repo.update_status_by_tx("ab" * 32, BoxStatus.CONFIRMED)

        loaded = box_repo.get_box("01" * 32)
        assert loaded.status == BoxStatus.CONFIRMED
        assert loaded.tx_id == "ab" * 32
        assert box_repo.get_status("01" * 32).is_terminal

    def test_error_reason_recorded(self, repos, make_candidate):
        box_repo, _, _ = repos
        box_repo.upsert_box(make_candidate("01" * 32))

        box_repo.update_status(["01" * 32], BoxStatus.ERROR, reason="Box spent")

        assert box_repo.get_box("01" * 32).error_reason == "Box spent"

    def test_get_boxes_filters_by_status(self, repos, make_candidate):
        box_repo, _, _ = repos
        box_repo.upsert_box(make_candidate("01" * 32, status=BoxStatus.QUEUED))
        box_repo.upsert_box(make_candidate("02" * 32, status=BoxStatus.CONFIRMED))
        box_repo.upsert_box(make_candidate("03" * 32, status=BoxStatus.BATCHED))

        restorable = box_repo.get_boxes([BoxStatus.QUEUED, BoxStatus.BATCHED])

        assert [b.box_id for b in restorable] == ["01" * 32, "03" * 32]
        assert len(box_repo.get_boxes()) == 3

    def test_cleanup_removes_only_old_terminal_records(self, repos, make_candidate):
        box_repo, _, _ = repos
        old = time.time() - 40 * 86400
        box_repo.upsert_box(make_candidate("01" * 32, status=BoxStatus.CONFIRMED, discovered_at=old))
        box_repo.upsert_box(make_candidate("02" * 32, status=BoxStatus.QUEUED, discovered_at=old))
        box_repo.upsert_box(make_candidate("03" * 32, status=BoxStatus.ERROR))

        assert box_repo.cleanup_old_records(30) == 1
        assert box_repo.get_box("01" * 32) is None
        assert box_repo.get_box("02" * 32) is not None

    def test_box_metrics(self, repos, make_candidate):
        box_repo, _, _ = repos
        box_repo.upsert_box(make_candidate("01" * 32, rent_fee=100, status=BoxStatus.CONFIRMED, discovered_height=1500))
        box_repo.upsert_box(make_candidate("02" * 32, rent_fee=50, status=BoxStatus.QUEUED, discovered_height=1550))
        box_repo.upsert_box(make_candidate("03" * 32, status=BoxStatus.INSUFFICIENT_FUNDS))

        metrics = box_repo.get_box_metrics()

        assert metrics["total_boxes_scanned"] == 3
        assert metrics["eligible_boxes_found"] == 2
        assert metrics["confirmed_rent_collected"] == 100
        assert metrics["last_scan_height"] == 1550


class TestTransactionRepository:
    def test_insert_and_update(self, repos):
        _, tx_repo, _ = repos
        tx_repo.insert_transaction(
            TransactionRecord(tx_id="ab" * 32, box_ids=["01" * 32, "02" * 32], total_rent_collected=150, fee=1)
        )

        tx_repo.update_status("ab" * 32, TxStatus.CONFIRMED)

        record = tx_repo.get_transaction("ab" * 32)
        assert record.status == TxStatus.CONFIRMED
        assert record.box_ids == ["01" * 32, "02" * 32]
        assert record.total_rent_collected == 150

    def test_duplicate_tx_id_rejected(self, repos):
        import sqlite3

        _, tx_repo, _ = repos
        record = TransactionRecord(tx_id="ab" * 32, box_ids=[], total_rent_collected=0, fee=1)
        tx_repo.insert_transaction(record)

        with pytest.raises(sqlite3.IntegrityError):
            tx_repo.insert_transaction(record)

    def test_listing_and_metrics(self, repos):
        _, tx_repo, _ = repos
        now = time.time()
        for n, status in enumerate([TxStatus.PENDING, TxStatus.CONFIRMED, TxStatus.FAILED]):
            tx_repo.insert_transaction(
                TransactionRecord(
                    tx_id=f"{n:064x}",
                    box_ids=[],
                    total_rent_collected=100,
                    fee=10,
                    status=status,
                    created_at=now + n,
                )
            )

        assert [r.tx_id for r in tx_repo.get_transactions(limit=2)] == [f"{2:064x}", f"{1:064x}"]
        assert [r.tx_id for r in tx_repo.get_transactions(status=TxStatus.PENDING)] == [f"{0:064x}"]
        assert tx_repo.get_transaction_metrics() == {
            "total_fees": 30,
            "total_rent_submitted": 300,
            "pending": 1,
            "successful": 1,
            "failed": 1,
        }


class TestBotStateRepository:
    def test_cursor_round_trip(self, repos):
        _, _, state_repo = repos

        assert state_repo.load_cursor(44_160_000) == ScanCursor(offset=44_160_000, last_scan_height=0)

        state_repo.save_cursor(ScanCursor(offset=1234, last_scan_height=1500))

        assert state_repo.load_cursor(44_160_000) == ScanCursor(offset=1234, last_scan_height=1500)

    def test_state_values(self, repos):
        _, _, state_repo = repos
        state_repo.set_state("wallet_balance", 42)

        assert state_repo.get_state("wallet_balance") == "42"
        assert state_repo.get_int("wallet_balance") == 42
        assert state_repo.get_int("missing", 7) == 7
        assert [row["key"] for row in state_repo.get_all_state()] == ["wallet_balance"]
