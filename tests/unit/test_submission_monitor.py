"""
Submission Monitor Unit Tests
=============================
Sign/broadcast bookkeeping and confirmation polling, with MagicMock
repositories standing in for SQLite.
"""

import dataclasses

import pytest

from rentbot.modules.storage_rent.errors import BroadcastError, SigningError, TransientIOError
from rentbot.modules.storage_rent.models import BoxStatus, ClaimBatch, TxStatus
from rentbot.modules.storage_rent.submission_monitor import SubmissionMonitor
from rentbot.shared.system.thread_manager import ThreadManager
from tests.mocks.mock_node import MockNodeClient, MockSigner


@pytest.fixture
def node():
    return MockNodeClient(height=1500)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_monitor(node, mock_box_repo, mock_tx_repo, rent_config, sleeps):
    def _make(signer=None, **overrides):
        return SubmissionMonitor(
            node,
            signer or MockSigner(),
            mock_box_repo,
            mock_tx_repo,
            dataclasses.replace(rent_config, **overrides),
            threads=ThreadManager(),
            sleep=sleeps.append,
        )

    return _make


@pytest.fixture
def batch(node, rent_config):
    from rentbot.modules.storage_rent.batch_builder import BatchBuilder
    from rentbot.modules.storage_rent.models import CandidateBox
    from tests.mocks.mock_node import CHANGE_ADDRESS

    boxes = []
    for rent in (100_000_000, 50_000_000):
        raw = node.add_box(creation_height=900, value=1_000_000_000)
        boxes.append(
            CandidateBox(
                box_id=raw["boxId"],
                creation_height=900,
                box_size=80,
                value=raw["value"],
                rent_fee=rent,
                ergo_tree=raw["ergoTree"],
            )
        )
    return BatchBuilder(node, rent_config).build(boxes, CHANGE_ADDRESS, 1500)


class TestSubmit:
    def test_success_records_pending_tx(self, make_monitor, batch, node, mock_box_repo, mock_tx_repo):
        monitor = make_monitor()

        tx_id = monitor.submit(batch)

        assert tx_id == f"{1:064x}"
        assert len(node.broadcasts) == 1
        record = mock_tx_repo.insert_transaction.call_args[0][0]
        assert record.tx_id == tx_id
        assert record.box_ids == batch.box_ids
        assert record.status == TxStatus.PENDING
        assert record.total_rent_collected == 150_000_000
        assert record.fee == 1_000_000

        calls = mock_box_repo.update_status.call_args_list
        assert calls[0].args == (batch.box_ids, BoxStatus.BATCHED)
        assert calls[-1].args == (batch.box_ids, BoxStatus.SUBMITTED)
        assert calls[-1].kwargs == {"tx_id": tx_id}
        assert monitor.get_stats()["submissions"] == 1

    def test_signing_failure_marks_error(self, make_monitor, batch, node, mock_box_repo, mock_tx_repo):
        monitor = make_monitor(signer=MockSigner(fail=True))

        with pytest.raises(SigningError):
            monitor.submit(batch)

        assert node.broadcasts == []
        mock_tx_repo.insert_transaction.assert_not_called()
        last = mock_box_repo.update_status.call_args
        assert last.args == (batch.box_ids, BoxStatus.ERROR)
        assert "refused" in last.kwargs["reason"]
        assert monitor.get_stats()["failures"] == 1

    def test_broadcast_rejection_marks_error(self, make_monitor, batch, node, mock_box_repo, mock_tx_repo):
        node.reject_broadcast = True
        monitor = make_monitor()

        with pytest.raises(BroadcastError):
            monitor.submit(batch)

        mock_tx_repo.insert_transaction.assert_not_called()
        assert mock_box_repo.update_status.call_args.args == (batch.box_ids, BoxStatus.ERROR)

    def test_transient_broadcast_error_marks_error(self, make_monitor, batch, mock_box_repo, monkeypatch, node):
        def unreachable(signed):
            raise TransientIOError("connection reset")

        monkeypatch.setattr(node, "broadcast", unreachable)

        with pytest.raises(TransientIOError):
            make_monitor().submit(batch)

        assert mock_box_repo.update_status.call_args.args == (batch.box_ids, BoxStatus.ERROR)


class TestMonitor:
    TX = "ab" * 32

    def test_confirmed_first_poll(self, make_monitor, node, mock_box_repo, mock_tx_repo, sleeps):
        node.set_tx_responses(self.TX, [{"confirmations": 1}])

        assert make_monitor().monitor(self.TX) == TxStatus.CONFIRMED

        mock_tx_repo.update_status.assert_called_once_with(self.TX, TxStatus.CONFIRMED)
        mock_box_repo.update_status_by_tx.assert_called_once_with(self.TX, BoxStatus.CONFIRMED)
        assert sleeps == []

    def test_confirmed_second_poll_stops_polling(self, make_monitor, node, sleeps):
        node.set_tx_responses(self.TX, [None, {"confirmations": 2}])

        assert make_monitor(CONFIRMATION_MAX_ATTEMPTS=5).monitor(self.TX) == TxStatus.CONFIRMED

        assert node.tx_status_calls[self.TX] == 2
        assert len(sleeps) == 1

    def test_zero_confirmations_is_not_confirmed(self, make_monitor, node, mock_tx_repo):
        node.set_tx_responses(self.TX, [{"confirmations": 0}])

        assert make_monitor().monitor(self.TX) == TxStatus.FAILED

        mock_tx_repo.update_status.assert_called_once_with(self.TX, TxStatus.FAILED)

    def test_timeout_after_max_attempts(self, make_monitor, node, mock_box_repo, mock_tx_repo, sleeps):
        monitor = make_monitor(CONFIRMATION_INTERVAL_SECONDS=30.0)

        assert monitor.monitor(self.TX) == TxStatus.FAILED

        assert node.tx_status_calls[self.TX] == 3
        assert sleeps == [30.0, 30.0]
        mock_tx_repo.update_status.assert_called_once_with(self.TX, TxStatus.FAILED)
        call = mock_box_repo.update_status_by_tx.call_args
        assert call.args == (self.TX, BoxStatus.ERROR)
        assert "3" in call.kwargs["reason"]
        assert monitor.get_stats()["timeouts"] == 1

    def test_transient_errors_count_as_unconfirmed(self, make_monitor, node, monkeypatch):
        answers = iter([TransientIOError("timeout"), {"confirmations": 1}])

        def flaky(tx_id):
            answer = next(answers)
            if isinstance(answer, Exception):
                raise answer
            return answer

        monkeypatch.setattr(node, "tx_status", flaky)

        assert make_monitor().monitor(self.TX) == TxStatus.CONFIRMED

    def test_spawn_monitor_runs_in_background(self, make_monitor, node, mock_tx_repo):
        node.set_tx_responses(self.TX, [{"confirmations": 1}])
        monitor = make_monitor()

        thread = monitor.spawn_monitor(self.TX)
        thread.join(5)

        assert thread.name == f"confirm-{self.TX[:16]}"
        assert not thread.is_alive()
        mock_tx_repo.update_status.assert_called_once_with(self.TX, TxStatus.CONFIRMED)
        assert monitor.threads.get_stats()["completed"] == 1
