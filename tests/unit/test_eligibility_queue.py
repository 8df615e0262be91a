"""
Eligibility Queue Unit Tests
============================
Height buckets, strict-boundary promotion and deduplication.
"""

import pytest


@pytest.fixture
def queue():
    from rentbot.modules.storage_rent.eligibility_queue import EligibilityQueue

    return EligibilityQueue()


class TestPromotion:
    """Whole buckets move to claimable once strictly past the rent age."""

    def test_boundary_height_waits_one_block(self, queue, make_candidate):
        """creationHeight 1000 + minAge 500: not claimable at 1500, claimable at 1501."""
        box = make_candidate("a" * 64, creation_height=1000)
        queue.add(box)

        held = queue.promote(1500, 500)
        assert held.claimable == []
        assert held.upcoming.creation_height == 1000
        assert held.upcoming.claimable_at_height == 1501
        assert held.upcoming.blocks_until_claimable == 1
        assert held.upcoming.box_ids == [box.box_id]

        released = queue.promote(1501, 500)
        assert [b.box_id for b in released.claimable] == [box.box_id]
        assert released.emptied_heights == [1000]

    def test_promotion_is_idempotent(self, queue, make_candidate):
        """A second promote at the same height with nothing new yields nothing."""
        queue.add(make_candidate("a" * 64, creation_height=900))
        queue.add(make_candidate("b" * 64, creation_height=950))

        first = queue.promote(1500, 500)
        second = queue.promote(1500, 500)

        assert len(first.claimable) == 2
        assert second.claimable == []
        assert second.emptied_heights == []
        assert queue.queued_count == 0

    def test_whole_bucket_moves_together(self, queue, make_candidate):
        boxes = [make_candidate(c * 64, creation_height=900) for c in "abc"]
        for box in boxes:
            queue.add(box)
        queue.add(make_candidate("d" * 64, creation_height=1200))

        result = queue.promote(1401, 500)

        assert [b.box_id for b in result.claimable] == [b.box_id for b in boxes]
        assert queue.heights() == [1200]
        assert all(not queue.contains(b.box_id) for b in boxes)

    def test_claimable_ordered_by_height_then_discovery(self, queue, make_candidate):
        queue.add(make_candidate("c" * 64, creation_height=950))
        queue.add(make_candidate("a" * 64, creation_height=900))
        queue.add(make_candidate("b" * 64, creation_height=900))

        result = queue.promote(2000, 500)

        assert [b.box_id[0] for b in result.claimable] == ["a", "b", "c"]
        assert result.emptied_heights == [900, 950]

    def test_promoted_boxes_marked_claimable(self, queue, make_candidate):
        from rentbot.modules.storage_rent.models import BoxStatus

        box = make_candidate("a" * 64, creation_height=900)
        queue.add(box)
        assert box.status == BoxStatus.QUEUED

        queue.promote(1500, 500)
        assert box.status == BoxStatus.CLAIMABLE

    def test_empty_queue_reports_nothing_upcoming(self, queue):
        result = queue.promote(1500, 500)

        assert result.claimable == []
        assert result.upcoming is None


class TestDeduplication:
    """A box id lives in at most one bucket."""

    def test_add_twice_is_noop(self, queue, make_candidate):
        box = make_candidate("a" * 64)

        assert queue.add(box) is True
        assert queue.add(make_candidate("a" * 64)) is False
        assert queue.queued_count == 1

    def test_merge_skips_ids_already_queued_at_other_heights(self, queue, make_candidate):
        queue.add(make_candidate("a" * 64, creation_height=900))

        added = queue.merge(
            {
                1000: [make_candidate("a" * 64, creation_height=1000), make_candidate("b" * 64, creation_height=1000)],
                1100: [make_candidate("b" * 64, creation_height=1100)],
            }
        )

        assert added == 1
        assert queue.queued_count == 2
        assert [b.box_id for b in queue.bucket(1000)] == ["b" * 64]
        assert queue.bucket(1100) == []

    def test_restore_rebuilds_buckets(self, queue, make_candidate):
        restored = queue.restore(
            [make_candidate("a" * 64, creation_height=900), make_candidate("b" * 64, creation_height=901)]
        )

        assert restored == 2
        assert queue.heights() == [900, 901]


class TestStatus:
    """Observability summary."""

    def test_status_reports_next_bucket(self, queue, make_candidate):
        queue.add(make_candidate("a" * 64, creation_height=1200))
        queue.add(make_candidate("b" * 64, creation_height=1200))
        queue.add(make_candidate("c" * 64, creation_height=1300))

        status = queue.status(500, current_height=1600)

        assert status["queuedCount"] == 3
        assert status["nextEligibleHeight"] == 1701
        assert status["nextEligibleBoxIds"] == ["a" * 64, "b" * 64]
        assert status["blocksUntilNextEligible"] == 101

    def test_status_of_empty_queue(self, queue):
        status = queue.status(500)

        assert status["queuedCount"] == 0
        assert status["nextEligibleHeight"] is None
        assert status["nextEligibleBoxIds"] == []
