"""
Eligibility Queue
=================
In-memory height buckets of discovered boxes waiting to reach rent age.

A bucket is keyed by creation height and keeps discovery order. Buckets are
promoted whole: once `height + min_age < current_height` every box in it
becomes claimable and the bucket disappears.
"""

import threading
from typing import Dict, Iterable, List, Optional

from rentbot.modules.storage_rent.models import (
    BoxStatus,
    CandidateBox,
    PromotionResult,
    UpcomingBucket,
)
from rentbot.shared.system.logging import Logger


class EligibilityQueue:
    """
    Height-bucketed queue with single-writer discipline.

    The orchestrator's cycle is the only writer; the lock only makes
    status() safe to call from another thread.
    """

    def __init__(self):
        self._buckets: Dict[int, List[CandidateBox]] = {}
        self._heights_by_id: Dict[str, int] = {}
        self._lock = threading.Lock()

    # ═══════════════════════════════════════════════════════════════════
    # INSERTION
    # ═══════════════════════════════════════════════════════════════════

    def add(self, box: CandidateBox) -> bool:
        """
        Queue a box under its creation height.

        Returns:
            False if the box id is already queued (nothing changes)
        """
        with self._lock:
            return self._add_locked(box)

    def _add_locked(self, box: CandidateBox) -> bool:
        if box.box_id in self._heights_by_id:
            return False
        box.status = BoxStatus.QUEUED
        self._buckets.setdefault(box.creation_height, []).append(box)
        self._heights_by_id[box.box_id] = box.creation_height
        return True

    def merge(self, buckets: Dict[int, List[CandidateBox]]) -> int:
        """Merge scanner output. Returns the number of boxes actually added."""
        added = 0
        with self._lock:
            for height in sorted(buckets):
                for box in buckets[height]:
                    if self._add_locked(box):
                        added += 1
        return added

    def restore(self, boxes: Iterable[CandidateBox]) -> int:
        """Rebuild the queue from persisted boxes after a restart."""
        added = 0
        with self._lock:
            for box in boxes:
                if self._add_locked(box):
                    added += 1
        if added:
            Logger.info(f"[QUEUE] ♻️ Restored {added} boxes into {len(self._buckets)} height buckets")
        return added

    # ═══════════════════════════════════════════════════════════════════
    # PROMOTION
    # ═══════════════════════════════════════════════════════════════════

    def promote(self, current_height: int, min_age_blocks: int) -> PromotionResult:
        """
        Move every bucket with `height + min_age_blocks < current_height` out of the queue.

        The boundary is strict: a bucket at exactly the minimum age waits one
        more block.

        Returns:
            PromotionResult with claimable boxes (ascending height, then
            discovery order), the emptied heights, and the nearest bucket
            still waiting when nothing was promoted.
        """
        result = PromotionResult()
        with self._lock:
            for height in sorted(self._buckets):
                if height + min_age_blocks < current_height:
                    boxes = self._buckets.pop(height)
                    for box in boxes:
                        box.status = BoxStatus.CLAIMABLE
                        del self._heights_by_id[box.box_id]
                    result.claimable.extend(boxes)
                    result.emptied_heights.append(height)
                else:
                    break

            if not result.claimable:
                result.upcoming = self._upcoming_locked(current_height, min_age_blocks)

        if result.claimable:
            Logger.info(
                f"[QUEUE] 🎯 Promoted {len(result.claimable)} boxes from "
                f"{len(result.emptied_heights)} height bucket(s)"
            )
        elif result.upcoming is not None:
            upcoming = result.upcoming
            Logger.info(
                f"[QUEUE] Next bucket: height {upcoming.creation_height} "
                f"({len(upcoming.box_ids)} boxes) claimable at {upcoming.claimable_at_height} "
                f"(in {upcoming.blocks_until_claimable} blocks)"
            )
        return result

    def _upcoming_locked(self, current_height: int, min_age_blocks: int) -> Optional[UpcomingBucket]:
        if not self._buckets:
            return None
        height = min(self._buckets)
        claimable_at = height + min_age_blocks + 1
        return UpcomingBucket(
            creation_height=height,
            claimable_at_height=claimable_at,
            blocks_until_claimable=max(0, claimable_at - current_height),
            box_ids=[box.box_id for box in self._buckets[height]],
        )

    # ═══════════════════════════════════════════════════════════════════
    # INSPECTION
    # ═══════════════════════════════════════════════════════════════════

    def contains(self, box_id: str) -> bool:
        with self._lock:
            return box_id in self._heights_by_id

    @property
    def queued_count(self) -> int:
        with self._lock:
            return len(self._heights_by_id)

    def heights(self) -> List[int]:
        with self._lock:
            return sorted(self._buckets)

    def bucket(self, height: int) -> List[CandidateBox]:
        with self._lock:
            return list(self._buckets.get(height, []))

    def status(self, min_age_blocks: int, current_height: Optional[int] = None) -> dict:
        """
        Observability summary.

        Returns:
            {
                'queuedCount': int,
                'nextEligibleHeight': int | None,
                'nextEligibleBoxIds': List[str],
                'bucketCount': int,
                'blocksUntilNextEligible': int | None (only with current_height)
            }
        """
        with self._lock:
            upcoming = self._upcoming_locked(current_height or 0, min_age_blocks)
            summary = {
                "queuedCount": len(self._heights_by_id),
                "nextEligibleHeight": upcoming.claimable_at_height if upcoming else None,
                "nextEligibleBoxIds": list(upcoming.box_ids) if upcoming else [],
                "bucketCount": len(self._buckets),
                "blocksUntilNextEligible": None,
            }
        if upcoming is not None and current_height is not None:
            summary["blocksUntilNextEligible"] = upcoming.blocks_until_claimable
        return summary
