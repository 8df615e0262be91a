"""
Eligibility Scanner - Discovery Engine
======================================
Walks the node's global box index newest-first from a resumable cursor and
buckets boxes that will reach rent age soon.

Workflow:
1. Fetch a page of box ids below the cursor
2. Fetch each box, skip spent ones and ones already known
3. Skip boxes whose rent age is further away than the look-ahead window
4. Price rent from the encoded size, reject boxes that cannot pay it
5. Bucket accepted boxes by creation height until the target count is met
"""

from typing import Callable, Dict, List, Optional, Set

from rentbot.modules.storage_rent import fee_model
from rentbot.modules.storage_rent.config import RentConfig
from rentbot.modules.storage_rent.errors import InsufficientValueError, TransientIOError
from rentbot.modules.storage_rent.ledger import LedgerClient
from rentbot.modules.storage_rent.models import (
    Asset,
    BoxStatus,
    CandidateBox,
    ScanCursor,
    ScanResult,
)
from rentbot.modules.storage_rent.serialization import estimate_box_size, normalize_registers
from rentbot.shared.system.logging import Logger


class EligibilityScanner:
    """
    Paginated, resumable scanner over the box index.

    Cursor semantics: `cursor.offset` is the exclusive upper global index of
    the next page. A page covers `[max(0, offset - page_size), offset)` and is
    examined newest-first, so the offset only ever decreases. A scan that
    stops mid-page resumes just below the last box it examined.
    """

    def __init__(self, client: LedgerClient, config: RentConfig):
        self.client = client
        self.config = config

    def scan(
        self,
        current_height: int,
        cursor: ScanCursor,
        target_count: Optional[int] = None,
        min_age_blocks: Optional[int] = None,
        exclude: Optional[Callable[[str], bool]] = None,
    ) -> ScanResult:
        """
        Scan until `target_count` boxes are accepted or the index is exhausted.

        Args:
            current_height: Chain height used for age and look-ahead checks
            cursor: Where to resume; never mutated
            target_count: Accepted boxes to stop at (default: config.SCAN_TARGET_COUNT)
            min_age_blocks: Rent age (default: config.MIN_AGE_BLOCKS)
            exclude: Predicate for box ids already queued or finalized

        Returns:
            ScanResult whose next_cursor resumes past every examined box

        Raises:
            TransientIOError: a page could not be fetched; nothing from this
                attempt should be kept and the input cursor stays valid
        """
        target_count = target_count or self.config.SCAN_TARGET_COUNT
        min_age_blocks = self.config.MIN_AGE_BLOCKS if min_age_blocks is None else min_age_blocks
        page_size = self.config.SCAN_PAGE_SIZE

        buckets: Dict[int, List[CandidateBox]] = {}
        rejected: List[CandidateBox] = []
        seen: Set[str] = set()
        accepted = 0
        boxes_checked = 0
        skipped_far_future = 0
        fetch_errors = 0
        exhausted = False
        offset = cursor.offset

        Logger.info(
            f"[SCANNER] 🚀 Scanning from offset {offset} "
            f"(height: {current_height}, target: {target_count})"
        )

        while accepted < target_count:
            if offset <= 0:
                exhausted = True
                break

            start = max(0, offset - page_size)
            try:
                page = self.client.box_id_range(start, offset - start)
            except TransientIOError as e:
                Logger.error(f"[SCANNER] ❌ Page [{start}, {offset}) failed, cursor left at {cursor.offset}: {e}")
                raise

            if not page:
                exhausted = True
                break

            Logger.debug(f"[SCANNER] Page [{start}, {offset}): {len(page)} ids")

            # Newest first
            for position, box_id in enumerate(reversed(page)):
                if box_id in seen:
                    continue
                seen.add(box_id)

                try:
                    box = self.client.box_by_id(box_id)
                except TransientIOError as e:
                    fetch_errors += 1
                    Logger.warning(f"[SCANNER] ⚠️ Skipping box {box_id}: {e}")
                    continue

                boxes_checked += 1
                if box is None or box.get("spentTransactionId"):
                    continue
                if exclude is not None and exclude(box_id):
                    continue

                creation_height = int(box["creationHeight"])
                blocks_until_eligible = creation_height + min_age_blocks - current_height
                if blocks_until_eligible > self.config.LOOKAHEAD_BLOCKS:
                    skipped_far_future += 1
                    continue

                candidate = self._to_candidate(box, current_height)
                min_value = fee_model.min_acceptable_value(candidate.box_size, self.config.MIN_VALUE_PER_BYTE)
                if not fee_model.is_eligible_by_value(candidate.value, candidate.rent_fee, min_value):
                    candidate.status = BoxStatus.INSUFFICIENT_FUNDS
                    needed = fee_model.required_value(
                        candidate.box_size, self.config.RENT_FEE_PER_BYTE, self.config.MIN_VALUE_PER_BYTE
                    )
                    candidate.error_reason = str(InsufficientValueError(box_id, candidate.value, needed))
                    rejected.append(candidate)
                    Logger.debug(f"[SCANNER] {candidate.error_reason}")
                    continue

                buckets.setdefault(creation_height, []).append(candidate)
                accepted += 1
                Logger.debug(
                    f"[SCANNER] Accepted {box_id} (height {creation_height}, "
                    f"rent {candidate.rent_fee}, eligible in {blocks_until_eligible} blocks)"
                )

                if accepted >= target_count:
                    # Resume just below the last examined box
                    offset = start + len(page) - 1 - position
                    break
            else:
                offset = start

        next_cursor = ScanCursor(offset=max(0, offset), last_scan_height=current_height)
        result = ScanResult(
            buckets=buckets,
            next_cursor=next_cursor,
            rejected=rejected,
            boxes_checked=boxes_checked,
            skipped_far_future=skipped_far_future,
            fetch_errors=fetch_errors,
            exhausted=exhausted,
        )

        Logger.info(
            f"[SCANNER] ✅ Scan complete: {result.accepted_count} accepted in {len(buckets)} height group(s), "
            f"{len(rejected)} insufficient, {skipped_far_future} too far out, "
            f"{boxes_checked} checked, next offset {next_cursor.offset}"
        )
        if exhausted:
            Logger.info("[SCANNER] Box index exhausted")
        return result

    def _to_candidate(self, box: dict, current_height: int) -> CandidateBox:
        size = estimate_box_size(box)
        return CandidateBox(
            box_id=box["boxId"],
            creation_height=int(box["creationHeight"]),
            box_size=size,
            value=int(box["value"]),
            rent_fee=fee_model.rent_fee(size, self.config.RENT_FEE_PER_BYTE),
            ergo_tree=box["ergoTree"],
            assets=[Asset.from_dict(a) for a in box.get("assets") or []],
            additional_registers=normalize_registers(box.get("additionalRegisters") or {}),
            discovered_height=current_height,
            status=BoxStatus.QUEUED,
        )
