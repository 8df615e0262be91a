"""
Storage Rent Type Definitions
=============================
Dataclasses shared by the scanner, queue, batch builder and monitor.

These types form the "language" the bot speaks:
- CandidateBox: a discovered box and its lifecycle status
- ScanCursor: resumable position in the node's box index
- UnsignedClaimTx / ClaimBatch: a balanced claim transaction and its boxes
- TransactionRecord: audit row for a broadcast transaction
- CycleResult: summary returned by every orchestrator cycle

All monetary quantities are Python ints (nanoERG). Floats never touch them.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# Miner fee contract (mainnet & testnet share the same tree)
FEE_ERGO_TREE = (
    "1005040004000e36100204a00b08cd0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
    "ea02d192a39a8cc7a701730073011001020402d19683030193a38cc7b2a57300000193c2b2a57301007473027303830108"
    "cdeeac93b1a57304"
)


class BoxStatus(Enum):
    """Box lifecycle states."""

    DISCOVERED = "discovered"
    QUEUED = "queued"
    CLAIMABLE = "claimable"
    BATCHED = "batched"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    ERROR = "error"
    INSUFFICIENT_FUNDS = "insufficient_funds"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_BOX_STATUSES


TERMINAL_BOX_STATUSES = frozenset({BoxStatus.CONFIRMED, BoxStatus.ERROR, BoxStatus.INSUFFICIENT_FUNDS})

# Boxes in these states were owned by the queue (or a batch that never
# reached the node) when the process stopped.
RESTORABLE_BOX_STATUSES = (BoxStatus.QUEUED, BoxStatus.CLAIMABLE, BoxStatus.BATCHED)


class TxStatus(Enum):
    """Transaction lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class FeePolicy(Enum):
    """How the network fee of a claim transaction is funded."""

    RENT_FUNDS_FEE = "rent_funds_fee"
    WALLET_FUNDS_FEE = "wallet_funds_fee"
    RENT_AS_FEE = "rent_as_fee"


@dataclass(frozen=True)
class Asset:
    """A token amount carried by a box."""

    token_id: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {"tokenId": self.token_id, "amount": self.amount}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        return cls(token_id=data["tokenId"], amount=int(data["amount"]))


@dataclass
class CandidateBox:
    """
    A ledger box discovered by the scanner.

    Everything except `status`, `tx_id` and `error_reason` is fixed at
    discovery: an unspent box never changes value or size.
    """

    box_id: str
    creation_height: int
    box_size: int
    value: int
    rent_fee: int
    ergo_tree: str
    assets: List[Asset] = field(default_factory=list)
    additional_registers: Dict[str, str] = field(default_factory=dict)
    discovered_height: int = 0
    status: BoxStatus = BoxStatus.DISCOVERED
    discovered_at: float = field(default_factory=time.time)
    tx_id: Optional[str] = None
    error_reason: Optional[str] = None

    def eligible_at(self, min_age_blocks: int) -> int:
        """Height at which the box reaches the minimum rent age."""
        return self.creation_height + min_age_blocks

    @property
    def value_after_rent(self) -> int:
        return self.value - self.rent_fee


@dataclass(frozen=True)
class ScanCursor:
    """
    Resumable position in the node's box index.

    `offset` is the exclusive upper global index of the next page: the
    scanner walks newest-first, so it only ever decreases.
    """

    offset: int
    last_scan_height: int = 0

    def scan_due(self, current_height: int, rescan_interval_blocks: int) -> bool:
        return current_height - self.last_scan_height >= rescan_interval_blocks


@dataclass
class ScanResult:
    """Output of one EligibilityScanner.scan() call."""

    buckets: Dict[int, List[CandidateBox]]
    next_cursor: ScanCursor
    rejected: List[CandidateBox] = field(default_factory=list)
    boxes_checked: int = 0
    skipped_far_future: int = 0
    fetch_errors: int = 0
    exhausted: bool = False

    @property
    def accepted_count(self) -> int:
        return sum(len(boxes) for boxes in self.buckets.values())


@dataclass(frozen=True)
class UpcomingBucket:
    """Observability snapshot of the nearest not-yet-claimable bucket."""

    creation_height: int
    claimable_at_height: int
    blocks_until_claimable: int
    box_ids: List[str]


@dataclass
class PromotionResult:
    """Output of EligibilityQueue.promote()."""

    claimable: List[CandidateBox] = field(default_factory=list)
    emptied_heights: List[int] = field(default_factory=list)
    upcoming: Optional[UpcomingBucket] = None


@dataclass
class ClaimInput:
    """A rent-claim input. `extension` holds its positional claim marker."""

    box_id: str
    value: int
    extension: Dict[str, str]


@dataclass
class WalletInput:
    """A wallet entry pulled in to cover a fee shortfall."""

    box_id: str
    value: int
    assets: List[Asset] = field(default_factory=list)


@dataclass
class OutputCandidate:
    """An output of an unsigned transaction."""

    value: int
    ergo_tree: str
    creation_height: int
    assets: List[Asset] = field(default_factory=list)
    additional_registers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "ergoTree": self.ergo_tree,
            "creationHeight": self.creation_height,
            "assets": [asset.to_dict() for asset in self.assets],
            "additionalRegisters": dict(self.additional_registers),
        }


@dataclass
class UnsignedClaimTx:
    """
    Unsigned storage rent claim transaction.

    Claim inputs come first and `outputs[i]` is the recreation of
    `claim_inputs[i]`; wallet inputs (if any) follow the claim inputs.
    The network fee output is implicit until serialization.
    """

    claim_inputs: List[ClaimInput]
    outputs: List[OutputCandidate]
    fee: int
    creation_height: int
    wallet_inputs: List[WalletInput] = field(default_factory=list)
    fee_ergo_tree: str = FEE_ERGO_TREE

    @property
    def input_total(self) -> int:
        return sum(i.value for i in self.claim_inputs) + sum(w.value for w in self.wallet_inputs)

    @property
    def output_total(self) -> int:
        return sum(o.value for o in self.outputs)

    @property
    def is_balanced(self) -> bool:
        return self.input_total == self.output_total + self.fee

    @property
    def requires_wallet_signature(self) -> bool:
        return bool(self.wallet_inputs)

    def to_dict(self) -> Dict[str, Any]:
        """Node JSON shape of the unsigned transaction."""
        inputs = [{"boxId": i.box_id, "extension": dict(i.extension)} for i in self.claim_inputs]
        inputs.extend({"boxId": w.box_id, "extension": {}} for w in self.wallet_inputs)

        outputs = [o.to_dict() for o in self.outputs]
        outputs.append(
            OutputCandidate(
                value=self.fee,
                ergo_tree=self.fee_ergo_tree,
                creation_height=self.creation_height,
            ).to_dict()
        )
        return {"inputs": inputs, "dataInputs": [], "outputs": outputs}


@dataclass
class ClaimBatch:
    """A non-empty group of boxes claimed together in one transaction."""

    boxes: List[CandidateBox]
    unsigned_tx: UnsignedClaimTx
    total_rent_collected: int
    fee_paid: int
    dropped_box_ids: List[str] = field(default_factory=list)

    @property
    def box_ids(self) -> List[str]:
        return [box.box_id for box in self.boxes]


@dataclass
class TransactionRecord:
    """Audit row for a broadcast claim transaction."""

    tx_id: str
    box_ids: List[str]
    total_rent_collected: int
    fee: int
    status: TxStatus = TxStatus.PENDING
    created_at: float = field(default_factory=time.time)


@dataclass
class CycleResult:
    """Summary of one orchestrator cycle. Always returned, never raised."""

    processed_boxes: int = 0
    successful_tx_count: int = 0
    failed_tx_count: int = 0
    total_rent_collected: int = 0
    total_fees_paid: int = 0
    errors: List[str] = field(default_factory=list)
    current_height: Optional[int] = None
    scanned: bool = False
    promoted_boxes: int = 0
    dry_run: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed_boxes": self.processed_boxes,
            "successful_tx_count": self.successful_tx_count,
            "failed_tx_count": self.failed_tx_count,
            "total_rent_collected": self.total_rent_collected,
            "total_fees_paid": self.total_fees_paid,
            "errors": list(self.errors),
            "current_height": self.current_height,
            "scanned": self.scanned,
            "promoted_boxes": self.promoted_boxes,
            "dry_run": self.dry_run,
        }
