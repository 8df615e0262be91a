"""
Batch Builder
=============
Turns claimable boxes into balanced unsigned claim transactions.

Transaction shape (claim input i <-> output i):
    inputs : [claim_0, ..., claim_n-1, wallet_0, ...]
    outputs: [recreated_0, ..., recreated_n-1, change?, fee]

Each recreated output keeps the box's script, tokens and registers with
`value - rent`. Input i carries the claim marker pointing at output i, so
inputs and outputs are never reordered independently.

Fee policies:
- RENT_FUNDS_FEE: fee comes out of collected rent, remainder to the change address
- WALLET_FUNDS_FEE: like RENT_FUNDS_FEE, but wallet boxes top up a shortfall
- RENT_AS_FEE: the whole collected rent is paid as the network fee
"""

from typing import Dict, List, Sequence, Tuple

from rentbot.modules.storage_rent.config import RentConfig
from rentbot.modules.storage_rent.errors import (
    BoxNotFoundError,
    InsufficientFundsError,
    InsufficientRentError,
    ProgrammingInvariantViolation,
)
from rentbot.modules.storage_rent.ledger import LedgerClient
from rentbot.modules.storage_rent.models import (
    Asset,
    CandidateBox,
    ClaimBatch,
    ClaimInput,
    FeePolicy,
    OutputCandidate,
    UnsignedClaimTx,
    WalletInput,
)
from rentbot.modules.storage_rent.serialization import claim_extension, normalize_registers
from rentbot.shared.system.logging import Logger


class BatchBuilder:
    """Builds one ClaimBatch per group of at most MAX_BATCH_SIZE boxes."""

    def __init__(self, client: LedgerClient, config: RentConfig):
        self.client = client
        self.config = config
        self._tree_cache: Dict[str, str] = {}

    def partition(self, boxes: Sequence[CandidateBox]) -> List[List[CandidateBox]]:
        """Split into consecutive groups of at most MAX_BATCH_SIZE, preserving order."""
        size = self.config.MAX_BATCH_SIZE
        return [list(boxes[i:i + size]) for i in range(0, len(boxes), size)]

    def build(self, boxes: Sequence[CandidateBox], change_address: str, current_height: int) -> ClaimBatch:
        """
        Build a balanced unsigned transaction for one batch.

        Boxes the node no longer reports as unspent are dropped (listed in
        `dropped_box_ids`) and the transaction is built without them.

        Args:
            boxes: Claimable boxes, at most MAX_BATCH_SIZE
            change_address: Receives rent remainder (and wallet change)
            current_height: Creation height for every output

        Raises:
            BoxNotFoundError: every box in the batch is gone
            InsufficientRentError: rent cannot fund the fee (rent policies)
            InsufficientFundsError: wallet cannot cover the fee shortfall
            ProgrammingInvariantViolation: the built transaction is malformed
        """
        if not boxes:
            raise ProgrammingInvariantViolation("Refusing to build a claim batch with no boxes")
        if len(boxes) > self.config.MAX_BATCH_SIZE:
            raise ProgrammingInvariantViolation(
                f"Batch of {len(boxes)} boxes exceeds MAX_BATCH_SIZE={self.config.MAX_BATCH_SIZE}"
            )

        live, dropped = self._revalidate(boxes)
        if not live:
            raise BoxNotFoundError(dropped[0], f"All {len(dropped)} boxes in batch are spent or missing")

        claim_inputs = [
            ClaimInput(box_id=box.box_id, value=box.value, extension=claim_extension(index))
            for index, box in enumerate(live)
        ]
        outputs = [
            OutputCandidate(
                value=box.value_after_rent,
                ergo_tree=box.ergo_tree,
                creation_height=current_height,
                assets=list(box.assets),
                additional_registers=normalize_registers(box.additional_registers),
            )
            for box in live
        ]
        total_rent = sum(box.rent_fee for box in live)

        fee, change_outputs, wallet_inputs = self._fund_fee(total_rent, change_address, current_height, live)
        outputs.extend(change_outputs)

        unsigned_tx = UnsignedClaimTx(
            claim_inputs=claim_inputs,
            outputs=outputs,
            fee=fee,
            creation_height=current_height,
            wallet_inputs=wallet_inputs,
        )
        self._verify(unsigned_tx, live)

        Logger.info(
            f"[BATCH] 📦 Built claim tx: {len(live)} boxes, rent {total_rent}, fee {fee}, "
            f"{len(wallet_inputs)} wallet input(s), policy {self.config.FEE_POLICY.value}"
        )
        return ClaimBatch(
            boxes=live,
            unsigned_tx=unsigned_tx,
            total_rent_collected=total_rent,
            fee_paid=fee,
            dropped_box_ids=dropped,
        )

    # ═══════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════

    def _revalidate(self, boxes: Sequence[CandidateBox]) -> Tuple[List[CandidateBox], List[str]]:
        live: List[CandidateBox] = []
        dropped: List[str] = []
        seen = set()
        for box in boxes:
            if box.box_id in seen:
                raise ProgrammingInvariantViolation(f"Box {box.box_id} appears twice in one batch")
            seen.add(box.box_id)
            if self.client.unspent_box(box.box_id) is None:
                Logger.warning(f"[BATCH] ⚠️ {BoxNotFoundError(box.box_id)}, dropping from batch")
                dropped.append(box.box_id)
                continue
            live.append(box)
        return live, dropped

    def _change_tree(self, address: str) -> str:
        if address not in self._tree_cache:
            self._tree_cache[address] = self.client.address_to_tree(address)
        return self._tree_cache[address]

    def _fund_fee(
        self,
        total_rent: int,
        change_address: str,
        current_height: int,
        live: List[CandidateBox],
    ) -> Tuple[int, List[OutputCandidate], List[WalletInput]]:
        """Returns (fee, change outputs, wallet inputs) for the configured policy."""
        policy = self.config.FEE_POLICY
        network_fee = self.config.NETWORK_FEE

        if policy == FeePolicy.RENT_AS_FEE:
            if total_rent < network_fee:
                raise InsufficientRentError(total_rent, network_fee)
            return total_rent, [], []

        if total_rent > network_fee:
            change = OutputCandidate(
                value=total_rent - network_fee,
                ergo_tree=self._change_tree(change_address),
                creation_height=current_height,
            )
            return network_fee, [change], []

        if policy == FeePolicy.RENT_FUNDS_FEE:
            raise InsufficientRentError(total_rent, network_fee)

        wallet_inputs = self._select_wallet_inputs(total_rent, network_fee, change_address, live)
        wallet_total = sum(w.value for w in wallet_inputs)
        change_assets = self._merge_assets(wallet_inputs)
        change = OutputCandidate(
            value=total_rent + wallet_total - network_fee,
            ergo_tree=self._change_tree(change_address),
            creation_height=current_height,
            assets=change_assets,
        )
        return network_fee, [change], wallet_inputs

    def _select_wallet_inputs(
        self,
        total_rent: int,
        network_fee: int,
        change_address: str,
        live: List[CandidateBox],
    ) -> List[WalletInput]:
        """Oldest wallet boxes first, until rent plus wallet value exceeds the fee."""
        claimed_ids = {box.box_id for box in live}
        entries = [
            e for e in self.client.spendable_entries_for_address(change_address)
            if e["boxId"] not in claimed_ids
        ]
        entries.sort(key=lambda e: (int(e["creationHeight"]), e["boxId"]))

        selected: List[WalletInput] = []
        covered = total_rent
        for entry in entries:
            if covered > network_fee:
                break
            value = int(entry["value"])
            selected.append(
                WalletInput(
                    box_id=entry["boxId"],
                    value=value,
                    assets=[Asset.from_dict(a) for a in entry.get("assets") or []],
                )
            )
            covered += value

        if covered <= network_fee:
            available = sum(w.value for w in selected)
            raise InsufficientFundsError(shortfall=network_fee - total_rent, available=available)

        Logger.info(
            f"[BATCH] 💰 Pulled {len(selected)} wallet box(es) to cover fee shortfall "
            f"of {network_fee - total_rent}"
        )
        return selected

    @staticmethod
    def _merge_assets(wallet_inputs: List[WalletInput]) -> List[Asset]:
        totals: Dict[str, int] = {}
        for wallet_input in wallet_inputs:
            for asset in wallet_input.assets:
                totals[asset.token_id] = totals.get(asset.token_id, 0) + asset.amount
        return [Asset(token_id=token_id, amount=amount) for token_id, amount in totals.items()]

    def _verify(self, tx: UnsignedClaimTx, live: List[CandidateBox]) -> None:
        """Shape checks that must hold before anything is signed."""
        if len(tx.claim_inputs) != len(live):
            raise ProgrammingInvariantViolation(
                f"Claim input count {len(tx.claim_inputs)} != box count {len(live)}"
            )
        if len(tx.outputs) < len(tx.claim_inputs):
            raise ProgrammingInvariantViolation("Fewer outputs than claim inputs")

        for index, (claim, box) in enumerate(zip(tx.claim_inputs, live)):
            output = tx.outputs[index]
            if claim.box_id != box.box_id:
                raise ProgrammingInvariantViolation(f"Input {index} is {claim.box_id}, expected {box.box_id}")
            if claim.extension != claim_extension(index):
                raise ProgrammingInvariantViolation(f"Claim marker of input {index} does not point at output {index}")
            if output.ergo_tree != box.ergo_tree or output.value != box.value_after_rent:
                raise ProgrammingInvariantViolation(f"Output {index} does not recreate box {box.box_id}")

        if any(output.value <= 0 for output in tx.outputs) or tx.fee <= 0:
            raise ProgrammingInvariantViolation("Non-positive output or fee value")

        if not tx.is_balanced:
            raise ProgrammingInvariantViolation(
                f"Unbalanced transaction: inputs {tx.input_total} != outputs {tx.output_total} + fee {tx.fee}"
            )
