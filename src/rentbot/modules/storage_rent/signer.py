"""
Claim Transaction Signer
========================
Rent-claim inputs are not authorized by a key: the ledger accepts an empty
proof when context variable 127 names the output that recreates the box.
Only wallet inputs pulled in to fund a fee need a real signature, and that
is delegated to the node's wallet.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from rentbot.modules.storage_rent.errors import SigningError
from rentbot.modules.storage_rent.models import UnsignedClaimTx
from rentbot.shared.system.logging import Logger


class Signer(ABC):
    """Turns an unsigned claim transaction into node-ready JSON."""

    @abstractmethod
    def sign(self, unsigned_tx: UnsignedClaimTx) -> Dict[str, Any]:
        """
        Raises:
            SigningError: the transaction could not be signed
        """


class RentClaimSigner(Signer):
    """
    Signs pure claim transactions locally, wallet-funded ones via the node.

    Args:
        client: Anything with sign_with_wallet(unsigned_json) -> signed_json
    """

    def __init__(self, client):
        self.client = client

    def sign(self, unsigned_tx: UnsignedClaimTx) -> Dict[str, Any]:
        if not unsigned_tx.claim_inputs:
            raise SigningError("Claim transaction has no rent-claim inputs")

        unsigned = unsigned_tx.to_dict()

        if unsigned_tx.requires_wallet_signature:
            Logger.debug(f"[SUBMIT] Delegating {len(unsigned_tx.wallet_inputs)} wallet input(s) to node wallet")
            try:
                return self.client.sign_with_wallet(unsigned)
            except SigningError:
                raise
            except Exception as e:
                raise SigningError(f"Wallet signing failed: {e}") from e

        return {
            "inputs": [
                {
                    "boxId": claim.box_id,
                    "spendingProof": {"proofBytes": "", "extension": dict(claim.extension)},
                }
                for claim in unsigned_tx.claim_inputs
            ],
            "dataInputs": [],
            "outputs": unsigned["outputs"],
        }
