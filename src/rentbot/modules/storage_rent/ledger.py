"""
Ledger Client Protocol
======================
The node operations the rent bot depends on.

The live driver is ErgoNodeClient; tests use an in-memory ledger. Every
method may raise TransientIOError when the node cannot be reached.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class LedgerClient(Protocol):
    """Read chain state and submit transactions."""

    def node_info(self) -> Dict[str, Any]:
        """Raw node status, including `fullHeight` and, on recent nodes, `network`."""
        ...

    def health_check(self) -> bool:
        """True when the node answers and has synced at least one full block."""
        ...

    def current_height(self) -> int:
        ...

    def box_by_id(self, box_id: str) -> Optional[Dict[str, Any]]:
        """Indexed box (spent or not), None if unknown."""
        ...

    def unspent_box(self, box_id: str) -> Optional[Dict[str, Any]]:
        """Box from the UTXO set, None if spent or unknown."""
        ...

    def box_id_range(self, offset: int, limit: int) -> List[str]:
        """Box ids with global index in [offset, offset + limit), oldest first."""
        ...

    def broadcast(self, signed_tx: Dict[str, Any]) -> str:
        ...

    def tx_status(self, tx_id: str) -> Optional[Dict[str, int]]:
        """{"confirmations": n}, or None while the transaction is unknown."""
        ...

    def spendable_entries_for_address(self, address: str) -> List[Dict[str, Any]]:
        ...

    def address_to_tree(self, address: str) -> str:
        ...
