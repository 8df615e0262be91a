"""
Storage Rent Error Taxonomy
===========================
Every failure the bot distinguishes, grouped by how it is handled:

- TransientIOError: node unreachable / timeout, retried next cycle
- DataInconsistencyError: box spent between discovery and batching, dropped
- InsufficientValueError: box cannot cover its own rent, permanently excluded
- InsufficientRentError / InsufficientFundsError: batch-level, batch marked error
- ConfirmationTimeoutError: soft, transaction marked failed locally
- ProgrammingInvariantViolation: fatal to the batch, raised before broadcast
"""

from typing import Optional


class RentBotError(Exception):
    """Base class for all storage rent bot errors."""


class ConfigError(RentBotError):
    """Invalid or missing configuration value."""


class TransientIOError(RentBotError):
    """Ledger node unreachable, timed out or answered with a server error."""


class DataInconsistencyError(RentBotError):
    """Ledger state changed underneath the bot (e.g. a box was spent)."""


class BoxNotFoundError(DataInconsistencyError):
    """A box vanished between the eligibility check and batch construction."""

    def __init__(self, box_id: str, message: Optional[str] = None):
        self.box_id = box_id
        super().__init__(message or f"Box {box_id} not found or already spent")


class InsufficientValueError(RentBotError):
    """A box's value cannot cover its rent plus the minimum box value."""

    def __init__(self, box_id: str, value: int, required: int):
        self.box_id = box_id
        self.value = value
        self.required = required
        super().__init__(f"Box {box_id} insufficient value: {value} < {required}")


class InsufficientRentError(RentBotError):
    """Collected rent of a batch does not cover the network fee."""

    def __init__(self, total_rent: int, network_fee: int):
        self.total_rent = total_rent
        self.network_fee = network_fee
        super().__init__(
            f"Not enough rent collected to pay transaction fee. Rent: {total_rent}, Fee: {network_fee}"
        )


class InsufficientFundsError(RentBotError):
    """Wallet holdings were exhausted before the fee shortfall was covered."""

    def __init__(self, shortfall: int, available: int):
        self.shortfall = shortfall
        self.available = available
        super().__init__(
            f"Insufficient wallet funds to cover fee shortfall. Need: {shortfall}, Available: {available}"
        )


class ProgrammingInvariantViolation(RentBotError):
    """Transaction shape broke an invariant (balance, marker positions). Never broadcast."""


class SigningError(RentBotError):
    """The signer refused or failed to sign an unsigned transaction."""


class BroadcastError(RentBotError):
    """The node rejected a signed transaction."""


class ConfirmationTimeoutError(RentBotError):
    """Confirmation polling exhausted its attempts without seeing the transaction confirmed."""

    def __init__(self, tx_id: str, attempts: int):
        self.tx_id = tx_id
        self.attempts = attempts
        super().__init__(f"Transaction {tx_id} not confirmed after {attempts} attempts")
