"""
Error taxonomy for the contract call orchestrator.

Every failure surfaces to the caller as one of these exceptions. Transport
level failures (``chain.rpc.RpcError``) are re-raised as the matching
taxonomy error with the original exception chained.
"""

from __future__ import annotations

from typing import Optional


class ContractError(RuntimeError):
    """Base class for all orchestrator errors."""


class ProviderNotSetError(ContractError):
    pass


class SubmissionError(ContractError):
    """The transport rejected a state-changing request before inclusion."""


class TransportError(ContractError):
    """A read call or a receipt query failed."""


class TransactionTimeoutError(ContractError, TimeoutError):
    """
    No receipt was observed within the configured bound.

    The transaction may still be mined later; callers can keep polling
    ``tx_hash`` themselves.
    """

    def __init__(self, message: str, tx_hash: str, elapsed: float) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash
        self.elapsed = elapsed


class UnresolvedLibraryError(ContractError):
    def __init__(self, message: str, libraries: list[str] | None = None) -> None:
        super().__init__(message)
        self.libraries = libraries or []


class UnknownNetworkError(ContractError):
    def __init__(self, message: str, network_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.network_id = network_id


class InvalidAddressError(ContractError, ValueError):
    pass


class NotDeployedError(ContractError):
    pass


class MissingBinaryError(ContractError):
    pass


class ConfigurationFrozenError(ContractError):
    """Configuration was changed after the first transaction was issued."""
