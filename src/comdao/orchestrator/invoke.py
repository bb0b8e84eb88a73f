"""
Read and write invocation.

Reads are a single ``eth_call`` with no confirmation wait. Writes are a single
submission followed by a hand-off to the ConfirmationTracker. Neither retries.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol, Sequence, Union

from eth_abi.exceptions import DecodingError

from ..chain.abi import decode_output, encode_call
from ..chain.rpc import RpcError
from ..errors import SubmissionError, TransportError
from .confirm import ConfirmationTracker, LogDecoder, TransactionResult
from .params import CallSpec

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """The blockchain client boundary consumed by the orchestrator."""

    async def call(self, tx: dict[str, Any], block: str = "latest") -> str:
        ...

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        ...

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        ...

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        ...

    async def get_logs(self, log_filter: dict[str, Any]) -> list[dict[str, Any]]:
        ...

    async def get_network_id(self) -> str:
        ...


def build_tx(
    spec: CallSpec,
    address: str,
    args: Sequence[Any],
    options: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    """Transaction dict for ``spec``: options, then ``to`` and encoded ``data``."""
    tx = dict(options or {})
    tx["to"] = address
    tx["data"] = encode_call(spec.abi_entry, args)
    return tx


class ReadInvoker:
    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    async def invoke(
        self,
        spec: CallSpec,
        address: str,
        args: Sequence[Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Call a constant function.

        Raises:
            TransportError: network failure, revert or undecodable response
        """
        tx = build_tx(spec, address, args, options)
        try:
            raw = await self.transport.call(tx)
        except RpcError as exc:
            raise TransportError(f"Call to {spec.name} failed: {exc}") from exc

        if not spec.outputs:
            return None
        if not isinstance(raw, str) or raw in ("", "0x"):
            raise TransportError(f"Call to {spec.name} returned no data: {raw!r}")
        try:
            return decode_output(spec.abi_entry, raw)
        except (DecodingError, ValueError) as exc:
            raise TransportError(f"Malformed response from {spec.name}: {exc}") from exc


class TransactionSubmitter:
    def __init__(self, transport: Transport, tracker: ConfirmationTracker) -> None:
        self.transport = transport
        self.tracker = tracker

    async def send(self, tx: dict[str, Any], label: str = "transaction") -> str:
        """Submit ``tx`` once and return its hash without waiting."""
        try:
            tx_hash = await self.transport.send_transaction(tx)
        except RpcError as exc:
            raise SubmissionError(f"Submitting {label} failed: {exc}") from exc
        if not tx_hash:
            raise SubmissionError(f"Submitting {label} returned no transaction hash")
        logger.info("Submitted %s as %s", label, tx_hash)
        return tx_hash

    async def send_call(
        self,
        spec: CallSpec,
        address: str,
        args: Sequence[Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        return await self.send(build_tx(spec, address, args, options), label=spec.name)

    async def submit(
        self,
        spec: CallSpec,
        address: str,
        args: Sequence[Any],
        options: Optional[Mapping[str, Any]] = None,
        extended: bool = False,
        decoder: Optional[LogDecoder] = None,
    ) -> Union[str, TransactionResult]:
        """
        Submit a state-changing call and wait for its confirmation.

        Not idempotent: every call submits a new transaction.
        """
        tx_hash = await self.send_call(spec, address, args, options)
        return await self.tracker.wait(tx_hash, extended=extended, decoder=decoder)

    async def estimate_gas(
        self,
        spec: CallSpec,
        address: str,
        args: Sequence[Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> int:
        tx = build_tx(spec, address, args, options)
        try:
            return await self.transport.estimate_gas(tx)
        except RpcError as exc:
            raise TransportError(f"Gas estimation for {spec.name} failed: {exc}") from exc
