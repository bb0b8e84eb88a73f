"""
Confirmation tracking - poll a node until a transaction receipt appears.

Each tracked hash gets exactly one polling task:

    SUBMITTED -> POLLING -> CONFIRMED | TIMED_OUT | TRANSPORT_FAILED

The interval is fixed (block inclusion time does not depend on how often we
asked before) and the loop is bounded by the timeout, which is the only way a
loop ends without a receipt or a transport failure. Transport failures are not
retried.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence, Union

from ..chain.rpc import RpcError
from ..errors import TransactionTimeoutError, TransportError
from .events import DecodedEvent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 240.0
DEFAULT_POLL_INTERVAL = 1.0
# Terminal states remembered for state() after a loop ends.
DEFAULT_HISTORY = 1024

LogDecoder = Callable[[Sequence[dict]], list]


class ReceiptSource(Protocol):
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        ...


class TxState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"
    TRANSPORT_FAILED = "transport_failed"


TERMINAL_STATES = frozenset({TxState.CONFIRMED, TxState.TIMED_OUT, TxState.TRANSPORT_FAILED})


@dataclass
class PendingTransaction:
    tx_hash: str
    submitted_at: float
    timeout: float
    state: TxState = TxState.SUBMITTED
    attempts: int = 0


@dataclass(frozen=True)
class TransactionResult:
    """Extended confirmation result: hash, raw receipt and decoded logs."""

    tx: str
    receipt: dict[str, Any]
    logs: list[DecodedEvent] = field(default_factory=list)


class ConfirmationTracker:
    """
    Polls receipts for submitted transactions.

    ``clock`` and ``sleep`` default to ``time.monotonic`` and
    ``asyncio.sleep``; tests substitute a fake clock.
    """

    def __init__(
        self,
        source: ReceiptSource,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        history: int = DEFAULT_HISTORY,
    ) -> None:
        if timeout < 0:
            raise ValueError("timeout must be >= 0 (0 disables the timeout)")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self.source = source
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self.history = history
        self._inflight: dict[str, asyncio.Task] = {}
        self._pending: dict[str, PendingTransaction] = {}
        self._final: dict[str, TxState] = {}

    def state(self, tx_hash: str) -> Optional[TxState]:
        pending = self._pending.get(tx_hash)
        if pending is not None:
            return pending.state
        return self._final.get(tx_hash)

    def in_flight(self) -> list[str]:
        return list(self._inflight)

    def track(self, tx_hash: str) -> asyncio.Task:
        """
        Start (or join) the poll loop for ``tx_hash``.

        Must be called from a running event loop. The returned task resolves
        to the receipt dict.
        """
        task = self._inflight.get(tx_hash)
        if task is not None and not task.done():
            return task

        pending = PendingTransaction(
            tx_hash=tx_hash,
            submitted_at=self._clock(),
            timeout=self.timeout,
        )
        self._pending[tx_hash] = pending
        self._final.pop(tx_hash, None)
        task = asyncio.ensure_future(self._poll(pending))
        self._inflight[tx_hash] = task
        task.add_done_callback(lambda t, h=tx_hash, p=pending: self._release(h, t, p))
        return task

    def _release(self, tx_hash: str, task: asyncio.Task, pending: PendingTransaction) -> None:
        # Failures were logged in the loop; mark them retrieved for abandoned waits.
        if not task.cancelled():
            task.exception()
        # A newer loop may already own the hash if track() ran before this callback.
        if self._inflight.get(tx_hash) is not task:
            return
        del self._inflight[tx_hash]
        self._pending.pop(tx_hash, None)
        self._final[tx_hash] = pending.state
        while len(self._final) > self.history:
            self._final.pop(next(iter(self._final)))

    async def wait(
        self,
        tx_hash: str,
        extended: bool = False,
        decoder: Optional[LogDecoder] = None,
    ) -> Union[str, TransactionResult]:
        """
        Wait for confirmation of ``tx_hash``.

        Returns:
            The hash in plain mode, a ``TransactionResult`` in extended mode

        Raises:
            TransportError: The receipt query failed
            TransactionTimeoutError: No receipt within the timeout
        """
        # Shielded so that a caller giving up does not cancel the shared loop.
        receipt = await asyncio.shield(self.track(tx_hash))
        if not extended:
            return tx_hash
        logs = decoder(receipt.get("logs") or []) if decoder is not None else []
        return TransactionResult(tx=tx_hash, receipt=receipt, logs=logs)

    async def _poll(self, pending: PendingTransaction) -> dict[str, Any]:
        tx_hash = pending.tx_hash
        pending.state = TxState.POLLING

        while True:
            pending.attempts += 1
            logger.debug("Polling receipt for %s (attempt %d)", tx_hash, pending.attempts)
            try:
                receipt = await self.source.get_transaction_receipt(tx_hash)
            except RpcError as exc:
                pending.state = TxState.TRANSPORT_FAILED
                logger.warning("Receipt query for %s failed: %s", tx_hash, exc)
                raise TransportError(f"Receipt query for {tx_hash} failed: {exc}") from exc

            if receipt is not None:
                pending.state = TxState.CONFIRMED
                logger.info("Transaction %s confirmed after %d poll(s)", tx_hash, pending.attempts)
                return receipt

            elapsed = self._clock() - pending.submitted_at
            if pending.timeout > 0 and elapsed > pending.timeout:
                pending.state = TxState.TIMED_OUT
                logger.warning("Transaction %s not processed after %.1fs", tx_hash, elapsed)
                raise TransactionTimeoutError(
                    f"Transaction {tx_hash} wasn't processed in {pending.timeout:g} seconds! "
                    f"(waited {elapsed:.1f}s)",
                    tx_hash=tx_hash,
                    elapsed=elapsed,
                )

            await self._sleep(self.poll_interval)
