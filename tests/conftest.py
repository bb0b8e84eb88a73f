"""Shared fakes: an in-memory transport and a manual clock."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import pytest

from comdao.orchestrator.confirm import ConfirmationTracker

ADDRESS = "0x" + "ab" * 20
SENDER = "0x" + "11" * 20
DEPLOYED = "0x" + "cd" * 20


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is awaited."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeTransport:
    """
    In-memory stand-in for a JSON-RPC node.

    ``receipt_after`` is the poll attempt (per hash) on which a receipt shows
    up; ``None`` means never.
    """

    def __init__(self, network_id: str = "1") -> None:
        self.network_id = network_id
        self.calls: list[dict[str, Any]] = []
        self.sent: list[dict[str, Any]] = []
        self.estimates: list[dict[str, Any]] = []
        self.receipt_queries: list[str] = []
        self.network_queries = 0
        self.log_filters: list[dict[str, Any]] = []
        self.logs: list[dict[str, Any]] = []
        self.call_result: Any = "0x"
        self.gas = 21_000
        self.receipt_after: Optional[int] = 1
        self.receipt: dict[str, Any] = {"status": "0x1", "blockNumber": "0x10", "logs": []}
        self.call_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.receipt_error: Optional[Exception] = None
        self.network_error: Optional[Exception] = None
        self.logs_error: Optional[Exception] = None

    async def call(self, tx: dict[str, Any], block: str = "latest") -> str:
        self.calls.append(tx)
        if self.call_error is not None:
            raise self.call_error
        return self.call_result

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(tx)
        return "0x" + f"{len(self.sent):064x}"

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        self.estimates.append(tx)
        if self.call_error is not None:
            raise self.call_error
        return self.gas

    def attempts(self, tx_hash: str) -> int:
        return self.receipt_queries.count(tx_hash)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        self.receipt_queries.append(tx_hash)
        if self.receipt_error is not None:
            raise self.receipt_error
        if self.receipt_after is None or self.attempts(tx_hash) < self.receipt_after:
            return None
        return dict(self.receipt, transactionHash=tx_hash)

    async def get_logs(self, log_filter: dict[str, Any]) -> list[dict[str, Any]]:
        self.log_filters.append(log_filter)
        if self.logs_error is not None:
            raise self.logs_error
        return list(self.logs)

    async def get_network_id(self) -> str:
        self.network_queries += 1
        if self.network_error is not None:
            raise self.network_error
        return self.network_id

    async def __aenter__(self) -> "FakeTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def tracker(transport: FakeTransport, clock: FakeClock) -> ConfirmationTracker:
    return ConfirmationTracker(transport, timeout=240.0, poll_interval=1.0, clock=clock, sleep=clock.sleep)
