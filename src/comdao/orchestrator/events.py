"""
Event decoding against a topic table.

Receipts contain logs from every contract touched by a transaction. Only logs
whose first topic is known to this contract's table and whose body fits the
event's ABI are decoded; the rest are dropped without error and the original
order is kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from eth_abi.exceptions import DecodingError

from ..chain.abi import decode_log_args
from ..utils import hex_to_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedEvent:
    event: str
    args: dict[str, Any] = field(default_factory=dict)
    address: Optional[str] = None
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    log_index: Optional[int] = None
    transaction_index: Optional[int] = None


def topic_table(events: Mapping[str, Mapping[str, Any]]) -> Mapping[str, Mapping[str, Any]]:
    """Read-only copy of a topic table with lower-cased keys."""
    return MappingProxyType({topic.lower(): entry for topic, entry in events.items()})


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else hex_to_int(value)


def decode_log(entry: Mapping[str, Any], log: Mapping[str, Any], address: Optional[str] = None) -> DecodedEvent:
    return DecodedEvent(
        event=entry["name"],
        args=decode_log_args(entry, log.get("topics", []), log.get("data", "0x")),
        address=log.get("address", address),
        transaction_hash=log.get("transactionHash"),
        block_number=_optional_int(log.get("blockNumber")),
        block_hash=log.get("blockHash"),
        log_index=_optional_int(log.get("logIndex")),
        transaction_index=_optional_int(log.get("transactionIndex")),
    )


def decode_logs(
    logs: Sequence[Mapping[str, Any]],
    topics: Mapping[str, Mapping[str, Any]],
    contract_address: Optional[str] = None,
) -> list[DecodedEvent]:
    decoded = []
    for log in logs:
        log_topics = log.get("topics") or []
        if not log_topics:
            continue
        entry = topics.get(log_topics[0].lower())
        if entry is None:
            logger.debug("Skipping log with unknown topic %s", log_topics[0])
            continue
        try:
            decoded.append(decode_log(entry, log, contract_address))
        except (DecodingError, IndexError, ValueError) as exc:
            # Same signature, different layout: usually another contract.
            logger.debug("Skipping undecodable %s log: %s", entry.get("name"), exc)
    return decoded


class EventDecoder:
    """Decodes receipt logs for one contract (topic table + address)."""

    def __init__(
        self,
        topics: Mapping[str, Mapping[str, Any]],
        contract_address: Optional[str] = None,
    ) -> None:
        self.topics = topic_table(topics)
        self.contract_address = contract_address

    def __call__(self, logs: Sequence[Mapping[str, Any]]) -> list[DecodedEvent]:
        return self.decode(logs)

    def decode(self, logs: Sequence[Mapping[str, Any]]) -> list[DecodedEvent]:
        return decode_logs(logs, self.topics, self.contract_address)
