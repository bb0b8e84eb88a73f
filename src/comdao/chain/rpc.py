"""
JSON-RPC transport for Ethereum nodes.

Lightweight alternative to web3.py: httpx.AsyncClient for HTTP, eth-account
for local signing. Implements the transport boundary consumed by the
orchestrator (``call``, ``send_transaction``, ``estimate_gas``,
``get_transaction_receipt``, ``get_logs``, ``get_network_id``).
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Optional

import httpx
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..utils import hex_to_int
from .abi import keccak256

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = 3_000_000

# Option keys understood by eth_call / eth_sendTransaction.
TX_FIELDS = ("from", "to", "value", "gas", "gasPrice", "data", "nonce")


class RpcError(RuntimeError):
    """Raised when a JSON-RPC call fails or returns an error object."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        code: Optional[int] = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.code = code
        self.data = data


def to_checksum_address(address: str) -> str:
    """Convert an address to EIP-55 checksummed format.

    eth-account requires checksummed addresses in transaction fields.
    """
    addr = address.lower().replace("0x", "")
    addr_hash = keccak256(addr.encode("utf-8")).hex()
    result = "0x"
    for i, c in enumerate(addr):
        if c in "abcdef":
            result += c.upper() if int(addr_hash[i], 16) >= 8 else c
        else:
            result += c
    return result


def _quantity(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return hex(value)
    return value


def format_tx(tx: dict[str, Any]) -> dict[str, Any]:
    """Keep the known transaction fields and hex-encode integer quantities."""
    formatted: dict[str, Any] = {}
    for key in TX_FIELDS:
        value = tx.get(key)
        if value is None:
            continue
        formatted[key] = value if key in ("from", "to", "data") else _quantity(value)
    return formatted


class JsonRpcTransport:
    """
    Async JSON-RPC 2.0 client.

    When ``private_key`` is given, transactions are signed locally and sent
    with ``eth_sendRawTransaction``; otherwise ``eth_sendTransaction`` is used
    and the node signs with one of its unlocked accounts.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        private_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")
        self.rpc_url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._account = Account.from_key(private_key) if private_key else None
        self._ids = itertools.count(1)

    @property
    def account_address(self) -> Optional[str]:
        return self._account.address if self._account is not None else None

    async def request(self, method: str, params: list) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            Result field from the RPC response

        Raises:
            RpcError: On HTTP failure, malformed response or RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        logger.debug("rpc %s %s", method, params)

        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise RpcError(f"RPC transport failure: {exc}", method=method) from exc
        except ValueError as exc:
            raise RpcError(f"Malformed RPC response: {exc}", method=method) from exc

        if not isinstance(data, dict):
            raise RpcError("Unexpected JSON-RPC response (non-object).", method=method)

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcError(
                    f"RPC error: {error.get('message', error)}",
                    method=method,
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise RpcError(f"RPC error: {error}", method=method)

        return data.get("result")

    async def call(self, tx: dict[str, Any], block: str = "latest") -> str:
        return await self.request("eth_call", [format_tx(tx), block])

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        result = await self.request("eth_estimateGas", [format_tx(tx)])
        return hex_to_int(result)

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        if self._account is None:
            return await self.request("eth_sendTransaction", [format_tx(tx)])
        raw_tx = await self._sign(self._account, tx)
        return await self.request("eth_sendRawTransaction", [raw_tx])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        return await self.request("eth_getTransactionReceipt", [tx_hash])

    async def get_logs(self, log_filter: dict[str, Any]) -> list[dict[str, Any]]:
        """``eth_getLogs``; integer block numbers are hex-encoded."""
        params = {key: _quantity(value) for key, value in log_filter.items() if value is not None}
        return await self.request("eth_getLogs", [params]) or []

    async def get_network_id(self) -> str:
        result = await self.request("net_version", [])
        return str(result)

    async def get_chain_id(self) -> int:
        return hex_to_int(await self.request("eth_chainId", []))

    async def _sign(self, account: LocalAccount, tx: dict[str, Any]) -> str:
        address = account.address

        unsigned: dict[str, Any] = {
            "data": tx.get("data", "0x"),
            "value": hex_to_int(tx.get("value", 0)),
            "gas": hex_to_int(tx.get("gas") or DEFAULT_GAS_LIMIT),
        }
        if tx.get("to"):
            unsigned["to"] = to_checksum_address(tx["to"])
        if tx.get("nonce") is not None:
            unsigned["nonce"] = hex_to_int(tx["nonce"])
        else:
            unsigned["nonce"] = hex_to_int(
                await self.request("eth_getTransactionCount", [address, "pending"])
            )
        if tx.get("gasPrice") is not None:
            unsigned["gasPrice"] = hex_to_int(tx["gasPrice"])
        else:
            unsigned["gasPrice"] = hex_to_int(await self.request("eth_gasPrice", []))
        unsigned["chainId"] = await self.get_chain_id()

        signed = account.sign_transaction(unsigned)
        return "0x" + bytes(signed.raw_transaction).hex()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "JsonRpcTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
