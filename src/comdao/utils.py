from __future__ import annotations

import re
from typing import Any

from .errors import InvalidAddressError

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


def strip_0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def add_0x(value: str) -> str:
    return value if value.startswith(("0x", "0X")) else "0x" + value


def hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(strip_0x(value))


def hex_to_int(value: Any) -> int:
    """Parse a JSON-RPC quantity (``"0x1a"``) or pass an int through."""
    if isinstance(value, int):
        return value
    if value in (None, "", "0x"):
        return 0
    return int(value, 16)


def is_address(value: Any) -> bool:
    """True for a ``0x``-prefixed, 42 character hex string."""
    if not isinstance(value, str) or len(value) != 42:
        return False
    if not value.startswith(("0x", "0X")):
        return False
    return bool(_HEX_RE.match(value[2:]))


def require_address(value: Any, context: str = "address") -> str:
    if not is_address(value):
        raise InvalidAddressError(f"Invalid address passed to {context}: {value!r}")
    return value
