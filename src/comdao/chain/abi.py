"""
ABI helpers - selectors, event topics and argument coding.

Encoding and decoding are delegated to eth-abi; Keccak-256 comes from
eth-hash. Nothing here talks to a node.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence

from eth_abi import decode, encode
from eth_hash.auto import keccak

from ..utils import add_0x, hex_to_bytes, strip_0x

AbiEntry = Mapping[str, Any]


def keccak256(data: bytes) -> bytes:
    """Keccak-256 (NOT hashlib.sha3_256, which is NIST SHA-3)."""
    return keccak(data)


def canonical_type(param: Mapping[str, Any]) -> str:
    """Canonical type string of an ABI parameter, expanding tuples."""
    typ = param["type"]
    if typ.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components", []))
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def abi_types(params: Iterable[Mapping[str, Any]]) -> list[str]:
    return [canonical_type(p) for p in params]


def signature(entry: AbiEntry) -> str:
    """``name(type1,type2)`` as used for selectors and topics."""
    return f"{entry['name']}({','.join(abi_types(entry.get('inputs', [])))})"


def function_selector(entry: AbiEntry) -> bytes:
    return keccak256(signature(entry).encode("utf-8"))[:4]


def event_topic(entry: AbiEntry) -> str:
    return "0x" + keccak256(signature(entry).encode("utf-8")).hex()


def find_constructor(abi: Sequence[AbiEntry]) -> Optional[AbiEntry]:
    for entry in abi:
        if entry.get("type") == "constructor":
            return entry
    return None


def _is_dynamic(typ: str) -> bool:
    return typ in ("string", "bytes") or typ.endswith("]") or typ.startswith("(")


def _coerce(typ: str, value: Any) -> Any:
    # Callers usually hold byte payloads as 0x-hex strings.
    if typ.startswith("bytes") and not typ.endswith("]") and isinstance(value, str):
        return hex_to_bytes(value)
    return value


def encode_arguments(params: Sequence[Mapping[str, Any]], args: Sequence[Any]) -> bytes:
    types = abi_types(params)
    if len(types) != len(args):
        raise ValueError(f"Expected {len(types)} arguments, got {len(args)}")
    if not types:
        return b""
    return encode(types, [_coerce(t, a) for t, a in zip(types, args)])


def encode_call(entry: AbiEntry, args: Sequence[Any]) -> str:
    """
    ABI-encode a function call.

    Returns:
        0x-prefixed hex calldata (selector + encoded arguments)
    """
    encoded_args = encode_arguments(entry.get("inputs", []), args)
    return "0x" + function_selector(entry).hex() + encoded_args.hex()


def encode_deployment(binary: str, constructor: Optional[AbiEntry], args: Sequence[Any]) -> str:
    """Append ABI-encoded constructor arguments to a (linked) binary."""
    if args and constructor is None:
        raise ValueError("Constructor not found in ABI, but constructor args were provided.")
    data = add_0x(binary)
    if constructor is not None:
        data += encode_arguments(constructor.get("inputs", []), args).hex()
    return data


def decode_output(entry: AbiEntry, data: str) -> Any:
    """
    ABI-decode a call result.

    Returns:
        ``None`` for functions without outputs, the bare value for a single
        output, otherwise a tuple.
    """
    output_types = abi_types(entry.get("outputs", []))
    if not output_types:
        return None

    decoded = decode(output_types, hex_to_bytes(data))
    if len(decoded) == 1:
        return decoded[0]
    return decoded


def decode_log_args(entry: AbiEntry, topics: Sequence[str], data: str) -> dict[str, Any]:
    """
    Decode an event log into named arguments.

    Indexed arguments come from ``topics`` (skipping the signature topic for
    non-anonymous events), the rest from ``data``. Indexed dynamic values are
    only stored on chain as their hash, so the raw topic is returned for them.
    """
    inputs = entry.get("inputs", [])
    indexed_topics = list(topics if entry.get("anonymous") else topics[1:])

    plain = [p for p in inputs if not p.get("indexed")]
    plain_values = decode(abi_types(plain), hex_to_bytes(data or "0x")) if plain else ()
    plain_iter = iter(plain_values)

    args: dict[str, Any] = {}
    topic_index = 0
    for param in inputs:
        name = param.get("name", "")
        if param.get("indexed"):
            topic = indexed_topics[topic_index]
            topic_index += 1
            typ = canonical_type(param)
            if _is_dynamic(typ):
                args[name] = add_0x(strip_0x(topic).lower())
            else:
                args[name] = decode([typ], hex_to_bytes(topic))[0]
        else:
            args[name] = next(plain_iter)
    return args
