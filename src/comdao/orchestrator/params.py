"""
Call specs and parameter splitting.

A contract method is called with its positional arguments optionally followed
by a mapping of transaction options (``from``, ``value``, ``gas``, ...). The
trailing mapping is told apart from integer-like wrapper values structurally.
"""

from __future__ import annotations

import numbers
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Sequence


def is_wrapped_number(value: Any) -> bool:
    """True for numbers and integer-like wrappers (types defining ``__index__``)."""
    if isinstance(value, numbers.Number):
        return True
    return hasattr(type(value), "__index__")


def is_options_bag(value: Any) -> bool:
    """It's only an options bag if it's a mapping and not a wrapped number."""
    return isinstance(value, Mapping) and not is_wrapped_number(value)


def merge_options(*bags: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for bag in bags:
        if bag:
            merged.update(bag)
    return merged


def split_params(
    args: Sequence[Any], defaults: Optional[Mapping[str, Any]] = None
) -> tuple[list[Any], dict[str, Any]]:
    """
    Separate positional arguments from a trailing options bag.

    Returns:
        ``(positional_args, options)`` where options are the defaults
        overridden by the call-site bag
    """
    positional = list(args)
    call_site: Mapping[str, Any] = {}
    if positional and is_options_bag(positional[-1]):
        call_site = positional.pop()
    return positional, merge_options(defaults, call_site)


@dataclass(frozen=True)
class CallSpec:
    name: str
    constant: bool
    inputs: tuple
    outputs: tuple
    payable: bool = False

    @classmethod
    def from_abi(cls, entry: Mapping[str, Any]) -> "CallSpec":
        mutability = entry.get("stateMutability")
        constant = bool(entry.get("constant")) or mutability in ("view", "pure")
        payable = bool(entry.get("payable")) or mutability == "payable"
        return cls(
            name=entry["name"],
            constant=constant,
            inputs=tuple(dict(p) for p in entry.get("inputs", [])),
            outputs=tuple(dict(p) for p in entry.get("outputs", [])),
            payable=payable,
        )

    @property
    def abi_entry(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "inputs": list(self.inputs),
            "outputs": list(self.outputs),
        }


def call_specs(abi: Sequence[Mapping[str, Any]]) -> dict[str, CallSpec]:
    return {
        entry["name"]: CallSpec.from_abi(entry)
        for entry in abi
        if entry.get("type") == "function"
    }
