"""Unit tests for utils.py functions."""

from __future__ import annotations

import pytest

from comdao.errors import ContractError, InvalidAddressError
from comdao.utils import add_0x, hex_to_bytes, hex_to_int, is_address, require_address, strip_0x


class TestHex:
    def test_prefix_helpers(self) -> None:
        assert strip_0x("0xabc") == "abc"
        assert strip_0x("0Xabc") == "abc"
        assert strip_0x("abc") == "abc"
        assert add_0x("abc") == "0xabc"
        assert add_0x("0xabc") == "0xabc"

    def test_hex_to_bytes(self) -> None:
        assert hex_to_bytes("0xdead") == b"\xde\xad"
        assert hex_to_bytes("") == b""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("0x1a", 26), ("0x0", 0), ("0x", 0), ("", 0), (None, 0), (7, 7)],
    )
    def test_hex_to_int(self, value: object, expected: int) -> None:
        assert hex_to_int(value) == expected


class TestAddress:
    @pytest.mark.parametrize(
        "value",
        ["0x" + "ab" * 20, "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed", "0X" + "00" * 20],
    )
    def test_valid(self, value: str) -> None:
        assert is_address(value)
        assert require_address(value) == value

    @pytest.mark.parametrize(
        "value",
        [None, 0, "", "0x", "0x" + "ab" * 19, "0x" + "ab" * 21, "ab" * 21, "0x" + "gg" * 20, b"\x00" * 20],
    )
    def test_invalid(self, value: object) -> None:
        assert not is_address(value)
        with pytest.raises(InvalidAddressError) as excinfo:
            require_address(value, "at()")
        assert "at()" in str(excinfo.value)

    def test_invalid_address_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            require_address("nope")
        with pytest.raises(ContractError):
            require_address("nope")
