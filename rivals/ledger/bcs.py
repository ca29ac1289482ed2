"""Binary Canonical Serialization (BCS) primitives.

Only the subset needed to encode pure Move arguments and Sui
TransactionData: ULEB128 lengths, little-endian unsigned integers, bools,
UTF-8 strings, fixed 32-byte addresses, options and vectors.
"""

from __future__ import annotations

import struct
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

U8_MAX = 0xFF
U16_MAX = 0xFFFF
U64_MAX = 0xFFFF_FFFF_FFFF_FFFF

ADDRESS_LENGTH = 32

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def uleb128(value: int) -> bytes:
    if value < 0:
        raise ValueError(f"ULEB128 cannot encode negative value {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def u8(value: int) -> bytes:
    if not 0 <= value <= U8_MAX:
        raise ValueError(f"u8 out of range: {value}")
    return struct.pack("<B", value)


def u16(value: int) -> bytes:
    if not 0 <= value <= U16_MAX:
        raise ValueError(f"u16 out of range: {value}")
    return struct.pack("<H", value)


def u64(value: int) -> bytes:
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"u64 out of range: {value}")
    return struct.pack("<Q", value)


def boolean(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


def byte_vector(data: bytes) -> bytes:
    return uleb128(len(data)) + data


def string(value: str) -> bytes:
    return byte_vector(value.encode("utf-8"))


def normalize_address(value: str) -> str:
    """Lower-case, 0x-prefixed, left-padded 64-hex-digit form."""
    hex_part = value[2:] if value.startswith(("0x", "0X")) else value
    if not hex_part or len(hex_part) > ADDRESS_LENGTH * 2:
        raise ValueError(f"Invalid address: {value!r}")
    try:
        int(hex_part, 16)
    except ValueError as e:
        raise ValueError(f"Invalid address: {value!r}") from e
    return "0x" + hex_part.lower().rjust(ADDRESS_LENGTH * 2, "0")


def address(value: str) -> bytes:
    return bytes.fromhex(normalize_address(value)[2:])


def option(value: T | None, encode: Callable[[T], bytes]) -> bytes:
    if value is None:
        return b"\x00"
    return b"\x01" + encode(value)


def vector(items: Iterable[T], encode: Callable[[T], bytes]) -> bytes:
    encoded = [encode(item) for item in items]
    return uleb128(len(encoded)) + b"".join(encoded)


def b58decode(value: str) -> bytes:
    """Decode a base58 string (object digests travel base58 over JSON-RPC)."""
    number = 0
    for char in value:
        index = _B58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"Invalid base58 character {char!r}")
        number = number * 58 + index
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    leading_zeros = len(value) - len(value.lstrip("1"))
    return b"\x00" * leading_zeros + body
