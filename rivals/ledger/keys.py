"""Ed25519 signing credentials for the ledger.

Accepted secret formats:
- ``suiprivkey1...`` bech32 strings (flag byte + 32-byte seed)
- base64 keystore entries (flag byte + 32-byte seed)
- 32-byte seeds in hex, with or without ``0x``
"""

from __future__ import annotations

import base64
import binascii
import hashlib

import bech32
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

ED25519_FLAG = 0x00
SECRET_KEY_HRP = "suiprivkey"

# Intent prefix for TransactionData: scope=0, version=0, app_id=Sui
TRANSACTION_INTENT = bytes([0, 0, 0])


def blake2b256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def encode_secret_key(seed: bytes) -> str:
    """``suiprivkey1...`` form of a 32-byte Ed25519 seed."""
    data = bech32.convertbits(bytes([ED25519_FLAG]) + seed, 8, 5)
    return bech32.bech32_encode(SECRET_KEY_HRP, data)


def _decode_bech32_key(secret: str) -> bytes:
    hrp, data = bech32.bech32_decode(secret)
    if hrp is None or data is None:
        raise ValueError("Invalid bech32 secret key (bad character or checksum)")
    if hrp != SECRET_KEY_HRP:
        raise ValueError(f"Unexpected key prefix {hrp!r}")
    payload = bech32.convertbits(data, 5, 8, False)
    if payload is None:
        raise ValueError("Invalid padding in bech32 secret key")
    return _strip_flag(bytes(payload))


def decode_secret_key(secret: str) -> bytes:
    """Return the 32-byte Ed25519 seed encoded in ``secret``.

    Raises:
        ValueError: If the format is unrecognized or not an Ed25519 key.
    """
    secret = secret.strip()
    if secret.startswith(SECRET_KEY_HRP):
        return _decode_bech32_key(secret)

    hex_part = secret[2:] if secret.startswith("0x") else secret
    if len(hex_part) == 64:
        try:
            return bytes.fromhex(hex_part)
        except ValueError:
            pass

    try:
        raw = base64.b64decode(secret, validate=True)
    except binascii.Error as e:
        raise ValueError("Unrecognized private key format") from e
    if len(raw) == 32:
        return raw
    return _strip_flag(raw)


def _strip_flag(payload: bytes) -> bytes:
    if len(payload) != 33:
        raise ValueError(f"Expected 33-byte flagged key, got {len(payload)} bytes")
    if payload[0] != ED25519_FLAG:
        raise ValueError(f"Only Ed25519 keys are supported (flag {payload[0]})")
    return payload[1:]


class Ed25519Signer:
    """Signs transaction bytes and derives the owning address."""

    def __init__(self, seed: bytes) -> None:
        self._key = Ed25519PrivateKey.from_private_bytes(seed)
        self.public_key: bytes = self._key.public_key().public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )
        self._address = "0x" + blake2b256(bytes([ED25519_FLAG]) + self.public_key).hex()

    @classmethod
    def from_secret(cls, secret: str) -> Ed25519Signer:
        return cls(decode_secret_key(secret))

    @classmethod
    def generate(cls) -> Ed25519Signer:
        key = Ed25519PrivateKey.generate()
        return cls(key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption()))

    @property
    def address(self) -> str:
        return self._address

    def export_secret(self) -> str:
        seed = self._key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
        return encode_secret_key(seed)

    def sign_transaction(self, tx_bytes: bytes) -> str:
        digest = blake2b256(TRANSACTION_INTENT + tx_bytes)
        signature = self._key.sign(digest)
        return base64.b64encode(
            bytes([ED25519_FLAG]) + signature + self.public_key
        ).decode("ascii")
