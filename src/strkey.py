"""Stellar strkey decoding for account and contract addresses."""

from __future__ import annotations

import base64
import binascii

STRKEY_LENGTH = 56
_PAYLOAD_BYTES = 32

# Version byte per leading character: ed25519 account and contract.
_VERSION_BYTES = {"G": 6 << 3, "C": 2 << 3}


def crc16_xmodem(data: bytes) -> int:
    """Compute the CRC16-XModem checksum used by strkeys."""
    crc = 0
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def decode_strkey(text: str) -> tuple[str, bytes]:
    """Decode an account (``G...``) or contract (``C...``) strkey.

    Parameters
    ----------
    text : str
        Candidate address.

    Returns
    -------
    tuple[str, bytes]
        Address kind (``"account"`` or ``"contract"``) and the 32-byte
        payload.

    Raises
    ------
    ValueError
        When the text is not a well-formed, checksum-valid strkey.
    """
    if len(text) != STRKEY_LENGTH:
        raise ValueError(
            f"expected {STRKEY_LENGTH} characters, got {len(text)}"
        )
    version = _VERSION_BYTES.get(text[0])
    if version is None:
        raise ValueError("address must start with 'G' (account) or 'C' (contract)")
    try:
        raw = base64.b32decode(text, casefold=False)
    except binascii.Error as exc:
        raise ValueError(f"not valid base32: {exc}") from exc

    body, checksum = raw[:-2], raw[-2:]
    if body[0] != version or len(body) != _PAYLOAD_BYTES + 1:
        raise ValueError("unexpected version byte or payload length")
    if crc16_xmodem(body) != int.from_bytes(checksum, "little"):
        raise ValueError("checksum mismatch")
    return ("account" if text[0] == "G" else "contract"), body[1:]

