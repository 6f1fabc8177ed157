"""
Base32 Codec (RFC 4648 alphabet, unpadded)

Encodes raw bytes as text over the 32-symbol alphabet A-Z2-7 and back.
Used to carry TOTP secrets as text that authenticator apps accept.

Components:
- Encoding: standard base64.b32encode output with the '=' padding stripped
- Decoding: case-insensitive, characters outside the alphabet are dropped,
  trailing bits that do not fill a whole byte are discarded

Decoding is deliberately lenient: it never raises for malformed text.
"""

import base64
from typing import Dict


ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

# Reverse lookup: symbol -> 5-bit value
_DECODE_MAP: Dict[str, int] = {symbol: value for value, symbol in enumerate(ALPHABET)}

BITS_PER_SYMBOL = 5
BITS_PER_BYTE = 8


def encode(data: bytes) -> str:
    """
    Encode bytes as unpadded Base32 text.

    Args:
        data: Raw bytes

    Returns:
        Base32 string over A-Z2-7
    """
    return base64.b32encode(data).decode('ascii').rstrip('=')


def filter_valid(text: str) -> str:
    """Uppercase ``text`` and keep only characters of the Base32 alphabet."""
    return ''.join(ch for ch in text.upper() if ch in _DECODE_MAP)


def decode(text: str) -> bytes:
    """
    Decode Base32 text to bytes.

    Lowercase input is accepted and invalid characters are skipped.
    Produces floor(valid_chars * 5 / 8) bytes.

    Args:
        text: Base32 text

    Returns:
        Decoded bytes (empty for empty or all-invalid input)
    """
    symbols = filter_valid(text)

    output = bytearray()
    buffer = 0
    bits_left = 0

    for symbol in symbols:
        buffer = ((buffer << BITS_PER_SYMBOL) | _DECODE_MAP[symbol]) & 0xFFFF
        bits_left += BITS_PER_SYMBOL

        if bits_left >= BITS_PER_BYTE:
            bits_left -= BITS_PER_BYTE
            output.append((buffer >> bits_left) & 0xFF)

    return bytes(output)
