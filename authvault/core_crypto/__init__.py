# Core Cryptography Module
"""
Core building blocks for the auth module:
- Base32 codec (RFC 4648, unpadded, lenient decoding)
- SHA-256 / HMAC-SHA-1 primitives
- Process-wide CSPRNG handle

Importing this package verifies the digest primitives are present.
"""

from .primitives import CryptoConfigurationError, ensure_primitives_available

ensure_primitives_available()

__all__ = [
    'CryptoConfigurationError',
    'ensure_primitives_available',
]
