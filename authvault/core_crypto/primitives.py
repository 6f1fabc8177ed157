"""
Cryptographic Primitives

Thin wrappers over the digest and MAC primitives used by the auth core:
- SHA-256 digest (cryptography hazmat backend) for password credentials
- HMAC-SHA-1 (hashlib/hmac) for RFC 6238 one-time passwords

Availability of both is checked once, when the package is imported.
A runtime without them cannot authenticate anyone safely, so the check
raises instead of degrading.
"""

import hashlib
import hmac

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes


class CryptoConfigurationError(RuntimeError):
    """A required cryptographic primitive is not available in this runtime."""


def ensure_primitives_available() -> None:
    """
    Verify that SHA-256 and HMAC-SHA-1 can be computed.

    Raises:
        CryptoConfigurationError: If either primitive is missing
    """
    backend = default_backend()
    if not backend.hash_supported(hashes.SHA256()):
        raise CryptoConfigurationError("SHA-256 digest is not available")

    if 'sha1' not in hashlib.algorithms_available:
        raise CryptoConfigurationError("SHA-1 digest is not available for HMAC")

    try:
        hmac.new(b'key', b'msg', hashlib.sha1).digest()
    except ValueError as e:
        # FIPS-restricted OpenSSL builds refuse SHA-1 at call time
        raise CryptoConfigurationError(f"HMAC-SHA-1 is not usable: {e}") from e


def sha256_digest(data: bytes) -> bytes:
    """Compute the 32-byte SHA-256 digest of ``data``."""
    digest = hashes.Hash(hashes.SHA256(), backend=default_backend())
    digest.update(data)
    return digest.finalize()


def hmac_sha1(key: bytes, message: bytes) -> bytes:
    """Compute the 20-byte HMAC-SHA-1 of ``message`` keyed by ``key``."""
    return hmac.new(key, message, hashlib.sha1).digest()


def constant_time_equals(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without an early exit on the first mismatch."""
    return hmac.compare_digest(a, b)
