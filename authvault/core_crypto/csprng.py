"""
Process-wide CSPRNG handle.

A single ``secrets.SystemRandom`` instance backed by the operating system
entropy source. Generators in this package take it as an explicit ``rng``
argument instead of creating their own random number generator per call.
"""

import secrets
from random import Random


# One handle for the whole process; SystemRandom keeps no internal state
# so sharing it across threads is safe.
SYSTEM_RNG = secrets.SystemRandom()


def random_bytes(length: int, rng: Random = SYSTEM_RNG) -> bytes:
    """
    Draw ``length`` random bytes from ``rng``.

    Failures of the entropy source (OSError, NotImplementedError) propagate
    to the caller and are never retried.

    Args:
        length: Number of bytes
        rng: Random source (defaults to the process CSPRNG)

    Returns:
        Random bytes
    """
    if length < 0:
        raise ValueError("length must be non-negative")
    if length == 0:
        return b''
    return rng.getrandbits(length * 8).to_bytes(length, 'big')


def random_choice_string(alphabet: str, length: int,
                         rng: Random = SYSTEM_RNG) -> str:
    """Build a string of ``length`` independent uniform draws from ``alphabet``."""
    return ''.join(rng.choice(alphabet) for _ in range(length))
