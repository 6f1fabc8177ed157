"""
Backup (recovery) codes for MFA.

Features:
- Batch generation of human-enterable codes from the process CSPRNG
- Redemption ledger that stores Argon2id hashes, never plaintext
- One-time use: a redeemed code is marked consumed and cannot replay

Codes are shown to the user once, at enrollment. Only the ledger is kept.
"""

import logging
import re
from random import Random
from typing import Iterable, List, Optional, Set

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

from ..core_crypto.csprng import SYSTEM_RNG, random_choice_string


logger = logging.getLogger(__name__)


BACKUP_CODE_COUNT = 10
BACKUP_CODE_LENGTH = 8
BACKUP_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

_CODE_PATTERN = re.compile(rf'^[A-Z0-9]{{{BACKUP_CODE_LENGTH}}}$')

# Backup codes carry ~41 bits of entropy and are single-use, so the cost
# is set lower than for passwords to keep verification of a full batch quick.
BACKUP_CODE_ARGON2_CONFIG = {
    'time_cost': 2,
    'memory_cost': 19456,    # 19 MiB
    'parallelism': 1,
    'hash_len': 32,
    'salt_len': 16,
    'type': Type.ID,
}


def generate_backup_codes(rng: Random = SYSTEM_RNG,
                          count: int = BACKUP_CODE_COUNT,
                          length: int = BACKUP_CODE_LENGTH) -> List[str]:
    """
    Generate a batch of backup codes.

    Args:
        rng: Random source (defaults to the process CSPRNG)
        count: Number of codes
        length: Characters per code

    Returns:
        List of uppercase alphanumeric codes
    """
    return [random_choice_string(BACKUP_CODE_ALPHABET, length, rng) for _ in range(count)]


def normalize_code(code: str) -> str:
    """Uppercase and strip spaces/dashes the user may have typed."""
    return code.strip().upper().replace('-', '').replace(' ', '')


def default_backup_hasher() -> PasswordHasher:
    return PasswordHasher(**BACKUP_CODE_ARGON2_CONFIG)


class BackupCodeLedger:
    """
    Hashed backup codes for one account plus the record of consumed ones.

    Example:
        >>> codes = generate_backup_codes()
        >>> ledger = BackupCodeLedger.from_codes(codes)
        >>> ledger.redeem(codes[0])
        True
        >>> ledger.redeem(codes[0])
        False
    """

    def __init__(self, hashes: Iterable[str],
                 consumed: Optional[Iterable[int]] = None,
                 hasher: Optional[PasswordHasher] = None):
        """
        Args:
            hashes: Argon2 hashes, one per issued code
            consumed: Indices of codes already redeemed
            hasher: Argon2 hasher used for verification
        """
        self._hashes: List[str] = list(hashes)
        self._consumed: Set[int] = set(consumed or ())
        self._hasher = hasher or default_backup_hasher()

    @classmethod
    def from_codes(cls, codes: Iterable[str],
                   hasher: Optional[PasswordHasher] = None) -> 'BackupCodeLedger':
        """Hash a freshly generated batch into a new ledger."""
        hasher = hasher or default_backup_hasher()
        hashes = [hasher.hash(normalize_code(code)) for code in codes]
        return cls(hashes, hasher=hasher)

    @property
    def hashes(self) -> List[str]:
        """Stored hashes, in issue order."""
        return list(self._hashes)

    @property
    def consumed(self) -> Set[int]:
        return set(self._consumed)

    @property
    def remaining(self) -> int:
        return len(self._hashes) - len(self._consumed)

    def redeem(self, candidate: str) -> bool:
        """
        Redeem a backup code.

        A matching, unconsumed code is marked consumed. Malformed input,
        unknown codes and already-used codes return False.

        Args:
            candidate: Code entered by the user

        Returns:
            True if the code was valid and is now consumed
        """
        if not isinstance(candidate, str):
            return False

        code = normalize_code(candidate)
        if not _CODE_PATTERN.match(code):
            return False

        for index, stored in enumerate(self._hashes):
            if index in self._consumed:
                continue
            try:
                self._hasher.verify(stored, code)
            except (VerificationError, InvalidHashError):
                continue
            self._consumed.add(index)
            logger.info("Backup code redeemed, %d remaining", self.remaining)
            return True

        logger.debug("Backup code rejected")
        return False

    def __len__(self) -> int:
        return len(self._hashes)

    def __repr__(self) -> str:
        return f"BackupCodeLedger(issued={len(self._hashes)}, remaining={self.remaining})"
