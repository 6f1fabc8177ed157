"""
TOTP (Time-based One-Time Password) Implementation

Implements RFC 6238 TOTP (HMAC-SHA-1, 6 digits, 30 second step) for
two-factor authentication.

Features:
- Secret generation (160-bit, Base32 text)
- Code computation with RFC 4226 dynamic truncation
- Verification with +/- one time step of clock drift
- otpauth:// provisioning URI and QR renderer URL
- Enrollment flow that issues backup codes on confirmation

Used with:
- Google Authenticator
- Authy
- Microsoft Authenticator
- Any RFC 6238 compliant authenticator
"""

import logging
import struct
import time
from random import Random
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from argon2 import PasswordHasher

from ..core_crypto import base32
from ..core_crypto.csprng import SYSTEM_RNG, random_bytes
from ..core_crypto.primitives import constant_time_equals, hmac_sha1
from ..integration.event_logger import EventLogger, EventType
from .account import Account
from .backup_codes import BackupCodeLedger, generate_backup_codes


logger = logging.getLogger(__name__)


# TOTP configuration (RFC 6238 defaults)
TOTP_DIGITS = 6           # Number of digits in OTP
TOTP_TIME_STEP = 30       # Time step in seconds
TOTP_SECRET_BYTES = 20    # Secret key length (160 bits for SHA-1)
TOTP_DRIFT_TOLERANCE = 1  # Accept codes from +/- this many time steps

# External QR renderer; only the URL is built here
QR_SERVICE_URL = "https://api.qrserver.com/v1/create-qr-code/"
QR_IMAGE_SIZE = 300


def generate_secret(rng: Random = SYSTEM_RNG) -> str:
    """
    Generate a new shared secret.

    Args:
        rng: Random source (defaults to the process CSPRNG)

    Returns:
        Base32 text of TOTP_SECRET_BYTES random bytes
    """
    return base32.encode(random_bytes(TOTP_SECRET_BYTES, rng))


def get_time_window(timestamp: float = None) -> int:
    """
    Get the time counter value for TOTP.

    Args:
        timestamp: Unix timestamp (uses current time if None)

    Returns:
        Time window T = floor(time / TOTP_TIME_STEP)
    """
    if timestamp is None:
        timestamp = time.time()
    return int(timestamp) // TOTP_TIME_STEP


def _truncate(mac: bytes) -> str:
    """RFC 4226 dynamic truncation to a zero-padded TOTP_DIGITS string."""
    # Offset from the low nibble of the last byte
    offset = mac[-1] & 0x0F

    truncated = struct.unpack('>I', mac[offset:offset + 4])[0]
    truncated &= 0x7FFFFFFF

    return str(truncated % (10 ** TOTP_DIGITS)).zfill(TOTP_DIGITS)


def compute_code(secret: str, time_window: int) -> str:
    """
    Compute the TOTP code for a given time window.

    Args:
        secret: Base32 secret text
        time_window: Time counter (see get_time_window)

    Returns:
        6-digit code string
    """
    key = base32.decode(secret)
    counter_bytes = struct.pack('>Q', time_window)
    return _truncate(hmac_sha1(key, counter_bytes))


def get_current_code(secret: str) -> str:
    """Code for the current time window."""
    return compute_code(secret, get_time_window())


def verify_code(secret: str, candidate: str, now: float = None) -> bool:
    """
    Verify a TOTP code with drift tolerance.

    Checks the candidate against the current window and one window on
    either side. Malformed input is rejected, never raised.

    Args:
        secret: Base32 secret text
        candidate: Code entered by the user
        now: Unix timestamp (uses current time if None)

    Returns:
        True if the code is valid
    """
    if not secret or not candidate:
        return False
    if not isinstance(secret, str) or not isinstance(candidate, str):
        return False
    if len(candidate) != TOTP_DIGITS:
        return False

    try:
        if not base32.decode(secret):
            logger.debug("TOTP secret decodes to no key material")
            return False

        current = get_time_window(now)
        provided = candidate.encode('utf-8')

        for offset in range(-TOTP_DRIFT_TOLERANCE, TOTP_DRIFT_TOLERANCE + 1):
            window = current + offset
            if window < 0:
                continue
            expected = compute_code(secret, window)
            if constant_time_equals(provided, expected.encode('ascii')):
                return True
    except (ValueError, TypeError, OverflowError, struct.error) as e:
        logger.debug("TOTP verification failed internally: %s", type(e).__name__)
        return False

    return False


def get_remaining_seconds(now: float = None) -> int:
    """Seconds until the next code."""
    if now is None:
        now = time.time()
    return TOTP_TIME_STEP - (int(now) % TOTP_TIME_STEP)


def provisioning_uri(username: str, secret: str, issuer: str) -> str:
    """
    Build the otpauth:// URI for authenticator apps.

    Every component is percent-encoded, including ':' and '@' inside
    the issuer and username.

    Returns:
        otpauth://totp/<issuer>:<username>?secret=..&issuer=..&digits=6&period=30
    """
    label = f"{quote(issuer, safe='')}:{quote(username, safe='')}"
    params = {
        'secret': secret,
        'issuer': issuer,
        'digits': str(TOTP_DIGITS),
        'period': str(TOTP_TIME_STEP),
    }
    param_str = '&'.join(f"{k}={quote(v, safe='')}" for k, v in params.items())
    return f"otpauth://totp/{label}?{param_str}"


def qr_code_url(uri: str, base_url: str = QR_SERVICE_URL,
                size: int = QR_IMAGE_SIZE) -> str:
    """
    URL asking an external renderer for a QR image of ``uri``.

    Args:
        uri: Provisioning URI
        base_url: Renderer endpoint
        size: Image edge in pixels

    Returns:
        Renderer URL with the URI in the ``data`` parameter
    """
    return f"{base_url}?size={size}x{size}&data={quote(uri, safe='')}"


class TOTPManager:
    """
    MFA enrollment for accounts.

    The secret is held as pending until the user proves their
    authenticator produces valid codes. Confirmation installs the secret
    and a fresh batch of backup codes on the account.
    """

    def __init__(self, issuer: str = "AuthVault",
                 rng: Random = SYSTEM_RNG,
                 backup_hasher: Optional[PasswordHasher] = None,
                 event_logger: Optional[EventLogger] = None):
        """
        Args:
            issuer: Service name shown in authenticator apps
            rng: Random source for secrets and backup codes
            backup_hasher: Argon2 hasher for the backup-code ledger
            event_logger: Optional audit trail
        """
        self._issuer = issuer
        self._rng = rng
        self._backup_hasher = backup_hasher
        self._events = event_logger
        self._pending_secrets: Dict[str, str] = {}  # user_id -> secret

    @property
    def issuer(self) -> str:
        return self._issuer

    def begin_enrollment(self, account: Account) -> Tuple[str, str, str]:
        """
        Create a secret for an account and hold it as pending.

        Returns:
            Tuple of (base32_secret, provisioning_uri, qr_code_url)
        """
        secret = generate_secret(self._rng)
        self._pending_secrets[account.user_id] = secret

        uri = provisioning_uri(account.username, secret, self._issuer)
        logger.info("MFA enrollment started for account %s", account.user_id)
        return secret, uri, qr_code_url(uri)

    def confirm_enrollment(self, account: Account, code: str,
                           now: float = None) -> Tuple[bool, Optional[List[str]]]:
        """
        Confirm enrollment with a code from the authenticator app.

        Args:
            account: Account being enrolled
            code: TOTP code
            now: Unix timestamp (uses current time if None)

        Returns:
            Tuple of (success, plaintext backup codes if success else None).
            The codes are only available here; the account keeps hashes.
        """
        secret = self._pending_secrets.get(account.user_id)
        if not secret:
            return False, None

        if not verify_code(secret, code, now):
            return False, None

        del self._pending_secrets[account.user_id]

        codes = generate_backup_codes(self._rng)
        ledger = BackupCodeLedger.from_codes(codes, hasher=self._backup_hasher)
        account.enable_two_factor(secret, ledger)
        account.touch(now)

        logger.info("MFA enabled for account %s", account.user_id)
        if self._events is not None:
            self._events.log(EventType.MFA_ENABLED, account.username,
                             {"backup_codes": len(codes)}, timestamp=account.updated_at)
        return True, codes

    def cancel_enrollment(self, account: Account) -> bool:
        """Drop a pending secret."""
        return self._pending_secrets.pop(account.user_id, None) is not None

    def disable(self, account: Account, now: float = None) -> None:
        """Turn MFA off, discarding the secret and backup codes."""
        self._pending_secrets.pop(account.user_id, None)
        account.disable_two_factor()
        account.touch(now)
        logger.info("MFA disabled for account %s", account.user_id)
        if self._events is not None:
            self._events.log(EventType.MFA_DISABLED, account.username,
                             timestamp=account.updated_at)

    def has_pending(self, account: Account) -> bool:
        return account.user_id in self._pending_secrets
