"""
User Registration Module

Implements salted password credentials and account registration.

Features:
- Salted SHA-256 password digests (base64 text)
- Cryptographically secure random salt generation
- Password strength validation
- Registration and password change over a caller-owned user store

Security considerations:
- Never store plaintext passwords
- Salt is regenerated every time a password is set
- Constant-time comparison for hash verification
"""

import base64
import logging
import re
import time
from random import Random
from typing import Dict, Optional

from ..core_crypto.csprng import SYSTEM_RNG, random_bytes
from ..core_crypto.primitives import constant_time_equals, sha256_digest
from ..integration.event_logger import EventLogger, EventType
from .account import Account, Credential
from .roles import Role


logger = logging.getLogger(__name__)


SALT_BYTES = 16  # 128-bit salt

# Password strength requirements
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
PASSWORD_REQUIREMENTS = {
    'min_length': PASSWORD_MIN_LENGTH,
    'max_length': PASSWORD_MAX_LENGTH,
    'require_uppercase': True,
    'require_lowercase': True,
    'require_digit': True,
    'require_special': True,
}

USERNAME_MIN_LENGTH = 3


def generate_salt(rng: Random = SYSTEM_RNG) -> str:
    """
    Generate a random salt.

    Args:
        rng: Random source (defaults to the process CSPRNG)

    Returns:
        Base64 text of SALT_BYTES random bytes
    """
    return base64.b64encode(random_bytes(SALT_BYTES, rng)).decode('ascii')


def hash_password(password: str, salt: str) -> str:
    """
    Digest a password with its salt.

    SHA-256 over the UTF-8 bytes of the salt text followed by the UTF-8
    bytes of the password. Deterministic for identical inputs.

    Args:
        password: Plaintext password
        salt: Base64 salt text as stored on the credential

    Returns:
        Base64-encoded 32-byte digest
    """
    digest = sha256_digest(salt.encode('utf-8') + password.encode('utf-8'))
    return base64.b64encode(digest).decode('ascii')


def set_password(account: Account, password: str, now: float = None,
                 rng: Random = SYSTEM_RNG) -> Credential:
    """
    Replace the account's credential with one for ``password``.

    A fresh salt is drawn every time; the previous salt and hash are
    discarded together.

    Args:
        account: Account to update
        password: New plaintext password
        now: Unix timestamp for last_changed (current time if None)
        rng: Random source for the salt

    Returns:
        The new Credential
    """
    if now is None:
        now = time.time()

    salt = generate_salt(rng)
    account.credential = Credential(
        password_hash=hash_password(password, salt),
        password_salt=salt,
        last_changed=now,
    )
    account.touch(now)
    return account.credential


def check_password(account: Account, candidate: str) -> bool:
    """
    Check a candidate password against the account's credential.

    Returns False when no credential is set or the candidate is not a
    string. Never raises.
    """
    credential = account.credential
    if credential is None or not isinstance(candidate, str):
        return False

    try:
        expected = hash_password(candidate, credential.password_salt)
    except UnicodeEncodeError:
        # Lone surrogates cannot have been set as a password
        logger.debug("Password candidate is not encodable")
        return False

    return constant_time_equals(expected.encode('ascii'),
                                credential.password_hash.encode('ascii', 'replace'))


def validate_password_strength(password: str) -> Dict:
    """
    Validate password against strength requirements.

    Args:
        password: Password to validate

    Returns:
        Dict with 'valid' bool, 'errors' list and 'score'
    """
    errors = []

    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"Must be at most {PASSWORD_MAX_LENGTH} characters")

    if PASSWORD_REQUIREMENTS['require_uppercase'] and not re.search(r'[A-Z]', password):
        errors.append("Must contain at least one uppercase letter")

    if PASSWORD_REQUIREMENTS['require_lowercase'] and not re.search(r'[a-z]', password):
        errors.append("Must contain at least one lowercase letter")

    if PASSWORD_REQUIREMENTS['require_digit'] and not re.search(r'\d', password):
        errors.append("Must contain at least one digit")

    if PASSWORD_REQUIREMENTS['require_special'] and not re.search(r'[!@#$%^&*(),.?":{}|<>]', password):
        errors.append("Must contain at least one special character")

    return {
        'valid': len(errors) == 0,
        'errors': errors,
        'score': calculate_password_score(password)
    }


def calculate_password_score(password: str) -> int:
    """Score password strength from 0 (weak) to 100 (strong)."""
    score = min(len(password) * 2, 30)

    for pattern in (r'[a-z]', r'[A-Z]', r'\d', r'[!@#$%^&*(),.?":{}|<>]'):
        if re.search(pattern, password):
            score += 10

    if len(password) >= 12:
        score += 10
    if len(password) >= 16:
        score += 10

    # Repeats and runs
    if re.search(r'(.)\1{2,}', password):
        score -= 10
    if re.search(r'(012|123|234|345|456|567|678|789)', password):
        score -= 10
    if re.search(r'(abc|bcd|cde|def|efg)', password.lower()):
        score -= 10

    return max(0, min(100, score))


class UserRegistration:
    """
    User registration handler with salted password storage.

    Example:
        >>> reg = UserRegistration()
        >>> result = reg.register_user("alice", "SecurePass123!", "alice@example.com")
        >>> result['success']
        True
    """

    def __init__(self, user_store: Optional[Dict[str, Account]] = None,
                 rng: Random = SYSTEM_RNG,
                 enforce_strength: bool = True,
                 event_logger: Optional[EventLogger] = None):
        """
        Args:
            user_store: Dict of username -> Account (created if None)
            rng: Random source for salts
            enforce_strength: Reject passwords failing validate_password_strength
            event_logger: Optional audit trail for password changes
        """
        self._users = user_store if user_store is not None else {}
        self._rng = rng
        self._enforce_strength = enforce_strength
        self._events = event_logger

    def _check_strength(self, password: str) -> None:
        if not isinstance(password, str):
            raise ValueError("Password must be a string")
        if not self._enforce_strength:
            return
        validation = validate_password_strength(password)
        if not validation['valid']:
            raise ValueError(f"Password too weak: {', '.join(validation['errors'])}")

    def register_user(self, username: str, password: str,
                      email: Optional[str] = None,
                      role: Role = Role.CUSTOMER,
                      is_admin: bool = False,
                      now: float = None) -> Dict:
        """
        Register a new account.

        Returns:
            Dict with 'success', 'message', and optionally 'user_id'
        """
        if not username or len(username) < USERNAME_MIN_LENGTH:
            return {'success': False,
                    'message': f'Username must be at least {USERNAME_MIN_LENGTH} characters'}

        if username in self._users:
            return {'success': False, 'message': 'Username already exists'}

        try:
            self._check_strength(password)
        except ValueError as e:
            return {'success': False, 'message': str(e)}

        if now is None:
            now = time.time()

        account = Account(username=username, role=role, email=email,
                          is_admin=is_admin, created_at=now)
        set_password(account, password, now=now, rng=self._rng)
        self._users[username] = account

        logger.info("Registered %s account (id=%s)", role.value, account.user_id)
        return {
            'success': True,
            'message': 'User registered successfully',
            'user_id': account.user_id
        }

    def get_user(self, username: str) -> Optional[Dict]:
        """Get account data without credential or secrets."""
        account = self._users.get(username)
        return account.public_view() if account else None

    def update_password(self, username: str, old_password: str,
                        new_password: str, now: float = None) -> Dict:
        """
        Change a password after verifying the current one.

        Returns:
            Dict with 'success' and 'message'
        """
        account = self._users.get(username)
        if not account:
            return {'success': False, 'message': 'User not found'}

        if not check_password(account, old_password):
            return {'success': False, 'message': 'Current password is incorrect'}

        try:
            self._check_strength(new_password)
        except ValueError as e:
            return {'success': False, 'message': str(e)}

        set_password(account, new_password, now=now, rng=self._rng)
        logger.info("Password changed for account %s", account.user_id)
        if self._events is not None:
            self._events.log(EventType.PASSWORD_CHANGED, username,
                             timestamp=account.credential.last_changed)
        return {'success': True, 'message': 'Password updated successfully'}

    @property
    def users(self) -> Dict[str, Account]:
        """Access to user store (for testing)."""
        return self._users
