"""
User Login Module

Implements authentication over Account records with:
- Salted password check
- Second factor: TOTP code or single-use backup code
- Account lockout after repeated failures
- Session token tracking per account

Security considerations:
- Failures return generic messages; unknown users look like bad passwords
- Per-account lock serializes every read-modify-write of SecurityState
- Never log sensitive data (passwords, codes, tokens)
"""

import logging
import secrets
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional

from ..integration.event_logger import EventLogger, EventType
from .account import Account
from .registration import check_password
from .totp import TOTP_DIGITS, verify_code


logger = logging.getLogger(__name__)


SESSION_TOKEN_BYTES = 32  # 256-bit tokens

GENERIC_FAILURE = 'Invalid username or password'


def generate_session_token() -> str:
    """Default session issuer: a random 256-bit hex token."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)


class LoginManager:
    """
    Complete login management with lockout and session tracking.

    Example:
        >>> login_mgr = LoginManager(user_store)
        >>> result = login_mgr.login("alice", "SecureP@ss123!")
        >>> if result['success']:
        ...     token = result['token']
    """

    def __init__(self, user_store: Optional[Dict[str, Account]] = None,
                 session_issuer: Callable[[], str] = generate_session_token,
                 clock: Callable[[], float] = time.time,
                 event_logger: Optional[EventLogger] = None):
        """
        Args:
            user_store: Dict of username -> Account
            session_issuer: Mints opaque session tokens
            clock: Returns the current Unix time
            event_logger: Optional audit trail
        """
        self._users = user_store if user_store is not None else {}
        self._issue_session = session_issuer
        self._clock = clock
        self._events = event_logger

        self._registry_lock = threading.Lock()
        self._account_locks: Dict[str, threading.Lock] = {}

    @contextmanager
    def _account_lock(self, account: Account) -> Iterator[None]:
        """Hold the per-account lock for the duration of the block."""
        with self._registry_lock:
            lock = self._account_locks.setdefault(account.user_id, threading.Lock())
        with lock:
            yield

    def _audit(self, event_type: EventType, username: str,
               now: float, **details) -> None:
        if self._events is not None:
            self._events.log(event_type, username, details, timestamp=now)

    def _fail(self, account: Account, username: str, now: float,
              message: str, event_type: EventType = EventType.LOGIN_FAILED) -> Dict:
        """Count a failed attempt and build the failure result."""
        locked = account.security.record_failure(now)
        self._audit(event_type, username, now,
                    failed_attempts=account.security.failed_attempts)
        if locked:
            self._audit(EventType.ACCOUNT_LOCKED, username, now,
                        lockout_until=account.security.lockout_until)

        return {
            'success': False,
            'message': message,
            'locked': locked,
            'attempts_remaining': account.security.attempts_remaining(),
        }

    def _check_second_factor(self, account: Account, username: str,
                             code: str, now: float) -> bool:
        if isinstance(code, str) and len(code) == TOTP_DIGITS:
            if verify_code(account.totp_secret, code, now):
                self._audit(EventType.TOTP_VERIFIED, username, now)
                return True
            return False

        ledger = account.backup_codes
        if ledger is not None and ledger.redeem(code):
            self._audit(EventType.BACKUP_CODE_REDEEMED, username, now,
                        remaining=ledger.remaining)
            return True
        return False

    def login(self, username: str, password: str,
              second_factor: Optional[str] = None) -> Dict:
        """
        Authenticate a user and record a session.

        Args:
            username: Username to authenticate
            password: Password to verify
            second_factor: TOTP code or backup code when MFA is enabled

        Returns:
            Dict with 'success', 'message', and either 'token' or failure
            details ('locked', 'attempts_remaining', 'requires_second_factor')
        """
        now = self._clock()

        account = self._users.get(username)
        if account is None or not account.is_active:
            self._audit(EventType.LOGIN_FAILED, username, now, reason='unknown')
            return {'success': False, 'message': GENERIC_FAILURE}

        with self._account_lock(account):
            security = account.security

            if security.is_locked(now):
                remaining = security.lockout_remaining(now)
                self._audit(EventType.LOGIN_LOCKED, username, now)
                return {
                    'success': False,
                    'message': f'Account locked. Try again in {remaining} seconds.',
                    'locked': True,
                    'lockout_remaining': remaining,
                }

            if not check_password(account, password):
                return self._fail(account, username, now, GENERIC_FAILURE)

            if account.two_factor_enabled:
                if not second_factor:
                    return {
                        'success': False,
                        'message': 'Second factor required',
                        'requires_second_factor': True,
                    }

                if not self._check_second_factor(account, username, second_factor, now):
                    return self._fail(account, username, now,
                                      'Invalid authentication code',
                                      EventType.TOTP_FAILED)

            security.record_success()
            token = self._issue_session()
            security.add_session(token)
            account.last_login_at = now
            account.touch(now)

        self._audit(EventType.LOGIN_SUCCESS, username, now)
        logger.debug("Login succeeded for account %s", account.user_id)
        return {
            'success': True,
            'message': 'Login successful',
            'token': token,
            'user_id': account.user_id,
            'permissions': sorted(account.permissions),
        }

    def logout(self, username: str, token: str) -> Dict:
        """
        End one session.

        Returns:
            Dict with 'success' and 'message'
        """
        account = self._users.get(username)
        if account is None:
            return {'success': False, 'message': 'Session not found'}

        with self._account_lock(account):
            removed = account.security.remove_session(token)

        if not removed:
            return {'success': False, 'message': 'Session not found'}

        self._audit(EventType.LOGOUT, username, self._clock())
        return {'success': True, 'message': 'Logged out successfully'}

    def logout_everywhere(self, username: str) -> Dict:
        """End every session of an account."""
        account = self._users.get(username)
        if account is None:
            return {'success': False, 'message': 'User not found'}

        with self._account_lock(account):
            count = account.security.clear_all_sessions()

        self._audit(EventType.LOGOUT_ALL, username, self._clock(), sessions=count)
        return {'success': True, 'message': f'Ended {count} sessions', 'sessions': count}

    def verify_session(self, username: str, token: str) -> bool:
        """Check that ``token`` is an active session of ``username``."""
        account = self._users.get(username)
        if account is None or not isinstance(token, str):
            return False

        with self._account_lock(account):
            return account.security.has_active_session(token)

    def is_locked(self, username: str) -> bool:
        """Lock status of an account, applying auto-unlock if due."""
        account = self._users.get(username)
        if account is None:
            return False

        with self._account_lock(account):
            return account.security.is_locked(self._clock())
