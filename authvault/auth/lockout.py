"""
Account Lockout State Machine

Per-account security state for login attempts:
- Failed-attempt counter with a lockout threshold
- Timed lockout window with automatic unlock
- Set of active session tokens

States:
    Unlocked: failed_attempts in [0, MAX_FAILED_ATTEMPTS - 1]
    Locked:   failed_attempts >= MAX_FAILED_ATTEMPTS, lockout_until set

SecurityState holds no lock of its own. Callers mutating the same account
from several threads must serialize access (LoginManager does this with a
per-account lock).
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Set


logger = logging.getLogger(__name__)


# Lockout configuration
MAX_FAILED_ATTEMPTS = 5
LOCKOUT_DURATION_SECONDS = 30 * 60  # 30 minutes


@dataclass
class SecurityState:
    """Failed-login counter, lockout window and sessions for one account."""
    failed_attempts: int = 0
    last_failed_at: Optional[float] = None
    locked: bool = False
    lockout_until: Optional[float] = None
    active_sessions: Set[str] = field(default_factory=set)
    max_attempts: int = MAX_FAILED_ATTEMPTS
    lockout_duration: int = LOCKOUT_DURATION_SECONDS

    def record_failure(self, now: float = None) -> bool:
        """
        Record a failed authentication attempt.

        Reaching the threshold locks the account for ``lockout_duration``
        seconds. Further failures while locked re-arm the window.

        Args:
            now: Unix timestamp (uses current time if None)

        Returns:
            True if the account is locked after this failure
        """
        if now is None:
            now = time.time()

        self.failed_attempts += 1
        self.last_failed_at = now

        if self.failed_attempts >= self.max_attempts:
            self.locked = True
            self.lockout_until = now + self.lockout_duration
            logger.info("Account locked until %s after %d failed attempts",
                        self.lockout_until, self.failed_attempts)

        return self.locked

    def record_success(self) -> None:
        """
        Reset the failure counter after a successful authentication.

        Does not lift an active lockout; callers check is_locked() first.
        """
        self.failed_attempts = 0
        self.last_failed_at = None

    def is_locked(self, now: float = None) -> bool:
        """
        Check lock status, unlocking if the lockout window has passed.

        Args:
            now: Unix timestamp (uses current time if None)

        Returns:
            True while the lockout window is active
        """
        if now is None:
            now = time.time()

        if self.locked and self.lockout_until is not None and now > self.lockout_until:
            self.locked = False
            self.lockout_until = None
            self.failed_attempts = 0
            logger.info("Lockout expired, account unlocked")
            return False

        return self.locked

    def lockout_remaining(self, now: float = None) -> int:
        """Whole seconds left in the lockout window (0 when unlocked)."""
        if now is None:
            now = time.time()
        if not self.locked or self.lockout_until is None:
            return 0
        return max(0, int(self.lockout_until - now))

    def attempts_remaining(self) -> int:
        """Failures left before the account locks."""
        return max(0, self.max_attempts - self.failed_attempts)

    # Session tracking

    def add_session(self, token: str) -> None:
        self.active_sessions.add(token)

    def remove_session(self, token: str) -> bool:
        """Remove a session token. Returns False if it was not active."""
        if token in self.active_sessions:
            self.active_sessions.discard(token)
            return True
        return False

    def clear_all_sessions(self) -> int:
        """Drop every session token. Returns how many were removed."""
        count = len(self.active_sessions)
        self.active_sessions.clear()
        return count

    def has_active_session(self, token: str) -> bool:
        return token in self.active_sessions
