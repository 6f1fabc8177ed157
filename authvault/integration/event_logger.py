"""
Event Logger Module

Security audit trail for the auth module.

Features:
- Login, lockout, MFA and session events
- Privacy-preserving user hashes (SHA-256)
- In-memory event history with filtering
- Every event is also emitted through the standard logging package

Author: AuthVault Project
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


audit_logger = logging.getLogger("authvault.audit")


# ============================================================================
# Constants
# ============================================================================

EVENT_VERSION = "1.0"


# ============================================================================
# Privacy Functions
# ============================================================================

def get_user_hash(username: str) -> str:
    """
    Compute privacy-preserving hash of username.

    Usernames never appear in the audit trail in plaintext; the digest
    still allows correlating events for the same user.

    Args:
        username: The plaintext username

    Returns:
        Hex-encoded SHA-256 hash of the username
    """
    return hashlib.sha256(username.encode('utf-8')).hexdigest()


# ============================================================================
# Event Types
# ============================================================================

class EventType(Enum):
    """Types of security events that can be logged."""

    # Authentication events
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGIN_LOCKED = "login_locked"
    ACCOUNT_LOCKED = "account_locked"
    LOGOUT = "logout"
    LOGOUT_ALL = "logout_all"

    # Second factor events
    TOTP_VERIFIED = "totp_verified"
    TOTP_FAILED = "totp_failed"
    BACKUP_CODE_REDEEMED = "backup_code_redeemed"
    MFA_ENABLED = "mfa_enabled"
    MFA_DISABLED = "mfa_disabled"

    # Credential events
    PASSWORD_CHANGED = "password_changed"


_WARNING_EVENTS = {
    EventType.LOGIN_FAILED,
    EventType.LOGIN_LOCKED,
    EventType.ACCOUNT_LOCKED,
    EventType.TOTP_FAILED,
}


# ============================================================================
# Event Structure
# ============================================================================

@dataclass
class SecurityEvent:
    """
    Represents a security event to be logged.

    All user-identifying information is hashed for privacy.
    """
    event_type: EventType
    user_hash: str  # SHA-256 hash of username
    timestamp: int  # Unix timestamp
    details: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Compact JSON record of the event."""
        return json.dumps({
            'version': EVENT_VERSION,
            'type': self.event_type.value,
            'user': self.user_hash[:16],
            'time': self.timestamp,
            'iso_time': datetime.fromtimestamp(self.timestamp).isoformat(),
            'details': self.details,
        }, separators=(',', ':'))

    @classmethod
    def from_json(cls, record: str) -> 'SecurityEvent':
        data = json.loads(record)
        return cls(
            event_type=EventType(data['type']),
            user_hash=data['user'],
            timestamp=data['time'],
            details=data.get('details', {}),
        )

    def __str__(self) -> str:
        dt = datetime.fromtimestamp(self.timestamp)
        return (
            f"[{dt.strftime('%Y-%m-%d %H:%M:%S')}] "
            f"{self.event_type.value} | "
            f"user:{self.user_hash[:8]}..."
        )


# ============================================================================
# Event Logger
# ============================================================================

class EventLogger:
    """
    Audit logger for security events.

    Keeps the event history in memory and forwards each event to the
    ``authvault.audit`` logger. Failures and lockouts go out at WARNING,
    everything else at INFO.
    """

    def __init__(self, max_events: Optional[int] = 10000):
        """
        Args:
            max_events: History size limit (None for unbounded)
        """
        self._events: List[SecurityEvent] = []
        self._max_events = max_events
        self._callbacks: List[Callable[[SecurityEvent], None]] = []

    def log(self, event_type: EventType, username: str,
            details: Optional[Dict[str, Any]] = None,
            timestamp: float = None) -> SecurityEvent:
        """
        Record an event for a user.

        Args:
            event_type: Kind of event
            username: Plaintext username (hashed before storage)
            details: Extra non-sensitive fields
            timestamp: Unix timestamp (uses current time if None)

        Returns:
            The recorded SecurityEvent
        """
        event = SecurityEvent(
            event_type=event_type,
            user_hash=get_user_hash(username),
            timestamp=int(time.time() if timestamp is None else timestamp),
            details=dict(details or {}),
        )
        self._add_event(event)
        return event

    def _add_event(self, event: SecurityEvent) -> None:
        self._events.append(event)
        if self._max_events is not None and len(self._events) > self._max_events:
            del self._events[:len(self._events) - self._max_events]

        level = logging.WARNING if event.event_type in _WARNING_EVENTS else logging.INFO
        audit_logger.log(level, "%s", event.to_json())

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception:
                # A failing sink must not change the auth outcome
                audit_logger.exception("Audit callback failed for %s", event.event_type.value)

    def on_event(self, callback: Callable[[SecurityEvent], None]) -> None:
        """Register a callback invoked for every new event."""
        self._callbacks.append(callback)

    def get_events(self, event_type: Optional[EventType] = None,
                   username: Optional[str] = None) -> List[SecurityEvent]:
        """
        Query recorded events.

        Args:
            event_type: Only events of this type
            username: Only events for this user

        Returns:
            Matching events, oldest first
        """
        user_hash = get_user_hash(username) if username is not None else None
        return [
            e for e in self._events
            if (event_type is None or e.event_type == event_type)
            and (user_hash is None or e.user_hash == user_hash)
        ]

    def count(self, event_type: Optional[EventType] = None) -> int:
        return len(self.get_events(event_type))

    def clear(self) -> None:
        self._events.clear()
