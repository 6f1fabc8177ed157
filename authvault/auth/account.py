"""
Account record as seen by the auth core.

Holds the security-relevant fields of a marketplace user: credential,
TOTP secret, backup-code ledger, lockout state and role. Persistence
belongs to the caller; this is an in-memory value.

Field mutators never stamp ``updated_at`` on their own. Call ``touch()``
after a change that should be recorded.
"""

import secrets
import time
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from .backup_codes import BackupCodeLedger
from .lockout import SecurityState
from .roles import Role, permissions_for


@dataclass(frozen=True)
class Credential:
    """Salted password digest. Replaced as a whole on every password change."""
    password_hash: str
    password_salt: str
    last_changed: float


@dataclass
class Account:
    """Security view of a user account."""
    username: str
    role: Role = Role.CUSTOMER
    email: Optional[str] = None
    is_admin: bool = False
    is_active: bool = True
    user_id: str = field(default_factory=lambda: secrets.token_hex(16))
    credential: Optional[Credential] = None
    totp_secret: Optional[str] = None
    backup_codes: Optional[BackupCodeLedger] = None
    security: SecurityState = field(default_factory=SecurityState)
    created_at: float = field(default_factory=time.time)
    updated_at: Optional[float] = None
    last_login_at: Optional[float] = None

    def touch(self, now: float = None) -> None:
        """Stamp ``updated_at``."""
        self.updated_at = time.time() if now is None else now

    @property
    def two_factor_enabled(self) -> bool:
        return self.totp_secret is not None

    def enable_two_factor(self, secret: str, ledger: BackupCodeLedger) -> None:
        """Install a confirmed TOTP secret together with its backup codes."""
        self.totp_secret = secret
        self.backup_codes = ledger

    def disable_two_factor(self) -> None:
        self.totp_secret = None
        self.backup_codes = None

    @property
    def permissions(self) -> FrozenSet[str]:
        return permissions_for(self.role, self.is_admin)

    def has_permission(self, permission: str) -> bool:
        return permission.lower() in self.permissions

    def public_view(self) -> dict:
        """Account data safe to hand out (no hashes, secrets or tokens)."""
        return {
            'user_id': self.user_id,
            'username': self.username,
            'email': self.email,
            'role': self.role.value,
            'is_admin': self.is_admin,
            'totp_enabled': self.two_factor_enabled,
        }
