"""
Pytest configuration and shared fixtures for AuthVault tests.

This module provides common test fixtures for:
- Cheap Argon2 hashing of backup codes
- Registered accounts with and without MFA
- A controllable clock
"""
import pytest
from argon2 import PasswordHasher, Type

from authvault.auth.registration import UserRegistration
from authvault.auth.totp import TOTPManager, get_current_code


PASSWORD = "SecureP@ss123!"


class FakeClock:
    """Callable clock whose time the test moves by hand."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fast_hasher():
    """Minimal-cost Argon2id hasher so ledger tests stay fast."""
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1,
                          hash_len=16, salt_len=8, type=Type.ID)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registration():
    reg = UserRegistration()
    result = reg.register_user("alice", PASSWORD, "alice@example.com")
    assert result['success']
    return reg


@pytest.fixture
def mfa_account(registration, fast_hasher):
    """
    Account 'alice' with MFA enabled.

    Returns:
        Tuple of (registration, account, secret, backup_codes)
    """
    account = registration.users["alice"]
    mgr = TOTPManager(backup_hasher=fast_hasher)
    secret, _, _ = mgr.begin_enrollment(account)
    ok, codes = mgr.confirm_enrollment(account, get_current_code(secret))
    assert ok
    return registration, account, secret, codes
