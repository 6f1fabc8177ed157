"""
Integration tests for AuthVault.

Tests end-to-end workflows combining multiple modules.
"""

import json
import logging
import threading

import pytest

from authvault.auth.lockout import LOCKOUT_DURATION_SECONDS, MAX_FAILED_ATTEMPTS
from authvault.auth.login import LoginManager
from authvault.auth.registration import UserRegistration
from authvault.auth.totp import compute_code, get_time_window
from authvault.integration.event_logger import (
    EventLogger, EventType, SecurityEvent, get_user_hash
)
from authvault.main import main

from .conftest import PASSWORD


class TestAuthWorkflow:
    """Integration tests for the login workflow."""

    def test_full_registration_login_flow(self, registration, clock):
        """Register -> login -> verify session -> logout."""
        mgr = LoginManager(registration.users, clock=clock)

        result = mgr.login("alice", PASSWORD)
        assert result['success'], result['message']
        token = result['token']
        assert mgr.verify_session("alice", token)
        assert registration.users["alice"].last_login_at == clock.now

        assert mgr.logout("alice", token)['success']
        assert not mgr.verify_session("alice", token)
        assert not mgr.logout("alice", token)['success']

    def test_unknown_user_generic_failure(self, registration, clock):
        """Unknown users get the same message as wrong passwords."""
        mgr = LoginManager(registration.users, clock=clock)
        unknown = mgr.login("nobody", PASSWORD)
        wrong = mgr.login("alice", "Wrong!Pass1")
        assert not unknown['success'] and not wrong['success']
        assert unknown['message'] == wrong['message']

    def test_inactive_account_rejected(self, registration, clock):
        """Deactivated accounts cannot log in."""
        registration.users["alice"].is_active = False
        assert not LoginManager(registration.users, clock=clock).login("alice", PASSWORD)['success']

    def test_custom_session_issuer(self, registration, clock):
        """Tokens come from the injected issuer."""
        tokens = iter(["tok-1", "tok-2"])
        mgr = LoginManager(registration.users, session_issuer=lambda: next(tokens), clock=clock)
        assert mgr.login("alice", PASSWORD)['token'] == "tok-1"
        assert mgr.login("alice", PASSWORD)['token'] == "tok-2"

        result = mgr.logout_everywhere("alice")
        assert result['sessions'] == 2
        assert not mgr.verify_session("alice", "tok-1")

    def test_success_returns_permissions(self, registration, clock):
        """Successful login reports role permissions."""
        result = LoginManager(registration.users, clock=clock).login("alice", PASSWORD)
        assert 'place_order' in result['permissions']


class TestLockoutWorkflow:
    """Integration tests for lockout through LoginManager."""

    def test_lockout_after_five_failures(self, registration, clock):
        """Five wrong passwords lock the account even for the right one."""
        mgr = LoginManager(registration.users, clock=clock)
        for i in range(MAX_FAILED_ATTEMPTS - 1):
            result = mgr.login("alice", "Wrong!Pass1")
            assert not result['locked']
            assert result['attempts_remaining'] == MAX_FAILED_ATTEMPTS - 1 - i

        result = mgr.login("alice", "Wrong!Pass1")
        assert result['locked']
        assert mgr.is_locked("alice")

        blocked = mgr.login("alice", PASSWORD)
        assert not blocked['success']
        assert blocked['locked']
        assert blocked['lockout_remaining'] == LOCKOUT_DURATION_SECONDS

    def test_lockout_expires(self, registration, clock):
        """After the window the correct password works again."""
        mgr = LoginManager(registration.users, clock=clock)
        for _ in range(MAX_FAILED_ATTEMPTS):
            mgr.login("alice", "Wrong!Pass1")

        clock.advance(LOCKOUT_DURATION_SECONDS + 1)
        assert not mgr.is_locked("alice")
        assert registration.users["alice"].security.failed_attempts == 0
        assert mgr.login("alice", PASSWORD)['success']

    def test_success_resets_counter(self, registration, clock):
        """A good login clears earlier failures."""
        mgr = LoginManager(registration.users, clock=clock)
        for _ in range(3):
            mgr.login("alice", "Wrong!Pass1")
        assert mgr.login("alice", PASSWORD)['success']
        assert registration.users["alice"].security.failed_attempts == 0

    def test_concurrent_failures_single_lockout(self, registration, clock):
        """Concurrent wrong passwords produce one consistent lockout."""
        mgr = LoginManager(registration.users, clock=clock)
        results = []
        results_lock = threading.Lock()
        start = threading.Barrier(20)

        def attempt():
            start.wait()
            result = mgr.login("alice", "Wrong!Pass1")
            with results_lock:
                results.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        state = registration.users["alice"].security
        assert state.failed_attempts == MAX_FAILED_ATTEMPTS
        assert state.locked
        assert state.lockout_until == clock.now + LOCKOUT_DURATION_SECONDS
        assert sum(1 for r in results if 'lockout_remaining' in r) == 20 - MAX_FAILED_ATTEMPTS


class TestMFAWorkflow:
    """Integration tests for TOTP and backup codes at login."""

    def test_second_factor_required(self, mfa_account, clock):
        """Password alone is not enough once MFA is on."""
        reg, account, _, _ = mfa_account
        result = LoginManager(reg.users, clock=clock).login("alice", PASSWORD)
        assert not result['success']
        assert result['requires_second_factor']
        assert account.security.failed_attempts == 0

    def test_login_with_totp(self, mfa_account, clock):
        """A valid TOTP code completes login."""
        reg, _, secret, _ = mfa_account
        code = compute_code(secret, get_time_window(clock.now))
        assert LoginManager(reg.users, clock=clock).login("alice", PASSWORD, code)['success']

    def test_login_with_previous_window_code(self, mfa_account, clock):
        """A code from the previous window is still accepted."""
        reg, _, secret, _ = mfa_account
        code = compute_code(secret, get_time_window(clock.now) - 1)
        assert LoginManager(reg.users, clock=clock).login("alice", PASSWORD, code)['success']

    def test_wrong_totp_counts_as_failure(self, mfa_account, clock):
        """A wrong code increments the failure counter."""
        reg, account, secret, _ = mfa_account
        valid = {compute_code(secret, get_time_window(clock.now) + d) for d in (-1, 0, 1)}
        wrong = next(c for c in ("000000", "111111", "222222", "333333") if c not in valid)

        result = LoginManager(reg.users, clock=clock).login("alice", PASSWORD, wrong)
        assert not result['success']
        assert account.security.failed_attempts == 1

    def test_backup_code_single_use(self, mfa_account, clock):
        """A backup code logs in once, then fails."""
        reg, account, _, codes = mfa_account
        mgr = LoginManager(reg.users, clock=clock)

        assert mgr.login("alice", PASSWORD, codes[0])['success']
        assert account.backup_codes.remaining == len(codes) - 1

        replay = mgr.login("alice", PASSWORD, codes[0])
        assert not replay['success']
        assert account.security.failed_attempts == 1

    def test_wrong_password_never_consumes_backup_code(self, mfa_account, clock):
        """Backup codes are only checked after the password passes."""
        reg, account, _, codes = mfa_account
        LoginManager(reg.users, clock=clock).login("alice", "Wrong!Pass1", codes[1])
        assert account.backup_codes.remaining == len(codes)


class TestEventLogging:
    """Integration tests for the audit trail."""

    def test_login_events_recorded(self, registration, clock):
        """Failures, lockout and success appear in the audit log."""
        events = EventLogger()
        mgr = LoginManager(registration.users, clock=clock, event_logger=events)

        mgr.login("alice", PASSWORD)
        for _ in range(MAX_FAILED_ATTEMPTS):
            mgr.login("alice", "Wrong!Pass1")
        mgr.login("alice", PASSWORD)

        assert events.count(EventType.LOGIN_SUCCESS) == 1
        assert events.count(EventType.LOGIN_FAILED) == MAX_FAILED_ATTEMPTS
        assert events.count(EventType.ACCOUNT_LOCKED) == 1
        assert events.count(EventType.LOGIN_LOCKED) == 1
        assert len(events.get_events(username="alice")) == len(events.get_events())

    def test_user_hashed_in_events(self):
        """Usernames are stored as SHA-256 digests."""
        events = EventLogger()
        event = events.log(EventType.LOGIN_SUCCESS, "alice", timestamp=1_700_000_000)
        assert event.user_hash == get_user_hash("alice")
        assert "alice" not in event.to_json()

    def test_event_json_round_trip(self):
        """Events survive JSON serialization."""
        event = SecurityEvent(EventType.TOTP_FAILED, get_user_hash("bob"), 1_700_000_000, {'n': 1})
        data = json.loads(event.to_json())
        assert data['type'] == "totp_failed"
        restored = SecurityEvent.from_json(event.to_json())
        assert restored.event_type == EventType.TOTP_FAILED
        assert restored.details == {'n': 1}

    def test_events_forwarded_to_logging(self, caplog):
        """Failures reach the audit logger at WARNING."""
        events = EventLogger()
        with caplog.at_level(logging.INFO, logger="authvault.audit"):
            events.log(EventType.LOGIN_FAILED, "alice")
            events.log(EventType.LOGOUT, "alice")

        levels = [r.levelno for r in caplog.records if r.name == "authvault.audit"]
        assert levels == [logging.WARNING, logging.INFO]

    def test_history_bounded(self):
        """Old events are dropped past max_events."""
        events = EventLogger(max_events=3)
        for _ in range(5):
            events.log(EventType.LOGOUT, "alice")
        assert events.count() == 3

    def test_callbacks(self):
        """Registered callbacks see each event."""
        seen = []
        events = EventLogger()
        events.on_event(seen.append)
        events.log(EventType.MFA_ENABLED, "alice")
        assert [e.event_type for e in seen] == [EventType.MFA_ENABLED]

    def test_failing_callback_does_not_break_login(self, registration, clock, caplog):
        """A raising callback is logged and login still returns its result."""
        events = EventLogger()
        seen = []

        def broken_sink(event):
            raise RuntimeError("sink offline")

        events.on_event(broken_sink)
        events.on_event(seen.append)
        mgr = LoginManager(registration.users, clock=clock, event_logger=events)

        with caplog.at_level(logging.ERROR, logger="authvault.audit"):
            ok = mgr.login("alice", PASSWORD)
            bad = mgr.login("alice", "Wrong!Pass1")

        assert ok['success'] and ok['token']
        assert mgr.verify_session("alice", ok['token'])
        assert not bad['success']
        assert registration.users["alice"].security.failed_attempts == 1
        assert [e.event_type for e in seen] == [EventType.LOGIN_SUCCESS, EventType.LOGIN_FAILED]
        assert events.count() == 2
        assert "Audit callback failed" in caplog.text

    def test_secrets_not_logged(self, mfa_account, clock, caplog):
        """Passwords, codes and tokens never reach the logs."""
        reg, _, secret, codes = mfa_account
        code = compute_code(secret, get_time_window(clock.now))
        mgr = LoginManager(reg.users, clock=clock, event_logger=EventLogger())

        with caplog.at_level(logging.DEBUG):
            token = mgr.login("alice", PASSWORD, code)['token']
            mgr.login("alice", PASSWORD, codes[2])

        for sensitive in (PASSWORD, secret, code, codes[2], token):
            assert sensitive not in caplog.text


class TestMain:
    """Smoke test for the demo entry point."""

    def test_main_runs(self, capsys):
        """The walkthrough enrolls MFA and logs in."""
        result = main()
        assert result['success']
        assert "otpauth://totp/" in capsys.readouterr().out
