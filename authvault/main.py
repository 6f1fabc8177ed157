"""
AuthVault - Main Entry Point
Walks through registration, MFA enrollment and login.
"""

import logging

from .auth.login import LoginManager
from .auth.registration import UserRegistration
from .auth.totp import TOTPManager, get_current_code
from .integration.event_logger import EventLogger


def main():
    """Main entry point for AuthVault."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("=" * 50)
    print("Welcome to AuthVault")
    print("=" * 50)

    events = EventLogger()
    reg = UserRegistration(event_logger=events)
    reg.register_user("demo", "DemoP@ssw0rd!", "demo@example.com")
    account = reg.users["demo"]

    totp_mgr = TOTPManager(issuer="AuthVault", event_logger=events)
    secret, uri, qr_url = totp_mgr.begin_enrollment(account)
    print(f"\nSecret:  {secret}")
    print(f"URI:     {uri}")
    print(f"QR code: {qr_url}")

    ok, backup_codes = totp_mgr.confirm_enrollment(account, get_current_code(secret))
    print(f"\nMFA enabled: {ok}")
    print("Backup codes (shown once):")
    for code in backup_codes or []:
        print(f"  {code}")

    login_mgr = LoginManager(reg.users, event_logger=events)
    result = login_mgr.login("demo", "DemoP@ssw0rd!", get_current_code(secret))
    print(f"\nLogin: {result['message']}")
    return result


if __name__ == "__main__":
    main()
