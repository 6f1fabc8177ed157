# Authentication Module
"""
Authentication implementations including:
- Salted SHA-256 password credentials - registration.py
- TOTP (2FA, RFC 6238) and MFA enrollment - totp.py
- Single-use backup codes - backup_codes.py
- Account lockout and session tracking - lockout.py
- Login orchestration - login.py
- Roles and permissions - roles.py

Security features:
- Constant-time comparison for codes and hashes
- Cryptographically secure random secrets, salts and codes
- Lockout after repeated failed logins
"""

from .account import Account, Credential

from .roles import (
    Role,
    permissions_for,
)

from .registration import (
    UserRegistration,
    hash_password,
    generate_salt,
    set_password,
    check_password,
    validate_password_strength,
)

from .totp import (
    TOTPManager,
    generate_secret,
    compute_code,
    get_current_code,
    get_time_window,
    verify_code,
    provisioning_uri,
    qr_code_url,
)

from .backup_codes import (
    BackupCodeLedger,
    generate_backup_codes,
)

from .lockout import SecurityState

from .login import (
    LoginManager,
    generate_session_token,
)

__all__ = [
    # Account
    'Account',
    'Credential',
    'Role',
    'permissions_for',

    # Registration
    'UserRegistration',
    'hash_password',
    'generate_salt',
    'set_password',
    'check_password',
    'validate_password_strength',

    # TOTP
    'TOTPManager',
    'generate_secret',
    'compute_code',
    'get_current_code',
    'get_time_window',
    'verify_code',
    'provisioning_uri',
    'qr_code_url',

    # Backup codes
    'BackupCodeLedger',
    'generate_backup_codes',

    # Lockout / login
    'SecurityState',
    'LoginManager',
    'generate_session_token',
]
