# AuthVault
"""
Authentication-security core: TOTP multi-factor authentication, Base32
codec, backup codes, salted password credentials and account lockout.
"""

__version__ = "1.0.0"
