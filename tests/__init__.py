# AuthVault Test Suite
"""
Test suite including:
- Unit tests
- Integration tests
- Security tests (invalid inputs)

Run with: pytest
Coverage: pytest --cov=authvault
"""
