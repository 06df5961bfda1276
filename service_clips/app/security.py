"""
Token generation and password hashing for clips.
"""

import hashlib
import hmac
import secrets

TOKEN_BYTES = 16


def generate_token() -> str:
    """Return a 32-character hex token from the OS CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_password(password: str) -> str:
    """SHA-256 hex digest of the UTF-8 password (unsalted)."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str, password_hash: str) -> bool:
    return hmac.compare_digest(hash_password(password), password_hash)
