"""
Security Utilities
Public link tokens, secret encryption at rest and masking for display
"""

import base64
import hashlib
import logging
import secrets
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from .config import NOTIFICATION_ENCRYPTION_KEY, SECRET_KEY

logger = logging.getLogger(__name__)


def _build_cipher() -> Fernet:
    if NOTIFICATION_ENCRYPTION_KEY:
        return Fernet(NOTIFICATION_ENCRYPTION_KEY.encode())
    # Derive a valid 32-byte urlsafe key from SECRET_KEY
    digest = hashlib.sha256(SECRET_KEY.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


cipher_suite = _build_cipher()


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time to prevent timing attacks"""
    return secrets.compare_digest(a.encode(), b.encode())


def encrypt_secret(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    return cipher_suite.encrypt(value.encode()).decode()


def decrypt_secret(value: Optional[str]) -> Optional[str]:
    """Decrypt a stored secret, None when it cannot be decrypted"""
    if not value:
        return value
    try:
        return cipher_suite.decrypt(value.encode()).decode()
    except InvalidToken:
        logger.error("❌ Failed to decrypt stored secret (key rotated?)")
        return None


def mask_sensitive_data(data: Optional[str], visible_chars: int = 4) -> Optional[str]:
    """Mask sensitive data for display"""
    if not data:
        return data
    if len(data) <= visible_chars:
        return "*" * len(data)

    return "*" * (len(data) - visible_chars) + data[-visible_chars:]
