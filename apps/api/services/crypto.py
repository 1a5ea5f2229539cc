"""
Credential hashing: bcrypt password hashes and keyed refresh-token digests.
"""

import logging

import bcrypt
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from config import settings

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10


def hash_password(password: str) -> str:
    """
    Hash a password for storage.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain text password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError as exc:
        logger.error("Password verification error: %s", exc)
        return False


def _refresh_mac() -> hmac.HMAC:
    return hmac.HMAC(settings.REFRESH_TOKEN_SECRET.encode("utf-8"), hashes.SHA256())


def digest_refresh_token(token: str) -> str:
    """
    Keyed digest of a refresh token; only the digest is persisted.

    Args:
        token: Encoded refresh token

    Returns:
        Hex-encoded HMAC-SHA256
    """
    mac = _refresh_mac()
    mac.update(token.encode("utf-8"))
    return mac.finalize().hex()


def refresh_token_matches(token: str, stored_digest: str) -> bool:
    """Constant-time comparison of a presented refresh token with the stored digest."""
    if not token or not stored_digest:
        return False
    mac = _refresh_mac()
    mac.update(token.encode("utf-8"))
    try:
        mac.verify(bytes.fromhex(stored_digest))
    except (InvalidSignature, ValueError):
        return False
    return True
