"""Core authentication logic.

Provides password hashing and bearer-token issuance/verification.
Every decision branch is annotated with its branch-ID so white-box
tests can trace coverage back to the code (see tests/test_whitebox.py).
"""
from __future__ import annotations

import hashlib
import hmac
import os
from datetime import datetime, timedelta, timezone

import jwt

from models import TokenClaims


# ---------------------------------------------------------------------------
# Password hashing (PBKDF2-HMAC-SHA256)
# ---------------------------------------------------------------------------

_HASH_ITERATIONS = 100_000
_SALT_BYTES = 16


def hash_password(password: str) -> str:
    """Hash a plaintext password using PBKDF2-HMAC-SHA256.

    Returns a string in the format ``salt_hex$digest_hex``.  Length
    policy belongs to the validators; this only refuses an empty input.

    Branches: PWD-EMPTY, PWD-VALID
    """
    if not password:                                              # PWD-EMPTY
        raise ValueError("Password must not be empty")

    # PWD-VALID
    salt = os.urandom(_SALT_BYTES)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, _HASH_ITERATIONS
    )
    return salt.hex() + "$" + digest.hex()


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a plaintext password against a stored hash.

    Never raises: a malformed stored hash is reported as a mismatch.

    Branches: VERIFY-MATCH, VERIFY-MISMATCH, VERIFY-BAD-FMT
    """
    salt_hex, sep, digest_hex = (stored_hash or "").partition("$")
    try:
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
    except ValueError:
        return False                                              # VERIFY-BAD-FMT
    if not sep or not salt or not expected:                       # VERIFY-BAD-FMT
        return False

    computed = hashlib.pbkdf2_hmac(
        "sha256", (password or "").encode("utf-8"), salt, _HASH_ITERATIONS
    )

    if hmac.compare_digest(computed, expected):                   # VERIFY-MATCH
        return True
    return False                                                  # VERIFY-MISMATCH


# ---------------------------------------------------------------------------
# Token creation / validation (JWT, HS256)
# ---------------------------------------------------------------------------

TOKEN_TTL_SECONDS = 24 * 60 * 60
TOKEN_ALGORITHM = "HS256"
REQUIRED_TOKEN_CLAIMS = ["sub", "email", "iat", "exp"]


class InvalidTokenError(ValueError):
    """Raised for any token that cannot be trusted.

    Covers malformed, wrongly signed, expired and incomplete tokens alike;
    callers are not meant to tell these apart.
    """


def create_token(
    subject: str,
    email: str,
    secret: str,
    ttl: int = TOKEN_TTL_SECONDS,
    issued_at: datetime | None = None,
) -> str:
    """Create a signed JWT for *subject* expiring ``ttl`` seconds after issue.

    Branches: TOKEN-CREATE-OK, TOKEN-CREATE-NO-SUB, TOKEN-CREATE-NO-SECRET
    """
    if not subject:                                               # TOKEN-CREATE-NO-SUB
        raise ValueError("Token subject must not be empty")

    if not secret:                                                # TOKEN-CREATE-NO-SECRET
        raise ValueError("Token secret must not be empty")

    # TOKEN-CREATE-OK
    now = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "email": email,
        "iat": now,
        "exp": now + timedelta(seconds=ttl),
    }
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def validate_token(token: str, secret: str) -> TokenClaims:
    """Validate a token and return the identity it carries.

    Branches: TOKEN-VALID, TOKEN-EXPIRED, TOKEN-BAD-SIG, TOKEN-MALFORMED
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[TOKEN_ALGORITHM],
            options={"require": REQUIRED_TOKEN_CLAIMS},
        )
    except jwt.ExpiredSignatureError as e:                        # TOKEN-EXPIRED
        raise InvalidTokenError("Token has expired") from e
    except jwt.InvalidSignatureError as e:                        # TOKEN-BAD-SIG
        raise InvalidTokenError("Invalid token: signature mismatch") from e
    except jwt.InvalidTokenError as e:                            # TOKEN-MALFORMED
        raise InvalidTokenError(f"Malformed token: {e}") from e

    subject = payload.get("sub")
    email = payload.get("email")
    if not isinstance(subject, str) or not subject:               # TOKEN-MALFORMED
        raise InvalidTokenError("Malformed token: bad subject claim")
    if not isinstance(email, str):                                # TOKEN-MALFORMED
        raise InvalidTokenError("Malformed token: bad email claim")

    # TOKEN-VALID
    return TokenClaims(owner_id=subject, email=email)
