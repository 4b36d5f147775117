"""
iam_core.auth.passwords

Password hashing boundary.

Responsibilities:
- Keep raw secrets (`SecretStr`) and stored hashes (`PasswordHash`) as distinct types.
- Hash exactly once, at registration/update time, with bcrypt.
"""

from __future__ import annotations

from typing import NewType

import bcrypt
from pydantic import SecretStr

PasswordHash = NewType("PasswordHash", str)

# bcrypt only looks at the first 72 bytes; longer inputs are rejected by the API schemas.
MAX_PASSWORD_BYTES = 72

# Checked against when a login names no known principal, so that path costs one bcrypt
# verification like a wrong password does.
DUMMY_PASSWORD_HASH = PasswordHash(
    bcrypt.hashpw(b"iam-core-no-such-principal", bcrypt.gensalt()).decode("ascii")
)


def hash_password(raw: SecretStr) -> PasswordHash:
    secret = raw.get_secret_value().encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        raise ValueError("password exceeds 72 bytes")
    return PasswordHash(bcrypt.hashpw(secret, bcrypt.gensalt()).decode("ascii"))


def verify_password(raw: SecretStr, hashed: PasswordHash | str) -> bool:
    secret = raw.get_secret_value().encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(secret, hashed.encode("ascii"))
    except ValueError:
        # Malformed stored hash: treat as a mismatch rather than a server error.
        return False
