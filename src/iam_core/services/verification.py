"""
iam_core.services.verification

Email verification codes as pure functions over plain values.

The caller stores the issued code/expiry on the client record and, after a
successful check, marks the record verified.
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

VERIFICATION_CODE_TTL = timedelta(minutes=15)


@dataclass(frozen=True, slots=True)
class VerificationCode:
    code: str
    expires_at: datetime


def issue_verification_code(now: datetime) -> VerificationCode:
    # Six digits, never starting with zero.
    code = str(100000 + secrets.randbelow(900000))
    return VerificationCode(code=code, expires_at=now + VERIFICATION_CODE_TTL)


def check_verification_code(
    *,
    stored_code: str | None,
    expires_at: datetime | None,
    presented: str,
    now: datetime,
) -> bool:
    if not stored_code or expires_at is None:
        return False
    if now > expires_at:
        return False
    return hmac.compare_digest(stored_code.encode(), presented.encode())
