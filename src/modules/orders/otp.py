"""One-time passcode sub-machine.

Two credential kinds share one lifecycle:

- ``code``: a random 6-digit number delivered out-of-band (SMS or email),
  checked against ``otp_code``.
- ``link``: an opaque URL-safe token emailed as a verification link,
  checked against ``otp_token``.

Issuing a credential always replaces both fields, so only the latest one
is live, and resets ``otp_verified_at``.  A successful check clears both
credentials together with setting ``otp_verified_at``.  Once verified,
any further check succeeds as ``already_verified`` whatever the value.
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Protocol

from modules.orders.exceptions import OtpExpired, OtpMismatch, OtpNotIssued

CODE = "code"
LINK = "link"


class OtpHolder(Protocol):
    otp_code: str
    otp_token: str
    otp_expires_at: Optional[datetime]
    otp_verified_at: Optional[datetime]


def generate_code() -> str:
    # 100000..999999, never a leading zero
    return str(100_000 + secrets.randbelow(900_000))


def generate_token() -> str:
    return secrets.token_urlsafe(32)


@dataclass(frozen=True)
class IssuedCredential:
    mode: str
    value: str
    expires_at: datetime

    def as_fields(self) -> Dict[str, Any]:
        return {
            "otp_code": self.value if self.mode == CODE else "",
            "otp_token": self.value if self.mode == LINK else "",
            "otp_expires_at": self.expires_at,
            "otp_verified_at": None,
        }


@dataclass(frozen=True)
class VerificationOutcome:
    verified_at: datetime
    already_verified: bool = False

    def as_fields(self) -> Dict[str, Any]:
        return {
            "otp_code": "",
            "otp_token": "",
            "otp_expires_at": None,
            "otp_verified_at": self.verified_at,
        }


def issue(mode: str, now: datetime, expiry_minutes: int) -> IssuedCredential:
    value = generate_token() if mode == LINK else generate_code()
    return IssuedCredential(
        mode=mode,
        value=value,
        expires_at=now + timedelta(minutes=expiry_minutes),
    )


def verify(holder: OtpHolder, mode: str, supplied: str, now: datetime) -> VerificationOutcome:
    """Check ``supplied`` against the stored credential of kind ``mode``.

    Raises:
        OtpNotIssued: no credential of that kind is stored.
        OtpExpired: ``now`` is past ``otp_expires_at``.
        OtpMismatch: the values differ.
    """
    if holder.otp_verified_at:
        return VerificationOutcome(verified_at=holder.otp_verified_at, already_verified=True)

    stored = (holder.otp_code if mode == CODE else holder.otp_token) or ""
    if not stored.strip():
        raise OtpNotIssued("No verification code was issued for this order.")

    if holder.otp_expires_at is not None and now > holder.otp_expires_at:
        raise OtpExpired("Verification code expired.")

    if not hmac.compare_digest(stored.strip().encode(), (supplied or "").strip().encode()):
        raise OtpMismatch("Invalid verification code." if mode == CODE else "Invalid verification link.")

    return VerificationOutcome(verified_at=now)
