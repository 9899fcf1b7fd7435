"""Customer contact helpers: SMS number normalisation and response masking."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str | None, default_country_code: str) -> str:
    """Return ``phone`` in international ``+<digits>`` form, or ``""`` if empty.

    A leading ``+`` is kept verbatim.  Otherwise only digits are kept and
    ``00`` becomes ``+``, a national trunk ``0`` becomes the default country
    code, and anything else is prefixed with ``+``.
    """
    value = (phone or "").strip()
    if not value:
        return ""
    if value.startswith("+"):
        return value

    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return ""
    if digits.startswith("00"):
        return f"+{digits[2:]}"
    if digits.startswith("0"):
        return f"+{default_country_code}{digits[1:]}"
    return f"+{digits}"


def mask_phone(phone: str) -> str:
    """``+447123456789`` -> ``+447*******89``."""
    if len(phone) <= 6:
        return "*" * len(phone)
    return phone[:4] + "*" * (len(phone) - 6) + phone[-2:]


def mask_email(email: str) -> str:
    """``jane.doe@example.com`` -> ``ja******@example.com``."""
    local, sep, domain = email.partition("@")
    if not sep:
        return mask_phone(email)
    return local[:2] + "*" * max(len(local) - 2, 0) + "@" + domain
