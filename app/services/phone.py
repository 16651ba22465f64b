"""Phone number normalization for the messaging gateways."""

from __future__ import annotations

import re

from app.services.errors import InvalidPhoneFormat

_NON_DIGITS = re.compile(r"\D")
_CHANNEL_PREFIX = re.compile(r"^(whatsapp|sms):", re.IGNORECASE)


def to_e164(raw: str | None) -> str:
    """Return ``raw`` as +<country><number>.

    Ten bare digits are treated as a US number. Fewer than ten digits
    cannot be dialled and raise ``InvalidPhoneFormat``.
    """
    if not raw:
        raise InvalidPhoneFormat("Phone number is empty")
    digits = _NON_DIGITS.sub("", _CHANNEL_PREFIX.sub("", raw.strip()))
    if len(digits) < 10:
        raise InvalidPhoneFormat(f"Invalid phone number: {raw!r}")
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def is_valid_phone(raw: str | None) -> bool:
    try:
        to_e164(raw)
    except InvalidPhoneFormat:
        return False
    return True


def same_number(a: str | None, b: str | None) -> bool:
    """Compare two numbers after normalization; unparseable numbers never match."""
    try:
        return to_e164(a) == to_e164(b)
    except InvalidPhoneFormat:
        return False
