"""Parsing of raw message header blocks."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from email.parser import HeaderParser
from email.utils import getaddresses, parsedate_to_datetime

from .constants import AUTHENTICATION_RESULTS_HEADER, SPOOF_INDICATOR_HEADERS
from .models import Envelope, Message

_FOLDING_RE = re.compile(r"\r?\n[ \t]+")


def unfold(value: str) -> str:
    """Join a folded header value back onto one line."""
    return _FOLDING_RE.sub(" ", value).strip()


def parse_from_header(from_value: str) -> tuple[str, str]:
    """Parse a From header into (display name, email address).

    Handles formats like:
      "John Doe <john@example.com>" -> ("John Doe", "john@example.com")
      "<john@example.com>"          -> ("", "john@example.com")
      "john@example.com"            -> ("", "john@example.com")

    Folded values are unfolded first.  Without a usable address the result
    is ("", "").
    """
    if not from_value:
        return ("", "")
    for name, address in getaddresses([unfold(from_value)]):
        if "@" in address:
            return (name.strip(), address.strip())
    return ("", "")


def parse_date(value: str | None) -> datetime | None:
    """Parse a Date header.  Naive dates are taken as UTC; junk gives None."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_addresses(values: list[str] | None) -> list[str]:
    """Extract lower-cased addresses from one or more address headers."""
    if not values:
        return []
    unfolded = [unfold(str(v)) for v in values]
    return [addr.strip().lower() for _, addr in getaddresses(unfolded) if "@" in addr]


def parse_message(message_id: str, header_text: str) -> Message:
    """Build a Message from the raw header block of a fetched message."""
    headers = HeaderParser().parsestr(header_text)

    _, address = parse_from_header(str(headers.get("From", "")))
    address = address.lower()
    domain = address.rsplit("@", 1)[-1] if "@" in address else ""

    auth_values = headers.get_all(AUTHENTICATION_RESULTS_HEADER) or []
    auth_result = "; ".join(str(v) for v in auth_values) or None

    header_names = {name.lower() for name in headers.keys()}
    spoofed = any(h.lower() in header_names for h in SPOOF_INDICATOR_HEADERS)

    return Message(
        message_id=message_id,
        from_address=address,
        from_domain=domain,
        date=parse_date(headers.get("Date")),
        authentication_result=auth_result,
        has_spoof_indicator=spoofed,
    )


def parse_envelope(message_id: str, header_text: str) -> Envelope:
    """Build an Envelope from a From/To header block."""
    headers = HeaderParser().parsestr(header_text)
    return Envelope(
        message_id=message_id,
        from_addresses=parse_addresses(headers.get_all("From")),
        to_addresses=parse_addresses(headers.get_all("To")),
    )
