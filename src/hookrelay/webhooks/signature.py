"""HMAC-SHA256 verification of inbound webhook requests.

The sender signs ``"{timestamp}.{raw_body}"`` with the shared secret and
sends the hex digest (optionally prefixed with ``sha256=``) alongside the
timestamp it signed. Verification checks, in order:

1. a secret is configured (or unsigned mode is allowed)
2. both headers are present
3. the timestamp parses
4. the timestamp is within the skew tolerance
5. the signature matches, compared in constant time
"""

from __future__ import annotations

import hashlib
import hmac
import math
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

SignatureFailure = Literal[
    "missing_webhook_secret",
    "missing_signature_headers",
    "invalid_timestamp",
    "timestamp_out_of_range",
    "signature_mismatch",
]

DEFAULT_SIGNATURE_HEADER = "x-webhook-signature"
DEFAULT_TIMESTAMP_HEADER = "x-webhook-timestamp"
SIGNATURE_PREFIX = "sha256="

HeaderValue = str | list[str] | tuple[str, ...] | None

# Plain decimal, optionally signed, with optional fraction and exponent
_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


@dataclass(frozen=True)
class SignatureResult:
    """Verification verdict. ``reason`` is set only when ``ok`` is False."""

    ok: bool
    reason: SignatureFailure | None = None


SIGNATURE_OK = SignatureResult(ok=True)


def _as_bytes(raw_body: bytes | str) -> bytes:
    if isinstance(raw_body, bytes):
        return raw_body
    return raw_body.encode("utf-8")


def get_header(headers: Mapping[str, HeaderValue], name: str) -> str:
    """Case-insensitive header lookup returning "" when absent.

    List-valued headers yield their first value.
    """
    wanted = name.lower()
    value: HeaderValue = None
    for key, candidate in headers.items():
        if key.lower() == wanted:
            value = candidate
            break
    if isinstance(value, list | tuple):
        value = value[0] if value else None
    return value if isinstance(value, str) else ""


def parse_timestamp(value: str) -> float | None:
    """Parse a signing timestamp into epoch milliseconds.

    Values of at most 10 characters are treated as seconds, longer ones as
    milliseconds.

    Returns:
        Milliseconds since the epoch, or None if the value is not a finite number.
    """
    raw = (value or "").strip()
    if not _NUMBER_RE.fullmatch(raw):
        return None
    number = float(raw)
    if not math.isfinite(number):
        return None
    if len(raw) <= 10:
        return number * 1000.0
    return number


def compute_signature(raw_body: bytes | str, timestamp: str, secret: str) -> str:
    """Compute the signature a sender attaches to a webhook.

    Args:
        raw_body: Exact request body.
        timestamp: Timestamp header value being signed.
        secret: Shared secret.

    Returns:
        Signature in format "sha256=<hex_digest>".
    """
    digest = hmac.new(
        key=secret.encode("utf-8"),
        msg=timestamp.encode("utf-8") + b"." + _as_bytes(raw_body),
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_webhook_signature(
    raw_body: bytes | str,
    headers: Mapping[str, HeaderValue],
    secret: str | None,
    allow_unsigned: bool,
    max_skew_ms: float,
    *,
    signature_header: str = DEFAULT_SIGNATURE_HEADER,
    timestamp_header: str = DEFAULT_TIMESTAMP_HEADER,
    now_ms: float | None = None,
) -> SignatureResult:
    """Verify authenticity and freshness of an inbound webhook.

    Args:
        raw_body: Request body exactly as received, before any parsing.
        headers: Request headers.
        secret: Shared secret; None or "" means no secret configured.
        allow_unsigned: Accept any request when no secret is configured.
        max_skew_ms: Maximum allowed |now - timestamp| in milliseconds.
        signature_header: Name of the signature header.
        timestamp_header: Name of the timestamp header.
        now_ms: Current time in epoch milliseconds (defaults to the wall clock).

    Returns:
        SignatureResult with ok=True, or ok=False and the failure reason.
    """
    if not secret:
        if allow_unsigned:
            return SIGNATURE_OK
        return SignatureResult(ok=False, reason="missing_webhook_secret")

    signature = get_header(headers, signature_header)
    timestamp = get_header(headers, timestamp_header)
    if not signature or not timestamp:
        return SignatureResult(ok=False, reason="missing_signature_headers")

    timestamp_ms = parse_timestamp(timestamp)
    if timestamp_ms is None:
        return SignatureResult(ok=False, reason="invalid_timestamp")

    if now_ms is None:
        now_ms = time.time() * 1000.0
    if abs(now_ms - timestamp_ms) > max_skew_ms:
        return SignatureResult(ok=False, reason="timestamp_out_of_range")

    provided = signature.removeprefix(SIGNATURE_PREFIX).encode("utf-8")
    expected = compute_signature(raw_body, timestamp, secret).removeprefix(SIGNATURE_PREFIX)
    expected_bytes = expected.encode("utf-8")

    if len(provided) != len(expected_bytes):
        return SignatureResult(ok=False, reason="signature_mismatch")
    if not hmac.compare_digest(provided, expected_bytes):
        return SignatureResult(ok=False, reason="signature_mismatch")
    return SIGNATURE_OK
