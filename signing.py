"""
signing.py — AWS SigV4-style signature for Product Advertising API 5.0.

Only two headers are signed (host, x-amz-date). The output must match the
verifier byte for byte, so every separator below is significant:

  canonical request:
    METHOD\\nPATH\\n\\nhost:<host>\\nx-amz-date:<ts>\\n\\nhost;x-amz-date\\n<sha256(payload)>

  string to sign:
    AWS4-HMAC-SHA256\\n<ts>\\n<date>/<region>/ProductAdvertisingAPI/aws4_request\\n<sha256(canonical)>

  signing key:
    HMAC(HMAC(HMAC(HMAC("AWS4"+secret, date), region), service), "aws4_request")
"""
from __future__ import annotations

import hashlib
import hmac as _hmac
from datetime import datetime, timezone
from typing import Optional

from errors import ConfigError
from wardrobe import MarketplaceCredentials

ALGORITHM      = "AWS4-HMAC-SHA256"
SERVICE        = "ProductAdvertisingAPI"
TERMINATOR     = "aws4_request"
SIGNED_HEADERS = "host;x-amz-date"


def amz_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 basic UTC timestamp, e.g. 20250101T120000Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return _hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def signing_key(secret_key: str, date_stamp: str, region: str) -> bytes:
    k = _hmac_sha256(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
    k = _hmac_sha256(k, region)
    k = _hmac_sha256(k, SERVICE)
    return _hmac_sha256(k, TERMINATOR)


def credential_scope(date_stamp: str, region: str) -> str:
    return f"{date_stamp}/{region}/{SERVICE}/{TERMINATOR}"


def _check(credentials: MarketplaceCredentials, timestamp: str) -> None:
    for name in ("access_key", "secret_key", "region"):
        value = getattr(credentials, name, None)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"marketplace credentials: {name} is missing")
    if not isinstance(timestamp, str) or len(timestamp) < 8 or not timestamp[:8].isdigit():
        raise ConfigError(f"invalid signing timestamp: {timestamp!r}")


def canonical_request(host: str, method: str, path: str, payload: str, timestamp: str) -> str:
    payload_hash = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return (
        f"{method}\n{path}\n\n"
        f"host:{host}\nx-amz-date:{timestamp}\n\n"
        f"{SIGNED_HEADERS}\n{payload_hash}"
    )


def string_to_sign(region: str, canonical: str, timestamp: str) -> str:
    return "\n".join([
        ALGORITHM,
        timestamp,
        credential_scope(timestamp[:8], region),
        hashlib.sha256(canonical.encode("utf-8")).hexdigest(),
    ])


def sign(
    credentials: MarketplaceCredentials,
    method: str,
    path: str,
    payload: str,
    timestamp: str,
) -> str:
    """Return the hex signature for one request. Pure: no clock, no I/O."""
    _check(credentials, timestamp)
    canonical = canonical_request(credentials.host, method, path, payload, timestamp)
    to_sign   = string_to_sign(credentials.region, canonical, timestamp)
    key       = signing_key(credentials.secret_key, timestamp[:8], credentials.region)
    return _hmac.new(key, to_sign.encode("utf-8"), hashlib.sha256).hexdigest()


def signed_headers(
    credentials: MarketplaceCredentials,
    path: str,
    payload: str,
    timestamp: str,
) -> dict[str, str]:
    """Headers for a signed POST of `payload` to `path`."""
    signature = sign(credentials, "POST", path, payload, timestamp)
    scope = credential_scope(timestamp[:8], credentials.region)
    return {
        "Content-Type": "application/json",
        "X-Amz-Date":   timestamp,
        "Authorization": (
            f"{ALGORITHM} Credential={credentials.access_key}/{scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
        ),
    }
