"""
key_store.py — single source of truth for all API keys and credentials.

Priority order for every key:
  1. Database (set at runtime via set()) — takes precedence
  2. Environment variable / .env file    — fallback / bootstrap

Changing a key takes effect on the NEXT API call (no restart needed,
key_store always reads fresh from DB).

Key names (stored in DB as-is, env vars are the uppercase equivalent):
  amazon_access_key      →  AMAZON_ACCESS_KEY
  amazon_secret_key      →  AMAZON_SECRET_KEY
  amazon_partner_tag     →  AMAZON_PARTNER_TAG
  amazon_region          →  AMAZON_REGION        (com / co.jp / co.uk ...)
  openai_api_key         →  OPENAI_API_KEY
  google_vision_api_key  →  GOOGLE_VISION_API_KEY
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from wardrobe import MarketplaceCredentials

logger = logging.getLogger(__name__)

KEY_NAMES = [
    "amazon_access_key",
    "amazon_secret_key",
    "amazon_partner_tag",
    "amazon_region",
    "openai_api_key",
    "google_vision_api_key",
]

# Lazy import to avoid circular dependency at module load time
_db = None


def _get_db():
    global _db
    if _db is None:
        import database as db
        _db = db
    return _db


async def get(key_name: str) -> Optional[str]:
    """
    Return the value for key_name, checking DB first then env.
    Returns None if not set anywhere.
    """
    try:
        db_val = await _get_db().get_api_key(key_name)
        if db_val:
            return db_val
    except Exception as exc:
        logger.warning("key_store: DB lookup failed for %s: %s", key_name, exc)

    env_val = os.getenv(key_name.upper())
    return env_val or None


def _invalidate_backend() -> None:
    # The router caches a backend built with the old key
    import providers.router as router
    router.reset_backend()


async def set(key_name: str, value: str, admin_id: int) -> None:
    """Save a key to the DB (overrides .env for all future calls)."""
    await _get_db().set_api_key(key_name, value, admin_id)
    _invalidate_backend()


async def delete(key_name: str) -> None:
    """Remove a key from DB (will fall back to .env value if present)."""
    await _get_db().delete_api_key(key_name)
    _invalidate_backend()


async def get_all_keys() -> dict[str, Optional[str]]:
    """Return all known keys with their current values."""
    result = {}
    for name in KEY_NAMES:
        result[name] = await get(name)
    return result


def mask(value: Optional[str]) -> str:
    """Return a masked version safe to log or display."""
    if not value:
        return "not set"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


# ── Typed loaders used by the pipeline ────────────────────────────────────────

async def load_marketplace_credentials() -> Optional[MarketplaceCredentials]:
    """
    Return PA-API credentials, or None unless access key, secret key and
    partner tag are all present. Region defaults to "com".
    """
    access = await get("amazon_access_key")
    secret = await get("amazon_secret_key")
    tag    = await get("amazon_partner_tag")
    if not (access and secret and tag):
        return None
    region = (await get("amazon_region")) or "com"
    return MarketplaceCredentials(
        access_key=access, secret_key=secret, partner_tag=tag, region=region.strip(),
    )


async def load_llm_api_key() -> Optional[str]:
    return await get("openai_api_key")


async def load_cloud_vision_api_key() -> Optional[str]:
    return await get("google_vision_api_key")
