"""
settings_store.py — runtime-editable pipeline settings.

Priority order (same pattern as key_store.py):
  1. Database (set via set()) — takes precedence, no restart needed
  2. Environment variable / .env file — fallback / bootstrap

All settings are stored as strings in the DB and cast to the right type on read.
"""
from __future__ import annotations

import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

_db = None


def _get_db():
    global _db
    if _db is None:
        import database as db
        _db = db
    return _db


# ── Setting definitions ────────────────────────────────────────────────────────
# Each entry: key → (env_var, default, type, label, description, choices)
# type: "str" | "int" | "float" | "bool"

SETTINGS_META: dict[str, dict] = {
    "classifier_backend": {
        "env": "CLASSIFIER_BACKEND",
        "default": "cloud_vision",
        "type": "str",
        "label": "Classifier Backend",
        "desc": "Which backend labels each region",
        "choices": ["local", "cloud_vision", "llm"],
    },
    "local_model_id": {
        "env": "LOCAL_MODEL_ID",
        "default": "google/mobilenet_v2_1.0_224",
        "type": "str",
        "label": "Local Model",
        "desc": "Hugging Face image-classification checkpoint",
        "choices": [],
    },
    "llm_model": {
        "env": "LLM_MODEL",
        "default": "gpt-4o",
        "type": "str",
        "label": "LLM Model",
        "desc": "Chat-completion model used by the llm backend",
        "choices": [],
    },
    "llm_max_tokens": {
        "env": "LLM_MAX_TOKENS",
        "default": "1000",
        "type": "int",
        "label": "LLM Max Tokens",
        "desc": "Upper bound on the product description length",
        "choices": [],
    },
    "marketplace_enrichment": {
        "env": "MARKETPLACE_ENRICHMENT",
        "default": "true",
        "type": "bool",
        "label": "Marketplace Enrichment",
        "desc": "Search PA-API for cloud vision results",
        "choices": ["true", "false"],
    },
}

# Settings whose change invalidates the router's cached backend
_BACKEND_KEYS = {"classifier_backend", "local_model_id", "llm_model", "llm_max_tokens"}


def _cast(raw: str, typ: str) -> Any:
    if typ == "bool":
        return raw.strip().lower() in ("true", "1", "yes")
    if typ == "int":
        return int(raw.strip())
    if typ == "float":
        return float(raw.strip())
    return raw.strip()


def _validate(key: str, raw: str, meta: dict) -> None:
    _cast(raw, meta["type"])  # raises ValueError/TypeError on bad input
    if meta["choices"] and meta["type"] == "str" and raw.strip() not in meta["choices"]:
        raise ValueError(f"{key} must be one of {', '.join(meta['choices'])}")


async def get(key: str) -> Any:
    """Return the current value for a setting, DB first then env/default."""
    meta = SETTINGS_META.get(key)
    if meta is None:
        raise KeyError(f"Unknown setting: {key}")

    try:
        raw = await _get_db().get_setting(key)
        if raw is not None:
            return _cast(raw, meta["type"])
    except Exception as exc:
        logger.warning("settings_store: DB lookup failed for %s: %s", key, exc)

    env_val = os.getenv(meta["env"], "").strip()
    raw = env_val if env_val else meta["default"]
    return _cast(raw, meta["type"])


async def get_raw(key: str) -> str:
    """Return raw string value (for display)."""
    meta = SETTINGS_META[key]
    try:
        raw = await _get_db().get_setting(key)
        if raw is not None:
            return raw
    except Exception as exc:
        logger.warning("settings_store: DB lookup failed for %s: %s", key, exc)
    env_val = os.getenv(meta["env"], "").strip()
    return env_val if env_val else meta["default"]


async def set(key: str, value: str, admin_id: int) -> None:
    """Persist a setting to DB and apply it live to the config module."""
    meta = SETTINGS_META.get(key)
    if meta is None:
        raise KeyError(f"Unknown setting: {key}")

    _validate(key, value, meta)
    await _get_db().set_setting(key, value, admin_id)
    _apply_to_config(key, value, meta["type"])


async def delete(key: str) -> None:
    """Remove a setting from DB (falls back to .env / default)."""
    meta = SETTINGS_META.get(key)
    if meta is None:
        raise KeyError(f"Unknown setting: {key}")
    await _get_db().delete_setting(key)
    # Revert config to env/default
    env_val = os.getenv(meta["env"], "").strip()
    raw = env_val if env_val else meta["default"]
    _apply_to_config(key, raw, meta["type"])


async def get_all() -> dict[str, str]:
    """Return all settings as raw strings (source: DB or env/default)."""
    result = {}
    for key in SETTINGS_META:
        result[key] = await get_raw(key)
    return result


def _apply_to_config(key: str, raw: str, typ: str) -> None:
    """Immediately update the live config module so no restart is needed."""
    import config as cfg
    value = _cast(raw, typ)
    attr = key.upper()
    if hasattr(cfg, attr):
        setattr(cfg, attr, value)
        logger.info("settings_store: config.%s = %r (live)", attr, value)
    if key in _BACKEND_KEYS:
        import providers.router as router
        router.reset_backend()
