"""
admin.py — HTTP admin surface for runtime settings and API keys.

Endpoints (all require "Authorization: Bearer <ADMIN_TOKEN>"):
  GET    /settings          → every setting with its raw and typed value
  PUT    /settings/{key}    → {"value": "..."} persisted, applied live
  DELETE /settings/{key}    → drop the DB override (env / default again)
  GET    /keys              → every API key, masked, with its source
  PUT    /keys/{name}       → {"value": "..."} stored in the DB
  DELETE /keys/{name}       → drop the DB value (falls back to .env)

Authentication
──────────────
A single shared token from ADMIN_TOKEN in .env. When it is unset the whole
surface answers 403. Changes are recorded in the DB under config.ADMIN_ID.
Key values are never returned unmasked.
"""
from __future__ import annotations

import hmac
import logging
from typing import Any

from aiohttp import web

import config
import database as db
import key_store
import settings_store

logger = logging.getLogger(__name__)

_KEY_LABELS: dict[str, str] = {
    "amazon_access_key":     "Amazon Access Key",
    "amazon_secret_key":     "Amazon Secret Key",
    "amazon_partner_tag":    "Amazon Partner Tag",
    "amazon_region":         "Amazon Region",
    "openai_api_key":        "OpenAI API Key",
    "google_vision_api_key": "Google Vision API Key",
}


# ── Auth ───────────────────────────────────────────────────────────────────────

def is_authorized(request: web.Request) -> bool:
    if not config.ADMIN_TOKEN:
        return False
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return False
    return hmac.compare_digest(token.strip().encode(), config.ADMIN_TOKEN.encode())


def guard(request: web.Request) -> None:
    if not config.ADMIN_TOKEN:
        raise web.HTTPForbidden(text="Admin surface is disabled (ADMIN_TOKEN not set).")
    if not is_authorized(request):
        logger.warning("Rejected admin request %s %s", request.method, request.path)
        raise web.HTTPUnauthorized(
            text="Admin access only.", headers={"WWW-Authenticate": "Bearer"},
        )


async def _read_value(request: web.Request) -> str:
    try:
        body = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(text="body must be JSON")
    value = body.get("value") if isinstance(body, dict) else None
    if value is None or isinstance(value, (dict, list)):
        raise web.HTTPBadRequest(text='body must be {"value": ...}')
    if isinstance(value, bool):
        value = "true" if value else "false"
    return str(value).strip()


# ── Settings ───────────────────────────────────────────────────────────────────

async def _settings_content() -> dict[str, dict[str, Any]]:
    raw_values = await settings_store.get_all()
    content = {}
    for key, meta in settings_store.SETTINGS_META.items():
        content[key] = {
            "label":   meta["label"],
            "desc":    meta["desc"],
            "type":    meta["type"],
            "choices": meta["choices"],
            "default": meta["default"],
            "raw":     raw_values[key],
            "value":   await settings_store.get(key),
        }
    return content


async def handle_list_settings(request: web.Request) -> web.Response:
    guard(request)
    return web.json_response(await _settings_content())


async def handle_set_setting(request: web.Request) -> web.Response:
    guard(request)
    key = request.match_info["key"]
    if key not in settings_store.SETTINGS_META:
        raise web.HTTPNotFound(text=f"Unknown setting: {key}")
    raw = await _read_value(request)
    try:
        await settings_store.set(key, raw, config.ADMIN_ID)
    except (ValueError, TypeError) as exc:
        raise web.HTTPBadRequest(text=f"Invalid value: {exc}")
    logger.info("Admin set %s = %r", key, raw)
    return web.json_response({"key": key, "raw": raw, "value": await settings_store.get(key)})


async def handle_reset_setting(request: web.Request) -> web.Response:
    guard(request)
    key = request.match_info["key"]
    if key not in settings_store.SETTINGS_META:
        raise web.HTTPNotFound(text=f"Unknown setting: {key}")
    await settings_store.delete(key)
    logger.info("Admin reset %s to default", key)
    return web.Response(status=204)


# ── API keys ───────────────────────────────────────────────────────────────────

async def _keys_content() -> dict[str, dict[str, Any]]:
    all_keys = await key_store.get_all_keys()
    stored   = await db.get_all_api_keys()
    content = {}
    for name in key_store.KEY_NAMES:
        val = all_keys.get(name)
        if stored.get(name):
            source = "db"
        elif val:
            source = "env"
        else:
            source = None
        content[name] = {
            "label":  _KEY_LABELS.get(name, name),
            "value":  key_store.mask(val),
            "source": source,
        }
    return content


def _key_name(request: web.Request) -> str:
    name = request.match_info["name"]
    if name not in key_store.KEY_NAMES:
        raise web.HTTPNotFound(text=f"Unknown key: {name}")
    return name


async def handle_list_keys(request: web.Request) -> web.Response:
    guard(request)
    return web.json_response(await _keys_content())


async def handle_set_key(request: web.Request) -> web.Response:
    guard(request)
    name  = _key_name(request)
    value = await _read_value(request)
    if not value:
        raise web.HTTPBadRequest(text="Empty value, not saved.")
    await key_store.set(name, value, config.ADMIN_ID)
    logger.info("Admin set %s = %s", name, key_store.mask(value))
    return web.json_response({"key": name, "value": key_store.mask(value), "source": "db"})


async def handle_delete_key(request: web.Request) -> web.Response:
    guard(request)
    name = _key_name(request)
    await key_store.delete(name)
    logger.info("Admin deleted %s", name)
    return web.Response(status=204)


def add_admin_routes(app: web.Application) -> None:
    app.router.add_get("/settings",           handle_list_settings)
    app.router.add_put("/settings/{key}",     handle_set_setting)
    app.router.add_delete("/settings/{key}",  handle_reset_setting)
    app.router.add_get("/keys",               handle_list_keys)
    app.router.add_put("/keys/{name}",        handle_set_key)
    app.router.add_delete("/keys/{name}",     handle_delete_key)
