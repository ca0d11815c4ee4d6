"""
Tests for settings_store.py.

Covers:
  - _cast(): str / int / float / bool conversions + invalid input
  - get(): DB value → env fallback → default priority chain
  - get_raw(): raw string representation
  - set(): validates choices, persists to DB, applies to config live,
           drops the cached classifier backend
  - delete(): removes from DB and reverts config to env/default
  - get_all(): returns all settings as raw strings
"""
from __future__ import annotations

import pytest
import pytest_asyncio

import config
import database as db
import settings_store
from providers import router


@pytest_asyncio.fixture(autouse=True)
async def init_db(tmp_data_dir):
    await db.init_db()


@pytest.fixture(autouse=True)
def restore_config(monkeypatch):
    # set()/delete() write to config attributes; undo after each test
    for key in settings_store.SETTINGS_META:
        attr = key.upper()
        monkeypatch.setattr(config, attr, getattr(config, attr))
        monkeypatch.delenv(settings_store.SETTINGS_META[key]["env"], raising=False)


# ── _cast ─────────────────────────────────────────────────────────────────────

class TestCast:
    def test_str(self):
        assert settings_store._cast(" local ", "str") == "local"

    def test_int(self):
        assert settings_store._cast("42", "int") == 42

    def test_float(self):
        assert abs(settings_store._cast("3.14", "float") - 3.14) < 1e-9

    def test_bool_true_variants(self):
        for v in ("true", "True", "TRUE", "1", "yes"):
            assert settings_store._cast(v, "bool") is True

    def test_bool_false_variants(self):
        for v in ("false", "False", "0", "no"):
            assert settings_store._cast(v, "bool") is False

    def test_invalid_int_raises(self):
        with pytest.raises((ValueError, TypeError)):
            settings_store._cast("not_a_number", "int")


# ── get() priority chain ──────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestGet:
    async def test_db_value_wins_over_env(self, monkeypatch):
        monkeypatch.setenv("CLASSIFIER_BACKEND", "local")
        await db.set_setting("classifier_backend", "llm", admin_id=1)
        assert await settings_store.get("classifier_backend") == "llm"

    async def test_env_wins_over_default(self, monkeypatch):
        monkeypatch.setenv("CLASSIFIER_BACKEND", "local")
        assert await settings_store.get("classifier_backend") == "local"

    async def test_default_used_when_no_db_no_env(self):
        assert await settings_store.get("classifier_backend") == "cloud_vision"

    async def test_int_setting_returns_int(self):
        await db.set_setting("llm_max_tokens", "500", admin_id=1)
        result = await settings_store.get("llm_max_tokens")
        assert result == 500
        assert isinstance(result, int)

    async def test_bool_setting_returns_bool(self):
        await db.set_setting("marketplace_enrichment", "false", admin_id=1)
        assert await settings_store.get("marketplace_enrichment") is False

    async def test_unknown_key_raises(self):
        with pytest.raises(KeyError):
            await settings_store.get("nonexistent_setting_key")


# ── get_raw() ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestGetRaw:
    async def test_returns_raw_string_from_db(self):
        await db.set_setting("llm_model", "gpt-4o-mini", admin_id=1)
        assert await settings_store.get_raw("llm_model") == "gpt-4o-mini"

    async def test_returns_default_when_not_set(self):
        assert await settings_store.get_raw("local_model_id") == "google/mobilenet_v2_1.0_224"


# ── set() ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSet:
    async def test_persists_to_db(self):
        await settings_store.set("classifier_backend", "llm", admin_id=1)
        assert await db.get_setting("classifier_backend") == "llm"

    async def test_applies_to_config_live(self):
        await settings_store.set("llm_max_tokens", "250", admin_id=1)
        assert config.LLM_MAX_TOKENS == 250
        await settings_store.set("marketplace_enrichment", "false", admin_id=1)
        assert config.MARKETPLACE_ENRICHMENT is False

    async def test_invalid_choice_raises(self):
        with pytest.raises(ValueError):
            await settings_store.set("classifier_backend", "gemini", admin_id=1)
        assert await db.get_setting("classifier_backend") is None

    async def test_invalid_int_raises(self):
        with pytest.raises((ValueError, TypeError)):
            await settings_store.set("llm_max_tokens", "lots", admin_id=1)

    async def test_backend_setting_resets_router_cache(self):
        router._backend = object()
        await settings_store.set("classifier_backend", "local", admin_id=1)
        assert router._backend is None

    async def test_non_backend_setting_keeps_router_cache(self):
        sentinel = object()
        router._backend = sentinel
        await settings_store.set("marketplace_enrichment", "false", admin_id=1)
        assert router._backend is sentinel


# ── delete() ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestDelete:
    async def test_delete_removes_from_db(self):
        await settings_store.set("classifier_backend", "llm", admin_id=1)
        await settings_store.delete("classifier_backend")
        assert await db.get_setting("classifier_backend") is None

    async def test_delete_reverts_config_to_default(self):
        await settings_store.set("classifier_backend", "llm", admin_id=1)
        await settings_store.delete("classifier_backend")
        assert config.CLASSIFIER_BACKEND == "cloud_vision"


# ── get_all() / apply_db_settings() ──────────────────────────────────────────

@pytest.mark.asyncio
class TestGetAll:
    async def test_returns_all_keys_as_strings(self):
        all_vals = await settings_store.get_all()
        assert set(all_vals) == set(settings_store.SETTINGS_META)
        assert all(isinstance(v, str) for v in all_vals.values())

    async def test_apply_db_settings_at_startup(self):
        await db.set_setting("llm_model", "gpt-4.1", admin_id=1)
        await config.apply_db_settings()
        assert config.LLM_MODEL == "gpt-4.1"
