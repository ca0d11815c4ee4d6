"""
Tests for database.py.

Covers:
  - DB path inside DATA_DIR
  - Schema creation (init_db is idempotent)
  - API key CRUD: set, get, overwrite, delete, get_all
  - Settings CRUD: set, get, overwrite, delete
"""
from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

import database as db


@pytest_asyncio.fixture(autouse=True)
async def init(tmp_data_dir):
    """Initialise the DB schema before every test."""
    await db.init_db()


class TestDbPath:
    def test_db_path_inside_data_dir(self, tmp_data_dir):
        assert Path(db.DB_PATH).parent == tmp_data_dir


@pytest.mark.asyncio
class TestInitDb:
    async def test_idempotent(self):
        await db.init_db()
        await db.init_db()

    async def test_db_file_created(self):
        assert Path(db.DB_PATH).exists()


# ── API keys ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestApiKeys:
    async def test_missing_key_is_none(self):
        assert await db.get_api_key("openai_api_key") is None

    async def test_set_and_get(self):
        await db.set_api_key("openai_api_key", "sk-1", admin_id=7)
        assert await db.get_api_key("openai_api_key") == "sk-1"

    async def test_overwrite(self):
        await db.set_api_key("openai_api_key", "sk-1", admin_id=7)
        await db.set_api_key("openai_api_key", "sk-2", admin_id=8)
        assert await db.get_api_key("openai_api_key") == "sk-2"
        assert await db.get_all_api_keys() == {"openai_api_key": "sk-2"}

    async def test_delete(self):
        await db.set_api_key("amazon_region", "co.jp", admin_id=1)
        await db.delete_api_key("amazon_region")
        assert await db.get_api_key("amazon_region") is None

    async def test_delete_missing_is_noop(self):
        await db.delete_api_key("never_set")

    async def test_get_all(self):
        await db.set_api_key("amazon_access_key", "AKIA", admin_id=1)
        await db.set_api_key("amazon_secret_key", "secret", admin_id=1)
        assert await db.get_all_api_keys() == {
            "amazon_access_key": "AKIA",
            "amazon_secret_key": "secret",
        }


# ── Settings ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSettings:
    async def test_missing_setting_is_none(self):
        assert await db.get_setting("classifier_backend") is None

    async def test_set_get_overwrite_delete(self):
        await db.set_setting("classifier_backend", "local", admin_id=1)
        assert await db.get_setting("classifier_backend") == "local"
        await db.set_setting("classifier_backend", "llm", admin_id=2)
        assert await db.get_setting("classifier_backend") == "llm"
        await db.delete_setting("classifier_backend")
        assert await db.get_setting("classifier_backend") is None
