"""
Shared pytest fixtures.

Every test gets a clean temporary DATA_DIR via the `tmp_data_dir` fixture so
tests are fully isolated from each other and from the real wardrobe.db, and
starts with no credentials in the environment and no cached backend.
"""
from __future__ import annotations

import asyncio
import io
import sys
from pathlib import Path

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def tmp_data_dir(tmp_path, monkeypatch):
    """
    Redirect DATA_DIR to a fresh tmp directory for every test.
    This gives each test a clean SQLite file and prevents cross-test pollution.
    """
    data = tmp_path / "data"
    data.mkdir()
    monkeypatch.setenv("DATA_DIR", str(data))

    # Patch the module-level DB_PATH that was already computed at import time
    import database
    monkeypatch.setattr(database, "DB_PATH", str(data / "wardrobe.db"))
    monkeypatch.setattr(database, "_DATA_DIR", data)

    # Also reset the internal lock so tests don't share state
    monkeypatch.setattr(database, "_lock", asyncio.Lock())

    yield data


@pytest.fixture(autouse=True)
def clean_credentials(monkeypatch):
    """No test sees keys from the developer's shell or .env."""
    import key_store
    for name in key_store.KEY_NAMES:
        monkeypatch.delenv(name.upper(), raising=False)


@pytest.fixture(autouse=True)
def reset_router(monkeypatch):
    """Each test starts with no cached classifier backend."""
    import providers.router as router
    router.reset_backend()
    monkeypatch.setattr(router, "_build_lock", asyncio.Lock())
    yield
    router.reset_backend()


def png_bytes(width: int = 100, height: int = 200, mode: str = "RGB", color=None) -> bytes:
    from PIL import Image
    img = Image.new(mode, (width, height), color if color is not None else 0)
    buf = io.BytesIO()
    img.save(buf, format="PNG" if mode != "CMYK" else "JPEG")
    return buf.getvalue()


@pytest.fixture
def photo() -> bytes:
    """A 100×200 PNG standing in for an uploaded full-body photo."""
    return png_bytes(100, 200, color=(40, 80, 120))


def mock_session(status: int, json_value=None, text: str = "", json_error: Exception | None = None):
    """A stand-in for aiohttp.ClientSession whose post() yields one canned response."""
    from unittest.mock import AsyncMock, MagicMock

    resp = MagicMock()
    resp.status = status
    if json_error is not None:
        resp.json = AsyncMock(side_effect=json_error)
    else:
        resp.json = AsyncMock(return_value=json_value)
    resp.text = AsyncMock(return_value=text)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post = MagicMock(return_value=resp)
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session
