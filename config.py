"""
Central configuration, read from the .env file.

Settings priority order:
  1. Database (set via settings_store) — live, no restart needed
  2. Environment variable / .env file  — fallback / bootstrap

API keys and marketplace credentials follow the same priority via
key_store.py. settings_store.py writes directly to the module attributes
below when a setting changes, so all code reading config.X always gets the
latest value without restarting.
"""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Classification backend ────────────────────────────────────────────────────
# Exactly one backend classifies every region of a run:
#   local        → on-device transformers image-classification model
#   cloud_vision → Google Cloud Vision (labels, logos, text, web, objects)
#   llm          → OpenAI-compatible multimodal chat completion
# NOTE: overridden at runtime by settings_store
CLASSIFIER_BACKEND: str = os.getenv("CLASSIFIER_BACKEND", "cloud_vision")

# ── Local model ───────────────────────────────────────────────────────────────
# Any Hugging Face image-classification checkpoint with ImageNet-style labels
LOCAL_MODEL_ID: str = os.getenv("LOCAL_MODEL_ID", "google/mobilenet_v2_1.0_224")

# ── Cloud vision ──────────────────────────────────────────────────────────────
# API key is read from key_store ("google_vision_api_key")
CLOUD_VISION_ENDPOINT: str = os.getenv(
    "CLOUD_VISION_ENDPOINT", "https://vision.googleapis.com/v1/images:annotate"
)

# ── Multimodal LLM ────────────────────────────────────────────────────────────
# API key is read from key_store ("openai_api_key")
LLM_MODEL: str             = os.getenv("LLM_MODEL", "gpt-4o")
LLM_MAX_TOKENS: int        = int(os.getenv("LLM_MAX_TOKENS", "1000"))
LLM_BASE_URL: str | None   = os.getenv("LLM_BASE_URL", "").strip() or None

# ── Marketplace ───────────────────────────────────────────────────────────────
# Credentials come from key_store (amazon_access_key / amazon_secret_key /
# amazon_partner_tag / amazon_region).
# When true, cloud vision results are enriched with a PA-API product search.
MARKETPLACE_ENRICHMENT: bool = os.getenv("MARKETPLACE_ENRICHMENT", "true").lower() == "true"

# ── Web surface ───────────────────────────────────────────────────────────────
SERVER_HOST: str      = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int      = int(os.getenv("SERVER_PORT", "8080"))
MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

# ── Admin surface ─────────────────────────────────────────────────────────────
# Bearer token for /settings and /keys; unset disables them.
ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "").strip()
# Recorded as updated_by for changes made through the admin surface
ADMIN_ID: int    = int(os.getenv("ADMIN_ID", "1"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
DATA_DIR: str  = os.getenv("DATA_DIR", "data")


async def apply_db_settings() -> None:
    """
    Load all DB-persisted settings and apply them to this module's attributes.
    Called once at startup so DB values override .env from the start.
    """
    import database as _db
    import settings_store

    for key, meta in settings_store.SETTINGS_META.items():
        try:
            db_raw = await _db.get_setting(key)
        except Exception as exc:
            logger.warning("config: could not read setting %s: %s", key, exc)
            continue
        # Only apply if there's a DB override (don't stomp .env unnecessarily)
        if db_raw is not None:
            settings_store._apply_to_config(key, db_raw, meta["type"])
