"""
Classification router — sends each cropped region to the one configured
backend and always hands back a ClassificationResult.

Backend selection is a single explicit switch (config.CLASSIFIER_BACKEND):
  local         providers.local_provider.LocalProvider
  cloud_vision  providers.cloud_vision_provider.CloudVisionProvider
  llm           providers.llm_provider.LLMProvider

Error policy: any exception from building or calling the backend (missing
key, HTTP failure, bad JSON …) is logged and turned into
{label: "unknown", score: 0}. Marketplace enrichment failures are logged and
leave the classification untouched. classify() never raises.

Keys are read from key_store on every cold start so that changing a key
takes effect without restarting; settings_store / key_store call
reset_backend() when something the backend depends on changes.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import config
from providers.base import ClassificationResult, ClassifierBackend, unknown_result
from wardrobe import ProductRecord

logger = logging.getLogger(__name__)

BACKENDS = ("local", "cloud_vision", "llm")

# Module-level cache, cleared by reset_backend()
_backend: Optional[ClassifierBackend] = None
_build_lock = asyncio.Lock()


def reset_backend() -> None:
    global _backend
    _backend = None


async def _build_backend(name: str) -> ClassifierBackend:
    import key_store

    if name == "local":
        from providers.local_provider import LocalProvider
        return LocalProvider(config.LOCAL_MODEL_ID)

    if name == "cloud_vision":
        from providers.cloud_vision_provider import CloudVisionProvider
        return CloudVisionProvider(
            api_key=await key_store.load_cloud_vision_api_key(),
            endpoint=config.CLOUD_VISION_ENDPOINT,
        )

    if name == "llm":
        from providers.llm_provider import LLMProvider
        return LLMProvider(
            api_key=await key_store.load_llm_api_key(),
            model=config.LLM_MODEL,
            max_tokens=config.LLM_MAX_TOKENS,
            base_url=config.LLM_BASE_URL,
        )

    raise ValueError(f"Unknown classifier backend '{name}'. Choose one of: {', '.join(BACKENDS)}")


async def get_backend() -> ClassifierBackend:
    """Return the active backend, building it once on first call."""
    global _backend
    if _backend is not None:
        return _backend
    async with _build_lock:
        if _backend is None:
            _backend = await _build_backend(config.CLASSIFIER_BACKEND.strip().lower())
            logger.info("Classifier backend: %s", _backend.name)
    return _backend


async def backend_name() -> str:
    try:
        return (await get_backend()).name
    except Exception:
        return "not configured"


async def _marketplace_results(result: ClassificationResult) -> Optional[list[ProductRecord]]:
    import marketplace
    try:
        client = await marketplace.get_client()
        if not client.configured:
            return None
        return await client.search_by_region_label(result.label, result.detected_text)
    except Exception as exc:
        logger.warning("Marketplace search for '%s' failed: %s", result.label, exc)
        return None


async def classify(
    image_bytes: bytes,
    region_label: str,
    backend: Optional[ClassifierBackend] = None,
) -> ClassificationResult:
    """Classify one region. Never raises."""
    t0 = time.monotonic()
    name = backend.name if backend is not None else config.CLASSIFIER_BACKEND
    try:
        backend = backend or await get_backend()
        name = backend.name
        result = await backend.classify(image_bytes, region_label)
    except Exception as exc:
        logger.error("[%s] %s classification failed: %s", name, region_label, exc)
        return unknown_result()

    # Enrichment is skipped for "unknown" labels
    if (
        backend.enriches_with_marketplace
        and config.MARKETPLACE_ENRICHMENT
        and not result.is_unknown
    ):
        records = await _marketplace_results(result)
        if records is not None:
            result.marketplace_results = records

    logger.info(
        "[%s] %s → %s (%.2f) in %dms",
        name, region_label, result.label, result.score,
        int((time.monotonic() - t0) * 1000),
    )
    return result
