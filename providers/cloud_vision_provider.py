"""
Google Cloud Vision backend — one images:annotate call per region requesting
label, logo, text, web and object detection together.

  label / score   first label annotation whose description hits the
                  translation table, else the first annotation as-is
  vision_facts    product name (matching page title), logo brand, top-2
                  objects, first 3 OCR lines, top-3 web entities > 0.5
  product_info    vision_facts joined with " | "

The API key comes from key_store ("google_vision_api_key").
"""
from __future__ import annotations

import base64
import logging
import re
import time
from typing import Any, Optional

import aiohttp

from errors import ConfigError, ParseError, UpstreamError
from providers.base import (
    ClassificationResult, ClassifierBackend, VisionFacts, translate_label, unknown_result,
)

logger = logging.getLogger(__name__)

FEATURES = [
    {"type": "LABEL_DETECTION",     "maxResults": 10},
    {"type": "LOGO_DETECTION",      "maxResults": 5},
    {"type": "TEXT_DETECTION",      "maxResults": 10},
    {"type": "WEB_DETECTION",       "maxResults": 10},
    {"type": "OBJECT_LOCALIZATION", "maxResults": 10},
]

_MAX_OBJECTS        = 2
_MAX_TEXT_LINES     = 3
_MAX_WEB_ENTITIES   = 3
_WEB_ENTITY_MIN     = 0.50

_TAG_RE = re.compile(r"<[^>]+>")


def build_request(image_bytes: bytes) -> dict:
    return {
        "requests": [{
            "image":    {"content": base64.b64encode(image_bytes).decode()},
            "features": FEATURES,
        }]
    }


def _entries(container: dict, key: str) -> list[dict]:
    # Vision omits empty fields but may also send them as explicit nulls
    return [e for e in (container.get(key) or []) if isinstance(e, dict)]


def _score(entry: dict) -> float:
    return float(entry.get("score") or 0.0)


def pick_label(annotations: list[dict]) -> tuple[str, float]:
    for ann in annotations:
        translated = translate_label(str(ann.get("description") or ""))
        if translated:
            return translated, _score(ann)
    if annotations and annotations[0].get("description"):
        first = annotations[0]
        return str(first["description"]), _score(first)
    return unknown_result().label, 0.0


def _page_title_product(web: dict) -> Optional[str]:
    for page in _entries(web, "pagesWithMatchingImages"):
        title = page.get("pageTitle")
        if title:
            name = _TAG_RE.sub("", str(title)).split("|")[0].strip()
            if name:
                return name
    return None


def extract_facts(response: dict) -> VisionFacts:
    web = response.get("webDetection") or {}

    logos = _entries(response, "logoAnnotations")
    brand = logos[0].get("description") if logos else None

    objects = [
        (obj["name"], round(_score(obj) * 100))
        for obj in _entries(response, "localizedObjectAnnotations")[:_MAX_OBJECTS]
        if obj.get("name")
    ]

    texts = _entries(response, "textAnnotations")
    full_text = str(texts[0].get("description") or "") if texts else ""
    lines = [ln.strip() for ln in full_text.splitlines() if ln.strip()][:_MAX_TEXT_LINES]

    entities = [
        ent["description"]
        for ent in _entries(web, "webEntities")
        if ent.get("description") and _score(ent) > _WEB_ENTITY_MIN
    ][:_MAX_WEB_ENTITIES]

    return VisionFacts(
        product_name=_page_title_product(web),
        brand=brand,
        objects=objects,
        text_lines=lines,
        web_entities=entities,
        detected_text=full_text.strip() or None,
    )


def parse_response(data: Any) -> ClassificationResult:
    try:
        response = data["responses"][0]
    except (KeyError, IndexError, TypeError) as exc:
        raise ParseError(f"cloud vision response has no 'responses[0]': {exc}") from exc
    if not isinstance(response, dict):
        raise ParseError("cloud vision responses[0] is not an object")

    if response.get("error"):
        err = response["error"]
        if not isinstance(err, dict):
            raise UpstreamError(0, str(err))
        raise UpstreamError(int(err.get("code") or 0), str(err.get("message") or err))

    label, score = pick_label(_entries(response, "labelAnnotations"))
    facts = extract_facts(response)
    return ClassificationResult(
        label=label,
        score=score,
        product_info=facts.to_product_info(),
        vision_facts=facts,
    )


class CloudVisionProvider(ClassifierBackend):

    enriches_with_marketplace = True

    def __init__(self, api_key: Optional[str], endpoint: str, timeout: float = 30) -> None:
        self.name = "google/cloud-vision"
        self._api_key = api_key
        self._endpoint = endpoint
        self._timeout = timeout

    async def classify(self, image_bytes: bytes, region_label: str) -> ClassificationResult:
        if not self._api_key:
            raise ConfigError("google_vision_api_key is not set")

        t0 = time.monotonic()
        async with aiohttp.ClientSession() as session:
            async with session.post(
                self._endpoint,
                params={"key": self._api_key},
                json=build_request(image_bytes),
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status != 200:
                    raise UpstreamError(resp.status, await resp.text())
                try:
                    data = await resp.json(content_type=None)
                except ValueError as exc:
                    raise ParseError(f"cloud vision returned non-JSON body: {exc}") from exc

        result = parse_response(data)
        logger.debug(
            "[%s] %s → %s (%.2f) in %dms",
            self.name, region_label, result.label, result.score,
            int((time.monotonic() - t0) * 1000),
        )
        return result
