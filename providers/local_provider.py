"""
On-device classifier — a Hugging Face transformers image-classification
pipeline (ImageNet-style labels such as "jersey, T-shirt, tee shirt").

The model is expensive to load, so one instance is shared by the whole
process. SharedClassifier creates it at most once; concurrent first use from
several threads blocks on the lock instead of loading twice.

Requires the "local" extra (transformers + torch). The import is deferred to
first use so the other backends run without it.
"""
from __future__ import annotations

import asyncio
import io
import logging
import threading
import time
from typing import Any, Callable, Optional

from providers.base import (
    ClassificationResult, ClassifierBackend, translate_label, unknown_result,
)

logger = logging.getLogger(__name__)

# Below this score an untranslated raw label is not trusted
RAW_LABEL_MIN_SCORE = 0.30


def _load_pipeline(model_id: str) -> Any:
    try:
        from transformers import pipeline
    except ImportError as exc:
        raise RuntimeError(
            "transformers is required for the local backend. "
            "Install with: pip install 'wardrobe-lens[local]'"
        ) from exc
    logger.info("Loading local image-classification model %s…", model_id)
    t0 = time.monotonic()
    clf = pipeline("image-classification", model=model_id)
    logger.info("Local model ready in %.1fs", time.monotonic() - t0)
    return clf


class SharedClassifier:
    """Process-wide, lazily created model instance."""

    def __init__(self, loader: Callable[[str], Any] = _load_pipeline) -> None:
        self._loader = loader
        self._lock = threading.Lock()
        # (model_id, instance) swapped as one tuple so readers never see a mix
        self._loaded: Optional[tuple[str, Any]] = None

    def get(self, model_id: str) -> Any:
        loaded = self._loaded
        if loaded is not None and loaded[0] == model_id:
            return loaded[1]
        with self._lock:
            if self._loaded is None or self._loaded[0] != model_id:
                if self._loaded is not None:
                    logger.info("Local model changed %s → %s", self._loaded[0], model_id)
                self._loaded = (model_id, self._loader(model_id))
            return self._loaded[1]


_shared = SharedClassifier()


def interpret(predictions: list[dict]) -> ClassificationResult:
    """
    Turn pipeline output (sorted best-first) into a result:
      1. take the top prediction, keep the text before the first comma
      2. translated label if a table key matches
      3. else the raw label if score > 0.30
      4. else unknown / 0
    """
    if not predictions:
        return unknown_result()
    top = predictions[0]
    raw_label = str(top.get("label", "")).split(",")[0].strip().lower()
    score = float(top.get("score", 0.0))

    translated = translate_label(raw_label)
    if translated:
        return ClassificationResult(label=translated, score=score)
    if raw_label and score > RAW_LABEL_MIN_SCORE:
        return ClassificationResult(label=raw_label, score=score)
    return unknown_result()


class LocalProvider(ClassifierBackend):

    def __init__(self, model_id: str, shared: Optional[SharedClassifier] = None) -> None:
        self.name = f"local/{model_id}"
        self.model_id = model_id
        self._shared = shared or _shared

    def _infer(self, image_bytes: bytes) -> list[dict]:
        from PIL import Image

        classifier = self._shared.get(self.model_id)
        with Image.open(io.BytesIO(image_bytes)) as img:
            return classifier(img.convert("RGB"))

    async def classify(self, image_bytes: bytes, region_label: str) -> ClassificationResult:
        logger.debug("[%s] classifying %s region", self.name, region_label)
        predictions = await asyncio.to_thread(self._infer, image_bytes)
        return interpret(predictions)
