"""
pipeline.py — crop a photo into four wardrobe regions and classify them.

  run(image_bytes) → PipelineRun(items=[top, bottom, shoes, bag])

Steps:
  1. Decode the source once (undecodable input → RenderError, nothing else runs).
  2. Crop the four regions one after another. A region whose crop fails keeps
     its RenderError on the item; the other regions carry on.
  3. Classify every successfully cropped region concurrently through
     providers.router. Results land on their own item, so output order is
     always top, bottom, shoes, bag whatever finishes first.

Backend failures never escape router.classify(); the only degraded-quality
signal is PipelineRun.partial_classification.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

import cropper
from errors import RenderError
from providers import router
from providers.base import ClassifierBackend, unknown_result
from wardrobe import REGION_ORDER, DetectedItem, ImageHandle, Region

logger = logging.getLogger(__name__)


@dataclass
class PipelineRun:
    items: list[DetectedItem]

    @property
    def partial_classification(self) -> bool:
        """True if any item ended up unlabeled or labeled "unknown"."""
        return any(
            not item.classification_label
            or item.classification_label == unknown_result().label
            for item in self.items
        )

    def item(self, region: Region | str) -> Optional[DetectedItem]:
        region = Region(region)
        for item in self.items:
            if item.region is region:
                return item
        return None

    def reset(self) -> None:
        """Release every crop buffer; the run's items become display-only."""
        for item in self.items:
            item.release()

    def to_dict(self) -> dict:
        return {
            "partial_classification": self.partial_classification,
            "items": [item.to_dict() for item in self.items],
        }


def crop_regions(image_bytes: bytes) -> list[DetectedItem]:
    """Cut all four regions. Per-region RenderErrors are kept on the item."""
    source = cropper.load_image(image_bytes)
    items = []
    for region in REGION_ORDER:
        try:
            items.append(DetectedItem(region=region, image=ImageHandle(cropper.crop(source, region))))
        except RenderError as exc:
            logger.error("Crop failed for %s: %s", region.value, exc)
            items.append(DetectedItem(region=region, render_error=exc))
    return items


async def _classify_item(item: DetectedItem, backend: Optional[ClassifierBackend]) -> None:
    result = await router.classify(item.image.read(), item.region.value, backend=backend)
    item.apply_classification(result)


async def run(image_bytes: bytes) -> PipelineRun:
    """Crop then classify. Raises RenderError only if the source can't be decoded."""
    t0 = time.monotonic()
    items = crop_regions(image_bytes)

    try:
        backend: Optional[ClassifierBackend] = await router.get_backend()
    except Exception as exc:
        # router.classify() turns the missing backend into "unknown" per region
        logger.error("Classifier backend unavailable: %s", exc)
        backend = None

    await asyncio.gather(*[
        _classify_item(item, backend) for item in items if item.image is not None
    ])

    result = PipelineRun(items=items)
    logger.info(
        "Pipeline done in %dms: %s (partial=%s)",
        int((time.monotonic() - t0) * 1000),
        ", ".join(f"{i.region.value}={i.classification_label}" for i in items),
        result.partial_classification,
    )
    return result
