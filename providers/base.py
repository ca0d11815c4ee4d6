"""
Shared types and base class for all classification backends.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from wardrobe import ProductRecord

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "unknown"

# ── Label translation table ───────────────────────────────────────────────────
# English keyword → display label. Lookup is a substring match and the FIRST
# key that matches wins, so insertion order matters ("t-shirt" must come
# before "shirt", "shirt" before "dress").

FASHION_LABELS: dict[str, str] = {
    # tops
    "tshirt":    "Tシャツ",
    "t-shirt":   "Tシャツ",
    "shirt":     "シャツ",
    "blouse":    "ブラウス",
    "sweater":   "セーター",
    "jacket":    "ジャケット",
    "coat":      "コート",
    "hoodie":    "パーカー",
    "tank top":  "タンクトップ",
    "cardigan":  "カーディガン",
    # bottoms
    "pants":     "パンツ",
    "jeans":     "ジーンズ",
    "shorts":    "ショートパンツ",
    "skirt":     "スカート",
    "dress":     "ドレス",
    "trousers":  "ズボン",
    "leggings":  "レギンス",
    # shoes
    "sneakers":  "スニーカー",
    "boots":     "ブーツ",
    "heels":     "ヒール",
    "sandals":   "サンダル",
    "shoes":     "靴",
    "slippers":  "スリッパ",
    "loafers":   "ローファー",
    # bags
    "handbag":   "ハンドバッグ",
    "backpack":  "リュック",
    "suitcase":  "スーツケース",
    "bag":       "バッグ",
    "tote":      "トートバッグ",
    "purse":     "ポーチ",
    "clutch":    "クラッチバッグ",
}


def translate_label(text: str) -> Optional[str]:
    """Return the display label of the first table key found in `text`."""
    lowered = text.lower()
    for key, label in FASHION_LABELS.items():
        if key in lowered:
            return label
    return None


# ── Prompt (multimodal LLM backend) ───────────────────────────────────────────

SYSTEM_PROMPT = """You are a fashion product expert.
Look at the photo of a single clothing item or accessory and describe it for a shopper.
Answer in plain prose, not JSON. Put the item name on the first line, then cover:
- item name
- brand (if recognisable)
- estimated price range
- design details
- material
- similar styles
- popularity / trend status
"""

USER_PROMPT = "This image shows the {region} of an outfit. What is this item?"


def build_user_prompt(region_label: str) -> str:
    return USER_PROMPT.format(region=region_label)


# ── Shared result types ───────────────────────────────────────────────────────

@dataclass
class VisionFacts:
    """Structured facts pulled out of a cloud vision response."""
    product_name: Optional[str] = None
    brand: Optional[str] = None
    objects: list[tuple[str, int]] = field(default_factory=list)   # (name, percent)
    text_lines: list[str] = field(default_factory=list)
    web_entities: list[str] = field(default_factory=list)
    detected_text: Optional[str] = None                            # full OCR text

    def segments(self) -> list[str]:
        parts = []
        if self.product_name:
            parts.append(f"Product: {self.product_name}")
        if self.brand:
            parts.append(f"Brand: {self.brand}")
        if self.objects:
            parts.append("Objects: " + ", ".join(f"{n} ({p}%)" for n, p in self.objects))
        if self.text_lines:
            parts.append("Text: " + " ".join(self.text_lines))
        if self.web_entities:
            parts.append("Related: " + ", ".join(self.web_entities))
        return parts

    def to_product_info(self) -> Optional[str]:
        """Pipe-delimited summary, empty segments omitted."""
        return " | ".join(self.segments()) or None

    def to_dict(self) -> dict:
        return {
            "product_name": self.product_name,
            "brand":        self.brand,
            "objects":      [{"name": n, "percent": p} for n, p in self.objects],
            "text_lines":   list(self.text_lines),
            "web_entities": list(self.web_entities),
        }


@dataclass
class ClassificationResult:
    label: str
    score: float
    product_info: Optional[str] = None
    marketplace_results: Optional[list[ProductRecord]] = None
    vision_facts: Optional[VisionFacts] = None

    @property
    def is_unknown(self) -> bool:
        return self.label == UNKNOWN_LABEL

    @property
    def detected_text(self) -> Optional[str]:
        return self.vision_facts.detected_text if self.vision_facts else None


def unknown_result() -> ClassificationResult:
    return ClassificationResult(label=UNKNOWN_LABEL, score=0.0)


# ── Abstract base ──────────────────────────────────────────────────────────────

class ClassifierBackend(ABC):
    """Base class all classification backends must implement."""

    name: str
    # Whether the router should look the label up on the marketplace afterwards
    enriches_with_marketplace: bool = False

    @abstractmethod
    async def classify(self, image_bytes: bytes, region_label: str) -> ClassificationResult:
        """Classify one cropped region. May raise; the router absorbs errors."""
        ...
