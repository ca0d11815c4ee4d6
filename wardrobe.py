"""
wardrobe.py — canonical home of the data model threaded through the pipeline.

  Region            one of the four fixed wardrobe categories (ordered)
  CropGeometry      fractional rectangle for one region
  ImageHandle       owner of one cropped PNG buffer
  ProductRecord     one marketplace search hit
  DetectedItem      a region + its crop + the classification attached to it

cropper.py, the providers and pipeline.py all import from here; keep the
types here rather than next to the code that fills them.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from errors import RenderError
    from providers.base import ClassificationResult, VisionFacts


class Region(str, enum.Enum):
    TOP    = "top"
    BOTTOM = "bottom"
    SHOES  = "shoes"
    BAG    = "bag"


# Display order is significant: top, bottom, shoes, bag
REGION_ORDER: tuple[Region, ...] = (Region.TOP, Region.BOTTOM, Region.SHOES, Region.BAG)


@dataclass(frozen=True)
class CropGeometry:
    """Rectangle expressed as fractions of the source image width/height."""
    x_fraction: float
    y_fraction: float
    width_fraction: float
    height_fraction: float

    def __post_init__(self) -> None:
        for name in ("x_fraction", "y_fraction", "width_fraction", "height_fraction"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")


# Fixed crops standing in for pose detection. bag is the only region that
# starts at a horizontal offset.
CROP_GEOMETRY: dict[Region, CropGeometry] = {
    Region.TOP:    CropGeometry(0.0, 0.1, 1.0, 0.3),
    Region.BOTTOM: CropGeometry(0.0, 0.4, 1.0, 0.4),
    Region.SHOES:  CropGeometry(0.0, 0.8, 1.0, 0.2),
    Region.BAG:    CropGeometry(0.7, 0.3, 0.3, 0.4),
}


class ImageHandle:
    """Exclusive owner of one cropped PNG buffer."""

    content_type = "image/png"

    def __init__(self, data: bytes) -> None:
        self._data: Optional[bytes] = data
        self.size = len(data)

    @property
    def released(self) -> bool:
        return self._data is None

    def read(self) -> bytes:
        if self._data is None:
            raise ValueError("image handle has been released")
        return self._data

    def release(self) -> None:
        self._data = None

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.size} bytes"
        return f"<ImageHandle {state}>"


@dataclass(frozen=True)
class ProductRecord:
    title: str
    brand: Optional[str] = None
    price: Optional[str] = None         # display string, e.g. "￥3,980"
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    asin: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "title":       self.title,
            "brand":       self.brand,
            "price":       self.price,
            "image_url":   self.image_url,
            "product_url": self.product_url,
            "asin":        self.asin,
        }


@dataclass(frozen=True)
class MarketplaceCredentials:
    access_key: str
    secret_key: str
    partner_tag: str                    # Associates tracking tag, e.g. "mytag-22"
    region: str = "com"                 # domain suffix: com / co.jp / co.uk ...

    @property
    def host(self) -> str:
        return f"webservices.amazon.{self.region}"

    @property
    def marketplace(self) -> str:
        return f"www.amazon.{self.region}"


@dataclass
class DetectedItem:
    """
    One wardrobe region of one source image.

    Created by the cropper with only region + image populated, then
    classified exactly once by the router. render_error is set instead of
    image when the crop for this region failed.
    """
    region: Region
    image: Optional[ImageHandle] = None
    render_error: Optional["RenderError"] = None
    classification_label: Optional[str] = None
    confidence: Optional[float] = None
    product_info: Optional[str] = None
    vision_facts: Optional["VisionFacts"] = None
    marketplace_results: Optional[list[ProductRecord]] = None
    _classified: bool = field(default=False, init=False, repr=False)

    @property
    def classified(self) -> bool:
        return self._classified

    def apply_classification(self, result: "ClassificationResult") -> None:
        if self._classified:
            raise RuntimeError(f"{self.region.value} item was already classified")
        self.classification_label = result.label
        # score 0 means "no score" (unknown / failed backend)
        self.confidence = result.score if result.score > 0 else None
        self.product_info = result.product_info
        self.vision_facts = result.vision_facts
        self.marketplace_results = result.marketplace_results
        self._classified = True

    def release(self) -> None:
        if self.image is not None:
            self.image.release()

    def to_dict(self) -> dict:
        return {
            "region":              self.region.value,
            "label":               self.classification_label,
            "confidence":          self.confidence,
            "product_info":        self.product_info,
            "vision_facts":        self.vision_facts.to_dict() if self.vision_facts else None,
            "marketplace_results": (
                [r.to_dict() for r in self.marketplace_results]
                if self.marketplace_results is not None else None
            ),
            "error": str(self.render_error) if self.render_error else None,
        }
