"""
errors.py — exception taxonomy shared by the cropper, signer, marketplace
client and classification backends.

Only RenderError is allowed to surface from the pipeline (per region).
Everything else is absorbed by the router / marketplace enrichment and
turned into a neutral "no data" result.
"""
from __future__ import annotations


class WardrobeError(Exception):
    """Base class for every error raised by this project."""


class RenderError(WardrobeError):
    """The crop surface for a region could not be produced."""


class ConfigError(WardrobeError):
    """A required credential or API key is missing or malformed."""


class UpstreamError(WardrobeError):
    """An external API answered with a non-success status."""

    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(f"upstream returned {status}: {body[:300]}")


class ParseError(WardrobeError):
    """An external API answered with an unexpected response shape."""
