"""
marketplace.py — Amazon Product Advertising API 5.0 search client.

Used to enrich a classified region with purchasable look-alikes:

  search(query)                                → list[ProductRecord]
  search_by_region_label(label, detected_text) → list[ProductRecord]

Requests are signed with signing.py (host + x-amz-date only). The signed
payload string is exactly the request body; never re-serialise it after
signing.

Error policy:
  missing credentials → ConfigError
  non-2xx response    → UpstreamError(status, body)
  unreadable JSON     → ParseError
Callers (providers/router.py) treat every one of these as "no results".
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

import signing
from errors import ConfigError, ParseError, UpstreamError
from wardrobe import MarketplaceCredentials, ProductRecord

logger = logging.getLogger(__name__)

SEARCH_PATH = "/paapi5/searchitems"

DEFAULT_RESOURCES = [
    "Images.Primary.Medium",
    "ItemInfo.Title",
    "ItemInfo.ByLineInfo",
    "Offers.Listings.Price",
    "Offers.Listings.Availability.Type",
]

UNKNOWN_TITLE = "unknown"

# Category families, tried in order; first match wins, no match → "All"
_SEARCH_INDEX_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"シャツ|トップ|ブラウス|セーター|ジャケット"), "Apparel"),
    (re.compile(r"パンツ|ズボン|ジーンズ|スカート"),           "Apparel"),
    (re.compile(r"靴|スニーカー|ブーツ|サンダル"),             "Shoes"),
    (re.compile(r"バッグ|かばん|リュック|ポーチ"),             "Luggage"),
]

_MAX_TEXT_KEYWORDS = 3


@dataclass
class SearchQuery:
    keywords: str
    search_index: Optional[str] = None
    resources: Optional[list[str]] = None


def choose_search_index(label: str) -> str:
    for pattern, index in _SEARCH_INDEX_RULES:
        if pattern.search(label):
            return index
    return "All"


def build_keywords(label: str, detected_text: Optional[str] = None) -> str:
    """
    Prefix the label with up to three brand-like tokens from OCR text.
    Tokens that are purely numeric or at most two characters are dropped.
    """
    if not detected_text:
        return label
    tokens = [
        t for t in detected_text.split()
        if len(t) > 2 and not t.isdigit()
    ]
    if not tokens:
        return label
    return f"{' '.join(tokens[:_MAX_TEXT_KEYWORDS])} {label}"


def _dig(raw: Any, *path: Any) -> Any:
    """Walk nested dicts/lists, returning None on the first missing step."""
    node = raw
    for step in path:
        try:
            node = node[step]
        except (KeyError, IndexError, TypeError):
            return None
    return node


def parse_item(raw: dict) -> ProductRecord:
    """Map one SearchResult item. Only the title has a placeholder."""
    return ProductRecord(
        title=_dig(raw, "ItemInfo", "Title", "DisplayValue") or UNKNOWN_TITLE,
        brand=_dig(raw, "ItemInfo", "ByLineInfo", "Brand", "DisplayValue"),
        price=_dig(raw, "Offers", "Listings", 0, "Price", "DisplayAmount"),
        image_url=_dig(raw, "Images", "Primary", "Medium", "URL"),
        product_url=_dig(raw, "DetailPageURL"),
        asin=_dig(raw, "ASIN"),
    )


class MarketplaceClient:

    def __init__(
        self,
        credentials: Optional[MarketplaceCredentials],
        timeout: float = 15,
    ) -> None:
        self._credentials = credentials
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "Amazon PA-API 5.0"

    @property
    def configured(self) -> bool:
        return self._credentials is not None

    async def search(self, query: SearchQuery) -> list[ProductRecord]:
        if not self.configured:
            raise ConfigError("Amazon PA-API credentials are not set")
        creds = self._credentials

        payload = json.dumps({
            "Keywords":    query.keywords,
            "SearchIndex": query.search_index or "All",
            "Resources":   query.resources or DEFAULT_RESOURCES,
            "PartnerTag":  creds.partner_tag,
            "PartnerType": "Associates",
            "Marketplace": creds.marketplace,
        })
        timestamp = self._timestamp()
        headers   = signing.signed_headers(creds, SEARCH_PATH, payload, timestamp)
        data      = await self._call(f"https://{creds.host}{SEARCH_PATH}", payload, headers)

        items = _dig(data, "SearchResult", "Items") or []
        if not isinstance(items, list):
            raise ParseError("PA-API SearchResult.Items is not a list")
        results = [parse_item(raw) for raw in items if isinstance(raw, dict)]
        logger.info(
            "[%s] '%s' (%s) → %d results",
            self.name, query.keywords, query.search_index or "All", len(results),
        )
        return results

    async def search_by_region_label(
        self,
        region_label: str,
        detected_text: Optional[str] = None,
    ) -> list[ProductRecord]:
        return await self.search(SearchQuery(
            keywords=build_keywords(region_label, detected_text),
            search_index=choose_search_index(region_label),
        ))

    # ── HTTP ──────────────────────────────────────────────────────────────────

    def _timestamp(self) -> str:
        return signing.amz_timestamp()

    async def _call(self, url: str, payload: str, headers: dict[str, str]) -> dict:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url, data=payload.encode("utf-8"), headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status // 100 != 2:
                    raise UpstreamError(resp.status, await resp.text())
                try:
                    return await resp.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError, ValueError) as exc:
                    raise ParseError(f"PA-API returned non-JSON body: {exc}") from exc


async def get_client() -> MarketplaceClient:
    """
    Build a client from the credential store. Called per enrichment so that a
    key change applies on the next search without restarting.
    """
    import key_store
    client = MarketplaceClient(await key_store.load_marketplace_credentials())
    if not client.configured:
        logger.debug("Marketplace credentials not configured")
    return client
