"""
Multimodal LLM backend — any OpenAI-compatible chat-completion endpoint
(gpt-4o by default).

The model answers in free prose; that text is kept verbatim as
product_info. The label comes from the translation table, or the first line
of the answer cut to 30 characters. The model reports no score, so a
fixed 0.90 is used whenever an answer arrives.
"""
from __future__ import annotations

import base64
import logging
import time
from typing import Optional

import openai
from openai import AsyncOpenAI

from errors import ConfigError, ParseError, UpstreamError
from providers.base import (
    SYSTEM_PROMPT, ClassificationResult, ClassifierBackend, build_user_prompt, translate_label,
)

logger = logging.getLogger(__name__)

FIXED_SCORE = 0.90
_FALLBACK_LABEL_CHARS = 30


def _mime_type(image_bytes: bytes) -> str:
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"GIF8":
        return "image/gif"
    if image_bytes[:4] == b"RIFF":
        return "image/webp"
    return "image/jpeg"


def label_from_text(text: str) -> str:
    translated = translate_label(text)
    if translated:
        return translated
    first_line = text.strip().splitlines()[0] if text.strip() else ""
    return first_line.strip()[:_FALLBACK_LABEL_CHARS]


class LLMProvider(ClassifierBackend):

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o",
        max_tokens: int = 1000,
        base_url: Optional[str] = None,
    ) -> None:
        if not api_key:
            raise ConfigError("openai_api_key is not set")
        self.name = f"openai/{model}"
        self.model_id = model
        self.max_tokens = max_tokens
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def classify(self, image_bytes: bytes, region_label: str) -> ClassificationResult:
        b64 = base64.b64encode(image_bytes).decode()
        t0 = time.monotonic()

        try:
            response = await self._client.chat.completions.create(
                model=self.model_id,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": build_user_prompt(region_label)},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:{_mime_type(image_bytes)};base64,{b64}",
                                },
                            },
                        ],
                    },
                ],
            )
        except openai.APIStatusError as exc:
            raise UpstreamError(exc.status_code, str(exc.message)) from exc

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise ParseError(f"[{self.name}] unexpected completion shape: {exc}") from exc
        if not text or not text.strip():
            raise ParseError(f"[{self.name}] empty completion")

        label = label_from_text(text)
        logger.debug(
            "[%s] %s → %s in %dms",
            self.name, region_label, label, int((time.monotonic() - t0) * 1000),
        )
        return ClassificationResult(label=label, score=FIXED_SCORE, product_info=text)
