"""Short Korean place descriptions generated through OpenRouter."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from tourdesk.catalog.models import LocalRecord
from tourdesk.catalog.text import strip_html
from tourdesk.core.config import Settings
from tourdesk.core.errors import EnrichmentError

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


class DescriptionGenerator:
    """Write a two or three sentence introduction for a catalog record."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "minimax/minimax-m2:free",
        referer: str | None = None,
        title: str | None = None,
        min_interval: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._referer = referer
        self._title = title or "Daejeon Tour Admin"
        self._min_interval = max(0.1, min_interval)
        self._last_call = 0.0
        self._rate_lock = asyncio.Lock()
        self._transport = transport
        self._logger = logging.getLogger("tourdesk.ai")

    @classmethod
    def from_settings(cls, settings: Settings) -> "DescriptionGenerator":
        return cls(
            settings.openrouter_api_key,
            model=settings.openrouter_model,
            referer=settings.openrouter_referer,
            title=settings.openrouter_title,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def build_prompt(self, record: LocalRecord) -> str:
        lines = [f"장소: {record.label}"]
        address = record.get("addr1")
        if address:
            lines.append(f"주소: {address}")
        overview = strip_html(record.get("overview"))
        if overview:
            lines.append(f"개요: {overview[:1200]}")
        return "\n".join(lines)

    async def describe(self, record: LocalRecord) -> str:
        if not self._api_key:
            raise EnrichmentError("AI descriptions are not configured")

        async with self._rate_lock:
            wait_for = self._min_interval - (time.monotonic() - self._last_call)
            if wait_for > 0:
                await asyncio.sleep(wait_for)
            self._last_call = time.monotonic()

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self._referer:
            headers["HTTP-Referer"] = self._referer
        if self._title:
            headers["X-Title"] = self._title

        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {
                    "role": "system",
                    "content": (
                        "You write short, factual Korean introductions for places in Daejeon "
                        "for a tourism website. Never invent facts that are not in the input."
                    ),
                },
                {
                    "role": "user",
                    "content": (
                        "아래 정보를 바탕으로 방문객을 위한 2~3문장의 소개글을 작성해 주세요.\n\n"
                        + self.build_prompt(record)
                    ),
                },
            ],
        }

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(OPENROUTER_URL, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            self._logger.warning("OpenRouter description failed for %s: %s", record.content_id, exc)
            raise EnrichmentError(f"description request failed: {exc}") from exc

        content = (data.get("choices") or [{}])[0].get("message", {}).get("content", "") or ""
        content = " ".join(content.split())
        if not content:
            raise EnrichmentError("model returned an empty description")
        return content
