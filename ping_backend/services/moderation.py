# ping_backend/services/moderation.py
"""
Text moderation via the OpenAI moderation endpoint
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


@dataclass
class ModerationResult:
    flagged: bool
    reason: Optional[str] = None


class OpenAIModerationGate:
    """Flags disallowed text. Fails open when the service is unavailable."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.clean_openai_base_url).rstrip("/")
        self.timeout = timeout or settings.EXTERNAL_TIMEOUT_SECONDS
        self._transport = transport
        if not self.api_key:
            logger.warning("OPENAI_API_KEY is not set, moderation is disabled")

    async def check(self, text: Optional[str]) -> ModerationResult:
        if not text or not text.strip():
            return ModerationResult(flagged=False)
        if not self.api_key:
            return ModerationResult(flagged=False)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/moderations",
                    json={"input": text},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Moderation request failed, allowing content: {e}")
            return ModerationResult(flagged=False)

        results = data.get("results") or []
        if not results or not results[0].get("flagged"):
            return ModerationResult(flagged=False)

        categories = results[0].get("categories") or {}
        reasons = [name for name, hit in categories.items() if hit]
        reason = ", ".join(reasons) if reasons else "Content violates guidelines"
        logger.warning(f"Content flagged by moderation: {reason}")
        return ModerationResult(flagged=True, reason=reason)
