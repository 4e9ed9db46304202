"""
X Sender

Posts to X (Twitter) through the v2 tweets endpoint using httpx.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger("studio.notifications.x")

X_TWEETS_URL = "https://api.twitter.com/2/tweets"


@dataclass
class SendResult:
    """Result of a send attempt"""
    success: bool
    post_id: Optional[str] = None
    error: Optional[str] = None


class XSender:
    """Publish text posts with an OAuth 2.0 user access token"""

    def __init__(self, access_token: str, client: Optional[httpx.AsyncClient] = None):
        self.access_token = access_token
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def send(self, content: str) -> SendResult:
        if not self.access_token:
            return SendResult(success=False, error="X_ACCESS_TOKEN not configured")

        try:
            client = self._get_client()
            response = await client.post(
                X_TWEETS_URL,
                json={"text": content},
                headers={"Authorization": f"Bearer {self.access_token}"},
            )

            if response.status_code in (200, 201):
                post_id = response.json().get("data", {}).get("id")
                logger.info(f"X post published id={post_id}")
                return SendResult(success=True, post_id=post_id)

            err = f"HTTP {response.status_code}: {response.text[:200]}"
            logger.error(f"X request failed: {err}")
            return SendResult(success=False, error=err)

        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"X send error: {e}")
            return SendResult(success=False, error=str(e))

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
