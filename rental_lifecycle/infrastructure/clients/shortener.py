"""Link shortener client"""

import logging

import httpx

from rental_lifecycle.config import settings

logger = logging.getLogger(__name__)


class HttpLinkShortener:
    """
    Shortens deep links through the link service.

    Never raises: when the service is unconfigured or fails, the original URL
    is returned and message composition decides whether it fits.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.shortener_api_base).rstrip("/")
        self.api_key = api_key or settings.shortener_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def shorten(self, url: str) -> str:
        if not url or not self.base_url:
            return url

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/shorten",
                    json={"url": url},
                    headers={"Authorization": f"Bearer {self.api_key}"} if self.api_key else {},
                )
                response.raise_for_status()
                data = response.json()
                return data.get("shortUrl") or data.get("short_url") or url
            except (httpx.HTTPError, ValueError, AttributeError) as e:
                logger.warning("Link shortening failed, using original URL", extra={"error": str(e)})
                return url
