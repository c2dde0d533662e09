"""
Remote farm API client.
Writes are plain JSON POSTs; success is judged by a 2xx status only, the body is never read.
"""
import json
import logging
from typing import Dict, Optional

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)


def is_api_path(endpoint: str) -> bool:
    """True for a path on the farm API host, e.g. ``/api/farm/sales``.

    Absolute URLs and ``//host`` references would replace the client's base URL
    and carry the session cookie to another host.
    """
    return (
        isinstance(endpoint, str)
        and endpoint.startswith("/")
        and not endpoint.startswith("//")
        and "\\" not in endpoint
        and "://" not in endpoint
    )


class FarmAPIClient:
    """Async HTTP client for the remote farm write API."""

    def __init__(
        self,
        base_url: str = settings.FARM_API_BASE_URL,
        timeout: float = settings.FARM_API_TIMEOUT,
        session_cookie: Optional[str] = settings.FARM_API_SESSION_COOKIE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        cookies = {settings.FARM_API_SESSION_COOKIE_NAME: session_cookie} if session_cookie else None
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            cookies=cookies,
            transport=transport,
        )

    async def post_json(self, endpoint: str, payload: Dict) -> httpx.Response:
        """
        POST ``payload`` as JSON to ``endpoint``.
        Raises httpx.HTTPError on transport failures (no connection, timeout),
        ValueError for an endpoint outside the farm API or a payload with NaN/Infinity.
        """
        if not is_api_path(endpoint):
            raise ValueError(f"not a farm API path: {endpoint!r}")
        response = await self._client.post(
            endpoint,
            content=json.dumps(payload, allow_nan=False),
            headers={"Content-Type": "application/json"},
        )
        logger.debug("POST %s -> %s", endpoint, response.status_code)
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
