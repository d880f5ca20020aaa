"""
D&D 5e API gateway.

One request, one parse. The gateway knows endpoint shapes and nothing
else: no retry, no batching, no validation of spell contents.
"""

import logging
from types import TracebackType
from typing import Any

import httpx

from grimoire.config import settings
from grimoire.models.failure import UpstreamError

logger = logging.getLogger(__name__)

USER_AGENT = "grimoire/0.1 (+https://www.dnd5eapi.co)"


class UpstreamGateway:
    """
    Thin async wrapper over the D&D 5e REST API.

    Owns an httpx.AsyncClient unless one is passed in, in which case the
    caller keeps responsibility for closing it.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.request_timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
        )

    async def __aenter__(self) -> "UpstreamGateway":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this gateway created it."""
        if self._owns_client:
            await self._client.aclose()

    async def get_json(self, path: str) -> Any:
        """
        GET a path relative to the API base URL and parse the JSON body.

        Args:
            path: Endpoint path, e.g. "/spells/fireball"

        Returns:
            Parsed JSON value

        Raises:
            UpstreamError: On a non-2xx status, a transport failure
                (status 0), or a body that is not valid JSON
        """
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.get(url)
        except httpx.RequestError as e:
            raise UpstreamError(0, str(e) or type(e).__name__, path) from e

        if not response.is_success:
            raise UpstreamError(response.status_code, response.reason_phrase, path)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(response.status_code, "Invalid JSON body", path) from e

    async def _get_object(self, path: str) -> dict[str, Any]:
        data = await self.get_json(path)
        if not isinstance(data, dict):
            raise UpstreamError(200, "Unexpected response shape", path)
        return data

    # --- Endpoint shapes ---

    async def list_classes(self) -> list[dict[str, Any]]:
        """All classes: {results: [{index, name, url}]}."""
        data = await self._get_object("/classes")
        results = data.get("results", [])
        if not isinstance(results, list):
            raise UpstreamError(200, "Unexpected response shape", "/classes")
        return results

    async def class_spells(self, class_index: str) -> dict[str, Any]:
        """Spell list for one class: {count, results: [{index, name, url}]}."""
        data = await self._get_object(f"/classes/{class_index}/spells")
        return data

    async def get_spell(self, spell_index: str) -> dict[str, Any]:
        """Full spell object."""
        data = await self._get_object(f"/spells/{spell_index}")
        return data
