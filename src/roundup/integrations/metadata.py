"""Category (genre) lookups against the item metadata service."""

from __future__ import annotations

import httpx


class HttpCategoryLookup:
    """GET {base_url}/items/{provider}/{provider_item_id} -> {"categories": [...]}.

    Errors propagate; the caller decides whether a failed lookup is fatal.
    """

    def __init__(self, base_url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def categories_for(self, provider: str, provider_item_id: str) -> list[str]:
        async with httpx.AsyncClient(base_url=self.base_url, transport=self.transport) as client:
            response = await client.get(
                f"/items/{provider}/{provider_item_id}",
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        return [str(c) for c in data.get("categories", []) if c]
