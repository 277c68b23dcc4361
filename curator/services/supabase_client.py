"""Supabase client for curator persistence (PostgREST over httpx)."""

from typing import Any, Optional
from urllib.parse import quote

import httpx
import structlog

from curator.config import get_settings

logger = structlog.get_logger()


class SupabaseClient:
    """Client for Supabase REST API operations."""

    def __init__(
        self,
        url: Optional[str] = None,
        service_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if url is None or service_key is None:
            settings = get_settings()
            url = url or settings.supabase_url
            service_key = service_key or (
                settings.supabase_service_key.get_secret_value()
                if settings.supabase_service_key
                else None
            )
        self.url = url
        self.service_key = service_key
        self._client: Optional[httpx.AsyncClient] = http_client

    @property
    def is_configured(self) -> bool:
        """Check if Supabase is configured."""
        return bool(self.url and self.service_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.url}/rest/v1",
                headers={
                    "apikey": self.service_key,
                    "Authorization": f"Bearer {self.service_key}",
                    "Content-Type": "application/json",
                },
                timeout=30.0,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Optional[dict | list] = None,
        headers: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make a request to Supabase REST API.

        Args:
            path: REST API path (e.g., "/analysis_cache?subject_key=eq.abc")
            method: HTTP method
            body: Request body for POST/PATCH
            headers: Additional headers

        Returns:
            {"data": ..., "error": ...}
        """
        if not self.is_configured:
            return {"data": None, "error": "Supabase not configured"}

        client = await self._get_client()

        request_headers = {"Prefer": "return=representation"}
        if method == "POST":
            request_headers["Prefer"] = "return=representation,resolution=merge-duplicates"
        if headers:
            request_headers.update(headers)

        try:
            response = await client.request(
                method=method,
                url=path,
                json=body if body is not None else None,
                headers=request_headers,
            )

            if not response.is_success:
                error_text = response.text
                logger.error(
                    "Supabase request failed",
                    path=path,
                    status=response.status_code,
                    error=error_text,
                )
                return {"data": None, "error": error_text}

            data = response.json() if response.text else None
            return {"data": data, "error": None}

        except Exception as e:
            logger.exception("Supabase request error", path=path, error=str(e))
            return {"data": None, "error": str(e)}

    # Convenience methods
    async def insert(
        self,
        table: str,
        data: dict | list,
        on_conflict: Optional[str] = None,
        ignore_duplicates: bool = False,
    ) -> dict[str, Any]:
        """Insert (or upsert) one or more records."""
        path = f"/{table}"
        if on_conflict:
            path += f"?on_conflict={on_conflict}"
        headers = None
        if ignore_duplicates:
            headers = {"Prefer": "return=representation,resolution=ignore-duplicates"}
        return await self.request(path, method="POST", body=data, headers=headers)

    async def select(
        self, table: str, columns: str = "*", filters: Optional[dict] = None
    ) -> dict[str, Any]:
        """Select records with optional filters."""
        path = f"/{table}?select={columns}"
        if filters:
            path += "&" + build_filters(filters)
        return await self.request(path)

    async def delete(self, table: str, filters: dict) -> dict[str, Any]:
        """Delete records matching filters; returns the deleted rows."""
        path = f"/{table}?" + build_filters(filters)
        return await self.request(path, method="DELETE")

    async def rpc(self, function_name: str, params: dict) -> dict[str, Any]:
        """Call a PostgreSQL function via PostgREST RPC.

        Args:
            function_name: Name of the PostgreSQL function to call
            params: Parameters to pass to the function

        Returns:
            {"data": ..., "error": ...}
        """
        return await self.request(f"/rpc/{function_name}", method="POST", body=params)


def build_filters(filters: dict) -> str:
    """Render PostgREST filters, e.g. {"expires_at": "lt.2025-01-01"}."""
    return "&".join(f"{key}={quote(str(value), safe='.,:')}" for key, value in filters.items())
