"""HTTP client for the session backend.

Thin aiohttp wrapper around the REST endpoints. Every response body is
``{"data": ...}`` on success and ``{"error": "..."}`` otherwise; non-2xx
responses raise ``ApiError`` and connection problems raise
``TransportError``. The SSE stream lives in ``stream_client``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from typing import Any
from urllib.parse import quote

import aiohttp

from agentdeck.engine.errors import ApiError, TransportError
from agentdeck.shared.models.session import (
    Session,
    SessionDetail,
    StatusInfo,
    project_folder,
)

logger = logging.getLogger(__name__)


class DeckApiClient:
    """Async client for the session backend REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _http(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    @property
    def http(self) -> aiohttp.ClientSession:
        """Shared aiohttp session, also used by stream clients."""
        return self._http()

    def url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> DeckApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        endpoint = f"{method} {path}"
        start = time.monotonic()
        try:
            async with self._http().request(
                method, self.url(path), json=json, params=params,
            ) as resp:
                try:
                    body = await resp.json(content_type=None)
                except ValueError:
                    body = None
                elapsed_ms = (time.monotonic() - start) * 1000
                logger.debug(
                    "HTTP %s status=%s duration_ms=%.1f", endpoint, resp.status, elapsed_ms,
                )
                if resp.status >= 400:
                    message = ""
                    if isinstance(body, dict):
                        message = str(body.get("error") or "")
                    raise ApiError(endpoint, resp.status, message or resp.reason or "request failed")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(endpoint, str(exc) or type(exc).__name__) from exc

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    # ── Sessions ──

    async def list_sessions(self) -> list[Session]:
        data = await self._request("GET", "/sessions")
        if not isinstance(data, list):
            return []
        return [Session.from_dict(item) for item in data if isinstance(item, dict)]

    async def get_session_detail(self, project_path: str, session_id: str) -> SessionDetail:
        folder = quote(project_folder(project_path), safe="")
        data = await self._request("GET", f"/projects/{folder}/sessions/{session_id}")
        if not isinstance(data, dict):
            raise ApiError(f"GET /projects/{folder}/sessions/{session_id}", 200, "malformed session detail")
        return SessionDetail.from_dict(data)

    async def get_statuses(self, session_ids: Iterable[str]) -> dict[str, StatusInfo]:
        """One batched request for every id; missing ids are simply absent."""
        ids = sorted(set(session_ids))
        params = {"ids": ",".join(ids)} if ids else None
        data = await self._request("GET", "/sessions/status", params=params)
        if not isinstance(data, dict):
            return {}
        return {sid: StatusInfo.from_dict(info) for sid, info in data.items()}

    async def send_message(self, session_id: str, project_path: str, text: str) -> None:
        await self._request(
            "POST",
            f"/sessions/{session_id}/message",
            json={"projectPath": project_path, "message": text},
        )

    async def approve_session(
        self,
        session_id: str,
        project_path: str,
        *,
        pattern: str | None = None,
        always_allow: bool = False,
    ) -> str | None:
        """Terminate the waiting process and resume the session.

        With *always_allow*, the backend persists *pattern* to the
        project's allow list before resuming. Returns the pattern the
        backend reports as added, if any.
        """
        payload: dict[str, Any] = {"projectPath": project_path}
        if always_allow:
            payload["pattern"] = pattern
            payload["alwaysAllow"] = True
        data = await self._request("POST", f"/sessions/{session_id}/approve", json=payload)
        if isinstance(data, dict):
            added = data.get("patternAdded")
            return added if isinstance(added, str) else None
        return None

    async def kill_session(self, session_id: str, project_path: str) -> None:
        await self._request(
            "POST", f"/sessions/{session_id}/kill", json={"projectPath": project_path},
        )

    async def rename_session(self, session_id: str, name: str) -> str | None:
        data = await self._request("PUT", f"/sessions/{session_id}/name", json={"name": name})
        if isinstance(data, dict):
            return data.get("name")
        return None

    async def delete_session(self, project_path: str, session_id: str) -> None:
        folder = quote(project_folder(project_path), safe="")
        await self._request("DELETE", f"/projects/{folder}/sessions/{session_id}")

    def stream_url(self, project_path: str, session_id: str) -> str:
        folder = quote(project_folder(project_path), safe="")
        return self.url(f"/projects/{folder}/sessions/{session_id}/stream")
