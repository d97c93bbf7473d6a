import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from watchwise.errors import MissingCredential, UpstreamUnavailable
from watchwise.observability import get_logger, sanitize_json_bytes, sanitize_params
from watchwise.settings import Settings

JSONDict = Dict[str, Any]

HISTORY_PLAYLIST_ID = "HL"
DETAILS_BATCH_SIZE = 50


class YouTubeClient:
    """YouTube Data API v3: watch-history playlist and video details."""

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base = str(settings.youtube_api_base_url).rstrip("/")
        self.api_key = settings.youtube_api_key.get_secret_value() if settings.youtube_api_key else None
        self.max_results = max(1, min(50, settings.youtube_history_max_results))
        self._logger = get_logger(__name__)
        self._client = httpx.AsyncClient(
            base_url=self.base,
            timeout=settings.upstream_timeout_seconds,
            transport=transport,
            event_hooks={"request": [self._log_request], "response": [self._log_response]},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise MissingCredential("YouTube API key not configured")
        return self.api_key

    async def _log_request(self, request: httpx.Request) -> None:
        request.extensions["start_time"] = time.perf_counter()
        self._logger.info(
            "youtube.request",
            extra={
                "event": "youtube.request",
                "youtube_method": request.method,
                "youtube_path": request.url.path,
                "youtube_query": sanitize_params(dict(request.url.params)),
            },
        )

    async def _log_response(self, response: httpx.Response) -> None:
        start = response.request.extensions.get("start_time")
        duration_ms = int((time.perf_counter() - float(start)) * 1000) if start is not None else None

        body_text = None
        body_truncated = None
        if response.status_code >= 400 or self._logger.isEnabledFor(logging.DEBUG):
            content = await response.aread()
            if content:
                body_text, body_truncated = sanitize_json_bytes(content)

        self._logger.info(
            "youtube.response",
            extra={
                "event": "youtube.response",
                "youtube_method": response.request.method,
                "youtube_path": response.request.url.path,
                "youtube_status": response.status_code,
                "youtube_duration_ms": duration_ms,
                "youtube_response_body": body_text,
                "youtube_response_body_truncated": body_truncated,
            },
        )

    async def _get(self, path: str, *, params: JSONDict, headers: Optional[Dict[str, str]] = None) -> JSONDict:
        try:
            resp = await self._client.get(path, params=params, headers=headers)
        except httpx.HTTPError as exc:
            self._logger.exception("youtube.exception", extra={"event": "youtube.exception", "youtube_path": path})
            raise UpstreamUnavailable(f"YouTube API unreachable: {exc}", upstream="youtube") from exc
        if resp.status_code != 200:
            raise UpstreamUnavailable(_error_message(resp), upstream="youtube", status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable("YouTube API returned invalid JSON", upstream="youtube", status=200) from exc
        return data if isinstance(data, dict) else {}

    async def fetch_history(self, access_token: str, *, max_results: Optional[int] = None) -> List[JSONDict]:
        """Most recent items of the user's watch-history playlist (may be empty)."""
        api_key = self._require_api_key()
        if not access_token:
            raise MissingCredential("No YouTube access token found. Please reconnect with Google.")
        data = await self._get(
            "/playlistItems",
            params={
                "part": "snippet,contentDetails",
                "playlistId": HISTORY_PLAYLIST_ID,
                "maxResults": max_results or self.max_results,
                "key": api_key,
            },
            headers={"Authorization": f"Bearer {access_token}"},
        )
        items = data.get("items")
        return [it for it in items if isinstance(it, dict)] if isinstance(items, list) else []

    async def fetch_video_details(self, video_ids: List[str]) -> List[JSONDict]:
        """Full details for the given ids, requested in chunks of 50."""
        api_key = self._require_api_key()
        out: List[JSONDict] = []
        for start in range(0, len(video_ids), DETAILS_BATCH_SIZE):
            chunk = video_ids[start : start + DETAILS_BATCH_SIZE]
            data = await self._get(
                "/videos",
                params={"part": "snippet,contentDetails", "id": ",".join(chunk), "key": api_key},
            )
            items = data.get("items")
            if isinstance(items, list):
                out.extend(it for it in items if isinstance(it, dict))
        return out


def _error_message(resp: httpx.Response) -> str:
    # Google errors look like {"error": {"code": 403, "message": "..."}}.
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if message:
            return f"Failed to fetch YouTube history: {message}"
    return f"Failed to fetch YouTube history (HTTP {resp.status_code})"
