import time
from typing import Any, Dict, Optional

import httpx

from watchwise.errors import GeneratorTransportError, MalformedUpstreamResponse, MissingCredential, UpstreamUnavailable
from watchwise.observability import get_logger, sanitize_json_text
from watchwise.settings import Settings


class LLMClient:
    """OpenAI-compatible chat-completions gateway.

    One attempt per call: transport problems raise ``GeneratorTransportError``,
    non-200 answers raise ``UpstreamUnavailable``. Callers decide whether a
    failure is fatal.
    """

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base = str(settings.llm_base_url).rstrip("/")
        self.api_key = settings.llm_api_key.get_secret_value() if settings.llm_api_key else None
        self.model = settings.llm_model
        self.timeout = settings.upstream_timeout_seconds
        self._transport = transport
        self._logger = get_logger(__name__)

    def require_credentials(self) -> None:
        if not self.api_key:
            raise MissingCredential("Text generation API key not configured")

    async def complete(self, system_prompt: str, user_message: str, *, temperature: Optional[float] = None) -> str:
        self.require_credentials()
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
        }
        if temperature is not None:
            body["temperature"] = float(temperature)

        start = time.perf_counter()
        async with httpx.AsyncClient(base_url=self.base, timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(
                    "/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                    json=body,
                )
            except httpx.HTTPError as exc:
                self._logger.exception("llm.exception", extra={"event": "llm.exception", "llm_model": self.model})
                raise GeneratorTransportError(f"Text generation service unreachable: {exc}") from exc

        duration_ms = int((time.perf_counter() - start) * 1000)
        request_id = resp.headers.get("x-request-id")
        if resp.status_code != 200:
            body_text, body_truncated = sanitize_json_text(resp.text, max_chars=2000)
            self._logger.warning(
                "llm.error",
                extra={
                    "event": "llm.error",
                    "llm_status": resp.status_code,
                    "llm_body": body_text,
                    "llm_body_truncated": body_truncated,
                    "llm_request_id": request_id,
                    "llm_model": self.model,
                    "llm_duration_ms": duration_ms,
                },
            )
            raise UpstreamUnavailable(
                f"Text generation failed (HTTP {resp.status_code})", upstream="llm", status=resp.status_code
            )

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedUpstreamResponse("Text generation returned an unexpected payload") from exc
        content = (content or "").strip() if isinstance(content, str) else ""
        self._logger.info(
            "llm.response",
            extra={
                "event": "llm.response",
                "llm_model": data.get("model") or self.model,
                "llm_request_id": request_id,
                "llm_usage": data.get("usage"),
                "llm_content_len": len(content),
                "llm_duration_ms": duration_ms,
            },
        )
        return content
