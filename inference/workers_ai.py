"""
Workers AI inference backend.

Calls the hosted REST contract:
    POST {base_url}/accounts/{account_id}/ai/run/{model_id}

JSON answers arrive wrapped in {"result": ..., "success": ..., "errors": [...]}.
Binary media (images, audio) and token streams (server-sent events) arrive as
raw bodies and are handed back as a byte stream without buffering.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from .base import InferenceBackend
from .types import (
    AudioInput,
    ByteStreamOutput,
    InferenceError,
    ObjectOutput,
    RawOutput,
    StringOutput,
)

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.cloudflare.com/client/v4"


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _error_from_body(status_code: int, body: bytes) -> InferenceError:
    """Build an InferenceError from an upstream error body."""
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        text = body.decode("utf-8", errors="replace").strip()
        return InferenceError(
            f"HTTP {status_code}: {text or 'no body'}", status_code=status_code
        )

    errors = data.get("errors") if isinstance(data, dict) else None
    if errors and isinstance(errors, list) and isinstance(errors[0], dict):
        first = errors[0]
        code = first.get("code")
        message = first.get("message", "unknown error")
        prefix = f"{code}: " if code is not None else ""
        return InferenceError(
            f"{prefix}{message}",
            code=code if isinstance(code, int) else None,
            status_code=status_code,
        )
    return InferenceError(f"HTTP {status_code}: {data}", status_code=status_code)


class WorkersAIBackend(InferenceBackend):
    """
    HTTP backend for hosted Workers AI models.

    One AsyncClient is created lazily and reused for the life of the backend.
    No timeout is applied unless one is configured; the hosting request
    lifecycle bounds slow calls.
    """

    name = "workers_ai"

    def __init__(
        self,
        account_id: str,
        api_token: str,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_s: Optional[float] = None,
    ):
        if not account_id or not api_token:
            raise ValueError("account_id and api_token are required")
        self.account_id = account_id
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(
                headers={"Authorization": f"Bearer {self.api_token}"},
                timeout=httpx.Timeout(self.timeout_s),
            )
        return self.http_client

    def model_url(self, model_id: str) -> str:
        return f"{self.base_url}/accounts/{self.account_id}/ai/run/{model_id}"

    def _build_request(
        self,
        client: httpx.AsyncClient,
        model_id: str,
        payload: Dict[str, Any],
        stream: bool,
    ) -> httpx.Request:
        url = self.model_url(model_id)
        audio = payload.get("audio")

        if isinstance(audio, AudioInput):
            # Binary upload; remaining options travel as query parameters
            params = {
                key: _query_value(value)
                for key, value in payload.items()
                if key != "audio" and value is not None
            }
            return client.build_request(
                "POST",
                url,
                content=audio.body,
                params=params,
                headers={"Content-Type": audio.content_type},
            )

        body = dict(payload)
        if stream:
            body["stream"] = True
        return client.build_request("POST", url, json=body)

    async def run(
        self,
        model_id: str,
        payload: Dict[str, Any],
        *,
        stream: bool = False,
    ) -> RawOutput:
        client = await self._get_http_client()
        request = self._build_request(client, model_id, payload, stream)

        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise InferenceError(f"Upstream timeout calling {model_id}: {e}") from e
        except httpx.HTTPError as e:
            raise InferenceError(f"Inference request failed for {model_id}: {e}") from e

        if response.status_code >= 400:
            try:
                body = await response.aread()
            finally:
                await response.aclose()
            error = _error_from_body(response.status_code, body)
            logger.error(
                f"Inference call rejected: model={model_id} status={response.status_code} "
                f"error={error.message}"
            )
            raise error

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return ByteStreamOutput(
                chunks=self._iter_body(response),
                content_type=content_type or None,
            )

        try:
            body = await response.aread()
        except httpx.TimeoutException as e:
            raise InferenceError(f"Upstream timeout reading {model_id}: {e}") from e
        finally:
            await response.aclose()

        try:
            data = json.loads(body)
        except ValueError as e:
            raise InferenceError(f"invalid JSON from {model_id}: {e}") from e

        if isinstance(data, dict) and data.get("success") is False:
            raise _error_from_body(response.status_code, body)

        result = data.get("result", data) if isinstance(data, dict) else data
        if isinstance(result, str):
            return StringOutput(result)
        return ObjectOutput(result)

    async def _iter_body(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                if chunk:
                    yield chunk
        except httpx.TimeoutException as e:
            raise InferenceError(f"Upstream timeout while streaming: {e}") from e
        except httpx.HTTPError as e:
            raise InferenceError(f"Upstream stream interrupted: {e}") from e
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
