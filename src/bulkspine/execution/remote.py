"""The remote call capability consumed by the executors.

The orchestrator treats the remote API as an opaque coroutine::

    await call(method, path, payload, credentials) -> response body

that may raise.  Service adapters (authentication, endpoint shaping) live
outside this package; :class:`HttpRemoteCall` is the generic httpx-based
adapter used by the API server and the CLI.

:func:`describe_remote_error` turns whatever the call raised into the
human text and diagnostic payload carried by a failed row result.
"""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from typing import Any, Protocol

import httpx

from bulkspine.core.errors import RemoteCallError
from bulkspine.core.logging import get_logger

logger = get_logger(__name__)


class RemoteCall(Protocol):
    """Opaque remote API capability."""

    def __call__(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None,
        credentials: Any,
    ) -> Awaitable[Any]:
        ...


def _error_from_body(body: Any, status: int, reason: str) -> str:
    if isinstance(body, Mapping):
        if body.get("message"):
            return str(body["message"])
        if body.get("code") is not None:
            return f"Code {body['code']}: {body.get('message') or 'Unknown Error'}"
    return f"HTTP {status}: {reason}"


def describe_remote_error(exc: BaseException) -> tuple[str, Any]:
    """Map a remote-call exception to ``(message, full_response)``."""
    if isinstance(exc, RemoteCallError):
        return exc.message, exc.full_response
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        body = _decode_body(response)
        return _error_from_body(body, response.status_code, response.reason_phrase), body
    return (str(exc) or "Network/Unknown Error", repr(exc))


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpRemoteCall:
    """httpx adapter for JSON APIs.

    ``credentials`` may be a mapping with ``base_url`` and ``access_token``
    (sent as a bearer token); anything missing falls back to the values
    given at construction.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float = 30.0,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._token = token
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __call__(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None,
        credentials: Any = None,
    ) -> Any:
        creds = credentials if isinstance(credentials, Mapping) else {}
        base_url = creds.get("base_url") or self._base_url
        if not base_url:
            raise RemoteCallError("No base URL configured for remote calls")
        url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"

        headers = {"Accept": "application/json"}
        token = creds.get("access_token") or self._token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(
                method.upper(),
                url,
                json=payload if payload is not None else None,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise RemoteCallError(str(e) or "Network/Unknown Error", url=url, full_response=repr(e), cause=e) from e

        if response.is_error:
            body = _decode_body(response)
            message = _error_from_body(body, response.status_code, response.reason_phrase)
            logger.warning(
                "remote.call_failed",
                method=method.upper(),
                url=url,
                http_status=response.status_code,
                error=message,
            )
            raise RemoteCallError(message, http_status=response.status_code, full_response=body, url=url)

        return _decode_body(response)

    async def aclose(self) -> None:
        await self._client.aclose()
