"""HTTP transport for the CMS backend.

Every request goes through :class:`ApiClient`, which attaches the bearer
credential, applies the configured timeout and translates failures into the
:class:`SyncError` hierarchy.  Response bodies are unwrapped at a single
boundary (:func:`parse_collection` / :func:`parse_entity`) so callers never
have to sniff envelope shapes themselves.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx

from app.models.base import FileUpload

logger = logging.getLogger(__name__)

TIMEOUT = 5  # seconds

TokenSource = Union[str, Callable[[], str]]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class SyncError(Exception):
    """A request to the backend did not produce a usable result."""

    kind = "unknown"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RateLimitedError(SyncError):
    kind = "rate_limited"


class AuthorizationError(SyncError):
    kind = "authorization"


class ValidationFailedError(SyncError):
    kind = "validation"

    def __init__(
        self,
        message: str,
        field_errors: Optional[Dict[str, str]] = None,
        status_code: Optional[int] = 422,
    ) -> None:
        super().__init__(message, status_code)
        self.field_errors = field_errors or {}


class TransportError(SyncError):
    """Timeouts, refused connections and other network-level failures."""

    kind = "network"


class MalformedPayloadError(SyncError):
    kind = "malformed"


# ---------------------------------------------------------------------------
# Payload boundary
# ---------------------------------------------------------------------------

def parse_collection(payload: Any) -> List[Dict[str, Any]]:
    """Return the item list from a bare array or a ``{"data": [...]}`` envelope."""
    if isinstance(payload, dict):
        if payload.get("success") is False:
            raise SyncError(str(payload.get("message") or "Backend reported failure."))
        payload = payload.get("data")
    if not isinstance(payload, list):
        raise MalformedPayloadError("Expected a list of items from the backend.")
    if not all(isinstance(item, dict) for item in payload):
        raise MalformedPayloadError("Every item in the list must be an object.")
    return payload


def parse_entity(payload: Any) -> Dict[str, Any]:
    """Return one entity from a bare object or a ``{"data": {...}}`` envelope."""
    if not isinstance(payload, dict):
        raise MalformedPayloadError("Expected an object from the backend.")
    if payload.get("success") is False:
        raise SyncError(str(payload.get("message") or "Backend reported failure."))
    inner = payload.get("data")
    if isinstance(inner, dict):
        return inner
    return payload


def _flatten(prefix: str, value: Any, out: List[Tuple[str, str]]) -> None:
    if isinstance(value, dict):
        for key, inner in value.items():
            _flatten(f"{prefix}[{key}]", inner, out)
    elif isinstance(value, (list, tuple)):
        for index, inner in enumerate(value):
            _flatten(f"{prefix}[{index}]", inner, out)
    elif value is None:
        return
    elif isinstance(value, bool):
        out.append((prefix, "1" if value else "0"))
    else:
        out.append((prefix, str(value)))


def flatten_form(fields: Dict[str, Any]) -> List[Tuple[str, str]]:
    """Flatten nested values into bracketed form keys (``features[0]``, ``links[0][key]``)."""
    out: List[Tuple[str, str]] = []
    for key, value in fields.items():
        _flatten(key, value, out)
    return out


def has_upload(fields: Dict[str, Any]) -> bool:
    return any(isinstance(value, FileUpload) for value in fields.values())


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"HTTP {response.status_code}"


def _field_errors(response: httpx.Response) -> Dict[str, str]:
    """Extract the first message per field from a 422 body."""
    try:
        body = response.json()
    except ValueError:
        return {}
    if not isinstance(body, dict):
        return {}

    errors: Dict[str, str] = {}
    raw = body.get("errors")
    if isinstance(raw, dict):
        for field, messages in raw.items():
            if isinstance(messages, list) and messages:
                errors[field] = str(messages[0])
            elif messages:
                errors[field] = str(messages)
    # FastAPI-style ``{"detail": [{"loc": [...], "msg": "..."}]}``
    detail = body.get("detail")
    if isinstance(detail, list):
        for entry in detail:
            if not isinstance(entry, dict) or not entry.get("loc"):
                continue
            field = str(entry["loc"][-1])
            errors.setdefault(field, str(entry.get("msg", "Invalid value.")))
    return errors


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ApiClient:
    """List/create/update/delete calls against ``<base_url>/<endpoint>``."""

    def __init__(
        self,
        base_url: str,
        token: TokenSource = "",
        timeout: float = TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def _headers(self) -> Dict[str, str]:
        token = self._token() if callable(self._token) else self._token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path.lstrip("/"), headers=self._headers(), **kwargs
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {path} timed out.") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Request to {path} failed: {exc}") from exc

        status = response.status_code
        if status == 429:
            raise RateLimitedError("Rate limit exceeded.", status)
        if status in (401, 403):
            raise AuthorizationError(_error_message(response), status)
        if status == 422:
            raise ValidationFailedError(
                _error_message(response), _field_errors(response), status
            )
        if status >= 400:
            raise SyncError(_error_message(response), status)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedPayloadError("Backend returned a non-JSON body.") from exc

    async def _write(self, method: str, path: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        if has_upload(fields):
            form = flatten_form(
                {k: v for k, v in fields.items() if not isinstance(v, FileUpload)}
            )
            files = {
                k: (v.filename, v.content, v.content_type)
                for k, v in fields.items()
                if isinstance(v, FileUpload)
            }
            if method == "PUT":
                # Multipart bodies only travel on POST; the backend honours _method.
                form.append(("_method", "PUT"))
                method = "POST"
            response = await self._request(method, path, data=dict(form), files=files)
        else:
            response = await self._request(method, path, json=fields)
        return parse_entity(self._json(response))

    async def list(self, endpoint: str) -> List[Dict[str, Any]]:
        response = await self._request("GET", endpoint)
        return parse_collection(self._json(response))

    async def create(self, endpoint: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._write("POST", endpoint, fields)

    async def update(self, endpoint: str, item_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._write("PUT", f"{endpoint}/{item_id}", fields)

    async def delete(self, endpoint: str, item_id: str) -> None:
        await self._request("DELETE", f"{endpoint}/{item_id}")

    async def action(self, endpoint: str, item_id: str, name: str) -> Optional[Dict[str, Any]]:
        """POST to ``<endpoint>/<id>/<name>`` (e.g. ``activate``); returns the entity if any."""
        response = await self._request("POST", f"{endpoint}/{item_id}/{name}")
        payload = self._json(response)
        if payload is None:
            return None
        return parse_entity(payload)

    async def aclose(self) -> None:
        await self._client.aclose()
