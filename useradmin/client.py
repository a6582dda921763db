"""HTTP client for a single admin resource collection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar, Union

import httpx

from .models import Payload, User


logger = logging.getLogger("useradmin.client")

T = TypeVar("T")


class TransportError(RuntimeError):
    """Raised when the API could not be reached or answered unexpectedly."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class Saved(Generic[T]):
    """The server accepted a create or update and returned the stored record."""

    record: T
    message: Optional[str] = None


@dataclass(frozen=True)
class Rejected:
    """The server refused a create or update with validation messages."""

    error_messages: Tuple[str, ...]


Outcome = Union[Saved[T], Rejected]


@dataclass
class _ClientConfig:
    base_url: str
    collection: str
    resource: str
    timeout: float
    verify: Optional[Union[str, bool]]


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _build_endpoint(base_url: str, path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    return f"{base_url}{path}"


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


def _extract_validation_messages(payload: object) -> Optional[Tuple[str, ...]]:
    if not isinstance(payload, dict):
        return None
    messages = payload.get("error_messages")
    if messages is None:
        return None
    if isinstance(messages, str):
        return (messages,)
    if isinstance(messages, (list, tuple)):
        return tuple(str(item) for item in messages)
    return None


def _encode_files(payload: Payload) -> Optional[Dict[str, Tuple[str, bytes, str]]]:
    if not payload.files:
        return None
    return {
        name: (avatar.filename, avatar.content, avatar.content_type)
        for name, avatar in payload.files.items()
    }


class ResourceClient(Generic[T]):
    """Create, read, update and delete records of one resource collection.

    Validation failures are returned as :class:`Rejected`; only transport
    level problems raise :class:`TransportError`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        collection: str,
        resource: str,
        record_factory: Callable[[Dict[str, object]], T],
        timeout: float = 10.0,
        verify: Optional[Union[str, bool]] = None,
        session: Optional[httpx.Client] = None,
    ) -> None:
        self._config = _ClientConfig(
            base_url=_normalize_base_url(base_url),
            collection=collection.strip("/"),
            resource=resource,
            timeout=timeout,
            verify=verify,
        )
        if not self._config.collection:
            raise ValueError("Collection path must not be empty")
        self._record_factory = record_factory
        self._session = session

    @property
    def collection_url(self) -> str:
        return _build_endpoint(self._config.base_url, f"/{self._config.collection}")

    def member_url(self, record_id: object) -> str:
        return _build_endpoint(self._config.base_url, f"/{self._config.collection}/{record_id}")

    def list(self) -> List[T]:
        data = self._request_json("GET", self.collection_url)
        raw_items = data.get(self._config.collection.rsplit("/", 1)[-1])
        if not isinstance(raw_items, list):
            raise TransportError(f"API returned an invalid {self._config.resource} list")
        return [self._parse_record(item) for item in raw_items]

    def create(self, payload: Payload) -> Outcome[T]:
        return self._submit("POST", self.collection_url, payload)

    def update(self, record_id: object, payload: Payload) -> Outcome[T]:
        return self._submit("PUT", self.member_url(record_id), payload)

    def destroy(self, record_id: object) -> str:
        data = self._request_json("DELETE", self.member_url(record_id))
        message = data.get("message")
        return str(message) if message is not None else ""

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _submit(self, method: str, url: str, payload: Payload) -> Outcome[T]:
        data = self._request_json(
            method,
            url,
            data=dict(payload.fields),
            files=_encode_files(payload),
            accept_validation_errors=True,
        )

        raw_record = data.get(self._config.resource)
        if isinstance(raw_record, dict):
            message = data.get("message")
            return Saved(
                record=self._parse_record(raw_record),
                message=str(message) if message is not None else None,
            )

        messages = _extract_validation_messages(data)
        if messages is not None:
            logger.info("%s %s rejected: %s", method, url, "; ".join(messages))
            return Rejected(error_messages=messages)

        raise TransportError(f"API response did not include a {self._config.resource}")

    def _parse_record(self, raw: object) -> T:
        if not isinstance(raw, dict):
            raise TransportError(f"API returned an invalid {self._config.resource} payload")
        try:
            return self._record_factory(raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise TransportError(
                f"API {self._config.resource} payload was missing required fields"
            ) from exc

    def _send(self, method: str, url: str, **kwargs: object) -> httpx.Response:
        if self._session is not None:
            return self._session.request(method, url, timeout=self._config.timeout, **kwargs)
        return httpx.request(
            method,
            url,
            timeout=self._config.timeout,
            verify=True if self._config.verify is None else self._config.verify,
            **kwargs,
        )

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        data: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, Tuple[str, bytes, str]]] = None,
        accept_validation_errors: bool = False,
    ) -> Dict[str, object]:
        kwargs: Dict[str, object] = {}
        if data is not None:
            kwargs["data"] = data
        if files is not None:
            kwargs["files"] = files

        try:
            response = self._send(method, url, **kwargs)
        except httpx.RequestError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransportError(f"Failed to contact the admin API: {exc}") from exc

        try:
            parsed: object = response.json()
        except ValueError:
            parsed = None

        if response.status_code >= 400:
            if accept_validation_errors and response.status_code in (400, 422):
                messages = _extract_validation_messages(parsed)
                if messages is not None:
                    logger.info("%s %s rejected: %s", method, url, "; ".join(messages))
                    return {"error_messages": list(messages)}

            if response.status_code == 404:
                message = f"The requested {self._config.resource} was not found"
            else:
                default = f"Admin API request failed with status {response.status_code}"
                detail = parsed.get("detail") if isinstance(parsed, dict) else None
                message = _extract_error_message(detail if detail is not None else parsed, default)
            logger.warning("%s %s returned %s", method, url, response.status_code)
            raise TransportError(message, status_code=response.status_code)

        if not isinstance(parsed, dict):
            raise TransportError(
                "Admin API returned an unexpected response payload",
                status_code=response.status_code,
            )
        return parsed


def create_users_client(
    base_url: str,
    *,
    timeout: float = 10.0,
    verify: Optional[Union[str, bool]] = None,
    session: Optional[httpx.Client] = None,
) -> ResourceClient[User]:
    """Return a client bound to the ``admin/users`` collection."""

    return ResourceClient(
        base_url,
        collection="admin/users",
        resource="user",
        record_factory=User.from_dict,
        timeout=timeout,
        verify=verify,
        session=session,
    )


__all__ = [
    "Outcome",
    "Rejected",
    "ResourceClient",
    "Saved",
    "TransportError",
    "create_users_client",
]
