"""Provider contract, error taxonomy and the shared HTTP transport."""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from http.client import HTTPException
from typing import Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..logging import get_logger

_TRANSIENT_STATUS = frozenset({408, 425, 429})
_MAX_RETRY_AFTER = 300.0


class ProviderError(RuntimeError):
    """Base class for failures raised by description providers."""


class TransientProviderError(ProviderError):
    """A failure worth retrying (rate limits, timeouts, server errors)."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class PermanentProviderError(ProviderError):
    """A failure that will not go away by retrying (bad key, bad request)."""


@dataclass(frozen=True)
class DescriptionRequest:
    """Everything a provider needs to describe one function."""

    language: str
    name: str
    signature: str
    body: str
    system: str
    prompt: str


class Provider(ABC):
    """Turns a :class:`DescriptionRequest` into a short description.

    Subclasses describe the endpoint, payload and response shape; the HTTP
    exchange and error classification are shared.
    """

    name = "provider"
    DEFAULT_MODEL = ""
    DEFAULT_BASE_URL = ""

    def __init__(
        self,
        model: str | None = None,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: Optional[float] = 0.2,
        max_tokens: Optional[int] = None,
        request_timeout: Optional[float] = 60.0,
    ) -> None:
        self.model = model or self.DEFAULT_MODEL
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self.logger = get_logger(f"llm.{self.name}")

    @property
    def identity(self) -> str:
        """Stable ``provider:model`` string used in cache keys."""
        return f"{self.name}:{self.model}"

    def describe(self, request: DescriptionRequest) -> str:
        self._check_ready()
        started = time.perf_counter()
        payload = post_json(
            self._endpoint(),
            self._build_payload(request),
            headers=self._headers(),
            timeout=self.request_timeout or 60.0,
        )
        content = self._extract_content(payload).strip()
        if not content:
            raise TransientProviderError(f"{self.identity} returned an empty response")
        self.logger.debug(
            "%s described %s in %.2fs (~%d tokens in, ~%d out)",
            self.identity,
            request.name,
            time.perf_counter() - started,
            estimate_tokens(request.system) + estimate_tokens(request.prompt),
            estimate_tokens(content),
        )
        return content

    def _check_ready(self) -> None:
        """Raise :class:`PermanentProviderError` when the provider cannot be called."""

    def _headers(self) -> dict[str, str]:
        return {}

    @abstractmethod
    def _endpoint(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def _build_payload(self, request: DescriptionRequest) -> dict[str, object]:
        raise NotImplementedError

    @abstractmethod
    def _extract_content(self, payload: dict[str, object]) -> str:
        raise NotImplementedError


def estimate_tokens(text: str) -> int:
    """Rough token count (four characters per token)."""
    return (len(text) + 3) // 4


def post_json(
    url: str,
    payload: Mapping[str, object],
    *,
    headers: Mapping[str, str] | None = None,
    timeout: float = 60.0,
) -> dict[str, object]:
    """POST ``payload`` as JSON and return the decoded JSON object.

    HTTP and transport failures are mapped onto the provider error taxonomy.
    """
    data = json.dumps(payload).encode("utf-8")
    request_headers = {"Content-Type": "application/json"}
    request_headers.update(headers or {})
    http_request = Request(url, data=data, headers=request_headers, method="POST")

    try:
        with urlopen(http_request, timeout=timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
        message = f"HTTP {exc.code} from {url}: {detail.strip() or exc.reason}"
        if exc.code in _TRANSIENT_STATUS or exc.code >= 500:
            retry_after = _parse_retry_after(exc.headers.get("Retry-After") if exc.headers else None)
            raise TransientProviderError(message, retry_after=retry_after) from exc
        raise PermanentProviderError(message) from exc
    except URLError as exc:
        raise TransientProviderError(f"Request to {url} failed: {exc.reason}") from exc
    except (TimeoutError, ConnectionError, HTTPException) as exc:
        raise TransientProviderError(f"Request to {url} failed: {exc}") from exc

    try:
        decoded = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TransientProviderError(f"{url} returned invalid JSON") from exc
    if not isinstance(decoded, dict):
        raise TransientProviderError(f"{url} returned an unexpected payload")
    return decoded


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if seconds < 0:
        return None
    return min(seconds, _MAX_RETRY_AFTER)


__all__ = [
    "DescriptionRequest",
    "PermanentProviderError",
    "Provider",
    "ProviderError",
    "TransientProviderError",
    "estimate_tokens",
    "post_json",
]
