import base64
import logging
import time
from typing import Any, Protocol

import requests

from api_chaining.config.settings import HttpConfig
from api_chaining.executor.url_validator import UrlValidationError, validate_url
from api_chaining.models.execution import ApiRequest, RequestOutcome, ResponseData
from api_chaining.models.workflow import BODY_METHODS, AuthType, WorkflowAuth

logger = logging.getLogger(__name__)


class RequestExecutor(Protocol):
    """Performs one resolved request and reports the outcome; never raises on HTTP errors."""

    def __call__(self, request: ApiRequest) -> RequestOutcome: ...


class HttpRequestExecutor:
    """Default execution collaborator backed by ``requests``.

    Owns the outbound destination policy: every URL is checked with
    :func:`validate_url` before a connection is attempted.
    """

    def __init__(
        self,
        config: HttpConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._config = config or HttpConfig()
        self._session = session or requests.Session()

    def __call__(self, request: ApiRequest) -> RequestOutcome:
        try:
            validate_url(request.url, self._config.allow_private_networks)
        except UrlValidationError as e:
            logger.warning("Blocked request to %s: %s", request.url, e)
            return RequestOutcome(success=False, error=f"Invalid URL: {e}")

        headers = {"User-Agent": self._config.user_agent}
        headers.update(request.headers)
        headers.update(build_auth_headers(request.auth))

        body = request.body if request.method in BODY_METHODS else None

        started = time.perf_counter()
        try:
            resp = self._do_request(request.method.value, request.url, headers, body)
        except requests.Timeout:
            logger.error("%s %s timed out", request.method.value, request.url)
            return RequestOutcome(
                success=False,
                error=f"Request timeout ({self._config.timeout:g}s exceeded)",
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", request.method.value, request.url, e)
            return RequestOutcome(success=False, error=f"HTTP request failed: {e}")
        elapsed_ms = (time.perf_counter() - started) * 1000

        data = ResponseData(
            status=resp.status_code,
            status_text=resp.reason or "",
            headers=dict(resp.headers),
            body=_parse_body(resp),
            time=round(elapsed_ms, 2),
            size=round(len(resp.content) / 1024, 3),
        )

        if resp.status_code >= 400:
            return RequestOutcome(
                success=False,
                data=data,
                error=f"HTTP {resp.status_code}: {resp.reason or 'error'}",
            )
        return RequestOutcome(success=True, data=data)

    def _do_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | None,
    ) -> requests.Response:
        kwargs: dict[str, Any] = {"headers": headers, "timeout": self._config.timeout}
        if body is not None:
            kwargs["data"] = body.encode("utf-8")
        return self._session.request(method, url, **kwargs)


def _parse_body(resp: requests.Response) -> Any:
    content_type = resp.headers.get("Content-Type", "")
    if "json" in content_type:
        try:
            return resp.json()
        except ValueError:
            return resp.text
    if content_type.startswith("text/") or not content_type:
        return resp.text
    return {"type": content_type, "message": "Binary response"}


def build_auth_headers(auth: WorkflowAuth) -> dict[str, str]:
    if auth.type == AuthType.BEARER:
        if not auth.token:
            return {}
        return {"Authorization": f"Bearer {auth.token}"}

    if auth.type == AuthType.API_KEY:
        if not auth.api_key:
            return {}
        return {"X-API-Key": auth.api_key}

    if auth.type == AuthType.BASIC:
        if auth.username and auth.password:
            encoded = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
            return {"Authorization": f"Basic {encoded}"}
        return {}

    return {}
