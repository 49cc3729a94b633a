"""
ConductorClient: single-request HTTP transport for the Conductor metadata API.

This module provides the one HTTP client every pass goes through:
  * ``request`` issues exactly one call (no retries) and normalizes the outcome
    into a parsed body or a :class:`TransportError`
  * plan mode suppression: only reads (GET) and the token exchange
    (``POST /token``) reach the network; every other call is logged as
    ``[PLAN] METHOD URL`` and answered locally with an empty body
  * ``probe`` answers lookups with a :class:`ProbeResult` instead of raising,
    so existence checks can decide explicitly what a failure means

Example:
    client = ConductorClient("https://developer.orkescloud.com/api", plan_only=True)
    client = client.with_credential(token)
    client.probe("metadata/taskdefs/my_task").found   # True / False
"""
from __future__ import annotations

import json
import os
import re
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import requests
import urllib3

from .logging_utils import get_logger

log = get_logger(__name__)

JSON = Union[Dict[str, Any], List[Any]]

_LOG_PREVIEW = int(os.getenv("CONDUCTOR_HTTP_PREVIEW", "600"))
_REDACT_KEYS = {"token", "api_key", "keysecret", "key_secret", "x-authorization", "password"}
_TOKEN_PATH = re.compile(r"/token/?$")


def _short_json(obj: Any, limit: int = _LOG_PREVIEW) -> str:
    try:
        if isinstance(obj, (dict, list)):
            s = json.dumps(obj, ensure_ascii=False)
        else:
            s = str(obj)
        return s[:limit]
    except (TypeError, ValueError):
        return f"<unserializable:{type(obj).__name__}>"


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if str(k).lower() in _REDACT_KEYS:
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


class TransportError(Exception):
    """HTTP/transport error with context (status 0 means no response)."""

    def __init__(self, method: str, url: str, status: int = 0, body: str = "", message: str = "") -> None:
        self.method = method
        self.url = url
        self.status = status
        self.body = body
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.status:
            base = f"HTTP {self.status} {self.method} {self.url}"
        else:
            base = f"{self.method} {self.url} failed"
        if self.message:
            base += f": {self.message}"
        if self.body:
            base += f" | response: {self.body[:200]}"
        return base


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a side-effect-free lookup.

    ``status`` is the HTTP status (0 when no response arrived); ``error`` is set
    when the lookup could not be answered at all.
    """
    status: int
    error: Optional[TransportError] = None

    @property
    def found(self) -> bool:
        return self.error is None and 200 <= self.status < 300

    @property
    def not_found(self) -> bool:
        return self.error is None and self.status == 404

    @property
    def inconclusive(self) -> bool:
        """No answer, or a status that is neither success nor 404."""
        return not (self.found or self.not_found)


@dataclass
class ClientOptions:
    """Runtime options for :class:`ConductorClient`.

    Attributes:
        verify: If False, SSL certificate verification is disabled.
        timeout_sec: Per-request timeout; None keeps the requests default (wait forever).
        suppress_insecure_warning: Silence urllib3's InsecureRequestWarning when verify is off.
    """
    verify: bool = True
    timeout_sec: Optional[float] = None
    suppress_insecure_warning: bool = True


class ConductorClient:
    """HTTP transport for the Conductor API.

    Args:
        api_url: Normalized API base (``https://host/api``).
        plan_only: When True, mutating calls are suppressed.
        options: Optional :class:`ClientOptions`.
        session: Optional pre-built :class:`requests.Session` (tests inject one).
    """

    def __init__(
        self,
        api_url: str,
        *,
        plan_only: bool = False,
        options: Optional[ClientOptions] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.plan_only = bool(plan_only)
        self.options = options or ClientOptions()
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "*/*")

        if not self.options.verify and self.options.suppress_insecure_warning:
            warnings.filterwarnings("ignore", category=urllib3.exceptions.InsecureRequestWarning)

    def with_credential(self, credential: Optional[str]) -> "ConductorClient":
        """Return a client sharing this one's settings that sends ``credential``."""
        session = requests.Session()
        session.headers.update(self.session.headers)
        if credential:
            session.headers["X-Authorization"] = credential
        return ConductorClient(self.api_url, plan_only=self.plan_only, options=self.options, session=session)

    @property
    def authenticated(self) -> bool:
        return bool(self.session.headers.get("X-Authorization"))

    # ---------------- low-level ----------------
    def url(self, path: str) -> str:
        """Resolve an absolute URL from a relative *path*."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.api_url}/{path.lstrip('/')}"

    @staticmethod
    def allowed_in_plan(method: str, url: str) -> bool:
        """Reads and the token exchange are the only calls plan mode lets through."""
        path = url.split("?", 1)[0]
        return method == "GET" or (method == "POST" and bool(_TOKEN_PATH.search(path)))

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        text_body: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
        ok_statuses: Iterable[int] = (200,),
        expect: str = "json",
    ) -> Any:
        """Perform one HTTP request and return the parsed response.

        Returns:
            The body as text when ``expect == "text"``, else the decoded JSON
            (``{}`` for an empty body, ``{"_raw": text}`` for non-JSON text).

        Raises:
            TransportError: On connection-level errors or a status outside ``ok_statuses``.
        """
        method = method.upper()
        url = self.url(path)

        if self.plan_only and not self.allowed_in_plan(method, url):
            log.info("[PLAN] %s %s", method, url)
            if json_body is not None:
                log.debug("[PLAN] payload=%s", _short_json(_redact(json_body)))
            return "" if expect == "text" else {}

        headers: Dict[str, str] = {}
        data: Optional[bytes] = None
        if text_body is not None:
            data = text_body.encode("utf-8")
            headers["Content-Type"] = "application/json"

        log.debug("HTTP %s %s params=%s", method, url, dict(params or {}))
        if json_body is not None:
            log.debug("HTTP %s payload=%s", method, _short_json(_redact(json_body)))

        try:
            resp = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                data=data,
                headers=headers or None,
                timeout=self.options.timeout_sec,
                verify=self.options.verify,
            )
        except requests.RequestException as exc:
            log.error("HTTP %s %s failed: %s", method, url, exc)
            raise TransportError(method, url, message=str(exc)) from exc

        text = resp.text or ""
        if resp.status_code not in set(ok_statuses):
            log.error("HTTP %s %s -> %s: %s", method, url, resp.status_code, text[:200])
            raise TransportError(method, url, status=resp.status_code, body=text, message=resp.reason or "")

        log.debug("HTTP %s %s -> %s", method, url, resp.status_code)
        if expect == "text":
            return text
        if not text:
            return {}
        try:
            return resp.json()
        except ValueError:
            return {"_raw": text}

    def probe(self, path: str) -> ProbeResult:
        """GET *path* and report the status; never raises for HTTP or network failures."""
        url = self.url(path)
        try:
            resp = self.session.get(url, timeout=self.options.timeout_sec, verify=self.options.verify)
        except requests.RequestException as exc:
            return ProbeResult(status=0, error=TransportError("GET", url, message=str(exc)))
        log.debug("PROBE %s -> %s", url, resp.status_code)
        return ProbeResult(status=resp.status_code)

    # ---------------- JSON helpers ----------------
    def get_json(self, path: str, **kwargs: Any) -> JSON:
        """GET a JSON resource (empty dict on no-content)."""
        return self.request("GET", path, **kwargs)

    def post_json(self, path: str, data: Any, **kwargs: Any) -> Any:
        """POST a JSON payload; suppressed in plan mode unless it is the token exchange."""
        return self.request("POST", path, json_body=data, **kwargs)

    def post_text(self, path: str, text: str, **kwargs: Any) -> Any:
        """POST a raw text body (sent as ``application/json``, as the prompts API expects)."""
        return self.request("POST", path, text_body=text, **kwargs)
