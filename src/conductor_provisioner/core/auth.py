"""
Authentication against the Conductor API.

The credential is either the configured access token, or a token issued by
``POST /token`` in exchange for a key id / secret pair. The exchange goes
through the transport like any other call and is allowed in plan mode.
"""
from __future__ import annotations

from typing import Any, Dict

from .conductor_client import ConductorClient, TransportError
from .config import ConductorSection, ConfigurationError
from .logging_utils import get_logger

log = get_logger(__name__)


class AuthenticationError(Exception):
    """Raised when the key/secret exchange does not yield a token."""
    pass


def obtain_credential(conductor: ConductorSection, client: ConductorClient) -> str:
    """Return the bearer credential for this run.

    A non-empty access token wins; otherwise the key/secret pair is exchanged.

    Raises:
        ConfigurationError: If neither an access token nor a key/secret pair is configured.
        AuthenticationError: If the exchange fails, or returns no token outside plan mode.
    """
    if conductor.access_token:
        log.info("Using CONDUCTOR_ACCESS_TOKEN")
        return conductor.access_token

    if not conductor.key_id or not conductor.key_secret:
        raise ConfigurationError(
            "Need CONDUCTOR_ACCESS_TOKEN OR (CONDUCTOR_KEY_ID/CONDUCTOR_KEY) + "
            "(CONDUCTOR_KEY_SECRET/CONDUCTOR_SECRET)."
        )

    log.info("Using key/secret to obtain token")
    try:
        resp = client.post_json(
            "token",
            {"keyId": conductor.key_id, "keySecret": conductor.key_secret},
            ok_statuses=(200,),
        )
    except TransportError as exc:
        raise AuthenticationError(f"Token exchange failed: {exc}") from exc

    token = resp.get("token") if isinstance(resp, dict) else None
    if not token:
        if client.plan_only:
            log.warning("No token returned by /token; continuing unauthenticated in PLAN mode")
            return ""
        raise AuthenticationError("Failed to obtain token from /token")
    return str(token)


def check_connectivity(client: ConductorClient) -> str:
    """GET /version; a failure here is fatal for the run.

    Raises:
        TransportError: If the server cannot be reached.
    """
    log.info("Checking server connectivity")
    version = client.request("GET", "version", expect="text")
    log.info("Server reachable")
    return version.strip()


def fetch_user_info(client: ConductorClient) -> Dict[str, Any]:
    """Return the authenticated user's info, or ``{}`` when it cannot be read."""
    try:
        info = client.get_json("token/userInfo", ok_statuses=(200,))
    except TransportError as exc:
        log.debug("userInfo unavailable: %s", exc)
        info = {}
    if not isinstance(info, dict):
        info = {}
    if info.get("name"):
        log.info("Authenticated as: %s (%s)", info["name"], info.get("id") or "unknown")
    else:
        log.info("Authenticated as: unknown user")
    return info
