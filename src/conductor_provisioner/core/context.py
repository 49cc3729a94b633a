"""Per-run context shared read-only by every pass."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from .config import Config


@dataclass(frozen=True)
class RunContext:
    """Everything a pass needs besides the transport.

    Attributes:
        config: Resolved configuration.
        plan_only: Mode for the whole run.
        api_url: Normalized API base.
        ui_url: UI base (API base without ``/api``).
        user_info: ``GET /token/userInfo`` payload, ``{}`` when unavailable.
    """
    config: Config
    plan_only: bool
    api_url: str
    ui_url: str
    user_info: Dict[str, Any] = field(default_factory=dict)

    @property
    def owner_email(self) -> str:
        return str(self.user_info.get("id") or "unknown")
