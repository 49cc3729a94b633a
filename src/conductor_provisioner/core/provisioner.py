"""
Run driver: authenticate once, then run one reconciliation pass per resource
kind in registry order.

A failed creation stops the run at that pass; later passes are reported as
``not_run`` and the report is still returned so the caller can render it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, Iterable, List, Optional

from ..adapters.registry import AdapterSpec, iter_adapters
from .auth import check_connectivity, fetch_user_info, obtain_credential
from .conductor_client import ClientOptions, ConductorClient
from .config import Config
from .context import RunContext
from .logging_utils import get_logger
from .reconciler import ReconciliationError, ReconciliationResult, reconcile
from .resources import ResourceKind

log = get_logger(__name__)


@dataclass
class PassReport:
    """Outcome of one pass: ``ok``, ``skipped``, ``failed`` or ``not_run``."""
    kind: ResourceKind
    status: str
    result: Optional[ReconciliationResult] = None
    message: str = ""
    ui: str = ""
    error: Optional[ReconciliationError] = None

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"kind": self.kind.value, "status": self.status, "ui": self.ui}
        res = self.result
        if res is not None:
            row["existing"] = res.existing_count
            row["skipped_invalid"] = res.skipped_invalid_count
            if res.plan_only:
                row["would_create"] = len(res.missing)
            else:
                row["created"] = res.created_count
            row["names"] = ", ".join(res.created_names)
        if self.status == "failed":
            row["error"] = self.message
        elif self.message:
            row["note"] = self.message
        return row


@dataclass
class RunReport:
    plan_only: bool
    api_url: str
    ui_url: str
    passes: List[PassReport] = field(default_factory=list)
    error: Optional[ReconciliationError] = None

    @property
    def any_error(self) -> bool:
        return self.error is not None

    def rows(self) -> List[Dict[str, Any]]:
        return [p.to_row() for p in self.passes]


class Provisioner:
    """Drive one provisioning run.

    Args:
        config: Resolved configuration.
        client: Optional unauthenticated transport (tests inject one); built
            from ``config.conductor`` otherwise.
        adapters: Adapter rows to run, registry order by default.
    """

    def __init__(
        self,
        config: Config,
        *,
        client: Optional[ConductorClient] = None,
        adapters: Optional[Iterable[AdapterSpec]] = None,
    ) -> None:
        self.config = config
        self.client = client or ConductorClient(
            config.conductor.api_url,
            plan_only=config.plan_only,
            options=ClientOptions(verify=config.conductor.verify_tls, timeout_sec=config.conductor.timeout_sec),
        )
        self.adapters = list(adapters) if adapters is not None else list(iter_adapters())

    def _banner(self) -> None:
        cfg = self.config
        log.info("=== Conductor setup (%s) ===", "PLAN" if cfg.plan_only else "APPLY")
        log.info("API: %s", cfg.conductor.api_url)
        log.info("UI:  %s", cfg.conductor.ui_url)
        if cfg.plan_only:
            log.info("[PLAN] Mutating calls are suppressed; GET and POST /token still reach the server")

    def run(self) -> RunReport:
        """Authenticate, check connectivity, then run every pass.

        Raises:
            ConfigurationError: No credential material.
            AuthenticationError: Token exchange failed.
            TransportError: Server unreachable.
            ValidationError: A desired-state document is unusable.
        """
        cfg = self.config
        self._banner()

        credential = obtain_credential(cfg.conductor, self.client)
        client = self.client.with_credential(credential)
        check_connectivity(client)
        user_info = fetch_user_info(client)

        ctx = RunContext(
            config=cfg,
            plan_only=cfg.plan_only,
            api_url=cfg.conductor.api_url,
            ui_url=cfg.conductor.ui_url,
            user_info=user_info,
        )
        report = RunReport(plan_only=ctx.plan_only, api_url=ctx.api_url, ui_url=ctx.ui_url)

        for spec in self.adapters:
            if report.error is not None:
                report.passes.append(PassReport(spec.kind, "not_run", message="stopped after an earlier failure"))
                continue
            outcome = self._run_pass(spec, client, ctx)
            if outcome.status == "failed":
                report.error = outcome.error
            report.passes.append(outcome)

        if report.error is not None:
            log.error("Run stopped: %s", report.error)
        else:
            log.info("Done.")
        return report

    def _run_pass(self, spec: AdapterSpec, client: ConductorClient, ctx: RunContext) -> PassReport:
        log.info("--- %s ---", spec.help)
        hint_fn = spec.resolve("ui_hint")
        ui = hint_fn(ctx) if hint_fn else ""

        gate = spec.resolve("gate")
        if gate is not None and not gate(ctx.config):
            log.info("%s disabled (skipping).", spec.help)
            return PassReport(spec.kind, "skipped", message="disabled", ui=ui)

        desired = spec.resolve("loader")(ctx)
        if desired is None:
            return PassReport(spec.kind, "skipped", message="source not found", ui=ui)
        if not desired:
            log.info("No %s declared (skipping).", spec.kind.value)
            return PassReport(spec.kind, "skipped", message="nothing declared", ui=ui)

        fill = spec.resolve("defaults")
        if fill is not None:
            desired = [fill(d, ctx) for d in desired]

        creator = spec.resolve("creator")
        batch_creator = spec.resolve("batch_creator")
        try:
            result = reconcile(
                spec.kind,
                desired,
                spec.resolve("oracle")(client, ctx),
                partial(creator, client) if creator else None,
                plan_only=ctx.plan_only,
                batch_creator=partial(batch_creator, client) if batch_creator else None,
                fail_closed=ctx.config.app.fail_closed,
            )
        except ReconciliationError as exc:
            log.error("%s", exc)
            return PassReport(spec.kind, "failed", message=str(exc), ui=ui, error=exc)

        if ui:
            log.info("UI: %s", ui)
        return PassReport(spec.kind, "ok", result=result, ui=ui)
