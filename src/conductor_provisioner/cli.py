# conductor_provisioner/cli.py
"""CLI: one command that provisions Conductor metadata idempotently.

Passes run in registry order (integration, models, taskdefs, forms, prompts,
workflows). Each creates only what the server does not already have, so
re-running after a failure is safe. ``--plan`` reports what would be created
without mutating anything.
"""
from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, List, Optional

import requests

from .core.auth import AuthenticationError
from .core.conductor_client import TransportError
from .core.config import ConfigurationError, load_config
from .core.logging_utils import get_logger, setup_logging
from .core.provisioner import Provisioner
from .utils.reporting import print_rows
from .utils.validators import ValidationError

EXIT_OK = 0
EXIT_GENERIC_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_VALIDATION_ERROR = 3
EXIT_NETWORK_ERROR = 4
EXIT_AUTH_ERROR = 5

log = get_logger(__name__)


def _overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI flags onto config sections; unset flags leave lower layers alone."""
    out: Dict[str, Any] = {}

    def put(section: str, key: str, value: Any) -> None:
        out.setdefault(section, {})[key] = value

    if args.plan:
        put("app", "plan_only", True)
    if args.fail_closed:
        put("app", "fail_closed", True)
    if args.format:
        put("app", "output_format", args.format)
    if args.no_openai:
        put("openai", "enabled", False)
    if args.no_verify:
        put("conductor", "verify_tls", False)
    if args.workflows_dir:
        put("sources", "workflows_dir", args.workflows_dir)
    if args.prompts_dir:
        put("sources", "prompts_dir", args.prompts_dir)
    if args.forms_dir:
        put("sources", "forms_dir", args.forms_dir)
    if args.workflow_file:
        put("sources", "workflow_file", args.workflow_file)
    return out


# ----------------------------- Command handler ------------------------------

def cmd_provision(args: argparse.Namespace) -> None:
    """Load config, run every pass, print the report; exits non-zero on failure."""
    try:
        cfg = load_config(_overrides_from_args(args), project_file=args.project_file)
        logfile = setup_logging(
            cfg.logging.console_level,
            file_level=cfg.logging.file_level,
            log_dir=cfg.logging.base_dir,
            action="plan" if cfg.plan_only else "apply",
        )
        if logfile:
            log.info("Writing log file %s", logfile)

        report = Provisioner(cfg).run()
        print_rows(report.rows(), cfg.app.output_format)

        if report.any_error:
            log.error("Provisioning failed; re-run to resume (existing resources are skipped).")
            sys.exit(EXIT_NETWORK_ERROR)

    except ConfigurationError as exc:
        log.error("Configuration error: %s", exc)
        sys.exit(EXIT_CONFIG_ERROR)
    except ValidationError as exc:
        log.error("Validation error: %s", exc)
        sys.exit(EXIT_VALIDATION_ERROR)
    except AuthenticationError as exc:
        log.error("Authentication error: %s", exc)
        sys.exit(EXIT_AUTH_ERROR)
    except (TransportError, requests.RequestException) as exc:
        log.error("Network/HTTP error: %s", exc)
        sys.exit(EXIT_NETWORK_ERROR)
    except OSError as exc:
        log.error("File error: %s", exc)
        sys.exit(EXIT_VALIDATION_ERROR)


# ---------------------------- Argument parser -------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="conductor-setup",
        description="Provision Conductor integrations, models, taskdefs, forms, prompts and workflows (create-if-absent)",
    )
    parser.add_argument(
        "workflow_file",
        nargs="?",
        help="Register only this workflow JSON file instead of the workflows directory",
    )
    parser.add_argument("--plan", "--dry-run", dest="plan", action="store_true", help="Report what would be created; no mutating calls")
    parser.add_argument("--no-openai", action="store_true", help="Skip the OpenAI integration and model passes")
    parser.add_argument("--workflows-dir", help="Workflows directory (default ./workflows)")
    parser.add_argument("--prompts-dir", help="Prompts directory (default ./workflows/prompts)")
    parser.add_argument("--forms-dir", help="Form templates directory (default ./forms)")
    parser.add_argument("--project-file", help="YAML project file (default ./conductor-setup.yml when present)")
    parser.add_argument("--format", choices=["table", "json"], default=None, help="Report format (default table)")
    parser.add_argument("--no-verify", action="store_true", help="Disable SSL verification")
    parser.add_argument(
        "--fail-closed",
        action="store_true",
        help="Treat inconclusive existence checks as 'exists' instead of 'missing'",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        cmd_provision(args)
        return EXIT_OK
    except SystemExit as e:  # explicit exits above
        return int(e.code) if isinstance(e.code, int) else EXIT_GENERIC_ERROR
    except Exception as exc:  # pragma: no cover - safety net
        log.error("Fatal error: %s", exc, exc_info=True)
        return EXIT_GENERIC_ERROR


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
