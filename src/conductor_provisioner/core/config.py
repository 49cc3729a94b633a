"""
Configuration loader for conductor-provisioner.

Resolves the runtime configuration from (in precedence order):
  1) CLI overrides
  2) Environment variables (a `.env` at the working directory is loaded first,
     without overriding variables already exported in the shell)
  3) YAML project manifest (``--project-file`` or ``./conductor-setup.yml``)
  4) Built-in defaults

The built-in defaults describe the healthcare relocation project: its worker
tasks, its prompts and the OpenAI models it relies on.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import find_dotenv, load_dotenv

from .logging_utils import get_logger

log = get_logger(__name__)

DEFAULT_API_URL = "https://developer.orkescloud.com/api"
DEFAULT_PROJECT_FILE = "./conductor-setup.yml"


class ConfigurationError(Exception):
    """Raised when runtime configuration cannot be resolved."""
    pass


# ---------- Typed sections ----------

@dataclass
class AppSection:
    plan_only: bool = False
    fail_closed: bool = False   # treat failed existence checks as "exists"
    output_format: str = "table"


@dataclass
class ConductorSection:
    api_url: str = DEFAULT_API_URL
    access_token: str = ""      # secret - never log in clear text
    key_id: str = ""
    key_secret: str = ""        # secret - never log in clear text
    verify_tls: bool = True
    timeout_sec: Optional[float] = None

    @property
    def ui_url(self) -> str:
        return ui_base_from_api(self.api_url)


@dataclass
class OpenAISection:
    enabled: bool = True
    integration_name: str = "openai"
    api_key: str = ""           # secret - never log in clear text
    base_url: str = "https://api.openai.com"
    models: List[str] = field(default_factory=lambda: ["gpt-4.1", "gpt-4.1-mini", "gpt-4o", "gpt-4o-mini"])


@dataclass
class ProjectSection:
    worker_tasks: List[Any] = field(default_factory=list)
    prompts: List[Dict[str, str]] = field(default_factory=list)
    prompt_model_association: str = "openai:gpt-4o-mini"


@dataclass
class SourcesSection:
    workflows_dir: str = "./workflows"
    prompts_dir: str = "./workflows/prompts"
    forms_dir: str = "./forms"
    workflow_file: Optional[str] = None


@dataclass
class LoggingSection:
    console_level: str = "INFO"
    file_level: str = "DEBUG"
    base_dir: Optional[str] = None   # no file log unless set


@dataclass
class Config:
    """Typed configuration object built by :func:`load_config`."""
    app: AppSection
    conductor: ConductorSection
    openai: OpenAISection
    project: ProjectSection
    sources: SourcesSection
    logging: LoggingSection

    @property
    def plan_only(self) -> bool:
        return self.app.plan_only


# ---------- Defaults ----------

_DEFAULTS: Dict[str, Any] = {
    "app": {"plan_only": False, "fail_closed": False, "output_format": "table"},
    "conductor": {
        "api_url": "",
        "access_token": "",
        "key_id": "",
        "key_secret": "",
        "verify_tls": True,
        "timeout_sec": None,
    },
    "openai": {
        "enabled": True,
        "integration_name": "openai",
        "api_key": "",
        "base_url": "https://api.openai.com",
        "models": ["gpt-4.1", "gpt-4.1-mini", "gpt-4o", "gpt-4o-mini"],
    },
    "project": {
        "worker_tasks": [
            "healthcare_provider_finder",
            "communication_drafter",
            "medical_system_navigator",
            "prescription_transition_manager",
        ],
        "prompts": [
            {"name": "MedicalUserIntakeAnalyzer", "file": "medical-user-intake.json"},
            {"name": "CombineAnswers", "file": "combine-answers.json"},
            {"name": "AssembleHealthPlan", "file": "assemble-health-plan.json"},
        ],
        "prompt_model_association": "openai:gpt-4o-mini",
    },
    "sources": {
        "workflows_dir": "./workflows",
        "prompts_dir": "./workflows/prompts",
        "forms_dir": "./forms",
        "workflow_file": None,
    },
    "logging": {"console_level": "INFO", "file_level": "DEBUG", "base_dir": None},
}

# Environment variable -> config path. Tuples list aliases, first non-empty wins.
_ENV_MAP: Tuple[Tuple[Tuple[str, ...], Tuple[str, str]], ...] = (
    (("CONDUCTOR_ACCESS_TOKEN",), ("conductor", "access_token")),
    (("CONDUCTOR_KEY_ID", "CONDUCTOR_AUTH_KEY", "CONDUCTOR_KEY"), ("conductor", "key_id")),
    (("CONDUCTOR_KEY_SECRET", "CONDUCTOR_AUTH_SECRET", "CONDUCTOR_SECRET"), ("conductor", "key_secret")),
    (("CONDUCTOR_VERIFY_TLS",), ("conductor", "verify_tls")),
    (("CONDUCTOR_HTTP_TIMEOUT_SEC",), ("conductor", "timeout_sec")),
    (("OPENAI_API_KEY",), ("openai", "api_key")),
    (("OPENAI_INTEGRATION_NAME",), ("openai", "integration_name")),
    (("OPENAI_MODELS",), ("openai", "models")),
    (("PROMPT_MODEL_ASSOCIATION",), ("project", "prompt_model_association")),
    (("CONDUCTOR_SETUP_LOG_LEVEL",), ("logging", "console_level")),
    (("CONDUCTOR_SETUP_LOG_FILE_LEVEL",), ("logging", "file_level")),
    (("CONDUCTOR_SETUP_LOG_DIR",), ("logging", "base_dir")),
)


# ---------- Utilities ----------

def normalize_api_url(api_url: Optional[str] = None, server_url: Optional[str] = None) -> str:
    """Return the effective API base URL.

    Both a bare host and a host already ending in ``/api`` resolve to
    ``<host>/api``. ``api_url`` wins over ``server_url``.
    """
    for candidate in (api_url, server_url):
        if candidate:
            return re.sub(r"/api/?$", "", candidate.strip().rstrip("/")) + "/api"
    return DEFAULT_API_URL


def ui_base_from_api(api_url: str) -> str:
    return re.sub(r"/api/?$", "", api_url)


def _deep_merge(base: Dict[str, Any], ext: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merge for dicts: maps merge recursively, lists/scalars override.
    `ext` wins over `base`. Returns a new dict.
    """
    if not ext:
        return dict(base)
    out: Dict[str, Any] = dict(base)
    for k, v in ext.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _read_yaml_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top-level YAML must be a mapping: {path}")
    return data


def _load_project_file(project_file: Optional[str]) -> Dict[str, Any]:
    if project_file:
        if not os.path.isfile(project_file):
            raise ConfigurationError(f"Project file not found: {project_file}")
        log.debug("Loading project file %s", project_file)
        return _read_yaml_file(project_file)
    if os.path.isfile(DEFAULT_PROJECT_FILE):
        log.debug("Loading project file %s", DEFAULT_PROJECT_FILE)
        return _read_yaml_file(DEFAULT_PROJECT_FILE)
    return {}


def _load_env() -> None:
    """Load a `.env` from the working directory (shell variables take precedence)."""
    env_path = find_dotenv(usecwd=True) or ""
    if env_path:
        load_dotenv(env_path, override=False)


def _env_to_dict() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for names, (section, key) in _ENV_MAP:
        for name in names:
            val = os.getenv(name)
            if val is not None and val.strip() != "":
                out.setdefault(section, {})[key] = val.strip()
                break

    api_url = os.getenv("CONDUCTOR_SERVER_API_URL")
    server_url = os.getenv("CONDUCTOR_SERVER_URL")
    if api_url or server_url:
        out.setdefault("conductor", {})["api_url"] = normalize_api_url(api_url, server_url)
    return out


def _coerce_types(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Minimal type coercion for booleans, numbers and comma lists in known keys.
    """
    def to_bool(x: Any) -> bool:
        return str(x).strip().lower() in {"1", "true", "yes", "y", "on"}

    conductor = cfg["conductor"]
    conductor["verify_tls"] = to_bool(conductor.get("verify_tls", True))
    timeout = conductor.get("timeout_sec")
    if timeout in (None, ""):
        conductor["timeout_sec"] = None
    else:
        try:
            conductor["timeout_sec"] = float(timeout)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid HTTP timeout: {timeout!r}") from exc
    conductor["api_url"] = normalize_api_url(conductor.get("api_url") or None)

    app = cfg["app"]
    app["plan_only"] = to_bool(app.get("plan_only", False))
    app["fail_closed"] = to_bool(app.get("fail_closed", False))

    openai = cfg["openai"]
    openai["enabled"] = to_bool(openai.get("enabled", True))
    models = openai.get("models")
    if isinstance(models, str):
        models = [m.strip() for m in models.split(",")]
    openai["models"] = [str(m).strip() for m in (models or []) if str(m).strip()]
    if not openai["models"]:
        openai["models"] = list(_DEFAULTS["openai"]["models"])
    return cfg


def _validate(cfg: Dict[str, Any]) -> None:
    if cfg["app"].get("output_format") not in ("table", "json"):
        raise ConfigurationError(f"Unknown output format: {cfg['app'].get('output_format')}")

    if cfg["openai"]["enabled"] and not cfg["openai"].get("api_key"):
        raise ConfigurationError(
            "Missing required env var OPENAI_API_KEY (needed to create the OpenAI integration). "
            "Export it, add it to .env, or pass --no-openai to skip the integration step."
        )

    prompts = cfg["project"].get("prompts") or []
    for entry in prompts:
        if not isinstance(entry, dict) or not entry.get("file"):
            raise ConfigurationError(f"Every project.prompts entry needs a 'file': {entry!r}")


# ---------- Public API ----------

def load_config(
    cli_overrides: Optional[Dict[str, Any]] = None,
    project_file: Optional[str] = None,
) -> Config:
    """
    Build a :class:`Config` from defaults, project file, environment and CLI.

    Raises:
        ConfigurationError: If the project file is unreadable or required
            values are missing.
    """
    _load_env()

    merged = _deep_merge(_DEFAULTS, _load_project_file(project_file))
    merged = _deep_merge(merged, _env_to_dict())
    merged = _deep_merge(merged, cli_overrides or {})

    merged = _coerce_types(merged)
    _validate(merged)

    try:
        return Config(
            app=AppSection(**merged.get("app", {})),
            conductor=ConductorSection(**merged.get("conductor", {})),
            openai=OpenAISection(**merged.get("openai", {})),
            project=ProjectSection(**merged.get("project", {})),
            sources=SourcesSection(**merged.get("sources", {})),
            logging=LoggingSection(**merged.get("logging", {})),
        )
    except TypeError as exc:
        raise ConfigurationError(f"Unknown configuration key: {exc}") from exc
