# conductor_provisioner/adapters/registry.py
"""Adapter registry: per-kind strategies, in provisioning order."""

from __future__ import annotations
from dataclasses import dataclass
from importlib import import_module
from typing import Any, Callable, Dict, Iterable, Optional

from ..core.resources import ResourceKind

_PKG = "conductor_provisioner.adapters"

# -------- Adapter table (one row per resource kind) -------------------------

@dataclass(frozen=True)
class AdapterSpec:
    kind: ResourceKind
    help: str                            # one-line description for reports
    module: str                          # module path
    loader: str                          # (ctx) -> descriptors, None when the source is absent
    oracle: str                          # (client, ctx) -> existence oracle
    creator: Optional[str] = None        # (client, descriptor) -> response
    batch_creator: Optional[str] = None  # (client, descriptors) -> response
    defaults: Optional[str] = None       # (descriptor, ctx) -> descriptor
    ui_hint: Optional[str] = None        # (ctx) -> UI URL
    gate: Optional[str] = None           # (config) -> bool; pass skipped when False

    def load_module(self):
        return import_module(self.module)

    def resolve(self, field_name: str) -> Optional[Callable[..., Any]]:
        """Return the function named by ``field_name`` (None when the slot is empty)."""
        symbol = getattr(self, field_name)
        if not symbol:
            return None
        return getattr(self.load_module(), symbol)


# Dict order is the provisioning order.
_ADAPTERS: Dict[ResourceKind, AdapterSpec] = {
    # OpenAI integration
    ResourceKind.INTEGRATION: AdapterSpec(
        kind=ResourceKind.INTEGRATION,
        help="OpenAI integration",
        module=f"{_PKG}.integrations",
        loader="load_integrations",
        oracle="integration_oracle",
        creator="create_integration",
        ui_hint="integration_ui_hint",
        gate="enabled",
    ),
    # OpenAI models
    ResourceKind.MODEL: AdapterSpec(
        kind=ResourceKind.MODEL,
        help="OpenAI models",
        module=f"{_PKG}.integrations",
        loader="load_models",
        oracle="model_oracle",
        creator="create_model",
        gate="enabled",
    ),
    # Worker task definitions
    ResourceKind.TASKDEF: AdapterSpec(
        kind=ResourceKind.TASKDEF,
        help="Worker task definitions",
        module=f"{_PKG}.taskdefs",
        loader="load_taskdefs",
        oracle="taskdef_oracle",
        batch_creator="create_taskdefs",
        defaults="apply_defaults",
        ui_hint="ui_hint",
    ),
    # Human task form templates
    ResourceKind.FORM: AdapterSpec(
        kind=ResourceKind.FORM,
        help="Human task form templates",
        module=f"{_PKG}.forms",
        loader="load_forms",
        oracle="form_oracle",
        creator="create_form",
        ui_hint="ui_hint",
    ),
    # AI prompts
    ResourceKind.PROMPT: AdapterSpec(
        kind=ResourceKind.PROMPT,
        help="AI prompts",
        module=f"{_PKG}.prompts",
        loader="load_prompts",
        oracle="prompt_oracle",
        creator="create_prompt",
        ui_hint="ui_hint",
    ),
    # Workflow definitions
    ResourceKind.WORKFLOW: AdapterSpec(
        kind=ResourceKind.WORKFLOW,
        help="Workflow definitions",
        module=f"{_PKG}.workflows",
        loader="load_workflows",
        oracle="workflow_oracle",
        creator="create_workflow",
        ui_hint="ui_hint",
    ),
}


def get_adapter(kind: ResourceKind) -> AdapterSpec:
    return _ADAPTERS[kind]


def iter_adapters() -> Iterable[AdapterSpec]:
    return _ADAPTERS.values()
