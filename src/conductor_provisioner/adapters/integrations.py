"""
OpenAI integration and its models.

Both are declared by configuration (``OPENAI_INTEGRATION_NAME``,
``OPENAI_MODELS``) rather than by documents. Their existence checks are
skipped in plan mode: the plan reports them as "would create".
"""
from __future__ import annotations

from typing import Any, List, Optional
from urllib.parse import quote

from ..core.conductor_client import ConductorClient
from ..core.config import Config
from ..core.context import RunContext
from ..core.oracles import DirectLookupOracle
from ..core.resources import ResourceDescriptor, ResourceKind

CREATE_OK = (200, 201, 204)


def integration_path(name: str) -> str:
    return f"integrations/provider/{quote(name, safe='')}"


def model_path(integration: str, model: str) -> str:
    return f"{integration_path(integration)}/integration/{quote(model, safe='')}"


def enabled(config: Config) -> bool:
    return config.openai.enabled


# ---------------- integration ----------------

def load_integrations(ctx: RunContext) -> Optional[List[ResourceDescriptor]]:
    openai = ctx.config.openai
    payload = {
        "category": "AI_MODEL",
        "configuration": {"api_key": openai.api_key, "base_url": openai.base_url},
        "description": "OpenAI integration for built-in LLM tasks",
        "enabled": True,
        "type": "openai",
    }
    return [
        ResourceDescriptor(
            ResourceKind.INTEGRATION,
            openai.integration_name,
            payload,
            source="OPENAI_INTEGRATION_NAME",
        )
    ]


def integration_oracle(client: ConductorClient, ctx: RunContext) -> DirectLookupOracle:
    return DirectLookupOracle(
        client,
        lambda d: integration_path(d.name),
        assume_missing_in_plan=True,
        fail_closed=ctx.config.app.fail_closed,
    )


def create_integration(client: ConductorClient, descriptor: ResourceDescriptor) -> Any:
    return client.post_json(integration_path(descriptor.name), descriptor.payload, ok_statuses=CREATE_OK, expect="text")


def integration_ui_hint(ctx: RunContext) -> str:
    return f"{ctx.ui_url}/integrations/{ctx.config.openai.integration_name}/integration"


# ---------------- models ----------------

def load_models(ctx: RunContext) -> Optional[List[ResourceDescriptor]]:
    openai = ctx.config.openai
    return [
        ResourceDescriptor(
            ResourceKind.MODEL,
            model,
            {"configuration": {}, "description": f"{model} from OpenAI", "enabled": True},
            source="OPENAI_MODELS",
            parent=openai.integration_name,
        )
        for model in openai.models
    ]


def model_oracle(client: ConductorClient, ctx: RunContext) -> DirectLookupOracle:
    return DirectLookupOracle(
        client,
        lambda d: model_path(d.parent, d.name),
        assume_missing_in_plan=True,
        fail_closed=ctx.config.app.fail_closed,
    )


def create_model(client: ConductorClient, descriptor: ResourceDescriptor) -> Any:
    return client.post_json(
        model_path(descriptor.parent, descriptor.name),
        descriptor.payload,
        ok_statuses=CREATE_OK,
        expect="text",
    )
