"""
Worker task definitions.

Declared in the project manifest (``project.worker_tasks``) as bare names or
as mappings carrying a ``name`` plus taskdef overrides. Missing definitions
are registered with a single batch call.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..core.conductor_client import ConductorClient
from ..core.context import RunContext
from ..core.oracles import DirectLookupOracle
from ..core.resources import ResourceDescriptor, ResourceKind
from ..utils.validators import ValidationError, declared_name

TASKDEF_DEFAULTS: Dict[str, Any] = {
    "retryCount": 2,
    "timeoutSeconds": 300,
    "responseTimeoutSeconds": 300,
}


def taskdef_path(name: str) -> str:
    return f"metadata/taskdefs/{quote(name, safe='')}"


def load_taskdefs(ctx: RunContext) -> Optional[List[ResourceDescriptor]]:
    out: List[ResourceDescriptor] = []
    for idx, entry in enumerate(ctx.config.project.worker_tasks):
        source = f"project.worker_tasks[{idx}]"
        if isinstance(entry, str):
            record: Dict[str, Any] = {"name": entry.strip()}
        elif isinstance(entry, dict):
            record = dict(entry)
        else:
            raise ValidationError(f"{source}: expected a task name or mapping, got {type(entry).__name__}")
        out.append(ResourceDescriptor(ResourceKind.TASKDEF, declared_name(record), record, source=source))
    return out


def apply_defaults(descriptor: ResourceDescriptor, ctx: RunContext) -> ResourceDescriptor:
    """Fill the taskdef record; explicit values from the manifest win."""
    if not descriptor.valid:
        return descriptor
    payload = {
        "name": descriptor.name,
        "description": f"Worker task for {descriptor.name}",
        **TASKDEF_DEFAULTS,
        "ownerEmail": ctx.owner_email,
    }
    payload.update(descriptor.payload or {})
    return replace(descriptor, payload=payload)


def taskdef_oracle(client: ConductorClient, ctx: RunContext) -> DirectLookupOracle:
    return DirectLookupOracle(client, lambda d: taskdef_path(d.name), fail_closed=ctx.config.app.fail_closed)


def create_taskdefs(client: ConductorClient, descriptors: List[ResourceDescriptor]) -> Any:
    return client.post_json(
        "metadata/taskdefs",
        [d.payload for d in descriptors],
        ok_statuses=(200, 204),
        expect="text",
    )


def ui_hint(ctx: RunContext) -> str:
    return f"{ctx.ui_url}/taskDef"
