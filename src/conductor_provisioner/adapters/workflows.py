"""
Workflow definitions: every ``*.json`` in the workflows directory, or the
single file given on the command line.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Tuple
from urllib.parse import quote

from ..core.conductor_client import ConductorClient
from ..core.context import RunContext
from ..core.logging_utils import get_logger
from ..core.oracles import DirectLookupOracle
from ..core.resources import ResourceDescriptor, ResourceKind
from ..utils.documents import read_json, read_json_dir
from ..utils.validators import ValidationError, declared_name

log = get_logger(__name__)


def workflow_path(name: str) -> str:
    return f"metadata/workflow/{quote(name, safe='')}"


def load_workflows(ctx: RunContext) -> Optional[List[ResourceDescriptor]]:
    sources = ctx.config.sources
    docs: Optional[List[Tuple[Path, Any]]]
    if sources.workflow_file:
        fp = Path(sources.workflow_file).resolve()
        if not fp.is_file():
            raise ValidationError(f"Workflow file not found: {fp}")
        docs = [(fp, read_json(fp))]
    else:
        docs = read_json_dir(Path(sources.workflows_dir))
        if docs is None:
            log.info("No workflows dir found at %s (skipping).", sources.workflows_dir)
            return None
    return [
        ResourceDescriptor(ResourceKind.WORKFLOW, declared_name(doc), doc, source=str(path))
        for path, doc in docs
    ]


def workflow_oracle(client: ConductorClient, ctx: RunContext) -> DirectLookupOracle:
    return DirectLookupOracle(client, lambda d: workflow_path(d.name), fail_closed=ctx.config.app.fail_closed)


def create_workflow(client: ConductorClient, descriptor: ResourceDescriptor) -> Any:
    return client.post_json(
        "metadata/workflow",
        descriptor.payload,
        params={"overwrite": "false", "newVersion": "false"},
        ok_statuses=(200, 204),
        expect="text",
    )


def ui_hint(ctx: RunContext) -> str:
    return f"{ctx.ui_url}/workflowDef"
