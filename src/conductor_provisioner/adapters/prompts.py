"""
AI prompts.

The project manifest lists ``{name, file}`` pairs; each file in the prompts
directory holds the prompt text, which is posted verbatim. Every prompt is
associated with ``PROMPT_MODEL_ASSOCIATION`` (``<integration>:<model>``).
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional
from urllib.parse import quote

from ..core.conductor_client import ConductorClient
from ..core.context import RunContext
from ..core.logging_utils import get_logger
from ..core.oracles import DirectLookupOracle
from ..core.resources import ResourceDescriptor, ResourceKind
from ..utils.documents import read_text

log = get_logger(__name__)


def prompt_path(name: str) -> str:
    return f"prompts/{quote(name, safe='')}"


def load_prompts(ctx: RunContext) -> Optional[List[ResourceDescriptor]]:
    prompts_dir = Path(ctx.config.sources.prompts_dir)
    if not prompts_dir.is_dir():
        log.info("No prompts dir found at %s (skipping).", prompts_dir)
        return None

    association = ctx.config.project.prompt_model_association
    log.info("Model association: %s", association)

    out: List[ResourceDescriptor] = []
    for entry in ctx.config.project.prompts:
        fp = prompts_dir / entry["file"]
        if not fp.is_file():
            log.warning("Prompt file not found: %s", fp)
            continue
        out.append(
            ResourceDescriptor(
                ResourceKind.PROMPT,
                entry.get("name"),
                read_text(fp),
                source=str(fp),
                params={"description": f"Auto-registered from {entry['file']}", "models": association},
            )
        )
    return out


def prompt_oracle(client: ConductorClient, ctx: RunContext) -> DirectLookupOracle:
    return DirectLookupOracle(client, lambda d: prompt_path(d.name), fail_closed=ctx.config.app.fail_closed)


def create_prompt(client: ConductorClient, descriptor: ResourceDescriptor) -> Any:
    return client.post_text(
        prompt_path(descriptor.name),
        descriptor.payload,
        params=descriptor.params,
        ok_statuses=(200, 204),
        expect="text",
    )


def ui_hint(ctx: RunContext) -> str:
    return f"{ctx.ui_url}/ai_prompts"
