"""
Human task form templates, one JSON document per file in the forms directory.

The templates API has no cheap lookup by name, so existence is decided from
one listing of ``/human/template`` per pass.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

from ..core.conductor_client import ConductorClient
from ..core.context import RunContext
from ..core.logging_utils import get_logger
from ..core.oracles import ListingOracle
from ..core.resources import ResourceDescriptor, ResourceKind
from ..utils.documents import read_json_dir
from ..utils.validators import declared_name

log = get_logger(__name__)

TEMPLATES_PATH = "human/template"


def load_forms(ctx: RunContext) -> Optional[List[ResourceDescriptor]]:
    forms_dir = Path(ctx.config.sources.forms_dir)
    docs = read_json_dir(forms_dir)
    if docs is None:
        log.info("No forms dir found at %s (skipping).", forms_dir)
        return None
    return [
        ResourceDescriptor(ResourceKind.FORM, declared_name(doc), doc, source=str(path))
        for path, doc in docs
    ]


def form_oracle(client: ConductorClient, ctx: RunContext) -> ListingOracle:
    return ListingOracle(client, TEMPLATES_PATH, fail_closed=ctx.config.app.fail_closed)


def create_form(client: ConductorClient, descriptor: ResourceDescriptor) -> Any:
    return client.post_json(
        TEMPLATES_PATH,
        descriptor.payload,
        params={"newVersion": "false"},
        ok_statuses=(200, 204),
        expect="text",
    )


def ui_hint(ctx: RunContext) -> str:
    return f"{ctx.ui_url}/humanTask"
