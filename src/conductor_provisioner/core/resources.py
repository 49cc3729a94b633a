"""
Resource kinds and descriptors.

A :class:`ResourceDescriptor` is one unit of desired state, identified by
``(kind, name)``. The payload is whatever the creation endpoint expects for
that kind: a JSON document, a taskdef record, or raw prompt text.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ResourceKind(str, Enum):
    INTEGRATION = "integration"
    MODEL = "model"
    TASKDEF = "taskdef"
    FORM = "form"
    PROMPT = "prompt"
    WORKFLOW = "workflow"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ResourceKind.INTEGRATION: "Integration",
    ResourceKind.MODEL: "Model",
    ResourceKind.TASKDEF: "TaskDef",
    ResourceKind.FORM: "Form template",
    ResourceKind.PROMPT: "Prompt",
    ResourceKind.WORKFLOW: "Workflow",
}


@dataclass(frozen=True)
class ResourceDescriptor:
    """One named unit of desired state.

    Attributes:
        kind: Resource kind.
        name: Resource name; None (or empty) marks the descriptor invalid.
        payload: Creation body (document, record, or raw text).
        source: Where the descriptor came from (file path or config key), for logs.
        parent: Enclosing resource name (the integration, for models).
        params: Extra query parameters for the creation call.
    """
    kind: ResourceKind
    name: Optional[str]
    payload: Any = None
    source: str = ""
    parent: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return isinstance(self.name, str) and bool(self.name.strip())

    @property
    def display(self) -> str:
        if self.parent:
            return f"{self.parent}/{self.name}"
        return str(self.name)
