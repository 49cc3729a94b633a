"""
Reconciler: the generic create-if-absent driver.

Lifecycle of one pass:
  filter nameless descriptors -> existence check per descriptor (input order)
  -> partition {existing, missing} -> create missing (apply mode only)

The missing set is fully computed before the first creation call, so a pass
never creates the same resource twice and never re-checks after creating.
Task definitions are created with one batch call; every other kind with one
call per descriptor.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from .conductor_client import TransportError
from .logging_utils import get_logger
from .oracles import ExistenceOracle
from .resources import ResourceDescriptor, ResourceKind

log = get_logger(__name__)

Creator = Callable[[ResourceDescriptor], Any]
BatchCreator = Callable[[List[ResourceDescriptor]], Any]


class ReconciliationError(Exception):
    """A creation call failed; the pass stopped at ``name``."""

    def __init__(self, kind: ResourceKind, name: str, cause: BaseException) -> None:
        self.kind = kind
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to create {kind.label.lower()} '{name}': {cause}")


@dataclass
class ReconciliationResult:
    """Tallies for one pass. ``missing`` holds the names created (or to be created in plan mode)."""
    kind: ResourceKind
    plan_only: bool
    existing: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    created_count: int = 0
    skipped_invalid_count: int = 0

    @property
    def existing_count(self) -> int:
        return len(self.existing)

    @property
    def created_names(self) -> List[str]:
        return list(self.missing)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "plan_only": self.plan_only,
            "existing_count": self.existing_count,
            "created_count": self.created_count,
            "would_create_count": len(self.missing) if self.plan_only else 0,
            "skipped_invalid_count": self.skipped_invalid_count,
            "existing": list(self.existing),
            "created_names": self.created_names,
        }


def _exists(oracle: ExistenceOracle, descriptor: ResourceDescriptor, fail_closed: bool) -> bool:
    try:
        return bool(oracle(descriptor))
    except (TransportError, requests.RequestException) as exc:
        verdict = "existing" if fail_closed else "missing"
        log.warning(
            "Existence check for %s '%s' failed (%s); treating as %s",
            descriptor.kind.value, descriptor.display, exc, verdict,
        )
        return fail_closed


def reconcile(
    kind: ResourceKind,
    desired: Iterable[ResourceDescriptor],
    oracle: ExistenceOracle,
    creator: Optional[Creator] = None,
    *,
    plan_only: bool,
    batch_creator: Optional[BatchCreator] = None,
    fail_closed: bool = False,
) -> ReconciliationResult:
    """Create every desired resource the oracle reports as missing.

    Args:
        kind: Resource kind of every descriptor in ``desired``.
        desired: Descriptors in source order.
        oracle: Existence check for one descriptor.
        creator: Creates one descriptor (per-item kinds).
        plan_only: Report the would-create set without calling any creator.
        batch_creator: Creates all missing descriptors in one call (task definitions).
        fail_closed: An oracle that raises means "exists" instead of "missing".

    Raises:
        ValueError: Unless exactly one of ``creator`` / ``batch_creator`` is given.
        ReconciliationError: When a creation call fails; earlier creations are kept.
    """
    if (creator is None) == (batch_creator is None):
        raise ValueError("reconcile() needs exactly one of creator or batch_creator")

    result = ReconciliationResult(kind=kind, plan_only=plan_only)
    missing: List[ResourceDescriptor] = []

    for descriptor in desired:
        if not descriptor.valid:
            result.skipped_invalid_count += 1
            log.warning("Skipping %s (missing name): %s", kind.label.lower(), descriptor.source or "<unknown>")
            continue

        if _exists(oracle, descriptor, fail_closed):
            result.existing.append(descriptor.name)
            log.info("%s exists: %s", kind.label, descriptor.display)
        else:
            missing.append(descriptor)
            log.info("%s missing: %s", kind.label, descriptor.display)

    result.missing = [d.name for d in missing]

    if not missing:
        log.info("All %s resources already exist (nothing to create).", kind.value)
        return result

    if plan_only:
        for descriptor in missing:
            log.info("[PLAN] Would create %s: %s", kind.label.lower(), descriptor.display)
        return result

    if batch_creator is not None:
        names = ", ".join(d.name for d in missing)
        try:
            batch_creator(missing)
        except (TransportError, requests.RequestException) as exc:
            raise ReconciliationError(kind, names, exc) from exc
        result.created_count = len(missing)
        log.info("Registered %d missing %s resource(s): %s", len(missing), kind.value, names)
        return result

    for descriptor in missing:
        try:
            creator(descriptor)
        except (TransportError, requests.RequestException) as exc:
            raise ReconciliationError(kind, descriptor.display, exc) from exc
        result.created_count += 1
        log.info("Created %s: %s", kind.label.lower(), descriptor.display)

    return result
