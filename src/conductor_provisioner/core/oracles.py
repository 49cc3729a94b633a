"""
Existence oracles: per-kind answers to "does this resource already exist?".

Two strategies:
  * :class:`DirectLookupOracle`: one GET per descriptor on the resource's own path.
  * :class:`ListingOracle`: one GET of the whole collection per pass, then an
    exact match on the ``name`` field (form templates have no cheap by-name lookup).

A 404 is a legitimate "no". Anything inconclusive (network failure, 5xx,
401...) is reduced to a boolean by :func:`reduce_probe`: "missing" by default
(fail-open toward creation), "exists" when ``fail_closed`` is set.
"""
from __future__ import annotations

from typing import Callable, Optional, Set

from .conductor_client import ConductorClient, ProbeResult, TransportError
from .logging_utils import get_logger
from .resources import ResourceDescriptor

log = get_logger(__name__)

ExistenceOracle = Callable[[ResourceDescriptor], bool]
PathBuilder = Callable[[ResourceDescriptor], str]


def reduce_probe(probe: ProbeResult, descriptor: ResourceDescriptor, *, fail_closed: bool = False) -> bool:
    """Turn a lookup outcome into exists / missing."""
    if not probe.inconclusive:
        return probe.found
    cause = probe.error or f"HTTP {probe.status}"
    if fail_closed:
        log.warning(
            "Existence check for %s '%s' inconclusive (%s); treating as existing",
            descriptor.kind.value, descriptor.display, cause,
        )
        return True
    log.warning(
        "Existence check for %s '%s' inconclusive (%s); treating as missing",
        descriptor.kind.value, descriptor.display, cause,
    )
    return False


class DirectLookupOracle:
    """GET ``path_for(descriptor)``; success means the resource exists.

    Args:
        client: Transport.
        path_for: Builds the lookup path for a descriptor.
        assume_missing_in_plan: Answer "missing" in plan mode without a call.
        fail_closed: Inconclusive checks count as "exists".
    """

    def __init__(
        self,
        client: ConductorClient,
        path_for: PathBuilder,
        *,
        assume_missing_in_plan: bool = False,
        fail_closed: bool = False,
    ) -> None:
        self.client = client
        self.path_for = path_for
        self.assume_missing_in_plan = assume_missing_in_plan
        self.fail_closed = fail_closed

    def __call__(self, descriptor: ResourceDescriptor) -> bool:
        if self.assume_missing_in_plan and self.client.plan_only:
            log.debug("PLAN: not checking %s '%s', assuming missing", descriptor.kind.value, descriptor.display)
            return False
        probe = self.client.probe(self.path_for(descriptor))
        return reduce_probe(probe, descriptor, fail_closed=self.fail_closed)


class ListingOracle:
    """List a collection once, then match descriptors by exact name.

    A listing that fails, or that is not a JSON array, is inconclusive: every
    item counts as missing, or as existing when ``fail_closed`` is set.
    """

    def __init__(
        self,
        client: ConductorClient,
        list_path: str,
        *,
        name_field: str = "name",
        fail_closed: bool = False,
    ) -> None:
        self.client = client
        self.list_path = list_path
        self.name_field = name_field
        self.fail_closed = fail_closed
        self.inconclusive = False
        self._names: Optional[Set[str]] = None

    def names(self) -> Set[str]:
        if self._names is None:
            self._names = self._fetch_names()
        return self._names

    def _fetch_names(self) -> Set[str]:
        verdict = "existing" if self.fail_closed else "missing"
        try:
            data = self.client.get_json(self.list_path)
        except TransportError as exc:
            log.warning("Listing %s failed (%s); treating every item as %s", self.list_path, exc, verdict)
            self.inconclusive = True
            return set()
        if not isinstance(data, list):
            log.warning("Listing %s did not return a JSON array; treating every item as %s", self.list_path, verdict)
            self.inconclusive = True
            return set()
        names = {
            item.get(self.name_field)
            for item in data
            if isinstance(item, dict) and item.get(self.name_field)
        }
        log.debug("Listed %d item(s) from %s", len(names), self.list_path)
        return names

    def __call__(self, descriptor: ResourceDescriptor) -> bool:
        names = self.names()
        if self.inconclusive:
            return self.fail_closed
        return descriptor.name in names
