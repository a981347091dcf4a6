"""Rewrite temporary (fullUrl) references into permanent `Type/id` references.

A split submission sends each resource on its own, so a reference such as
`urn:uuid:1234` means nothing to the server: it has to become `Patient/p1`
before the resource leaves the process. Whole-bundle transactions do not need
this because the server resolves fullUrls inside a transaction.

The walk is a depth-first recursion over the JSON tree. Which children a node
has is decided by `iter_children`, one registration per node kind (object,
array, scalar), so adding a kind means adding a registration, not touching the
walk.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from functools import singledispatch
from types import MappingProxyType
from typing import Any

from bundle_submit.core.domain.models import Bundle, ResolutionWarning, ResourceKey
from bundle_submit.core.errors import DuplicateIdentifierError

logger = logging.getLogger(__name__)


class ReferenceLookupTable(Mapping[str, ResourceKey]):
    """Immutable `fullUrl -> ResourceKey` mapping for one bundle."""

    def __init__(self, entries: Mapping[str, ResourceKey]) -> None:
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def from_bundle(cls, bundle: Bundle) -> "ReferenceLookupTable":
        """Single linear pass over the entries.

        Raises `DuplicateIdentifierError` when two entries share a fullUrl.
        Entries without a fullUrl, a resource, or a resource id cannot be
        referenced and are left out.
        """

        seen: set[str] = set()
        table: dict[str, ResourceKey] = {}
        for entry in bundle.entry:
            if not entry.full_url:
                continue
            if entry.full_url in seen:
                raise DuplicateIdentifierError(entry.full_url)
            seen.add(entry.full_url)

            resource_type, resource_id = entry.resource_type, entry.resource_id
            if resource_type is None or resource_id is None:
                logger.debug("Entry %s has no resource id; not referenceable", entry.full_url)
                continue
            table[entry.full_url] = ResourceKey(resource_type=resource_type, id=resource_id)
        return cls(table)

    def __getitem__(self, key: str) -> ResourceKey:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class ResolutionResult:
    """Resolved copy of the bundle plus the non-fatal warnings."""

    bundle: Bundle
    warnings: list[ResolutionWarning] = field(default_factory=list)
    rewritten: int = 0


@singledispatch
def iter_children(node: object) -> Iterator[tuple[str, Any]]:
    """Structural children of a JSON node as `(path segment, value)` pairs."""

    return iter(())


@iter_children.register
def _object_children(node: dict) -> Iterator[tuple[str, Any]]:
    return ((f".{key}", value) for key, value in node.items())


@iter_children.register
def _array_children(node: list) -> Iterator[tuple[str, Any]]:
    return ((f"[{index}]", value) for index, value in enumerate(node))


def is_reference(node: Any) -> bool:
    """A Reference field is an object carrying a string `reference`."""

    return isinstance(node, dict) and isinstance(node.get("reference"), str)


class _ReferenceRewriter:
    def __init__(self, table: ReferenceLookupTable) -> None:
        self._table = table
        self.warnings: list[ResolutionWarning] = []
        self.rewritten = 0

    def walk(self, node: Any, *, resource: str, path: str) -> None:
        if is_reference(node):
            self._rewrite(node, resource=resource, path=path)
        for segment, child in iter_children(node):
            self.walk(child, resource=resource, path=f"{path}{segment}")

    def _rewrite(self, node: dict[str, Any], *, resource: str, path: str) -> None:
        reference = node["reference"]
        key = self._table.get(reference)
        if key is None:
            warning = ResolutionWarning(
                resource=resource,
                path=f"{path}.reference".lstrip("."),
                reference=reference,
            )
            logger.debug(warning.message())
            self.warnings.append(warning)
            return
        node["reference"] = str(key)
        self.rewritten += 1


def resolve(bundle: Bundle) -> ResolutionResult:
    """Resolve every temporary reference of `bundle`.

    The input bundle is left untouched; the result carries a deep copy with
    the rewritten references. A duplicate fullUrl aborts before any rewrite.
    """

    table = ReferenceLookupTable.from_bundle(bundle)
    resolved = bundle.model_copy(deep=True)

    rewriter = _ReferenceRewriter(table)
    for entry in resolved.entry:
        if entry.resource is None:
            continue
        rewriter.walk(entry.resource, resource=entry.describe(), path="")

    logger.info(
        "Resolved %d reference(s) across %d entries (%d unresolved)",
        rewriter.rewritten,
        len(resolved.entry),
        len(rewriter.warnings),
    )
    return ResolutionResult(
        bundle=resolved,
        warnings=rewriter.warnings,
        rewritten=rewriter.rewritten,
    )
