"""Bundle domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation at the file boundary with self-documenting fields.
- Unknown FHIR fields are kept (`extra="allow"`) so a bundle can be sent back
  to the server exactly as it was read.

Note:
- Resources stay opaque JSON trees (`dict`); this package only cares about
  `resourceType`, `id` and Reference fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from bundle_submit.core.domain.enums import BundleType


class BundleEntryRequest(BaseModel):
    """Intended operation for an entry (`Bundle.entry.request`)."""

    model_config = ConfigDict(extra="allow")

    method: str = Field(
        ...,
        min_length=1,
        description="HTTP verb the entry asks for (POST, PUT, ...).",
    )
    url: str = Field(
        ...,
        description="Target URL relative to the server base.",
    )


class BundleEntry(BaseModel):
    """One (temporary identifier, resource) pair of a bundle."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    full_url: str | None = Field(
        default=None,
        alias="fullUrl",
        description="Temporary identifier, unique within the bundle (e.g. urn:uuid:...).",
    )
    request: BundleEntryRequest | None = Field(
        default=None,
        description="Intended operation, present in transaction/batch bundles.",
    )
    resource: dict[str, Any] | None = Field(
        default=None,
        description="Resource payload (opaque, arbitrarily nested JSON tree).",
    )

    @field_validator("resource")
    @classmethod
    def _require_resource_type(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        if value is not None and not isinstance(value.get("resourceType"), str):
            raise ValueError("entry resource has no resourceType")
        return value

    @property
    def resource_type(self) -> str | None:
        if self.resource is None:
            return None
        return self.resource["resourceType"]

    @property
    def resource_id(self) -> str | None:
        if self.resource is None:
            return None
        value = self.resource.get("id")
        return value if isinstance(value, str) and value else None

    def describe(self) -> str:
        """Short label used in messages: `Patient/p1`, or the fullUrl if no id."""

        if self.resource_id:
            return f"{self.resource_type}/{self.resource_id}"
        return f"{self.resource_type or 'entry'} ({self.full_url or 'no fullUrl'})"


class Bundle(BaseModel):
    """A document grouping several resources for one submission."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    resource_type: Literal["Bundle"] = Field(
        ...,
        alias="resourceType",
        description="Always 'Bundle'.",
    )
    type: str | None = Field(
        default=None,
        description="Declared bundle type (transaction, batch, collection, ...).",
    )
    entry: list[BundleEntry] = Field(
        default_factory=list,
        description="Ordered entries of the bundle.",
    )

    @property
    def bundle_type(self) -> BundleType | None:
        return BundleType.parse(self.type)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready document using FHIR field names."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class ResourceKey:
    """Permanent identifier of a persisted resource."""

    resource_type: str
    id: str

    def __str__(self) -> str:
        return f"{self.resource_type}/{self.id}"


@dataclass(frozen=True)
class ResolutionWarning:
    """A Reference field that could not be matched to any bundle entry."""

    resource: str
    path: str
    reference: str

    def message(self) -> str:
        return f"Unable to resolve reference {self.reference!r} at {self.resource}.{self.path}"
