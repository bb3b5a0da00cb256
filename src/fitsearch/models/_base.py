"""Base model for fitment catalog records.

Every catalog model inherits from :class:`FitSearchModel` which provides:

* ``alias_generator=to_camel`` so the camelCase keys returned by the
  app's endpoints (``makeId``, ``submodelId``) map to snake_case fields.
* ``frozen=True``: records fetched from the catalog are immutable values.
* ``extra="ignore"`` so additional columns (``createdAt``, nested
  relations) do not break parsing.

Identifiers are strings on the wire (Prisma cuids), but some seeds and
fixtures use integers; :data:`CatalogId` coerces both to ``str``.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def coerce_id(value: Any) -> Any:
    """Convert integer ids to strings; leave everything else to validation."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


CatalogId = Annotated[str, BeforeValidator(coerce_id)]
"""Annotated type for server-assigned record identifiers."""


class FitSearchModel(BaseModel):
    """Base for catalog records and endpoint payloads."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        # ``model_id`` is a catalog field, not a pydantic internal.
        protected_namespaces=(),
    )
