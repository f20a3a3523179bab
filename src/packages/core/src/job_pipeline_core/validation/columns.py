"""Header resolution for uploaded spreadsheets."""
import re
from typing import Any

from job_pipeline_core.validation.schema import RowSchema


def header_key(name: str) -> str:
    """Case and punctuation insensitive key for a column header."""
    return re.sub(r"[^a-z0-9%]", "", str(name).lower())


def resolve_columns(headers: list[str], schema: RowSchema) -> dict[str, str]:
    """Map each raw header to a canonical field name.

    Headers that match no field (by name or alias) map to themselves.
    """
    lookup: dict[str, str] = {}
    for spec in schema.fields:
        lookup.setdefault(header_key(spec.name), spec.name)
        for alias in spec.aliases:
            lookup.setdefault(header_key(alias), spec.name)

    out = {}
    for h in headers:
        out[h] = lookup.get(header_key(h), h)
    return out


def canonicalize_row(row: dict[str, Any], schema: RowSchema) -> dict[str, Any]:
    """Rename a row's keys to canonical field names.

    When two headers resolve to the same field the first non-empty value wins.
    """
    mapping = resolve_columns(list(row.keys()), schema)
    out: dict[str, Any] = {}
    for raw, value in row.items():
        field = mapping[raw]
        if out.get(field) in (None, ""):
            out[field] = value
    return out
