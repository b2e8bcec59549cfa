"""Role-specific profile completeness.

``evaluate_profile`` is a pure function: it takes a role and a mapping of
field values and reports whether every field the role requires is filled in.
Array fields are compared in their canonical stored form, so ``"[]"`` counts
as empty.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

ARRAY_FIELDS: tuple[str, ...] = (
    "project_types",
    "preferred_cities",
    "specializations",
    "languages",
)

EMPTY_ARRAY = "[]"


def normalize_array(value: Any) -> str:
    """Canonical JSON array text for a list or a pre-serialized string.

    Lists are serialized as-is, items keep their JSON types. A string that
    parses as a JSON array is re-serialized the same way, so ``[1, 2]`` and
    ``"[1,2]"`` store identically. Any other non-empty string is treated as
    a comma-separated list.
    """
    if value is None:
        return EMPTY_ARRAY
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    text = str(value).strip()
    if not text:
        return EMPTY_ARRAY
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return json.dumps(parsed)
    return json.dumps([part.strip() for part in text.split(",") if part.strip()])


def is_filled(value: Any) -> bool:
    """Present, non-null and non-blank after trimming."""
    if value is None:
        return False
    if isinstance(value, bool):
        return True
    return str(value).strip() != ""


def is_filled_array(value: Any) -> bool:
    return is_filled(value) and normalize_array(value) != EMPTY_ARRAY


Predicate = Callable[[Any], bool]

REQUIRED_FIELDS: dict[str, tuple[tuple[str, Predicate], ...]] = {
    "client": (
        ("name", is_filled),
        ("phone", is_filled),
        ("location", is_filled),
        ("bio", is_filled),
        ("preferred_contact", is_filled),
    ),
    "developer": (
        ("name", is_filled),
        ("bio", is_filled),
        ("company_type", is_filled),
        ("years_experience", is_filled),
        ("project_types", is_filled_array),
        ("preferred_cities", is_filled_array),
        ("budget_range", is_filled),
        ("working_style", is_filled),
        ("availability", is_filled),
        ("specializations", is_filled_array),
    ),
}


@dataclass(frozen=True)
class ProfileEvaluation:
    fields: dict[str, Any]
    complete: bool
    missing: tuple[str, ...]


def normalize_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``fields`` with every array field in canonical form."""
    out = dict(fields)
    for name in ARRAY_FIELDS:
        if name in out:
            out[name] = normalize_array(out[name])
    return out


def evaluate_profile(role: str | None, fields: Mapping[str, Any]) -> ProfileEvaluation:
    """Check ``fields`` against the requirements of ``role``.

    The role is trimmed and lowercased before lookup, so ``" Client"`` is
    treated as ``client``. Unknown roles are never complete.
    """
    normalized = normalize_fields(fields)
    requirements = REQUIRED_FIELDS.get((role or "").strip().lower())
    if requirements is None:
        return ProfileEvaluation(fields=normalized, complete=False, missing=())
    missing = tuple(
        name for name, check in requirements if not check(normalized.get(name))
    )
    return ProfileEvaluation(fields=normalized, complete=not missing, missing=missing)


__all__ = [
    "ARRAY_FIELDS",
    "REQUIRED_FIELDS",
    "ProfileEvaluation",
    "evaluate_profile",
    "is_filled",
    "normalize_array",
    "normalize_fields",
]
