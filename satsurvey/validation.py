"""Satellite draft validation.

Rules run in a fixed order and every failure is collected; nothing
short-circuits.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from satsurvey.records import SatelliteDraft, parse_iso_date

_NUMERIC = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass
class ValidationResult:
    valid: bool
    draft: SatelliteDraft | None = None
    errors: list[FieldError] = field(default_factory=list)


def validate(draft: SatelliteDraft) -> ValidationResult:
    """Check *draft* and return the trimmed draft or the list of field errors."""
    errors: list[FieldError] = []

    if not draft.title.strip():
        errors.append(FieldError("title", "Satellite Title is required"))
    if not draft.norad_id.strip():
        errors.append(FieldError("norad_id", "NORAD ID is required"))
    if not draft.status.strip():
        errors.append(FieldError("status", "Status is required"))

    # Checked on the raw value: whitespace-only ids fail both rules.
    if draft.norad_id and not _NUMERIC.fullmatch(draft.norad_id):
        errors.append(FieldError("norad_id", "NORAD ID must be numeric"))

    launch = draft.launch_date.strip()
    if launch:
        try:
            parse_iso_date(launch)
        except ValueError:
            errors.append(
                FieldError("launch_date", "Launch Date must be an ISO date (YYYY-MM-DD)")
            )

    if errors:
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult(valid=True, draft=draft.trimmed())
