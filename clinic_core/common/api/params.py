from __future__ import annotations

from datetime import date
from uuid import UUID

from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError


def uuid_or_none(value: str | None, field_name: str) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError({field_name: "Invalid UUID"})


def date_or_none(value: str | None, field_name: str) -> date | None:
    if not value:
        return None
    try:
        parsed = parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError({field_name: "Invalid date, expected YYYY-MM-DD"})
    return parsed


def required_date_range(query_params) -> tuple[date, date]:
    date_from = date_or_none(query_params.get("date_from"), "date_from")
    date_to = date_or_none(query_params.get("date_to"), "date_to")
    missing = {
        name: "This query parameter is required."
        for name, value in (("date_from", date_from), ("date_to", date_to))
        if value is None
    }
    if missing:
        raise ValidationError(missing)
    if date_from > date_to:
        raise ValidationError({"date_to": "date_to must be on or after date_from."})
    return date_from, date_to


def flag(value: str | None) -> bool:
    return str(value or "").lower() in ("1", "true", "yes")
