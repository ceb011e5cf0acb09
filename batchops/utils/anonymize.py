"""Partial masking of personally identifiable export fields."""

from __future__ import annotations

from typing import Any, Callable, Dict


def mask_email(value: str) -> str:
    """``john.doe@example.com`` -> ``joh***@example.com``."""
    if not value:
        return value
    local_part, sep, domain = value.partition("@")
    if not sep:
        return f"{local_part[:3]}***"
    return f"{local_part[:3]}***@{domain}"


def mask_name(value: str) -> str:
    """``John Doe`` -> ``J*** D**``: first letter kept, word length preserved."""
    if not value:
        return value
    return " ".join(part[:1] + "*" * max(0, len(part) - 1) for part in value.split(" "))


PII_MASKERS: Dict[str, Callable[[str], str]] = {
    "email": mask_email,
    "name": mask_name,
}


def is_pii_field(field_key: str) -> bool:
    return field_key in PII_MASKERS


def anonymize_value(value: Any, field_key: str) -> Any:
    masker = PII_MASKERS.get(field_key)
    if masker is None or not isinstance(value, str):
        return value
    return masker(value)
