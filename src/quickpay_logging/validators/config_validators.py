import json
from typing import Iterable


def to_uppercase(value: str | None) -> str | None:
    """
    Converts a string to uppercase if it's not None.
    """
    if value is None:
        return None
    return value.upper()

def to_lowercase(value: str | None) -> str | None:
    """
    Converts a string to lowercase if it's not None.
    """
    if value is None:
        return None
    return value.lower()

def to_field_names(value: str | Iterable[str] | None) -> list[str]:
    """
    Normalize a list of sensitive field names.

    Accepts a comma-separated string or a JSON list (both as read from an env var), or
    any iterable of strings. Names are trimmed and lower-cased; blanks and duplicates
    are dropped while keeping first-seen order.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = json.loads(value) if value.strip().startswith("[") else value.split(",")
    names: list[str] = []
    for item in value:
        name = str(item).strip().lower()
        if name and name not in names:
            names.append(name)
    return names

def require_non_blank(value: str | None) -> str | None:
    """
    Reject empty or whitespace-only strings; None passes through so defaults still apply.
    """
    if value is not None and not value.strip():
        raise ValueError("value cannot be blank")
    return value
