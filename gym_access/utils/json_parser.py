"""
Helpers for reading vendor JSON payloads.
Webhook bodies and vendor API responses are loosely shaped, so lookups
here never raise on a missing key.
"""

import json
from typing import Optional, Any


def safe_parse_json(raw_body: bytes) -> Optional[Any]:
    """Parse JSON bytes safely. Returns None on error."""
    try:
        return json.loads(raw_body.decode("utf-8", errors="replace"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def get_nested(data: dict, *keys: str, default: Any = None) -> Any:
    """Safely navigate nested dict keys. Returns default if any key is missing."""
    current = data
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def first_present(data: dict, *keys: str) -> Any:
    """Value of the first key that is present and not empty."""
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def as_optional_str(value: Any) -> Optional[str]:
    """Vendor ids arrive as strings or ints; store them as strings."""
    if value is None or value == "":
        return None
    return str(value)
