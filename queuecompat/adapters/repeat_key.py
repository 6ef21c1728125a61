"""
Codec for repeatable job keys.

A repeatable job key addresses one recurring schedule:

    <name>:<id>:<endDate>:<tz>:<cron>

Trailing fields may be empty. For fixed-interval schedules the last field
holds the interval in milliseconds.
"""

from typing import Any, Dict, Optional

FIELDS = 5


def _int_or_none(token: str) -> Optional[int]:
    if token.lstrip("-").isdigit():
        return int(token)
    return None


def decode(key: str) -> Dict[str, Any]:
    """
    Split a repeatable job key into its fields.

    Args:
        key: The repeatable job key

    Returns:
        A dict with key, name, id, endDate, tz and cron. Empty fields
        are None; the cron field is the rest of the key after the fourth
        colon.
    """
    tokens = key.split(":", FIELDS - 1)
    tokens += [""] * (FIELDS - len(tokens))
    name, job_id, end_date, tz, cron = tokens
    return {
        "key": key,
        "name": name,
        "id": job_id or None,
        "endDate": _int_or_none(end_date),
        "tz": tz or None,
        "cron": cron or None,
    }


def encode(info: Dict[str, Any]) -> str:
    """Build a repeatable job key from decode()'s fields."""
    end_date = info.get("endDate")
    cron = info.get("cron")
    if cron is None:
        cron = info.get("every")
    return ":".join([
        info.get("name") or "",
        "" if info.get("id") is None else str(info["id"]),
        "" if end_date is None else str(end_date),
        info.get("tz") or "",
        "" if cron is None else str(cron),
    ])
