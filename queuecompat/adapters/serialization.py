"""
Flat snapshot format of legacy jobs.

A snapshot is a dict with the legacy job fields (FIELDS) whose values
are all strings, or None for absent values. Structured values (data,
opts, progress, failedReason, stacktrace, returnvalue) are JSON.
"""

from typing import Any, Dict, Optional

import simplejson as json

from queuecompat.config import DEFAULT_JOB_NAME
from queuecompat.engine.types import JobsOpts

from . import options

FIELDS = (
    "id", "name", "data", "opts", "progress", "delay", "timestamp",
    "attemptsMade", "failedReason", "stacktrace", "returnvalue",
    "finishedOn", "processedOn",
)

_JSON_FIELDS = (
    "data", "opts", "progress", "failedReason", "stacktrace", "returnvalue",
)


def _parse(raw: Optional[str], default: Any) -> Any:
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return default


def _parse_int(raw: Any) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def to_data(record: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """
    Flatten a legacy job record (Job.toJSON()) into a snapshot.

    Args:
        record: The legacy job record

    Returns:
        A snapshot with every field of FIELDS
    """
    snapshot = {}
    for field in FIELDS:
        value = record.get(field)
        if value is None:
            snapshot[field] = None
        elif field in _JSON_FIELDS:
            snapshot[field] = json.dumps(value)
        else:
            snapshot[field] = str(value)
    return snapshot


def parse(snapshot: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse the fields of a snapshot.

    Malformed or absent values fall back to defaults: {} for data and
    opts, 0 for progress and attemptsMade, [] for stacktrace. A
    returnvalue or failedReason that is not valid JSON is kept as the
    raw string.
    """
    stacktrace = _parse(snapshot.get("stacktrace"), [])
    returnvalue = snapshot.get("returnvalue")
    if isinstance(returnvalue, str):
        returnvalue = _parse(returnvalue, returnvalue)
    failed_reason = snapshot.get("failedReason")
    if isinstance(failed_reason, str):
        failed_reason = _parse(failed_reason, failed_reason)
    return {
        "id": snapshot.get("id"),
        "name": snapshot.get("name") or DEFAULT_JOB_NAME,
        "data": _parse(snapshot.get("data"), {}),
        "opts": _parse(snapshot.get("opts"), {}),
        "progress": _parse(snapshot.get("progress"), 0),
        "delay": _parse_int(snapshot.get("delay")),
        "timestamp": _parse_int(snapshot.get("timestamp")),
        "attemptsMade": _parse_int(snapshot.get("attemptsMade")) or 0,
        "failedReason": failed_reason,
        "stacktrace": stacktrace if isinstance(stacktrace, list) else [],
        "returnvalue": returnvalue,
        "finishedOn": _parse_int(snapshot.get("finishedOn")),
        "processedOn": _parse_int(snapshot.get("processedOn")),
    }


def from_engine_record(record: Optional[Dict[str, Any]]
                       ) -> Optional[Dict[str, Optional[str]]]:
    """
    Snapshot of a raw engine job record.

    The engine options are converted to legacy options, and the delay
    they hold is lifted out into the snapshot's own field. The engine
    stores failedReason as plain text; it is JSON in the snapshot.
    """
    if record is None:
        return None
    snapshot = {field: None for field in FIELDS}
    for field in ("id", "name", "data", "progress", "stacktrace",
                  "returnvalue"):
        snapshot[field] = record.get(field)
    if record.get("failedReason") is not None:
        snapshot["failedReason"] = json.dumps(record["failedReason"])
    opts = _parse(record.get("opts"), None)
    if isinstance(opts, dict):
        snapshot["opts"] = json.dumps(
            options.to_job_options(JobsOpts.from_dict(opts)))
        if opts.get("delay") is not None:
            snapshot["delay"] = str(opts["delay"])
    for field in ("timestamp", "attemptsMade", "finishedOn", "processedOn"):
        if record.get(field) is not None:
            snapshot[field] = str(record[field])
    return snapshot
