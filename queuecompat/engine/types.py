"""
Option and record types for the queue engine.

This module contains the engine's own option schema. It has no knowledge
of the legacy option records; the translation between both lives in
queuecompat.adapters.options.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
import time
from typing import Any, Callable, Dict, List, Optional, Union

# Job states as stored by the engine
WAIT = "wait"
PAUSED = "paused"
ACTIVE = "active"
DELAYED = "delayed"
COMPLETED = "completed"
FAILED = "failed"

JOB_STATES = (WAIT, PAUSED, ACTIVE, DELAYED, COMPLETED, FAILED)


def now_millis() -> int:
    return int(time.time() * 1000)


def sanitize_job_types(types) -> List[str]:
    """
    Normalize a list of requested job types.

    "waiting" is accepted as an alias of "wait"; an empty request means
    every state.
    """
    if isinstance(types, str):
        types = [types]
    if not types:
        return list(JOB_STATES)
    ret = []
    for job_type in types:
        if job_type == "waiting":
            job_type = WAIT
        if job_type not in ret:
            ret.append(job_type)
    return ret


class ClientType(Enum):
    """Kinds of connections the engine asks a client factory for."""

    BLOCKING = "blocking"
    NORMAL = "normal"


@dataclass
class RepeatOpts:
    cron: Optional[str] = None
    every: Optional[int] = None
    tz: Optional[str] = None
    start_date: Any = None
    end_date: Any = None
    limit: Optional[int] = None

    # Bookkeeping maintained by the engine between occurrences
    count: Optional[int] = None
    prev_millis: Optional[int] = None


@dataclass
class BackoffOpts:
    type: Optional[str] = None
    delay: Optional[int] = None


@dataclass
class JobsOpts:  # pylint: disable=too-many-instance-attributes
    timestamp: Optional[int] = None
    priority: Optional[int] = None
    delay: Optional[int] = None
    attempts: Optional[int] = None
    repeat: Optional[RepeatOpts] = None
    backoff: Union[int, BackoffOpts, None] = None
    lifo: Optional[bool] = None
    timeout: Optional[int] = None
    job_id: Optional[str] = None
    remove_on_complete: Optional[bool] = None
    remove_on_fail: Optional[bool] = None
    stack_trace_limit: Optional[int] = None

    # Key of the repeatable schedule this job is an occurrence of
    repeat_job_key: Optional[str] = None

    def merged(self, defaults: Optional[JobsOpts]) -> JobsOpts:
        """Return a new JobsOpts where unset fields come from defaults."""
        if defaults is None:
            return JobsOpts.from_dict(self.to_dict())
        values = defaults.to_dict()
        values.update(
            {k: v for k, v in self.to_dict().items() if v is not None})
        return JobsOpts.from_dict(values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> JobsOpts:
        if not values:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in values.items() if k in known}
        repeat = values.get("repeat")
        if isinstance(repeat, dict):
            values["repeat"] = RepeatOpts(**repeat)
        backoff = values.get("backoff")
        if isinstance(backoff, dict):
            values["backoff"] = BackoffOpts(**backoff)
        return cls(**values)


@dataclass
class RateLimiterOpts:
    max: Optional[int] = None
    duration: Optional[int] = None


@dataclass
class AdvancedOpts:  # pylint: disable=too-many-instance-attributes
    lock_duration: Optional[int] = None
    stalled_interval: Optional[int] = None
    max_stalled_count: Optional[int] = None
    guard_interval: Optional[int] = None
    retry_process_delay: Optional[int] = None
    backoff_strategies: Optional[Dict[str, Callable]] = None
    drain_delay: Optional[int] = None


@dataclass
class QueueBaseOptions:
    connection: Any = None
    prefix: Optional[str] = None


@dataclass
class QueueOptions(QueueBaseOptions):
    default_job_options: Optional[JobsOpts] = None
    create_client: Optional[Callable[[ClientType], Any]] = None


@dataclass
class QueueEventsOptions(QueueBaseOptions):
    last_event_id: Optional[str] = None
    blocking_timeout: Optional[int] = None


@dataclass
class WorkerOptions(QueueBaseOptions):  # pylint: disable=too-many-instance-attributes
    concurrency: Optional[int] = None
    limiter: Optional[RateLimiterOpts] = None
    skip_delay_check: Optional[bool] = None
    drain_delay: Optional[int] = None
    visibility_window: Optional[int] = None
    settings: Optional[AdvancedOpts] = None
    create_client: Optional[Callable[[ClientType], Any]] = None


@dataclass
class RepeatableJob:
    """One recurring schedule as listed by the engine."""

    key: str
    name: str
    id: Optional[str] = None
    end_date: Optional[int] = None
    tz: Optional[str] = None
    cron: Optional[str] = None
    every: Optional[int] = None
    next: Optional[int] = None
