"""
Repeatable job schedules.

A schedule is identified by its repeat key
"<name>:<jobId>:<end_date>:<tz>:<cron or every>". Only the next occurrence
of a schedule is stored, as a delayed job; the following one is added
when that occurrence is moved to active.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
import logging
from typing import List, Optional

from apscheduler.triggers.cron import CronTrigger
from dateutil import parser
from dateutil.tz import tzutc

from .store import repeat_job_prefix
from .types import JobsOpts, RepeatableJob, RepeatOpts, now_millis

LOG = logging.getLogger(__name__)

DEFAULT_TZ = "UTC"

_CRON_FIELDS = ("second", "minute", "hour", "day", "month", "day_of_week")


def to_millis(value) -> Optional[int]:
    """Epoch milliseconds for a datetime, an ISO string or a number."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise TypeError("Invalid date {!r}".format(value))
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        if value.lstrip("-").isdigit():
            return int(value)
        value = parser.parse(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=tzutc())
        return int(value.timestamp() * 1000)
    raise TypeError("Invalid date {!r}".format(value))


def cron_trigger(cron: str, tz: Optional[str] = None) -> CronTrigger:
    """Trigger for a 5 field crontab, or 6 fields with leading seconds."""
    parts = cron.split()
    if len(parts) == 6:
        return CronTrigger(timezone=tz or DEFAULT_TZ,
                           **dict(zip(_CRON_FIELDS, parts)))
    return CronTrigger.from_crontab(cron, timezone=tz or DEFAULT_TZ)


def next_millis(repeat: RepeatOpts, millis: int) -> Optional[int]:
    """The first occurrence of the schedule strictly after `millis`."""
    if repeat.every:
        return (millis // repeat.every + 1) * repeat.every
    if not repeat.cron:
        return None
    start = to_millis(repeat.start_date)
    if start is not None and start > millis:
        millis = start - 1
    trigger = cron_trigger(repeat.cron, repeat.tz)
    current = datetime.fromtimestamp(millis / 1000.0, trigger.timezone)
    fire_time = trigger.get_next_fire_time(
        None, current + timedelta(milliseconds=1))
    if fire_time is None:
        return None
    return int(fire_time.timestamp() * 1000)


def repeat_key(name: str, repeat: RepeatOpts, job_id: Optional[str],
               end_date: Optional[int]) -> str:
    suffix = repeat.cron if repeat.cron else repeat.every
    return ":".join([
        name,
        job_id or "",
        "" if end_date is None else str(end_date),
        repeat.tz or "",
        "" if suffix is None else str(suffix),
    ])


class Repeat:
    """Repeatable schedules of one engine queue."""

    def __init__(self, queue):
        self.queue = queue

    @property
    def client(self):
        return self.queue.connection

    def to_key(self, type_: str) -> str:
        return self.queue.to_key(type_)

    async def wait_until_ready(self) -> Repeat:
        await self.queue.wait_until_ready()
        return self

    async def add_next_repeatable_job(self, name: str, data,
                                      opts: JobsOpts,
                                      job_id: Optional[str] = None,
                                      skip_check_exists: bool = False):
        """
        Add the next occurrence of a repeatable job.

        Returns the added job, or None when the schedule is exhausted
        (limit or end date reached) or, unless skip_check_exists is set,
        when the schedule was removed in the meantime.
        """
        repeat = opts.repeat
        now = now_millis()
        end_date = to_millis(repeat.end_date)
        if end_date is not None and now > end_date:
            return None
        count = (repeat.count or 0) + 1
        if repeat.limit and count > repeat.limit:
            return None

        prev = repeat.prev_millis or 0
        next_ms = next_millis(repeat, max(now, prev))
        if next_ms is None:
            return None
        if end_date is not None and next_ms > end_date:
            return None

        key = repeat_key(name, repeat, job_id, end_date)
        store = self.queue.store
        if not skip_check_exists and await store.get_repeatable(key) is None:
            LOG.debug("repeatable job %s was removed", key)
            return None

        await store.save_repeatable(RepeatableJob(
            key=key, name=name, id=job_id or None, end_date=end_date,
            tz=repeat.tz, cron=repeat.cron, every=repeat.every,
            next=next_ms))

        next_repeat = replace(
            repeat, count=count, prev_millis=next_ms,
            start_date=to_millis(repeat.start_date), end_date=end_date)
        occurrence_opts = replace(
            opts, repeat=next_repeat,
            job_id=repeat_job_prefix(job_id, key) + str(next_ms),
            delay=max(next_ms - now, 0), timestamp=now,
            repeat_job_key=key)
        return await self.queue.add_job(name, data, occurrence_opts)

    async def get_repeatable_job(self, key: str) -> Optional[RepeatableJob]:
        return await self.queue.store.get_repeatable(key)

    async def get_repeatable_jobs(self, start: int = 0, end: int = -1,
                                  asc: bool = False) -> List[RepeatableJob]:
        return await self.queue.store.repeatable_entries(start, end, asc)

    async def get_repeatable_count(self) -> int:
        return await self.queue.store.repeatable_count()

    async def remove_repeatable(self, name: str, repeat: RepeatOpts,
                                job_id: Optional[str] = None) -> None:
        key = repeat_key(name, repeat, job_id, to_millis(repeat.end_date))
        await self.client.remove_repeatable(self.to_key(""), job_id, key)
