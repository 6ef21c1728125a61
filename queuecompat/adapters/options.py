"""
Translation between legacy option dicts and engine option records.

Legacy options are dicts with the legacy camelCase keys; engine options
are the dataclasses of queuecompat.engine.types. Fields copied as-is are
listed in the *_FIELDS tables, (legacy key, engine attribute) pairs.
Legacy features the engine has no counterpart for are dropped with a
warning.
"""

from dataclasses import replace
import logging
import numbers
from typing import Any, Callable, Dict, Optional, Union

from queuecompat.engine.types import (AdvancedOpts, BackoffOpts, ClientType,
                                      JobsOpts, QueueEventsOptions,
                                      QueueOptions, RateLimiterOpts,
                                      RepeatableJob, RepeatOpts,
                                      WorkerOptions)
from queuecompat.errors import RepeatOptionsError

LOG = logging.getLogger(__name__)

JOB_FIELDS = (
    ("timestamp", "timestamp"),
    ("priority", "priority"),
    ("delay", "delay"),
    ("attempts", "attempts"),
    ("lifo", "lifo"),
    ("timeout", "timeout"),
    ("stackTraceLimit", "stack_trace_limit"),
)

CRON_REPEAT_FIELDS = (
    ("cron", "cron"),
    ("tz", "tz"),
    ("startDate", "start_date"),
    ("endDate", "end_date"),
    ("limit", "limit"),
)

EVERY_REPEAT_FIELDS = (
    ("every", "every"),
    ("tz", "tz"),
    ("endDate", "end_date"),
    ("limit", "limit"),
)

REPEAT_FIELDS = CRON_REPEAT_FIELDS + (("every", "every"),)

RETENTION_FIELDS = (
    ("removeOnComplete", "remove_on_complete"),
    ("removeOnFail", "remove_on_fail"),
)

LIMITER_FIELDS = (
    ("max", "max"),
    ("duration", "duration"),
)

SETTINGS_FIELDS = (
    ("lockDuration", "lock_duration"),
    ("stalledInterval", "stalled_interval"),
    ("maxStalledCount", "max_stalled_count"),
    ("guardInterval", "guard_interval"),
    ("retryProcessDelay", "retry_process_delay"),
    ("backoffStrategies", "backoff_strategies"),
    ("drainDelay", "drain_delay"),
)

JOB_COUNT_TYPES = ("active", "completed", "failed", "delayed", "waiting")

# Engine client kinds and the legacy createClient() type asked for them
CLIENT_TYPES = {
    ClientType.BLOCKING: "bclient",
    ClientType.NORMAL: "client",
}


def _copy_to_engine(source: Dict[str, Any], table) -> Dict[str, Any]:
    return {attr: source.get(key) for key, attr in table}


def _copy_to_legacy(source, table) -> Dict[str, Any]:
    target = {}
    for key, attr in table:
        value = getattr(source, attr)
        if value is not None:
            target[key] = value
    return target


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, bool)


def to_engine_job_id(job_id: Union[int, str, None]) -> Optional[str]:
    if job_id is None:
        return None
    return job_id if isinstance(job_id, str) else str(job_id)


def to_job_id(job_id: Optional[str]) -> Union[int, str, None]:
    if job_id is None:
        return None
    if isinstance(job_id, str) and job_id.isdigit():
        return int(job_id)
    return job_id


def to_engine_repeat_opts(source: Optional[Dict[str, Any]]
                          ) -> Optional[RepeatOpts]:
    """
    Engine repeat options for a legacy repeat dict.

    Exactly one of "cron" and "every" must be given. The engine's
    occurrence counters are left unset.
    """
    if not source:
        return None
    has_cron = bool(source.get("cron"))
    has_every = source.get("every") is not None
    if has_cron == has_every:
        raise RepeatOptionsError(
            "Repeat options need exactly one of cron and every: {!r}".format(
                source))
    return RepeatOpts(**_copy_to_engine(source, REPEAT_FIELDS))


def to_repeat_options(source: Optional[RepeatOpts]) -> Optional[Dict[str, Any]]:
    if source is None:
        return None
    if source.cron:
        return _copy_to_legacy(source, CRON_REPEAT_FIELDS)
    return _copy_to_legacy(source, EVERY_REPEAT_FIELDS)


def to_engine_backoff(source: Union[int, Dict[str, Any], None]
                      ) -> Union[int, BackoffOpts, None]:
    if source is None or _is_number(source):
        return source
    return BackoffOpts(type=source.get("type"), delay=source.get("delay"))


def to_backoff_options(source: Union[int, BackoffOpts, None]
                       ) -> Union[int, Dict[str, Any], None]:
    if source is None or _is_number(source):
        return source
    return _copy_to_legacy(source, (("type", "type"), ("delay", "delay")))


def to_engine_jobs_opts(source: Optional[Dict[str, Any]]
                        ) -> Optional[JobsOpts]:
    """
    Engine job options for a legacy option dict.

    Numeric removeOnComplete/removeOnFail (keep the last N jobs) are not
    supported by the engine: they are dropped with a warning.
    """
    if source is None:
        return None
    target = _copy_to_engine(source, JOB_FIELDS)
    target["repeat"] = to_engine_repeat_opts(source.get("repeat"))
    target["backoff"] = to_engine_backoff(source.get("backoff"))
    target["job_id"] = to_engine_job_id(source.get("jobId"))
    for key, attr in RETENTION_FIELDS:
        value = source.get(key)
        if value is not None and not isinstance(value, bool):
            LOG.warning("numeric %s option is not supported", key)
            value = None
        target[attr] = value
    return JobsOpts(**target)


def to_job_options(source: Optional[JobsOpts]) -> Optional[Dict[str, Any]]:
    """Legacy option dict for engine job options; unset fields are omitted."""
    if source is None:
        return None
    target = _copy_to_legacy(source, JOB_FIELDS + RETENTION_FIELDS)
    if source.repeat is not None:
        target["repeat"] = to_repeat_options(source.repeat)
    if source.backoff is not None:
        target["backoff"] = to_backoff_options(source.backoff)
    if source.job_id is not None:
        target["jobId"] = to_job_id(source.job_id)
    return target


def with_delay(source: JobsOpts, delay: Optional[int]) -> JobsOpts:
    return replace(source, delay=delay)


def to_engine_rate_limiter_opts(source: Optional[Dict[str, Any]]
                                ) -> Optional[RateLimiterOpts]:
    if not source:
        return None
    if source.get("bounceBack") is not None:
        LOG.warning("bounceBack option is not supported")
    return RateLimiterOpts(**_copy_to_engine(source, LIMITER_FIELDS))


def to_engine_advanced_opts(source: Optional[Dict[str, Any]]
                            ) -> Optional[AdvancedOpts]:
    if not source:
        return None
    if source.get("lockRenewTime") is not None:
        LOG.warning("lockRenewTime option is not supported")
    return AdvancedOpts(**_copy_to_engine(source, SETTINGS_FIELDS))


def adapt_create_client(create_client: Optional[Callable],
                        redis: Optional[Dict[str, Any]]
                        ) -> Optional[Callable[[ClientType], Any]]:
    """
    Wrap a legacy createClient(type, redisOpts) into an engine client
    factory taking a ClientType.
    """
    if create_client is None:
        return None

    def factory(client_type: ClientType):
        legacy_type = CLIENT_TYPES.get(client_type)
        if legacy_type is None:
            return None
        return create_client(legacy_type, redis)

    return factory


def to_engine_queue_options(config) -> QueueOptions:
    """Engine queue options for a queuecompat.config.QueueConfig."""
    return QueueOptions(
        connection=config.redis,
        prefix=config.prefix,
        default_job_options=to_engine_jobs_opts(config.defaultJobOptions),
        create_client=adapt_create_client(config.createClient, config.redis),
    )


def to_engine_queue_events_options(config) -> QueueEventsOptions:
    return QueueEventsOptions(
        connection=config.redis,
        prefix=config.prefix,
        last_event_id=None,
        blocking_timeout=None,
    )


def to_engine_worker_options(config,
                             concurrency: Optional[int] = None
                             ) -> WorkerOptions:
    return WorkerOptions(
        connection=config.redis,
        prefix=config.prefix,
        concurrency=concurrency,
        limiter=to_engine_rate_limiter_opts(config.limiter),
        skip_delay_check=None,
        drain_delay=None,
        visibility_window=None,
        settings=to_engine_advanced_opts(config.settings),
        create_client=adapt_create_client(config.createClient, config.redis),
    )


def to_job_counts(source: Optional[Dict[str, Any]]
                  ) -> Optional[Dict[str, Optional[int]]]:
    """
    Legacy job counts for engine counts per state.

    The engine's "wait" state is the legacy "waiting"; states without a
    legacy counterpart (e.g. "paused") are dropped.
    """
    if source is None:
        return None
    target = dict.fromkeys(JOB_COUNT_TYPES)
    for key, value in source.items():
        if key == "wait":
            key = "waiting"
        if key in target and _is_number(value):
            target[key] = value
    return target


def to_job_information(source: RepeatableJob) -> Dict[str, Any]:
    return {
        "key": source.key,
        "name": source.name,
        "id": source.id,
        "endDate": source.end_date,
        "tz": source.tz,
        "cron": source.cron,
        "next": source.next,
    }
