"""
Legacy job queue API on top of the queue engine.

Code written against the legacy queue client uses Queue and Job from
this package unchanged; every operation is translated to the engine
registered in the service registry (queuecompat.engine, on Redis, by
default).
"""

from .config import DEFAULT_JOB_NAME, ConfigError, QueueConfig
from .errors import (DuplicateHandlerError, JobIdError, MissingHandlerError,
                     NamedProcessorError, NotSupportedError, ProcessorError,
                     QueueCompatError, RepeatOptionsError,
                     UnknownJobTypeError)
from .job import Job
from .queue import Queue
from .service.registry import registerServices

registerServices()

__all__ = [
    "ConfigError", "DEFAULT_JOB_NAME", "DuplicateHandlerError", "Job",
    "JobIdError", "MissingHandlerError", "NamedProcessorError",
    "NotSupportedError", "ProcessorError", "Queue", "QueueCompatError",
    "QueueConfig", "RepeatOptionsError", "UnknownJobTypeError",
    "registerServices",
]
