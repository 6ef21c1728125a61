"""
Queue engine driven by the legacy facade.

This package contains the engine contract (interface) and its Redis
implementation on redis.asyncio, registered by default.
"""

from .connection import Connection
from .errors import (ConnectionClosedError, EngineError, JobFailedError,
                     JobNotFoundError)
from .events import QueueEvents
from .interface import EngineQueue, EngineQueueEvents, EngineWorker
from .job import Job
from .queue import Queue
from .types import (AdvancedOpts, BackoffOpts, ClientType, JobsOpts,
                    QueueEventsOptions, QueueOptions, RateLimiterOpts,
                    RepeatableJob, RepeatOpts, WorkerOptions)
from .worker import Worker

__all__ = [
    "AdvancedOpts", "BackoffOpts", "ClientType", "Connection",
    "ConnectionClosedError", "EngineError", "EngineQueue",
    "EngineQueueEvents", "EngineWorker", "Job", "JobFailedError",
    "JobNotFoundError", "JobsOpts", "Queue", "QueueEvents",
    "QueueEventsOptions", "QueueOptions", "RateLimiterOpts",
    "RepeatableJob", "RepeatOpts", "Worker", "WorkerOptions",
]
