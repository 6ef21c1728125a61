"""
Legacy job facade.

A Job owns exactly one engine job. Every legacy field is read from and
written to that engine job; the facade keeps no state of its own.
"""

import logging

from .adapters import options, serialization
from .errors import JobIdError, NotSupportedError
from .dispatch import resolveAdd
from .service import service

LOG = logging.getLogger(__name__)


class Job(object):
    # pylint: disable=too-many-public-methods

    def __init__(self, queue, *args):
        """
        Job(queue, data, opts=None) or Job(queue, name, data, opts=None).

        The engine job is created against the queue's engine queue; it
        is not added to the queue.
        """
        call = resolveAdd(args)
        engineJob = service().engine.Job(
            queue.engineQueue(), call.name, call.data,
            options.to_engine_jobs_opts(call.opts))
        self._bind(queue, engineJob)

    def _bind(self, queue, engineJob):
        self.queue = queue
        self._engineJob = engineJob

    @classmethod
    def wrap(cls, queue, engineJob):
        """Facade over an existing engine job, None for None."""
        if engineJob is None:
            return None
        job = cls.__new__(cls)
        job._bind(queue, engineJob)
        return job

    @classmethod
    def fromJSON(cls, queue, snapshot, jobId=None):
        """Rebuild a job from a snapshot (see adapters.serialization)."""
        fields = serialization.parse(snapshot)
        job = cls(queue, fields["name"], fields["data"], fields["opts"])
        jobId = fields["id"] if fields["id"] is not None else jobId
        if jobId is not None:
            job.id = jobId
        job._progress = fields["progress"]
        if fields["delay"] is not None:
            job.delay = fields["delay"]
        job.timestamp = fields["timestamp"]
        if fields["finishedOn"] is not None:
            job.finishedOn = fields["finishedOn"]
        if fields["processedOn"] is not None:
            job.processedOn = fields["processedOn"]
        job.failedReason = fields["failedReason"]
        job.attemptsMade = fields["attemptsMade"]
        job.stacktrace = fields["stacktrace"]
        job.returnvalue = fields["returnvalue"]
        return job

    def __repr__(self):
        return "Job({!r}, {!r})".format(self.id, self.name)

    @property
    def engineJob(self):
        return self._engineJob

    @property
    def id(self):
        return options.to_job_id(self._engineJob.id)

    @id.setter
    def id(self, value):
        engineId = options.to_engine_job_id(value)
        current = self._engineJob.id
        if current is not None and current != engineId:
            raise JobIdError(
                "Job id {} cannot be changed to {}".format(current, engineId))
        self._engineJob.id = engineId

    @property
    def name(self):
        return self._engineJob.name

    @name.setter
    def name(self, value):
        self._engineJob.name = value

    @property
    def data(self):
        return self._engineJob.data

    @data.setter
    def data(self, value):
        self._engineJob.data = value

    @property
    def opts(self):
        return options.to_job_options(self._engineJob.opts)

    @opts.setter
    def opts(self, value):
        self._engineJob.opts = options.to_engine_jobs_opts(value or {})

    @property
    def _progress(self):
        return self._engineJob.progress

    @_progress.setter
    def _progress(self, value):
        self._engineJob.progress = value

    @property
    def delay(self):
        return self._engineJob.opts.delay

    @delay.setter
    def delay(self, value):
        self._engineJob.opts = options.with_delay(self._engineJob.opts, value)

    @property
    def timestamp(self):
        return self._engineJob.timestamp

    @timestamp.setter
    def timestamp(self, value):
        self._engineJob.timestamp = value

    @property
    def finishedOn(self):
        return self._engineJob.finished_on

    @finishedOn.setter
    def finishedOn(self, value):
        self._engineJob.finished_on = value

    @property
    def processedOn(self):
        return self._engineJob.processed_on

    @processedOn.setter
    def processedOn(self, value):
        self._engineJob.processed_on = value

    @property
    def failedReason(self):
        return self._engineJob.failed_reason

    @failedReason.setter
    def failedReason(self, value):
        self._engineJob.failed_reason = value

    @property
    def attemptsMade(self):
        return self._engineJob.attempts_made

    @attemptsMade.setter
    def attemptsMade(self, value):
        self._engineJob.attempts_made = value

    @property
    def stacktrace(self):
        return self._engineJob.stacktrace

    @stacktrace.setter
    def stacktrace(self, value):
        self._engineJob.stacktrace = value

    @property
    def returnvalue(self):
        return self._engineJob.returnvalue

    @returnvalue.setter
    def returnvalue(self, value):
        self._engineJob.returnvalue = value

    def toKey(self):
        return self._engineJob.to_key()

    async def progress(self, value):
        await self._engineJob.update_progress(value)

    def log(self, row):
        raise NotSupportedError()

    async def isCompleted(self):
        return await self._engineJob.is_completed()

    async def isFailed(self):
        return await self._engineJob.is_failed()

    async def isDelayed(self):
        return await self._engineJob.is_delayed()

    async def isActive(self):
        return await self._engineJob.is_active()

    async def isWaiting(self):
        return await self._engineJob.is_waiting()

    def isPaused(self):
        raise NotSupportedError()

    def isStuck(self):
        raise NotSupportedError()

    def getState(self):
        raise NotSupportedError()

    async def update(self, data):
        await self._engineJob.update(data)

    async def remove(self):
        await self._engineJob.remove()

    def retry(self):
        raise NotSupportedError()

    def discard(self):
        raise NotSupportedError()

    def promote(self):
        raise NotSupportedError()

    def lockKey(self):
        raise NotSupportedError()

    def releaseLock(self):
        raise NotSupportedError()

    def takeLock(self):
        raise NotSupportedError()

    async def finished(self, watchdog=5000, ttl=None):
        """
        Wait until the job completes or fails.

        Returns the job's return value, or raises JobFailedError with
        the failure reason. Gives up with asyncio.TimeoutError after
        `ttl` ms (`watchdog` ms when no ttl is given).
        """
        return await self._engineJob.wait_until_finished(
            self.queue.engineQueueEvents(), watchdog, ttl)

    async def moveToCompleted(self, returnValue=None, ignoreLock=False):
        """
        Complete the job and fetch the next waiting one.

        Returns [snapshot, jobId] of the next job, None when nothing is
        waiting.
        """
        if ignoreLock:
            LOG.warning("ignoreLock is not supported")
        result = await self._engineJob.move_to_completed(returnValue)
        if result is None:
            return None
        record, jobId = result
        return [serialization.from_engine_record(record),
                options.to_job_id(jobId)]

    async def moveToFailed(self, errorInfo, ignoreLock=False):
        if ignoreLock:
            LOG.warning("ignoreLock is not supported")
        await self._engineJob.move_to_failed(errorInfo)
        return None

    def toJSON(self):
        data = self.data
        return {
            'id': self.id,
            'name': self.name,
            'data': {} if data is None else data,
            'opts': dict(self.opts or {}),
            'progress': self._progress,
            'delay': self.delay,
            'timestamp': self.timestamp,
            'attemptsMade': self.attemptsMade,
            'failedReason': self.failedReason,
            'stacktrace': self.stacktrace,
            'returnvalue': self.returnvalue,
            'finishedOn': self.finishedOn,
            'processedOn': self.processedOn,
        }

    def _toData(self):
        return serialization.to_data(self.toJSON())
