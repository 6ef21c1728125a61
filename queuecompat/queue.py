"""
Legacy queue facade.

Queue exposes the legacy queue API and runs every operation on the
engine registered as service().engine. The engine queue, worker and
event subscription are each created on first use and kept until
close().
"""

import asyncio
import inspect
import logging

from .adapters import options, repeat_key
from .config import DEFAULT_JOB_NAME, QueueConfig
from .dispatch import (isAsyncHandler, resolveAdd, resolveProcess,
                       resolveRemoveRepeatable, takesDoneCallback)
from .errors import (DuplicateHandlerError, MissingHandlerError,
                     NamedProcessorError, NotSupportedError, QueueCompatError,
                     UnknownJobTypeError)
from .job import Job
from .service import service

LOG = logging.getLogger(__name__)


class Queue(object):
    # pylint: disable=too-many-public-methods
    DEFAULT_JOB_NAME = DEFAULT_JOB_NAME

    def __init__(self, queueName, urlOrOpts=None, opts=None):
        """
        Queue(name, opts=None) or Queue(name, url, opts=None).

        The key prefix is "redis.keyPrefix", else "prefix", else "bull";
        it is applied by the engine and never passed to the connection.
        """
        self.name = queueName
        self._config = QueueConfig(urlOrOpts, opts)
        self.keyPrefix = self._config.prefix
        self._queue = None
        self._queueEvents = None
        self._worker = None
        self._handlers = {}

    def __repr__(self):
        return "Queue({!r})".format(self.name)

    @property
    def opts(self):
        return self._config.asOptions()

    @property
    def worker(self):
        """The engine worker, None until process() is called."""
        return self._worker

    def engineQueue(self):
        if self._queue is None:
            self._queue = service().engine.Queue(
                self.name, options.to_engine_queue_options(self._config))
        return self._queue

    def engineQueueEvents(self):
        if self._queueEvents is None:
            self._queueEvents = service().engine.QueueEvents(
                self.name, options.to_engine_queue_events_options(self._config))
        return self._queueEvents

    def toKey(self, type_):
        return self.engineQueue().to_key(type_)

    async def isReady(self):
        await self.engineQueue().wait_until_ready()
        return self

    def process(self, *args):
        """
        Register a handler; see queuecompat.dispatch for the call shapes.

        A handler is called with the Job. It returns the result, or an
        awaitable of it; a handler taking a second `done` argument
        reports with done(err, result) instead. Coroutine functions run
        on the event loop, other handlers in a thread, so that a job
        timeout also applies to blocking handlers. A handler named "*"
        gets jobs no other handler is named for. A str handler is the
        path of a processor file, run on the engine job.

        The worker is created by the first call, with that call's
        concurrency. Returns an awaitable resolving once the worker
        runs.
        """
        call = resolveProcess(args)
        if call.handler is None and call.handlerFile is None:
            raise MissingHandlerError()
        if call.name in self._handlers:
            raise DuplicateHandlerError(call.name)
        if call.handlerFile is not None and call.name != DEFAULT_JOB_NAME:
            raise NamedProcessorError()

        self._handlers[call.name] = call.handler
        if self._worker is None:
            workerOpts = options.to_engine_worker_options(
                self._config, call.concurrency)
            processor = call.handlerFile or self._createProcessor()
            self._worker = service().engine.Worker(
                self.name, processor, workerOpts)
        return self._worker.wait_until_ready()

    def _createProcessor(self):
        handlers = self._handlers

        async def processor(engineJob):
            name = engineJob.name or DEFAULT_JOB_NAME
            handler = handlers.get(name) or handlers.get('*')
            if handler is None:
                raise UnknownJobTypeError(name)
            job = Job.wrap(self, engineJob)
            if takesDoneCallback(handler):
                return await _callWithDone(handler, job)
            if isAsyncHandler(handler):
                result = handler(job)
            else:
                result = await asyncio.to_thread(handler, job)
            if inspect.isawaitable(result):
                result = await result
            return result

        return processor

    async def add(self, *args):
        """add(data, opts=None) or add(name, data, opts=None)."""
        call = resolveAdd(args)
        engineOpts = options.to_engine_jobs_opts(call.opts)
        engineQueue = self.engineQueue()
        repeat = call.opts.get('repeat')
        if repeat:
            engineOpts = engineOpts.merged(engineQueue.default_job_options)
            engineJob = await engineQueue.repeat.add_next_repeatable_job(
                call.name, call.data, engineOpts,
                _repeatJobId(repeat, call.opts), True)
        else:
            engineJob = await engineQueue.add(call.name, call.data, engineOpts)
        return Job.wrap(self, engineJob)

    async def nextRepeatableJob(self, name, data, opts, skipCheckExists=False):
        opts = dict(opts or {})
        engineJob = await self.engineQueue().repeat.add_next_repeatable_job(
            name or DEFAULT_JOB_NAME, data,
            options.to_engine_jobs_opts(opts),
            _repeatJobId(opts.get('repeat') or {}, opts),
            skipCheckExists)
        return Job.wrap(self, engineJob)

    async def pause(self, isLocal=False):
        if isLocal:
            if self._worker is not None:
                await self._worker.pause(True)
        else:
            await self.engineQueue().pause()

    async def resume(self, isLocal=False):
        if isLocal:
            if self._worker is not None:
                self._worker.resume()
        else:
            await self.engineQueue().resume()

    async def count(self):
        return await self.engineQueue().count()

    def empty(self):
        raise NotSupportedError()

    async def close(self):
        handles = [handle for handle in (self._queue, self._queueEvents,
                                         self._worker)
                   if handle is not None]
        await asyncio.gather(*[handle.close() for handle in handles])

    async def getJob(self, jobId):
        engineJob = await self.engineQueue().get_job(
            options.to_engine_job_id(jobId))
        return Job.wrap(self, engineJob)

    def _wrapAll(self, engineJobs):
        return [Job.wrap(self, engineJob) for engineJob in engineJobs]

    async def getWaiting(self, start=0, end=-1):
        return self._wrapAll(await self.engineQueue().get_waiting(start, end))

    async def getActive(self, start=0, end=-1):
        return self._wrapAll(await self.engineQueue().get_active(start, end))

    async def getDelayed(self, start=0, end=-1):
        return self._wrapAll(await self.engineQueue().get_delayed(start, end))

    async def getCompleted(self, start=0, end=-1):
        return self._wrapAll(
            await self.engineQueue().get_completed(start, end))

    async def getFailed(self, start=0, end=-1):
        return self._wrapAll(await self.engineQueue().get_failed(start, end))

    async def getJobs(self, types, start=0, end=-1, asc=False):
        return self._wrapAll(
            await self.engineQueue().get_jobs(types, start, end, asc))

    async def getRepeatableJobs(self, start=0, end=-1, asc=False):
        entries = await self.engineQueue().repeat.get_repeatable_jobs(
            start, end, asc)
        return [options.to_job_information(entry) for entry in entries]

    async def removeRepeatable(self, *args):
        """removeRepeatable(repeat) or removeRepeatable(name, repeat)."""
        call = resolveRemoveRepeatable(args)
        await self.engineQueue().repeat.remove_repeatable(
            call.name, options.to_engine_repeat_opts(call.repeat),
            options.to_engine_job_id(call.repeat.get('jobId')))

    async def removeRepeatableByKey(self, repeatJobKey):
        repeat = self.engineQueue().repeat
        await repeat.wait_until_ready()
        info = repeat_key.decode(repeatJobKey)
        await repeat.client.remove_repeatable(
            repeat.to_key(''), info['id'], repeatJobKey)

    def getJobLogs(self, jobId, start=0, end=-1):
        raise NotSupportedError()

    async def getJobCounts(self):
        counts = await self.engineQueue().get_job_counts()
        return options.to_job_counts(counts)

    async def getJobCountByTypes(self, types):
        if isinstance(types, str):
            types = [types]
        return await self.engineQueue().get_job_count_by_types(*types)

    async def getCompletedCount(self):
        return await self.engineQueue().get_completed_count()

    async def getFailedCount(self):
        return await self.engineQueue().get_failed_count()

    async def getDelayedCount(self):
        return await self.engineQueue().get_delayed_count()

    async def getWaitingCount(self):
        return await self.engineQueue().get_waiting_count()

    async def getPausedCount(self):
        return await self.engineQueue().get_job_count_by_types('paused')

    async def getActiveCount(self):
        return await self.engineQueue().get_active_count()

    async def getRepeatableCount(self):
        return await self.engineQueue().repeat.get_repeatable_count()

    def clean(self, grace, status=None, limit=None):
        raise NotSupportedError()

    def on(self, event, callback):
        raise NotSupportedError()

    def setWorkerName(self):
        raise NotSupportedError()

    async def getWorkers(self):
        return await self.engineQueue().get_workers()

    def base64Name(self):
        return self.engineQueue().base64_name()

    def clientName(self):
        return self.engineQueue().client_name()

    def parseClientList(self, clientList):
        return self.engineQueue().parse_client_list(clientList)


def _repeatJobId(repeat, opts):
    jobId = repeat.get('jobId')
    if jobId is None:
        jobId = opts.get('jobId')
    return options.to_engine_job_id(jobId)


async def _callWithDone(handler, job):
    """
    Run a handler(job, done) and wait for done(err, result).

    done() may be called from any thread; a plain handler runs in one.
    """
    loop = asyncio.get_running_loop()
    settled = loop.create_future()

    def settle(err, result):
        if settled.done():
            return
        if err:
            if not isinstance(err, BaseException):
                err = QueueCompatError(str(err))
            settled.set_exception(err)
        else:
            settled.set_result(result)

    def done(err=None, result=None):
        loop.call_soon_threadsafe(settle, err, result)

    if isAsyncHandler(handler):
        returned = handler(job, done)
    else:
        returned = await asyncio.to_thread(handler, job, done)
    if inspect.isawaitable(returned):
        await returned
    return await settled
