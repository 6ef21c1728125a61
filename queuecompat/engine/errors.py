"""Exceptions raised by the queue engine."""


class EngineError(Exception):
    pass


class ConnectionClosedError(EngineError):
    pass


class JobNotFoundError(EngineError):
    def __init__(self, job_id, command):
        super().__init__(
            "Missing key for job {}. {}".format(job_id, command))
        self.job_id = job_id


class JobFailedError(EngineError):
    """Raised to waiters when a job ends up in the failed set."""

    def __init__(self, failed_reason):
        super().__init__(failed_reason)
        self.failed_reason = failed_reason
