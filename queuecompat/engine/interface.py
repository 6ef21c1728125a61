"""
Engine interface for the legacy queue facade.

This module defines the abstract interface an engine implementation
must follow to be driven by queuecompat.queue.Queue. The Redis
implementation in this package is registered by default; another
implementation can be registered in its place through the service
registry.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .types import JobsOpts


class EngineQueue(ABC):
    """
    Abstract handle used to add and inspect the jobs of one queue.

    Range queries use inclusive bounds; negative indexes count from the
    end of the range.
    """

    name: str
    prefix: str

    @property
    @abstractmethod
    def repeat(self):
        """Repeatable schedule manager of this queue."""

    @abstractmethod
    def to_key(self, type_: str) -> str:
        """
        Build a storage key inside the queue's namespace.

        Args:
            type_: The key suffix, "" for the namespace itself

        Returns:
            "<prefix>:<name>:<type_>"
        """

    @abstractmethod
    async def wait_until_ready(self):
        """Wait until the queue's connection is usable."""

    @abstractmethod
    async def add(self, name: str, data: Any, opts: Optional[JobsOpts] = None):
        """
        Add a job.

        Args:
            name: The job name
            data: The job payload
            opts: Job options, merged over the queue's default job options

        Returns:
            The added job
        """

    @abstractmethod
    async def pause(self) -> None:
        """Pause the queue for every worker."""

    @abstractmethod
    async def resume(self) -> None:
        """Resume a paused queue."""

    @abstractmethod
    async def count(self) -> int:
        """Number of jobs waiting, paused or delayed."""

    @abstractmethod
    async def get_job_counts(self, *types: str) -> Dict[str, int]:
        """
        Count jobs per state.

        Args:
            types: States to count, every state when empty

        Returns:
            A mapping from state to number of jobs
        """

    @abstractmethod
    async def get_job_count_by_types(self, *types: str) -> int:
        """Total number of jobs in the given states."""

    @abstractmethod
    async def get_jobs(self, types=None, start: int = 0, end: int = -1,
                       asc: bool = False) -> List[Any]:
        """
        List jobs in the given states.

        Args:
            types: A state or a list of states
            start: First index of each state's range
            end: Last index of each state's range
            asc: Oldest first when True

        Returns:
            The jobs found, per state in the order requested
        """

    @abstractmethod
    async def get_job(self, job_id: str):
        """
        Get a job by id.

        Args:
            job_id: The engine job id

        Returns:
            The job if found, None otherwise
        """

    @abstractmethod
    async def get_workers(self) -> List[Dict[str, str]]:
        """Connected workers of this queue, one dict per client."""

    @abstractmethod
    async def close(self) -> None:
        """Release the queue's connection."""


class EngineWorker(ABC):
    """Abstract handle processing the jobs of one queue."""

    concurrency: int

    @abstractmethod
    def wait_until_ready(self):
        """Start processing; the returned awaitable resolves once started."""

    @abstractmethod
    async def pause(self, do_not_wait_active: bool = False) -> None:
        """
        Stop taking new jobs.

        Args:
            do_not_wait_active: Return without waiting for running jobs
        """

    @abstractmethod
    def resume(self) -> None:
        """Take new jobs again after a pause."""

    @abstractmethod
    def is_paused(self) -> bool:
        """True while the worker is locally paused."""

    @abstractmethod
    async def close(self) -> None:
        """Stop the worker once running jobs have finished."""


class EngineQueueEvents(ABC):
    """Abstract subscription to the lifecycle events of one queue."""

    @abstractmethod
    async def wait_until_ready(self):
        """Wait until events are delivered."""

    @abstractmethod
    def on(self, event: str, callback) -> None:
        """
        Subscribe to an event.

        Args:
            event: The event name, e.g. "completed" or "failed"
            callback: Called with a dict of event arguments
        """

    @abstractmethod
    def off(self, event: str, callback) -> None:
        """Remove a subscription added with on()."""

    @abstractmethod
    async def close(self) -> None:
        """Stop delivering events."""
