"""
Polls a remote BLAST job until it finishes, fails, times out or is cancelled

The status read is a blocking HTTP call, so it runs in a worker thread and the
event loop stays free between polls.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional

from blast_errors import Cancelled, JobFailedError, PollTimeoutError, PollTransientError
from blast_models import JobHandle, JobStatus

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("job_poller")

StatusReader = Callable[[JobHandle], str]


class JobPoller:
    """Drives a job through submitted -> running -> finished/failed"""

    def __init__(self,
                 status_reader: StatusReader,
                 interval: float = 3.0,
                 max_polls: int = 100,
                 max_transient_errors: int = 3,
                 timeout: Optional[float] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            status_reader: Returns the raw status string for a job, raising
                PollTransientError when a single read fails
            interval: Seconds to wait between polls
            max_polls: Hard ceiling on status reads
            max_transient_errors: Consecutive failed reads tolerated before
                the failure is raised
            timeout: Optional wall-clock ceiling in seconds
            sleep: Coroutine used to wait between polls
            clock: Monotonic clock used to measure elapsed time
        """
        if interval < 0:
            raise ValueError("interval must not be negative")
        if max_polls < 1:
            raise ValueError("max_polls must be at least 1")
        if max_transient_errors < 0:
            raise ValueError("max_transient_errors must not be negative")
        self.status_reader = status_reader
        self.interval = interval
        self.max_polls = max_polls
        self.max_transient_errors = max_transient_errors
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    @staticmethod
    def _check_cancelled(handle: JobHandle, cancel_event) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Polling of job {handle.job_id} cancelled")
            raise Cancelled(handle.job_id)

    async def await_completion(self,
                               handle: JobHandle,
                               cancel_event=None,
                               history: Optional[List[JobStatus]] = None) -> JobStatus:
        """
        Poll until the job reaches a terminal status

        Args:
            handle: The job to watch
            cancel_event: Anything with an is_set() method, e.g. asyncio.Event
            history: Optional caller-owned list; each mapped status is appended

        Returns:
            JobStatus.FINISHED

        Raises:
            JobFailedError: The service reported the job as failed
            PollTimeoutError: The poll ceiling or timeout was reached
            PollTransientError: Too many consecutive status reads failed
            Cancelled: The cancel event was set
        """
        started = self._clock()
        polls = 0
        consecutive_errors = 0

        while True:
            self._check_cancelled(handle, cancel_event)
            polls += 1
            try:
                raw_status = await asyncio.to_thread(self.status_reader, handle)
            except PollTransientError as e:
                # A read that finished after cancellation is discarded
                self._check_cancelled(handle, cancel_event)
                consecutive_errors += 1
                if consecutive_errors > self.max_transient_errors:
                    logger.error(f"Giving up on job {handle.job_id} after "
                                 f"{consecutive_errors} failed status checks: {e}")
                    raise
                logger.warning(f"Status check {polls} for job {handle.job_id} failed "
                               f"({consecutive_errors}/{self.max_transient_errors}): {e}")
            else:
                self._check_cancelled(handle, cancel_event)
                consecutive_errors = 0
                status = JobStatus.from_raw(raw_status)
                if history is not None:
                    history.append(status)
                logger.info(f"Job {handle.job_id} poll {polls}: {raw_status!r} -> {status.value}")

                if status is JobStatus.FINISHED:
                    return status
                if status is JobStatus.FAILED:
                    raise JobFailedError(handle.job_id, raw_status)

            elapsed = self._clock() - started
            if polls >= self.max_polls or (self.timeout is not None and elapsed >= self.timeout):
                logger.error(f"Job {handle.job_id} still not finished after {polls} polls")
                raise PollTimeoutError(handle.job_id, elapsed, polls)

            self._check_cancelled(handle, cancel_event)
            await self._sleep(self.interval)
