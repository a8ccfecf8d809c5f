"""
Error types raised by the BLAST job pipeline
Each failure carries the job id where one exists so callers can report it
"""

from typing import Optional


class BlastError(Exception):
    """Base class for all BLAST pipeline failures"""


class ValidationError(BlastError):
    """The search request is malformed and was never sent"""


class SubmissionError(BlastError):
    """The remote service rejected the job submission"""

    def __init__(self, message: str, http_status: Optional[int] = None):
        self.http_status = http_status
        self.message = message
        if http_status is None:
            super().__init__(f"BLAST submission failed: {message}")
        else:
            super().__init__(f"BLAST submission failed ({http_status}): {message}")


class PollTransientError(BlastError):
    """A single status read failed; the poller may try again"""

    def __init__(self, job_id: str, message: str, http_status: Optional[int] = None):
        self.job_id = job_id
        self.message = message
        self.http_status = http_status
        super().__init__(f"Status check for job {job_id} failed: {message}")


class JobFailedError(BlastError):
    """The remote service reported the job as failed"""

    def __init__(self, job_id: str, raw_status: Optional[str] = None):
        self.job_id = job_id
        self.raw_status = raw_status
        super().__init__(f"BLAST job {job_id} failed with status {raw_status or 'FAILURE'}")


class PollTimeoutError(BlastError):
    """The job did not finish within the poll ceiling"""

    def __init__(self, job_id: str, elapsed: float, polls: int):
        self.job_id = job_id
        self.elapsed = elapsed
        self.polls = polls
        super().__init__(
            f"BLAST job {job_id} did not finish after {polls} polls ({elapsed:.1f}s)"
        )


class Cancelled(BlastError):
    """The caller cancelled the pipeline"""

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id
        if job_id:
            super().__init__(f"BLAST job {job_id} was cancelled")
        else:
            super().__init__("BLAST search was cancelled before submission")


class FetchError(BlastError):
    """Results could not be retrieved for a finished job"""

    def __init__(self, job_id: str, message: str, http_status: Optional[int] = None):
        self.job_id = job_id
        self.message = message
        self.http_status = http_status
        super().__init__(f"Failed to fetch BLAST results for job {job_id}: {message}")
