"""
Client for the EMBL-EBI NCBI-BLAST REST service
Submits protein searches, reads job status and downloads JSON results
"""

import json
import logging
from typing import Any, Optional

import requests

from blast_errors import FetchError, PollTransientError, SubmissionError
from blast_models import JobHandle, SearchRequest
from env_loader import EBI_BLAST_URL

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("ebi_blast")

# Required by the EBI API
DEFAULT_CONTACT_EMAIL = "test@example.com"


def _parse_text_or_json(body: str, key: str) -> str:
    """Return `body` or its `key` field when the body is a JSON object"""
    text = (body or "").strip()
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            return text
        if isinstance(data, dict):
            value = data.get(key)
            return str(value).strip() if value is not None else ""
    return text


class EBIBlastClient:
    """Thin wrapper over the EBI job dispatcher endpoints"""

    def __init__(self,
                 base_url: str = EBI_BLAST_URL,
                 email: str = DEFAULT_CONTACT_EMAIL,
                 session: Optional[requests.Session] = None,
                 timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.email = email
        self.session = session or requests.Session()
        self.timeout = timeout

    def submit(self, request: SearchRequest) -> JobHandle:
        """
        Submit a search job

        Args:
            request: The search to run

        Returns:
            Handle for the created job

        Raises:
            ValidationError: If the request is malformed
            SubmissionError: If the service rejects the job
        """
        request.validate()
        form = {
            "email": self.email,
            "program": request.program,
            "stype": "protein",
            "database": request.database,
            "sequence": request.sequence,
        }
        logger.info(f"Submitting {request.program} search against {request.database} "
                    f"({len(request.sequence)} residues)")
        try:
            response = self.session.post(
                f"{self.base_url}/run",
                data=form,
                headers={"Accept": "text/plain"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise SubmissionError(str(e)) from e

        if not response.ok:
            raise SubmissionError(response.text.strip() or response.reason or "no response body",
                                  http_status=response.status_code)

        job_id = _parse_text_or_json(response.text, "jobId")
        if not job_id:
            raise SubmissionError("service returned an empty job identifier",
                                  http_status=response.status_code)
        logger.info(f"BLAST job submitted: {job_id}")
        return JobHandle(job_id)

    def get_status(self, handle: JobHandle) -> str:
        """
        Read the raw status string of a job

        Raises:
            PollTransientError: On a network error or non-success response
        """
        try:
            response = self.session.get(
                f"{self.base_url}/status/{handle.job_id}",
                headers={"Accept": "text/plain"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PollTransientError(handle.job_id, str(e)) from e

        if not response.ok:
            raise PollTransientError(handle.job_id,
                                     f"EBI responded with {response.status_code}",
                                     http_status=response.status_code)
        status = _parse_text_or_json(response.text, "status")
        logger.debug(f"Job {handle.job_id} status: {status}")
        return status

    def get_result(self, handle: JobHandle) -> Any:
        """
        Download the JSON result payload of a finished job

        Raises:
            FetchError: On a network error, non-success response or bad JSON
        """
        try:
            response = self.session.get(
                f"{self.base_url}/result/{handle.job_id}/json",
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise FetchError(handle.job_id, str(e)) from e

        if not response.ok:
            raise FetchError(handle.job_id,
                             f"EBI responded with {response.status_code}",
                             http_status=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(handle.job_id, f"invalid JSON in result: {e}") from e
