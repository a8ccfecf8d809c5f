"""
BLAST pipeline controller: submit -> poll -> fetch -> summarize
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tabulate import tabulate

from blast_errors import Cancelled
from blast_models import (
    DISPLAY_HIT_LIMIT,
    SUMMARY_HIT_LIMIT,
    Hit,
    JobStatus,
    SearchRequest,
    SummaryResult,
)
from blast_results import ResultNormalizer
from blast_summary import SummaryRequester
from ebi_blast import EBIBlastClient
from env_loader import PipelineSettings, load_settings
from groq_compat import GroqClient
from job_poller import JobPoller

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("controller")


@dataclass
class BlastPipelineResult:
    job_id: str
    status: JobStatus
    hits: List[Hit] = field(default_factory=list)
    summary: Optional[SummaryResult] = None
    elapsed: float = 0.0
    status_history: List[JobStatus] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "hits": [hit.to_dict() for hit in self.hits],
            "summary": self.summary.prose if self.summary else None,
            "degraded": bool(self.summary and self.summary.degraded),
            "elapsed": round(self.elapsed, 2),
            "status_history": [status.value for status in self.status_history],
        }


class BlastPipeline:
    """Runs one BLAST search end to end; holds no per-run state"""

    def __init__(self,
                 client: EBIBlastClient,
                 poller: JobPoller,
                 normalizer: ResultNormalizer,
                 summarizer: Optional[SummaryRequester] = None):
        self.client = client
        self.poller = poller
        self.normalizer = normalizer
        self.summarizer = summarizer

    @classmethod
    def from_settings(cls, settings: Optional[PipelineSettings] = None) -> "BlastPipeline":
        settings = settings or load_settings()
        client = EBIBlastClient(
            base_url=settings.ebi_blast_url,
            email=settings.contact_email,
            timeout=settings.http_timeout,
        )
        poller = JobPoller(
            client.get_status,
            interval=settings.poll_interval,
            max_polls=settings.max_polls,
            max_transient_errors=settings.max_transient_errors,
        )
        llm = GroqClient(
            api_key=settings.groq_api_key,
            model=settings.groq_model,
            base_url=settings.groq_base_url,
        )
        return cls(
            client=client,
            poller=poller,
            normalizer=ResultNormalizer(client.get_result),
            summarizer=SummaryRequester(llm.generate_json),
        )

    async def run(self,
                  request: SearchRequest,
                  cancel_event=None,
                  summarize: bool = True) -> BlastPipelineResult:
        """
        Run a search to completion

        Args:
            request: Sequence search to run
            cancel_event: Optional object with is_set(); checked between steps
            summarize: Whether to ask the LLM for a prose summary

        Returns:
            BlastPipelineResult with up to 10 hits and an optional summary

        Raises:
            ValidationError, SubmissionError, JobFailedError, PollTimeoutError,
            PollTransientError, FetchError, Cancelled
        """
        started = time.monotonic()
        if cancel_event is not None and cancel_event.is_set():
            raise Cancelled()

        handle = await asyncio.to_thread(self.client.submit, request)
        history: List[JobStatus] = []
        status = await self.poller.await_completion(handle, cancel_event, history=history)

        if cancel_event is not None and cancel_event.is_set():
            raise Cancelled(handle.job_id)
        hits = await asyncio.to_thread(self.normalizer.fetch, handle, DISPLAY_HIT_LIMIT)

        summary = None
        if summarize and self.summarizer is not None:
            summary = await asyncio.to_thread(self.summarizer.summarize, hits[:SUMMARY_HIT_LIMIT])

        elapsed = time.monotonic() - started
        logger.info(f"BLAST pipeline for job {handle.job_id} finished in {elapsed:.1f}s "
                    f"with {len(hits)} hit(s)")
        return BlastPipelineResult(
            job_id=handle.job_id,
            status=status,
            hits=hits[:DISPLAY_HIT_LIMIT],
            summary=summary,
            elapsed=elapsed,
            status_history=history,
        )


def run_blast_controller(sequence: str,
                         database: Optional[str] = None,
                         program: str = "blastp",
                         summarize: bool = True,
                         pipeline: Optional[BlastPipeline] = None) -> BlastPipelineResult:
    """Synchronous entry point for scripts and the debug CLI"""
    settings = load_settings()
    request = SearchRequest.from_text(sequence, program=program, database=database or settings.database)
    pipeline = pipeline or BlastPipeline.from_settings(settings)
    return asyncio.run(pipeline.run(request, summarize=summarize))


def format_hits_markdown(hits: List[Hit]) -> str:
    """Render hits as a GitHub-flavoured markdown table"""
    if not hits:
        return "_No significant hits._"
    table_data = []
    for idx, hit in enumerate(hits, 1):
        table_data.append([
            idx,
            hit.description,
            hit.score if hit.score is not None else "N/A",
            hit.e_value,
            f"{hit.identity * 100:.1f}%",
        ])
    return tabulate(table_data, headers=["#", "Description", "Score", "E-value", "Identity"], tablefmt="github")


__all__ = [
    'BlastPipeline',
    'BlastPipelineResult',
    'run_blast_controller',
    'format_hits_markdown',
]
