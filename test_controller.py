import asyncio
import json
import threading

import pytest

from blast_errors import Cancelled, JobFailedError, SubmissionError
from blast_models import Hit, JobHandle, JobStatus, SearchRequest
from blast_results import ResultNormalizer
from blast_summary import SummaryRequester
from controller import BlastPipeline, format_hits_markdown
from job_poller import JobPoller

REQUEST = SearchRequest(program="blastp", database="uniprotkb", sequence="MKTAYIAKQRQISFVKSHFSRQ")


class CountingGenerate:
    def __init__(self, reply='{"prose": "The top hits are bacterial transcriptional regulators with strong similarity."}',
                 error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def __call__(self, prompt, system=None):
        self.calls.append(prompt)
        if self.error:
            raise self.error
        return self.reply


def build_pipeline(service, sleep, generate=None, **poller_kwargs):
    return BlastPipeline(
        client=service,
        poller=JobPoller(service.get_status, interval=0.0, sleep=sleep, **poller_kwargs),
        normalizer=ResultNormalizer(service.get_result),
        summarizer=SummaryRequester(generate or CountingGenerate()),
    )


def test_end_to_end_seven_hits(scripted_service, recording_sleep, raw_hit):
    service = scripted_service(["QUEUED", "RUNNING", "RUNNING", "FINISHED"],
                               payload={"results": {"hits": [raw_hit(n) for n in range(1, 8)]}})
    generate = CountingGenerate()
    pipeline = build_pipeline(service, recording_sleep(), generate)

    result = asyncio.run(pipeline.run(REQUEST))

    assert result.status is JobStatus.FINISHED
    assert result.job_id == service.job_id
    assert len(result.hits) == 7
    assert len(generate.calls) == 1
    assert "5. Protein 5" in generate.calls[0]
    assert "Protein 6" not in generate.calls[0]
    assert result.summary.prose.startswith("The top hits")
    assert not result.summary.degraded
    assert [call[0] for call in service.calls] == ["submit", "status", "status", "status", "status", "result"]


class PerJobService:
    """Two jobs with independent status scripts, submitted from worker threads"""

    def __init__(self, scripts, payload):
        self.scripts = {job_id: list(statuses) for job_id, statuses in scripts.items()}
        self.pending = list(scripts)
        self.payload = payload
        self.lock = threading.Lock()

    def submit(self, request):
        with self.lock:
            return JobHandle(self.pending.pop(0))

    def get_status(self, handle):
        with self.lock:
            return self.scripts[handle.job_id].pop(0)

    def get_result(self, handle):
        return self.payload


def test_concurrent_runs_keep_separate_status_history(recording_sleep, raw_hit):
    service = PerJobService({
        "job-1": ["RUNNING", "FINISHED"],
        "job-2": ["QUEUED", "RUNNING", "RUNNING", "FINISHED"],
    }, payload={"hits": [raw_hit(1)]})
    pipeline = BlastPipeline(service,
                             JobPoller(service.get_status, interval=0.0, sleep=recording_sleep()),
                             ResultNormalizer(service.get_result))

    async def run_both():
        return await asyncio.gather(pipeline.run(REQUEST), pipeline.run(REQUEST))

    results = {result.job_id: result for result in asyncio.run(run_both())}

    assert results["job-1"].status_history == [JobStatus.RUNNING, JobStatus.FINISHED]
    assert results["job-2"].status_history == [JobStatus.SUBMITTED, JobStatus.RUNNING,
                                               JobStatus.RUNNING, JobStatus.FINISHED]
    assert results["job-2"].to_dict()["status_history"] == ["submitted", "running", "running", "finished"]
    assert not hasattr(pipeline.poller, "history")


def test_display_list_is_capped_at_ten(scripted_service, recording_sleep, raw_hit):
    service = scripted_service(["FINISHED"], payload={"hits": [raw_hit(n) for n in range(1, 16)]})
    result = asyncio.run(build_pipeline(service, recording_sleep()).run(REQUEST))
    assert len(result.hits) == 10
    assert result.to_dict()["hits"][0]["description"] == "Protein 1 OS=Homo sapiens"


def test_job_failure_never_fetches(scripted_service, recording_sleep):
    service = scripted_service(["QUEUED", "RUNNING", "FAILURE"])
    with pytest.raises(JobFailedError) as excinfo:
        asyncio.run(build_pipeline(service, recording_sleep()).run(REQUEST))
    assert excinfo.value.job_id == service.job_id
    assert service.count("result") == 0


def test_cancel_between_polls_stops_all_calls(scripted_service, recording_sleep):
    cancel = threading.Event()
    service = scripted_service(["QUEUED", "RUNNING", "FINISHED"])
    pipeline = build_pipeline(service, recording_sleep(on_sleep=cancel.set))

    with pytest.raises(Cancelled):
        asyncio.run(pipeline.run(REQUEST, cancel_event=cancel))
    assert [call[0] for call in service.calls] == ["submit", "status"]


def test_cancel_before_submit(scripted_service, recording_sleep):
    cancel = threading.Event()
    cancel.set()
    service = scripted_service(["FINISHED"])
    with pytest.raises(Cancelled):
        asyncio.run(build_pipeline(service, recording_sleep()).run(REQUEST, cancel_event=cancel))
    assert service.calls == []


def test_summary_failure_keeps_hits(scripted_service, recording_sleep, raw_hit):
    service = scripted_service(["FINISHED"], payload={"hits": [raw_hit(1), raw_hit(2)]})
    generate = CountingGenerate(error=TimeoutError("read timed out"))
    result = asyncio.run(build_pipeline(service, recording_sleep(), generate).run(REQUEST))

    assert len(result.hits) == 2
    assert result.summary.degraded
    data = result.to_dict()
    assert data["degraded"] is True
    assert "error" in data["summary"]
    json.dumps(data)


def test_zero_hits_is_not_an_error(scripted_service, recording_sleep):
    service = scripted_service(["RUNNING", "FINISHED"], payload={"hits": []})
    generate = CountingGenerate()
    result = asyncio.run(build_pipeline(service, recording_sleep(), generate).run(REQUEST))

    assert result.hits == []
    assert "no significant hits" in result.summary.prose
    assert generate.calls == []


def test_summarize_can_be_skipped(scripted_service, recording_sleep, raw_hit):
    service = scripted_service(["FINISHED"], payload={"hits": [raw_hit(1)]})
    generate = CountingGenerate()
    result = asyncio.run(build_pipeline(service, recording_sleep(), generate).run(REQUEST, summarize=False))
    assert result.summary is None
    assert generate.calls == []


def test_submission_error_propagates(recording_sleep):
    class RejectingService:
        def submit(self, request):
            raise SubmissionError("Invalid database", http_status=400)

        def get_status(self, handle):
            raise AssertionError("status must not be read")

        def get_result(self, handle):
            raise AssertionError("result must not be read")

    service = RejectingService()
    pipeline = BlastPipeline(service, JobPoller(service.get_status, sleep=recording_sleep()),
                             ResultNormalizer(service.get_result))
    with pytest.raises(SubmissionError):
        asyncio.run(pipeline.run(REQUEST))


def test_format_hits_markdown():
    table = format_hits_markdown([Hit(description="Chain A, Insulin", score=None, e_value="2e-130", identity=0.95)])
    assert "Chain A, Insulin" in table
    assert "95.0%" in table
    assert "N/A" in table
    assert format_hits_markdown([]) == "_No significant hits._"
