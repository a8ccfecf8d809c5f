import debug_tools
from blast_errors import JobFailedError
from blast_models import Hit, JobStatus, SummaryResult
from controller import BlastPipelineResult


def test_blast_command_prints_hits(monkeypatch, capsys, tmp_path):
    fasta = tmp_path / "query.fasta"
    fasta.write_text(">query\nMKTAYIAKQR\n")
    seen = {}

    def fake_run(sequence, database=None, summarize=True):
        seen.update(sequence=sequence, database=database, summarize=summarize)
        return BlastPipelineResult(
            job_id="job-1",
            status=JobStatus.FINISHED,
            hits=[Hit(description="Chain A, Insulin", score=512.0, e_value="2e-130", identity=0.95)],
            summary=SummaryResult(prose="A strong insulin match."),
            elapsed=12.0,
        )

    monkeypatch.setattr(debug_tools, "run_blast_controller", fake_run)
    exit_code = debug_tools.main(["--env-file", str(tmp_path / "none.env"), "blast", str(fasta), "--no-summary"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert seen == {"sequence": ">query\nMKTAYIAKQR\n", "database": None, "summarize": False}
    assert "Chain A, Insulin" in out
    assert "A strong insulin match." in out


def test_blast_command_reports_failure(monkeypatch, capsys, tmp_path):
    def failing_run(sequence, database=None, summarize=True):
        raise JobFailedError("job-9", "FAILURE")

    monkeypatch.setattr(debug_tools, "run_blast_controller", failing_run)
    assert debug_tools.main(["--env-file", str(tmp_path / "none.env"), "blast", "MKT"]) == 1
    assert "job-9" in capsys.readouterr().out


def test_check_env_reports_missing_key(monkeypatch, capsys, tmp_path):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    assert debug_tools.main(["--env-file", str(tmp_path / "none.env"), "check-env"]) == 1
    assert "GROQ_API_KEY" in capsys.readouterr().out
