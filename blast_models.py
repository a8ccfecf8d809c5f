"""
Value types shared by the BLAST pipeline: requests, job handles, statuses and hits
"""

import re
from dataclasses import dataclass
from enum import Enum
from io import StringIO
from typing import Any, Dict, Optional

from Bio import SeqIO

from blast_errors import ValidationError

DISPLAY_HIT_LIMIT = 10
SUMMARY_HIT_LIMIT = 5

DEFAULT_DATABASE = "uniprotkb"


class BlastProgram(str, Enum):
    """Search programs accepted by the gateway"""
    BLASTP = "blastp"


class JobStatus(str, Enum):
    SUBMITTED = "submitted"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "JobStatus":
        """
        Map a raw status string from the remote service onto a JobStatus

        Unrecognized values map to UNKNOWN rather than raising.
        """
        if not isinstance(raw, str):
            return cls.UNKNOWN
        return _RAW_STATUS_MAP.get(raw.strip().upper(), cls.UNKNOWN)

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.FINISHED, JobStatus.FAILED)


_RAW_STATUS_MAP = {
    "QUEUED": JobStatus.SUBMITTED,
    "PENDING": JobStatus.SUBMITTED,
    "RUNNING": JobStatus.RUNNING,
    "FINISHED": JobStatus.FINISHED,
    "FAILURE": JobStatus.FAILED,
    "ERROR": JobStatus.FAILED,
    "NOT_FOUND": JobStatus.FAILED,
}


@dataclass(frozen=True)
class SearchRequest:
    program: str
    database: str
    sequence: str

    def validate(self) -> None:
        """Raise ValidationError if the request cannot be submitted"""
        if not isinstance(self.sequence, str) or not self.sequence.strip():
            raise ValidationError("Sequence must not be empty")
        supported = [p.value for p in BlastProgram]
        if self.program not in supported:
            raise ValidationError(
                f"Unsupported program '{self.program}'. Supported: {', '.join(supported)}"
            )
        if not isinstance(self.database, str) or not self.database.strip():
            raise ValidationError("Database must not be empty")

    @classmethod
    def from_text(cls,
                  text: str,
                  program: str = BlastProgram.BLASTP.value,
                  database: str = DEFAULT_DATABASE) -> "SearchRequest":
        """
        Build a request from a raw sequence or FASTA formatted text

        Args:
            text: Raw sequence or FASTA record
            program: BLAST program name
            database: Target database identifier

        Returns:
            A validated SearchRequest
        """
        text = (text or "").strip()
        if text.startswith(">"):
            records = list(SeqIO.parse(StringIO(text), "fasta"))
            if not records:
                raise ValidationError("No FASTA record found in input")
            sequence = str(records[0].seq)
        else:
            sequence = text
        # Drop whitespace and the position numbers of GenBank-style listings
        sequence = re.sub(r"[\s\d]+", "", sequence).upper()

        request = cls(program=program, database=database, sequence=sequence)
        request.validate()
        return request


@dataclass(frozen=True)
class JobHandle:
    job_id: str

    def __str__(self) -> str:
        return self.job_id


@dataclass(frozen=True)
class Hit:
    description: str
    score: Optional[float]
    e_value: str
    identity: float

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the shape used by the blast_result tool call"""
        return {
            "description": self.description,
            "score": self.score,
            "e_value": self.e_value,
            "identity": self.identity,
        }


@dataclass(frozen=True)
class SummaryResult:
    prose: str
    degraded: bool = False
