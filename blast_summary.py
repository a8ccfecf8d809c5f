"""
Summarizes BLAST hits into short prose with the LLM

The model's reply is untrusted: it must parse as a JSON object with a single
string "prose" field. Any failure is turned into an apology so the chat turn
that asked for the summary still completes.
"""

import json
import logging
import re
from typing import Callable, Optional, Sequence

from blast_models import SUMMARY_HIT_LIMIT, Hit, SummaryResult

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("blast_summary")

# generate(prompt, system) -> raw model text
Generate = Callable[[str, Optional[str]], str]

NO_HITS_PROSE = (
    "The BLAST search found no significant hits for this sequence. "
    "It may be novel, or the search database may not contain close homologs."
)

SUMMARY_SYSTEM_PROMPT = (
    "You are Dr. Rhesus, a bioinformatics research assistant. "
    "You MUST respond with a single JSON object of the form {\"prose\": \"...\"} "
    "and nothing else. The prose is 1-3 sentences."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def render_hits(hits: Sequence[Hit]) -> str:
    """Deterministic plain-text listing of hits for the prompt"""
    lines = []
    for i, hit in enumerate(hits, 1):
        lines.append(f"{i}. {hit.description} | E-value: {hit.e_value} | "
                     f"Identity: {hit.identity * 100:.1f}%")
    return "\n".join(lines)


def build_summary_prompt(hits: Sequence[Hit]) -> str:
    return (
        "Summarize the following protein BLAST hits for a scientist in 1-3 sentences. "
        "Mention the most likely protein family or function and how strong the matches are.\n\n"
        f"{render_hits(hits)}\n\n"
        "Respond ONLY with JSON: {\"prose\": \"<summary>\"}"
    )


def parse_prose(text: str) -> str:
    """
    Extract the prose field from a model reply

    Raises:
        ValueError: If the reply is not a JSON object with a non-empty prose string
    """
    if not isinstance(text, str):
        raise ValueError("model returned no text")
    stripped = text.strip()
    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    data = json.loads(stripped)
    if not isinstance(data, dict):
        raise ValueError("model reply is not a JSON object")
    prose = data.get("prose")
    if not isinstance(prose, str) or not prose.strip():
        raise ValueError("model reply has no 'prose' string")
    return prose.strip()


class SummaryRequester:
    """Turns a hit list into a SummaryResult without ever raising"""

    def __init__(self, generate: Generate, max_hits: int = SUMMARY_HIT_LIMIT):
        self.generate = generate
        self.max_hits = max_hits

    def summarize(self, hits: Sequence[Hit]) -> SummaryResult:
        hits = list(hits or [])[:self.max_hits]
        if not hits:
            return SummaryResult(prose=NO_HITS_PROSE)

        try:
            reply = self.generate(build_summary_prompt(hits), SUMMARY_SYSTEM_PROMPT)
            prose = parse_prose(reply)
        except Exception as e:
            logger.error(f"BLAST summarization failed: {e}")
            message = str(e) or e.__class__.__name__
            return SummaryResult(
                prose=f"I'm sorry, I encountered an error while summarizing the BLAST results: {message}",
                degraded=True,
            )
        return SummaryResult(prose=prose)
