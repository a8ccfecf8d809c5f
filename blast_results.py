"""
Normalizes EBI BLAST JSON results into ranked Hit lists

The service has returned hits under more than one envelope, so extraction
tries a short ordered list of strategies. Each strategy returns None when the
payload does not match and never raises.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from blast_models import DISPLAY_HIT_LIMIT, Hit, JobHandle

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("blast_results")

ResultReader = Callable[[JobHandle], Any]


def _hits_in_results_envelope(payload: Any) -> Optional[list]:
    if isinstance(payload, dict):
        results = payload.get("results")
        if isinstance(results, dict) and isinstance(results.get("hits"), list):
            return results["hits"]
    return None


def _hits_at_top_level(payload: Any) -> Optional[list]:
    if isinstance(payload, dict) and isinstance(payload.get("hits"), list):
        return payload["hits"]
    return None


def _bare_hit_list(payload: Any) -> Optional[list]:
    if isinstance(payload, list):
        return payload
    return None


EXTRACTION_STRATEGIES = [
    _hits_in_results_envelope,
    _hits_at_top_level,
    _bare_hit_list,
]


def extract_raw_hits(payload: Any) -> list:
    """Return the raw hit records of a result payload, or [] if none are found"""
    for strategy in EXTRACTION_STRATEGIES:
        hits = strategy(payload)
        if hits is not None:
            return hits
    logger.info("No hit list found in BLAST result payload")
    return []


def to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def identity_fraction(hsp: Dict[str, Any], percent: Optional[bool] = None) -> Optional[float]:
    """
    Identity of one HSP as a fraction in [0, 1]

    hsp_identity is read as a percentage when percent is True and as a
    fraction when it is False. With percent=None the unit is guessed from the
    value alone, so anything above 1 is a percentage and an exact 1.0 means
    100%. Whole payloads should pass the unit from identities_are_percentages
    so that a 1.0% hit is not mistaken for a perfect match.

    Falls back to hsp_identities / hsp_align_len when hsp_identity is absent.
    """
    identity = to_float(hsp.get("hsp_identity"))
    if identity is None:
        identities = to_float(hsp.get("hsp_identities"))
        align_len = to_float(hsp.get("hsp_align_len"))
        if identities is None or not align_len:
            return None
        identity = identities / align_len
    elif percent or (percent is None and identity > 1):
        identity = identity / 100.0
    return min(max(identity, 0.0), 1.0)


def _first_hsp(raw: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, dict):
        return None
    hsps = raw.get("hit_hsps")
    if not isinstance(hsps, list) or not hsps or not isinstance(hsps[0], dict):
        return None
    return hsps[0]


def identities_are_percentages(raw_hits: list) -> bool:
    """True when any first-HSP identity in the batch is above 1"""
    for raw in raw_hits:
        hsp = _first_hsp(raw)
        identity = to_float(hsp.get("hsp_identity")) if hsp else None
        if identity is not None and identity > 1:
            return True
    return False


def _format_e_value(value: Any) -> str:
    if value is None or value == "":
        return "N/A"
    return str(value)


def _description(raw: Dict[str, Any]) -> str:
    for key in ("hit_desc", "hit_def", "hit_acc", "hit_id"):
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return "Unknown hit"


def normalize_hit(raw: Any, percent: Optional[bool] = None) -> Optional[Hit]:
    """
    Convert one raw hit record into a Hit using its first HSP

    Returns None when the record has no usable first HSP.
    """
    hsp = _first_hsp(raw)
    if hsp is None:
        return None

    identity = identity_fraction(hsp, percent)
    if identity is None:
        return None

    score = to_float(hsp.get("hsp_score"))
    if score is None:
        score = to_float(hsp.get("hsp_bit_score"))

    return Hit(
        description=_description(raw),
        score=score,
        e_value=_format_e_value(hsp.get("hsp_expect")),
        identity=identity,
    )


def normalize_hits(payload: Any, limit: Optional[int] = None) -> List[Hit]:
    """
    Normalize a whole result payload, keeping the service's ordering

    Args:
        payload: Decoded JSON result
        limit: Maximum number of hits to keep

    Returns:
        List of Hit values, best first
    """
    raw_hits = extract_raw_hits(payload)
    percent = identities_are_percentages(raw_hits)
    hits = []
    skipped = 0
    for raw in raw_hits:
        hit = normalize_hit(raw, percent)
        if hit is None:
            skipped += 1
            continue
        hits.append(hit)
        if limit is not None and len(hits) >= limit:
            break
    if skipped:
        logger.warning(f"Skipped {skipped} BLAST hit(s) without a usable HSP")
    return hits


class ResultNormalizer:
    """Fetches a finished job's payload and reduces it to Hits"""

    def __init__(self, result_reader: ResultReader):
        self.result_reader = result_reader

    def fetch(self, handle: JobHandle, limit: Optional[int] = DISPLAY_HIT_LIMIT) -> List[Hit]:
        payload = self.result_reader(handle)
        hits = normalize_hits(payload, limit=limit)
        logger.info(f"Job {handle.job_id}: {len(hits)} hit(s) normalized")
        return hits
