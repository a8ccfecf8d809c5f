"""
Structure file lookups for RCSB PDB and AlphaFold DB
"""

import logging
from typing import Optional

import requests

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("structures")

STRUCTURE_SOURCES = {
    "rcsb": ("RCSB PDB", "https://files.rcsb.org/view/{id}.pdb"),
    "alphafold": ("AlphaFold DB", "https://alphafold.ebi.ac.uk/files/AF-{id}-F1-model_v4.pdb"),
}


class StructureFetchError(Exception):
    """A structure file could not be downloaded"""

    def __init__(self, identifier: str, source: str, message: str):
        self.identifier = identifier
        self.source = source
        db_name = STRUCTURE_SOURCES.get(source, (source, None))[0]
        super().__init__(f"Could not load structure for ID: {identifier} from {db_name}. {message}")


def structure_url(identifier: str, source: str = "rcsb") -> str:
    """
    Build the download URL of a structure

    Args:
        identifier: PDB ID (rcsb) or UniProt accession (alphafold)
        source: "rcsb" or "alphafold"
    """
    if source not in STRUCTURE_SOURCES:
        raise ValueError(f"Unknown structure source '{source}'. Use one of: {', '.join(STRUCTURE_SOURCES)}")
    identifier = (identifier or "").strip()
    if not identifier:
        raise ValueError("Structure identifier must not be empty")
    return STRUCTURE_SOURCES[source][1].format(id=identifier.upper())


def uniprot_entry_url(accession: str) -> str:
    return f"https://www.uniprot.org/uniprotkb/{accession.strip().upper()}/entry"


def fetch_structure(identifier: str,
                    source: str = "rcsb",
                    session: Optional[requests.Session] = None,
                    timeout: float = 30.0) -> str:
    """Download a structure as PDB text"""
    url = structure_url(identifier, source)
    http = session or requests
    logger.info(f"Fetching structure {identifier} from {url}")
    try:
        response = http.get(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise StructureFetchError(identifier, source, str(e)) from e
    if not response.ok:
        raise StructureFetchError(identifier, source, f"Status: {response.status_code}")
    return response.text
