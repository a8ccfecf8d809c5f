"""
Environment and settings loader for the Dr. Rhesus backend
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from dotenv import dotenv_values, load_dotenv

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("env_loader")

EBI_BLAST_URL = "https://www.ebi.ac.uk/Tools/services/rest/ncbiblast"
GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_GROQ_MODEL = "llama-3.1-8b-instant"


def load_env_file(env_file: str = ".env.local") -> Dict[str, str]:
    """
    Load environment variables from a dotenv file

    Args:
        env_file: Path to the .env file

    Returns:
        Dictionary of loaded environment variables
    """
    env_path = Path(env_file)
    if not env_path.exists():
        # Fall back to the directory this module lives in
        candidate = Path(__file__).resolve().parent / env_file
        if env_path.is_absolute() or not candidate.exists():
            logger.warning(f"Could not find {env_file}")
            return {}
        env_path = candidate

    loaded_vars = {key: value for key, value in dotenv_values(env_path).items() if value is not None}
    load_dotenv(env_path, override=False)
    for key in loaded_vars:
        logger.info(f"Loaded environment variable: {key}")
    return loaded_vars


def ensure_api_keys(required: Iterable[str] = ("GROQ_API_KEY",)) -> bool:
    """
    Ensure that required API keys are present in the environment

    Returns:
        True if all required keys are loaded, False otherwise
    """
    missing_keys = [key for key in required if not os.environ.get(key)]
    if missing_keys:
        logger.warning(f"Missing required API keys: {', '.join(missing_keys)}")
        return False
    return True


def _env_number(name: str, default, cast, allow_zero: bool = False):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}. Using default {default}")
        return default
    if value < 0 or (value == 0 and not allow_zero):
        requirement = "must not be negative" if allow_zero else "must be positive"
        logger.warning(f"{name} {requirement}, got {raw!r}. Using default {default}")
        return default
    return value


@dataclass
class PipelineSettings:
    """Runtime settings for the BLAST pipeline and the LLM client"""
    ebi_blast_url: str = EBI_BLAST_URL
    contact_email: str = "test@example.com"
    database: str = "uniprotkb"
    poll_interval: float = 3.0
    max_polls: int = 100
    max_transient_errors: int = 3
    http_timeout: float = 30.0
    groq_api_key: Optional[str] = None
    groq_model: str = DEFAULT_GROQ_MODEL
    groq_base_url: str = GROQ_BASE_URL


def load_settings() -> PipelineSettings:
    """Build PipelineSettings from the current environment"""
    defaults = PipelineSettings()
    return PipelineSettings(
        ebi_blast_url=os.environ.get("EBI_BLAST_URL", defaults.ebi_blast_url).rstrip("/"),
        contact_email=os.environ.get("EBI_CONTACT_EMAIL", defaults.contact_email),
        database=os.environ.get("BLAST_DATABASE", defaults.database),
        poll_interval=_env_number("BLAST_POLL_INTERVAL", defaults.poll_interval, float),
        max_polls=_env_number("BLAST_MAX_POLLS", defaults.max_polls, int),
        max_transient_errors=_env_number("BLAST_MAX_TRANSIENT_ERRORS", defaults.max_transient_errors, int,
                                          allow_zero=True),
        http_timeout=_env_number("BLAST_HTTP_TIMEOUT", defaults.http_timeout, float),
        groq_api_key=os.environ.get("GROQ_API_KEY") or None,
        groq_model=os.environ.get("GROQ_MODEL", defaults.groq_model),
        groq_base_url=os.environ.get("GROQ_BASE_URL", defaults.groq_base_url),
    )


if __name__ == "__main__":
    loaded = load_env_file()
    print(f"Loaded {len(loaded)} environment variables")

    if ensure_api_keys():
        print("All required API keys are present")
    else:
        print("Some required API keys are missing")
    print(load_settings())
