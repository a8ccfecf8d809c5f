"""
Groq chat completion client built on the OpenAI-compatible API
With rate limiting and retry mechanisms for handling API quotas
"""

import os
import time
from typing import Any, Dict, List, Optional
import logging

from api_utils import RateLimitHandler, global_rate_limiter
from env_loader import DEFAULT_GROQ_MODEL, GROQ_BASE_URL

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("groq_compat")

VALID_GROQ_MODELS = [
    "llama-3.1-8b-instant",
    "llama-3.3-70b-versatile",
    "deepseek-r1-distill-llama-70b",
    "meta-llama/llama-4-scout-17b-16e-instruct",
]


class LLMConfigError(RuntimeError):
    """The LLM client cannot be used with the current configuration"""


def resolve_model(model: Optional[str]) -> str:
    """Return `model` if Groq serves it, otherwise the default model"""
    if model in VALID_GROQ_MODELS:
        return model
    logger.warning(f"Specified model '{model}' not in list of valid Groq models. Using default.")
    return DEFAULT_GROQ_MODEL


def verify_groq_key(api_key: str) -> bool:
    """
    Verify if a provided Groq API key appears to be valid

    Args:
        api_key: The API key to verify

    Returns:
        bool: True if key format appears valid, False otherwise
    """
    if not api_key:
        logger.warning("Empty API key provided to verification function")
        return False

    if api_key.startswith("gsk_") and len(api_key) > 20:
        return True
    logger.warning(f"API key format appears invalid: {api_key[:5]}...")
    return False


class GroqClient:
    """
    Chat completion client for Groq
    Spaces requests out and retries rate limited calls
    """

    def __init__(self,
                 api_key: Optional[str] = None,
                 model: str = DEFAULT_GROQ_MODEL,
                 base_url: str = GROQ_BASE_URL,
                 temperature: float = 0.3,
                 timeout: float = 60.0,
                 min_request_interval: float = 1.0,
                 rate_limiter: Optional[RateLimitHandler] = None,
                 client: Any = None):
        self.api_key = api_key if api_key is not None else os.environ.get("GROQ_API_KEY", "")
        self.model = resolve_model(model)
        self.base_url = base_url
        self.temperature = temperature
        self.timeout = timeout
        self.min_request_interval = min_request_interval
        self.rate_limiter = rate_limiter or global_rate_limiter
        self.last_request_time = 0.0
        self._client = client

        if not self.api_key and client is None:
            logger.warning("GROQ_API_KEY not found - LLM calls will fail until it is set")

    def _respect_rate_limit(self):
        """Ensure we don't exceed rate limits by adding delays between requests"""
        elapsed = time.time() - self.last_request_time
        if elapsed < self.min_request_interval:
            sleep_time = self.min_request_interval - elapsed
            logger.info(f"Rate limiting: Waiting {sleep_time:.2f}s between requests")
            time.sleep(sleep_time)
        self.last_request_time = time.time()

    @property
    def client(self):
        """Lazily create the underlying OpenAI client"""
        if self._client is None:
            if not self.api_key:
                raise LLMConfigError("GROQ_API_KEY is not set")
            import openai

            self._client = openai.OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    def chat(self, messages: List[Dict[str, str]], json_mode: bool = False, max_tokens: int = 1024) -> str:
        """
        Send a chat completion request and return the reply text

        Args:
            messages: OpenAI style message list
            json_mode: Ask the model for a single JSON object
            max_tokens: Completion token budget

        Returns:
            The content of the first choice
        """
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        client = self.client
        self._respect_rate_limit()
        response = self.rate_limiter.with_retry(client.chat.completions.create, **kwargs)
        content = response.choices[0].message.content
        logger.info(f"Groq completion received ({len(content or '')} chars, model={self.model})")
        return content or ""

    def generate_json(self, prompt: str, system: Optional[str] = None) -> str:
        """Single-turn completion constrained to a JSON object"""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return self.chat(messages, json_mode=True, max_tokens=512)
