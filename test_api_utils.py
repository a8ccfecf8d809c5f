import pytest

from api_utils import RateLimitHandler, is_rate_limit_error
from groq_compat import DEFAULT_GROQ_MODEL, GroqClient, LLMConfigError, resolve_model, verify_groq_key


class RateLimited(Exception):
    status_code = 429


class Flaky:
    def __init__(self, failures, error):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def test_rate_limit_errors_are_retried():
    delays = []
    handler = RateLimitHandler(base_delay=1.0, max_retries=4, jitter=False, sleep=delays.append)
    func = Flaky(2, RateLimited("slow down"))

    assert handler.with_retry(func) == "ok"
    assert func.calls == 3
    assert delays == [1.0, 2.0]


def test_other_errors_are_not_retried():
    handler = RateLimitHandler(max_retries=5, sleep=lambda delay: None)
    func = Flaky(1, ValueError("bad request"))
    with pytest.raises(ValueError):
        handler.with_retry(func)
    assert func.calls == 1


def test_retries_are_bounded():
    handler = RateLimitHandler(max_retries=3, jitter=False, sleep=lambda delay: None)
    func = Flaky(10, Exception("Rate limit reached for model"))
    with pytest.raises(Exception, match="Rate limit"):
        handler.with_retry(func)
    assert func.calls == 3


def test_is_rate_limit_error():
    assert is_rate_limit_error(RateLimited())
    assert is_rate_limit_error(Exception("HTTP 429 Too Many Requests"))
    assert not is_rate_limit_error(Exception("HTTP 500"))


def test_groq_key_format():
    assert verify_groq_key("gsk_" + "a" * 30)
    assert not verify_groq_key("sk-123")
    assert not verify_groq_key("")


def test_unknown_model_falls_back_to_default():
    assert resolve_model("gpt-17") == DEFAULT_GROQ_MODEL
    assert resolve_model("llama-3.3-70b-versatile") == "llama-3.3-70b-versatile"


def test_missing_key_fails_at_call_time(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    client = GroqClient(api_key="")
    with pytest.raises(LLMConfigError):
        client.generate_json("hello")


def test_generate_json_requests_json_object():
    class Completions:
        def __init__(self):
            self.kwargs = None

        def create(self, **kwargs):
            self.kwargs = kwargs
            message = type("Message", (), {"content": '{"prose": "ok"}'})
            choice = type("Choice", (), {"message": message})
            return type("Response", (), {"choices": [choice]})

    completions = Completions()
    fake_openai = type("Client", (), {"chat": type("Chat", (), {"completions": completions})})
    client = GroqClient(api_key="gsk_test", client=fake_openai, min_request_interval=0,
                        rate_limiter=RateLimitHandler(sleep=lambda delay: None))

    assert client.generate_json("summarize", system="be brief") == '{"prose": "ok"}'
    assert completions.kwargs["response_format"] == {"type": "json_object"}
    assert completions.kwargs["messages"][0] == {"role": "system", "content": "be brief"}
    assert completions.kwargs["model"] == DEFAULT_GROQ_MODEL
