"""Tests for the model services and retry policy."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from contactmine.llm import (
    MockTextService,
    ModelTimeoutError,
    OpenAITextService,
    RetryPolicy,
    call_with_timeout,
)


class Flaky:
    """Callable that fails a set number of times before succeeding."""

    def __init__(self, failures: int, error: Exception | None = None):
        self.failures = failures
        self.error = error or RuntimeError("rate limited")
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_delay_schedule(self) -> None:
        """Test delays double and are capped."""
        policy = RetryPolicy()
        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    def test_recovers_after_failures(self) -> None:
        """Test a call that fails twice succeeds on the third attempt."""
        sleeps: list[float] = []
        fn = Flaky(failures=2)
        assert RetryPolicy().call(fn, sleep=sleeps.append) == "ok"
        assert fn.calls == 3
        assert sleeps == [1, 2]

    def test_exhaustion_reraises_last_error(self) -> None:
        """Test the original error surfaces after the attempt cap."""
        fn = Flaky(failures=10, error=ValueError("quota"))
        with pytest.raises(ValueError, match="quota"):
            RetryPolicy(base_delay=0).call(fn)
        assert fn.calls == 3

    def test_non_retryable_error(self) -> None:
        """Test errors outside retry_on fail immediately."""
        fn = Flaky(failures=10, error=KeyError("nope"))
        with pytest.raises(KeyError):
            RetryPolicy(base_delay=0, retry_on=(ValueError,)).call(fn)
        assert fn.calls == 1


class TestCallWithTimeout:
    """Tests for call_with_timeout."""

    def test_fast_call(self) -> None:
        """Test a quick call returns its value."""
        with ThreadPoolExecutor(max_workers=1) as executor:
            assert call_with_timeout(executor, lambda: "done", timeout=1.0) == "done"

    def test_slow_call_times_out(self) -> None:
        """Test a slow call raises ModelTimeoutError."""
        release = threading.Event()
        with ThreadPoolExecutor(max_workers=1) as executor:
            with pytest.raises(ModelTimeoutError):
                call_with_timeout(executor, lambda: release.wait(5), timeout=0.05)
            release.set()


class TestMockTextService:
    """Tests for MockTextService."""

    def test_responses_in_order(self) -> None:
        """Test canned responses are served in order, the last one repeating."""
        service = MockTextService(["first", "second"])
        assert [service.complete("p") for _ in range(3)] == ["first", "second", "second"]
        assert service.call_count == 3

    def test_error(self) -> None:
        """Test a configured error is raised and the call still counted."""
        service = MockTextService(error=RuntimeError("down"))
        with pytest.raises(RuntimeError):
            service.complete("p")
        assert service.call_count == 1


class TestOpenAITextService:
    """Tests for OpenAITextService construction and fallback."""

    def test_requires_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a missing key is a configuration error."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAITextService()

    def test_model_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the model defaults and can be overridden by env var."""
        monkeypatch.delenv("CONTACTMINE_MODEL", raising=False)
        assert OpenAITextService(api_key="sk-test").model == "gpt-5-mini"
        monkeypatch.setenv("CONTACTMINE_MODEL", "gpt-4o")
        service = OpenAITextService(api_key="sk-test")
        assert service.model == "gpt-4o"
        assert not service._is_gpt5_model(service.model)

    def test_fallback_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the default model falls back once on failure."""
        monkeypatch.delenv("CONTACTMINE_MODEL", raising=False)
        service = OpenAITextService(api_key="sk-test")
        models: list[str] = []

        def fake_call(model: str, prompt: str) -> str:
            models.append(model)
            if model == "gpt-5-mini":
                raise RuntimeError("overloaded")
            return "[]"

        monkeypatch.setattr(service, "_call_model", fake_call)
        assert service.complete("prompt") == "[]"
        assert models == ["gpt-5-mini", "gpt-4o"]

    def test_no_fallback_for_explicit_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a non-default model error propagates."""
        service = OpenAITextService(api_key="sk-test", model="gpt-4o")

        def fake_call(model: str, prompt: str) -> str:
            raise RuntimeError("overloaded")

        monkeypatch.setattr(service, "_call_model", fake_call)
        with pytest.raises(RuntimeError):
            service.complete("prompt")
