"""
Contactmine model access - the generative text service and its retry policy.

The identifier only needs complete(prompt) -> text. Anything that fails (timeout,
rate limit, quota, empty output) is retryable up to the attempt cap.
"""

import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import TypeVar

from openai import OpenAI
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

T = TypeVar("T")


class ModelTimeoutError(Exception):
    """Raised when a single model call exceeds its time budget."""

    pass


class EmptyResponseError(Exception):
    """Raised when the model returns no text."""

    pass


@dataclass
class RetryPolicy:
    """
    Exponential backoff: attempt n waits min(base_delay * 2^(n-1), max_delay).

    Built on tenacity so every external call shares one retry vocabulary.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)

    def retrying(self, sleep: Callable[[float], None] | None = None) -> Retrying:
        kwargs = {}
        if sleep is not None:
            kwargs["sleep"] = sleep
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, min=0, max=self.max_delay),
            retry=retry_if_exception_type(self.retry_on),
            reraise=True,
            **kwargs,
        )

    def call(self, fn: Callable[[], T], sleep: Callable[[float], None] | None = None) -> T:
        """Run fn under the policy; the last exception propagates after exhaustion."""
        return self.retrying(sleep)(fn)

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


def call_with_timeout(executor: ThreadPoolExecutor, fn: Callable[[], T], timeout: float) -> T:
    """Run fn on the executor; a timeout raises ModelTimeoutError."""
    future = executor.submit(fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        future.cancel()
        raise ModelTimeoutError(f"Model call exceeded {timeout:.1f}s") from e


# =============================================================================
# TEXT SERVICES
# =============================================================================


class TextCompletionService(ABC):
    """Abstract generative text service."""

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Return the model's text response for a prompt."""
        pass


class OpenAITextService(TextCompletionService):
    """OpenAI-backed text service: Responses API for GPT-5.x, Chat Completions otherwise."""

    DEFAULT_MODEL = "gpt-5-mini"
    FALLBACK_MODEL = "gpt-4o"

    GPT5_MODELS = {"gpt-5-mini", "gpt-5-nano", "gpt-5", "gpt-5.1", "gpt-5.2"}

    SYSTEM_PROMPT = (
        "You identify journalists, editors and subject-matter experts in web content "
        "and return them as a JSON array. Be precise and never invent contact details."
    )

    def __init__(self, api_key: str | None = None, model: str | None = None, timeout: float = 60.0):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not set")
        self.client = OpenAI(api_key=self.api_key, timeout=timeout, max_retries=0)
        # Model can be set via env var CONTACTMINE_MODEL
        self.model = model or os.getenv("CONTACTMINE_MODEL", self.DEFAULT_MODEL)

    def _is_gpt5_model(self, model: str) -> bool:
        return any(model.startswith(m) for m in self.GPT5_MODELS)

    def _call_model(self, model: str, prompt: str) -> str:
        if self._is_gpt5_model(model):
            response = self.client.responses.create(
                model=model,
                input=f"{self.SYSTEM_PROMPT}\n\n{prompt}",
                reasoning={"effort": "minimal"},
            )
            text = response.output_text
        else:
            completion = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.1,
            )
            text = completion.choices[0].message.content or ""
        if not text.strip():
            raise EmptyResponseError(f"Empty response from {model}")
        return text

    def complete(self, prompt: str) -> str:
        try:
            return self._call_model(self.model, prompt)
        except Exception as e:
            if self.model != self.DEFAULT_MODEL:
                raise
            print(f"Primary model ({self.model}) failed, trying fallback ({self.FALLBACK_MODEL}): {e}")
            return self._call_model(self.FALLBACK_MODEL, prompt)


class MockTextService(TextCompletionService):
    """Mock service for testing - returns canned responses and counts calls."""

    def __init__(self, responses: list[str] | str | None = None, error: Exception | None = None):
        if isinstance(responses, str):
            responses = [responses]
        self.responses = responses or ["[]"]
        self.error = error
        self.calls: list[str] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def complete(self, prompt: str) -> str:
        self.calls.append(prompt)
        if self.error is not None:
            raise self.error
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return self.responses[index]
