"""Answer generation over retrieved context using OpenAI chat completions."""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from openai import APIConnectionError, APITimeoutError, OpenAI, OpenAIError

from core.errors import GenerationError, RAGError, StageTimeoutError
from core.timeouts import call_with_timeout
from generation.prompt import PromptTemplate, build_prompt

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Answer:
    text: str
    model: str
    finish_reason: Optional[str] = None


class AnswerGenerator:
    """
    Turns a question plus retrieved chunk texts into an answer.

    Holds no state between calls. Failures are raised, never replaced by a
    canned answer.
    """

    def __init__(
        self,
        client=None,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.7,
        max_tokens: int = 100,
        timeout: Optional[float] = None,
        template: PromptTemplate = PromptTemplate(),
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.template = template
        if client is None:
            client_kwargs = {"api_key": api_key, "base_url": base_url, "max_retries": 0}
            if timeout is not None:
                # the HTTP request is closed at the same deadline the caller waits for
                client_kwargs["timeout"] = timeout
            try:
                client = OpenAI(**client_kwargs)
            except OpenAIError as exc:
                raise GenerationError(f"could not create OpenAI client: {exc}") from exc
        self._client = client

    def _request(self, question: str, context_chunks: Sequence[str], stream: bool = False):
        messages = build_prompt(question, context_chunks, self.template)
        LOGGER.debug("Prompting %s with %d context chunks", self.model, len(context_chunks))
        return self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stream=stream,
        )

    def _translate_error(self, exc: Exception) -> RAGError:
        if isinstance(exc, APITimeoutError):
            return StageTimeoutError(
                f"{self.model} did not answer in time", stage="generate"
            )
        if isinstance(exc, APIConnectionError):
            return GenerationError(
                f"could not reach the generation endpoint: {exc}", details={"model": self.model}
            )
        return GenerationError(f"generation failed: {exc}", details={"model": self.model})

    def generate(self, question: str, context_chunks: Sequence[str]) -> Answer:
        """Answer `question` from `context_chunks` (most relevant first)."""
        try:
            response = call_with_timeout(
                self._request, question, context_chunks, timeout=self.timeout, stage="generate"
            )
        except RAGError:
            raise
        except OpenAIError as exc:
            LOGGER.error("Answer generation failed: %s", exc)
            raise self._translate_error(exc) from exc

        if not response.choices:
            raise GenerationError("model returned no choices", details={"model": self.model})
        choice = response.choices[0]
        content = (choice.message.content or "").strip()
        return Answer(text=content, model=self.model, finish_reason=choice.finish_reason)

    def stream(self, question: str, context_chunks: Sequence[str]) -> Iterator[str]:
        """Yield the answer as it is generated."""
        try:
            stream = call_with_timeout(
                self._request,
                question,
                context_chunks,
                stream=True,
                timeout=self.timeout,
                stage="generate",
            )
            for event in stream:
                if event.choices and event.choices[0].delta.content:
                    yield event.choices[0].delta.content
        except RAGError:
            raise
        except OpenAIError as exc:
            LOGGER.error("Streaming failed: %s", exc)
            raise self._translate_error(exc) from exc
