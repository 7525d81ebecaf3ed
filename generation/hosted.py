"""Hosted inference tasks (embeddings, translation, question answering) via Hugging Face."""

import logging
from typing import Any, Callable, Dict, Optional

import httpx
from huggingface_hub import InferenceClient
from huggingface_hub.errors import HfHubHTTPError

from core.errors import GenerationError, RAGError, StageTimeoutError
from core.timeouts import call_with_timeout

LOGGER = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "feature-extraction": "BAAI/bge-small-en-v1.5",
    "translation": "Helsinki-NLP/opus-mt-en-fr",
    "question-answering": "deepset/roberta-base-squad2",
}


class HostedInference:
    """Thin task-oriented wrapper around `huggingface_hub.InferenceClient`."""

    def __init__(
        self,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[InferenceClient] = None,
    ):
        self.timeout = timeout
        self._client = client if client is not None else InferenceClient(token=token, timeout=timeout)

    def _invoke(self, task: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return call_with_timeout(func, *args, timeout=self.timeout, stage="generate", **kwargs)
        except RAGError:
            raise
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise StageTimeoutError(f"{task} request timed out", stage="generate") from exc
        except (HfHubHTTPError, httpx.TransportError, OSError, ValueError) as exc:
            LOGGER.error("%s request failed: %s", task, exc)
            raise GenerationError(
                f"{task} request failed: {exc}", details={"model": kwargs.get("model")}
            ) from exc

    def feature_extraction(self, text: str, model: Optional[str] = None):
        return self.run("feature-extraction", text, model=model)

    def translation(self, text: str, model: Optional[str] = None) -> str:
        return self.run("translation", text, model=model)

    def question_answering(self, question: str, context: str, model: Optional[str] = None):
        return self.run(
            "question-answering", {"question": question, "context": context}, model=model
        )

    def run(
        self,
        task: str,
        inputs: Any,
        model: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Dispatch a `{inputs, model, parameters}` request to the matching task.

        `question-answering` expects `inputs` to be a dict with `question` and
        `context`. Extra `parameters` are passed through to the client call.
        """
        parameters = parameters or {}
        if task == "feature-extraction":
            return self._invoke(
                task,
                self._client.feature_extraction,
                inputs,
                model=model or DEFAULT_MODELS[task],
                **parameters,
            )
        if task == "translation":
            output = self._invoke(
                task,
                self._client.translation,
                inputs,
                model=model or DEFAULT_MODELS[task],
                **parameters,
            )
            return getattr(output, "translation_text", output)
        if task == "question-answering":
            if not isinstance(inputs, dict) or not {"question", "context"} <= set(inputs):
                raise ValueError("question-answering inputs need 'question' and 'context'")
            return self._invoke(
                task,
                self._client.question_answering,
                question=inputs["question"],
                context=inputs["context"],
                model=model or DEFAULT_MODELS[task],
                **parameters,
            )
        raise ValueError(f"unsupported hosted task: {task!r}")
