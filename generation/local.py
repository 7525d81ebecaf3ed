"""Local text2text generation with a transformers pipeline."""

import logging
from typing import Any, Dict, Optional

from core.errors import GenerationError, RAGError
from core.timeouts import call_with_timeout

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = "MBZUAI/LaMini-Flan-T5-783M"

DEFAULT_PARAMETERS: Dict[str, Any] = {
    "max_new_tokens": 100,
    "do_sample": True,
    "temperature": 0.9,
    "repetition_penalty": 2.0,
}


class LocalTextGenerator:
    """Runs a seq2seq model on this machine; the model is loaded on first use."""

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        task: str = "text2text-generation",
        parameters: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        pipeline=None,
    ):
        self.model_name = model_name
        self.task = task
        self.parameters = {**DEFAULT_PARAMETERS, **(parameters or {})}
        self.timeout = timeout
        self._pipeline = pipeline

    def _load(self):
        if self._pipeline is None:
            # transformers pulls in torch; only import it when a model is needed.
            from transformers import pipeline

            LOGGER.info("Loading %s pipeline: %s", self.task, self.model_name)
            try:
                self._pipeline = pipeline(self.task, model=self.model_name)
            except (OSError, ValueError) as exc:
                raise GenerationError(
                    f"could not load {self.model_name}: {exc}", details={"task": self.task}
                ) from exc
        return self._pipeline

    def generate(self, prompt: str, **overrides: Any) -> str:
        """Generate text for `prompt`; keyword overrides replace default parameters."""
        runner = self._load()
        parameters = {**self.parameters, **overrides}
        try:
            outputs = call_with_timeout(
                runner, prompt, timeout=self.timeout, stage="generate", **parameters
            )
        except RAGError:
            raise
        except (RuntimeError, ValueError) as exc:
            raise GenerationError(
                f"local generation failed: {exc}", details={"model": self.model_name}
            ) from exc

        if not outputs:
            raise GenerationError("pipeline returned no output", details={"model": self.model_name})
        return outputs[0]["generated_text"].strip()
