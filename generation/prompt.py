"""Prompt template helpers for the generation component."""

import string
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

SYSTEM_PROMPT = "You are a helpful assistant that can answer questions about the user's data"
USER_PROMPT = "User: {question}\n\n{context}"

CONTEXT_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class PromptTemplate:
    """A fixed sequence of (role, template) messages with named placeholders."""

    messages: Tuple[Tuple[str, str], ...] = (
        ("system", SYSTEM_PROMPT),
        ("user", USER_PROMPT),
    )

    @property
    def variables(self) -> set:
        names = set()
        for _, template in self.messages:
            names.update(
                name for _, name, _, _ in string.Formatter().parse(template) if name
            )
        return names

    def format(self, **values: str) -> List[Dict[str, str]]:
        """Substitute `values` and return OpenAI-style chat messages."""
        missing = self.variables - set(values)
        if missing:
            raise ValueError(f"missing prompt variables: {', '.join(sorted(missing))}")
        return [
            {"role": role, "content": template.format(**values)}
            for role, template in self.messages
        ]


def join_context(chunks: Sequence[str]) -> str:
    """Join retrieved chunk texts into the context block."""
    return CONTEXT_SEPARATOR.join(chunks)


def build_prompt(
    question: str, context_chunks: Sequence[str], template: PromptTemplate = PromptTemplate()
) -> List[Dict[str, str]]:
    """Combine the context and user question into chat messages."""
    return template.format(question=question, context=join_context(context_chunks))
