"""LLM client wrapper around litellm.

Only the markdown parser talks to a model; everything downstream of a
SpecDocument is deterministic.
"""

import logging

from litellm import completion

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class LlmClient:
    """Wrapper for LLM API calls via litellm."""

    def __init__(self, model: str | None = None, temperature: float = 0.0):
        self.model = model or DEFAULT_MODEL
        self.temperature = temperature

    def call(self, system: str, user: str) -> str:
        """Send a system+user message to the LLM and return the response text."""
        logger.debug("Calling %s (%d prompt chars)", self.model, len(system) + len(user))
        response = completion(
            model=self.model,
            temperature=self.temperature,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        return response.choices[0].message.content
