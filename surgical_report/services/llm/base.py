"""
Abstract base class for LLM providers.

LLMs are only used to propose surgical procedures, so the interface is
limited to free-form generation and JSON-only generation.
"""

from abc import ABC, abstractmethod

JSON_SYSTEM_PROMPT = (
    "Eres un asistente médico experto en cirugía. "
    "Responde siempre ÚNICAMENTE con JSON válido, sin bloques de código ni texto adicional."
)


class BaseLLM(ABC):
    """Interface that every LLM provider must implement."""

    @abstractmethod
    async def generate(self, prompt: str, **kwargs) -> str:
        """Generate a free-form text response.

        Args:
            prompt: The user prompt to send to the model.
            **kwargs: Provider-specific options (system, temperature, max_tokens).

        Returns:
            The model's text response.
        """

    @abstractmethod
    async def generate_json(self, prompt: str, **kwargs) -> str:
        """Generate a response constrained to a single JSON document.

        Returns:
            Raw model output; callers still strip code fences before parsing.
        """
