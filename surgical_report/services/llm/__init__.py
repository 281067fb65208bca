"""
LLM module - Language model abstraction layer for procedure suggestions.

``create_llm()`` picks the backend from ``settings.llm_provider`` unless a
provider is passed explicitly.
"""

from surgical_report.core.config import get_settings

from .base import BaseLLM

__all__ = ["BaseLLM", "create_llm"]


def create_llm(provider: str | None = None, **kwargs) -> BaseLLM:
    """
    Create the LLM used by the procedure suggester.

    Args:
        provider: "ollama" or "claude"; defaults to the configured provider
        **kwargs: Provider-specific configuration

    Raises:
        ValueError: If provider is unknown
    """
    provider = provider or get_settings().llm_provider
    if provider == "ollama":
        from .ollama import OllamaLLM

        return OllamaLLM(**kwargs)
    if provider == "claude":
        from .claude import ClaudeLLM

        return ClaudeLLM(**kwargs)
    raise ValueError(f"Unknown LLM provider: {provider}")
