"""
Transcription module - Dictation speech-to-text abstraction layer.

Factory function for creating transcriber instances based on provider configuration.
"""

from .base import BaseTranscriber

__all__ = ["BaseTranscriber", "create_transcriber"]


def create_transcriber(provider: str, **kwargs) -> BaseTranscriber:
    """
    Factory function to create a transcriber based on provider.

    Args:
        provider: Provider name ("webhook", or "local"/"whisper" for faster-whisper)
        **kwargs: Provider-specific configuration

    Returns:
        BaseTranscriber implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "webhook":
        from .webhook import WebhookTranscriber

        return WebhookTranscriber(**kwargs)
    elif provider == "whisper" or provider == "local":
        from .whisper import WhisperTranscriber

        return WhisperTranscriber(**kwargs)
    else:
        raise ValueError(f"Unknown transcription provider: {provider}")
