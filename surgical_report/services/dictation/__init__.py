"""
Dictation module - Voice input for the report's text areas.
"""

from .chunk_queue import AudioChunkQueue
from .recognition import RecognitionEngine, RemoteRecognitionEngine, SpeechRecognitionAdapter
from .session import DictationSession

__all__ = [
    "AudioChunkQueue",
    "DictationSession",
    "RecognitionEngine",
    "RemoteRecognitionEngine",
    "SpeechRecognitionAdapter",
]
