"""
Validation module - Remote validation gate and procedure suggestions.
"""

from .countdown import CountdownTimer
from .gateway import ValidationGateway
from .state_machine import SubmissionStateMachine
from .suggestion import BaseSuggester, create_suggester

__all__ = [
    "BaseSuggester",
    "CountdownTimer",
    "SubmissionStateMachine",
    "ValidationGateway",
    "create_suggester",
]
