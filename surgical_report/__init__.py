"""Surgical report backend: voice dictation and webhook-validated step navigation."""

__version__ = "0.1.0"
