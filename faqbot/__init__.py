"""Clinic FAQ chatbot."""

__version__ = "1.0.0"
