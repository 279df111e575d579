"""Personalized video recommendation engine."""

__version__ = "1.0.0"
