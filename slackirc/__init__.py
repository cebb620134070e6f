"""Slack <-> IRC relay bridge."""

__version__ = "1.0.0"
