"""Concord: multi-agent orchestration with human-in-the-loop gates."""

__version__ = "0.1.0"
