"""Mocks for orcdk-ngrok tests."""

from .control_api import MockControlApi

__all__ = ["MockControlApi"]
