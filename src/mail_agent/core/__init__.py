"""Core utilities for configuration, logging, and shared models."""

from .config import AnalysisSettings, AppSettings, LlmSettings, load_app_settings
from .logging import configure_logging

__all__ = [
    "AnalysisSettings",
    "AppSettings",
    "LlmSettings",
    "configure_logging",
    "load_app_settings",
]
