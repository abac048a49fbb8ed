"""Configuration helpers."""

from .settings import (
    ModelSettings,
    ObservabilitySettings,
    OrchestrationSettings,
    Settings,
    get_settings,
)

__all__ = [
    "ModelSettings",
    "ObservabilitySettings",
    "OrchestrationSettings",
    "Settings",
    "get_settings",
]
