"""Runtime assembly helpers."""

from .app import Application, build_application, build_interceptors, build_session
from .crew_config import AgentConfig, CrewConfig, load_crew_config
from .model_resolver import build_backend_factory, build_chat_model

__all__ = [
    "AgentConfig",
    "Application",
    "CrewConfig",
    "build_application",
    "build_backend_factory",
    "build_chat_model",
    "build_interceptors",
    "build_session",
    "load_crew_config",
]
