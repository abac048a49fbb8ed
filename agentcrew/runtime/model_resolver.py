"""Default model resolver wiring using environment-derived settings."""

from __future__ import annotations

from typing import Callable, Dict, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_openai import AzureChatOpenAI, ChatOpenAI

from agentcrew.agents.chat_model import ChatModelBackend
from agentcrew.config import ModelSettings
from agentcrew.errors import ConfigurationError

BackendFactory = Callable[[Optional[str]], ChatModelBackend]


def build_chat_model(settings: ModelSettings, model_id: Optional[str] = None) -> BaseChatModel:
    """Create an Azure OpenAI client when an endpoint is configured, else an OpenAI-compatible one."""
    model = model_id or settings.model_id

    if settings.azure_endpoint:
        api_key = settings.azure_api_key or settings.api_key
        if not api_key:
            raise ConfigurationError(
                f"Missing API key for Azure deployment {model}",
                user_message="缺少 Azure OpenAI 的 API Key，请在 .env 中配置 AZURE_OPENAI_KEY。",
            )
        return AzureChatOpenAI(
            azure_endpoint=settings.azure_endpoint,
            azure_deployment=model,
            api_key=api_key,
            api_version=settings.azure_api_version,
            temperature=settings.temperature,
        )

    if not settings.api_key:
        raise ConfigurationError(
            f"Missing API key for model {model}",
            user_message=f"缺少模型 {model} 的 API Key，请在 .env 中配置 MODEL_API_KEY。",
        )
    kwargs: Dict[str, object] = {"model": model, "api_key": settings.api_key, "temperature": settings.temperature}
    if settings.base_url:
        kwargs["base_url"] = settings.base_url
    return ChatOpenAI(**kwargs)


def build_backend_factory(settings: ModelSettings) -> BackendFactory:
    """Return a factory producing one cached ChatModelBackend per model id."""
    cache: Dict[str, ChatModelBackend] = {}

    def _factory(model_id: Optional[str] = None) -> ChatModelBackend:
        key = model_id or settings.model_id
        if key not in cache:
            cache[key] = ChatModelBackend(build_chat_model(settings, key))
        return cache[key]

    return _factory


__all__ = ["BackendFactory", "build_backend_factory", "build_chat_model"]
