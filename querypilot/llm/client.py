"""
LLM client factory

Creates appropriate LLM instances based on provider configuration.
"""

from typing import Optional

from loguru import logger

from querypilot.config.settings import settings
from querypilot.utils.errors import ConfigurationError


def _available_ollama_models() -> list:
    import httpx

    response = httpx.get(f"{settings.ollama_base_url}/api/tags", timeout=3.0)
    response.raise_for_status()
    return [m.get("name", "").split(":")[0] for m in response.json().get("models", [])]


def log_llm_configuration() -> None:
    """Log which provider/model will be used, masking the API key."""
    provider = settings.llm_provider.lower()
    if provider == "openai":
        key = settings.openai_api_key
        if key:
            masked_key = key[:8] + "..." + key[-4:] if len(key) > 12 else "***"
            logger.info(f"LLM Provider: OpenAI | Model: {settings.openai_model} | API key loaded: {masked_key}")
        else:
            logger.warning("LLM Provider: OpenAI but OPENAI_API_KEY is not set - generation calls will fail")
    elif provider == "ollama":
        logger.info(f"LLM Provider: Ollama | Base URL: {settings.ollama_base_url} | Model: {settings.ollama_model}")
    else:
        logger.warning(f"Unknown LLM provider: {settings.llm_provider}. Supported: 'openai', 'ollama'")


def create_llm(temperature: Optional[float] = None, max_completion_tokens: Optional[int] = None, model: Optional[str] = None):
    """
    Factory function to create appropriate LLM based on provider configuration.

    Args:
        temperature: Generation temperature (defaults to settings.openai_temperature)
        max_completion_tokens: Max tokens for completion (defaults to settings.max_output_tokens)
        model: Model name (defaults to provider-specific model)

    Returns:
        LangChain ChatModel instance (ChatOpenAI or ChatOllama)

    Raises:
        ConfigurationError: provider unknown, API key missing or Ollama model unavailable
    """
    provider = settings.llm_provider.lower()
    max_tokens = max_completion_tokens or settings.max_output_tokens
    temperature = temperature if temperature is not None else settings.openai_temperature

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required when LLM_PROVIDER=openai")

        return ChatOpenAI(
            model=model or settings.openai_model,
            temperature=temperature,
            max_completion_tokens=max_tokens,
            api_key=settings.openai_api_key,
        )

    elif provider == "ollama":
        import httpx
        from langchain_community.chat_models import ChatOllama

        model_to_use = model or settings.ollama_model
        try:
            available_models = _available_ollama_models()
        except httpx.HTTPError as e:
            logger.warning(
                f"Could not validate Ollama model availability at {settings.ollama_base_url}: {e}. "
                f"Proceeding anyway."
            )
        else:
            if model_to_use.split(":")[0] not in available_models:
                raise ConfigurationError(
                    f"Ollama model '{model_to_use}' is not available on the server. "
                    f"Available models: {', '.join(available_models) if available_models else 'None'}. "
                    f"To install: ollama pull {model_to_use}"
                )

        return ChatOllama(
            model=model_to_use,
            base_url=settings.ollama_base_url,
            temperature=temperature,
            num_predict=max_tokens,  # Ollama uses num_predict instead of max_completion_tokens
        )

    raise ConfigurationError(f"Unsupported LLM provider: {provider}. Supported: 'openai', 'ollama'")
