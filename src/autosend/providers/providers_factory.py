"""Factory for collaborator adapters."""

from ..config import AppSettings
from ..exceptions import ConfigurationError
from .base import DispatchClient, GenerationProvider
from .openai_generator import OpenAIPromptGenerator
from .telegram_dispatcher import TelegramDispatcher


def create_generator(name: str, *, settings: AppSettings) -> GenerationProvider:
    """Instantiate a generation provider by name."""
    lower = name.lower()
    if lower == "openai":
        return OpenAIPromptGenerator(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            api_url=settings.openai_api_url,
            timeout_seconds=settings.generation_timeout_seconds,
        )
    raise ConfigurationError(f"Unsupported generation provider '{name}'")


def create_dispatcher(settings: AppSettings) -> DispatchClient | None:
    """Return the Telegram dispatcher when a bot token is configured."""
    if not settings.telegram_bot_token:
        return None
    return TelegramDispatcher(
        bot_token=settings.telegram_bot_token,
        default_chat_id=settings.telegram_default_chat_id,
        timeout_seconds=settings.dispatch_timeout_seconds,
    )
