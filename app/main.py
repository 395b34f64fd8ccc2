"""Application wiring: logging setup and construction of the chat and image services."""

import logging
from typing import Optional

from app.config import Settings, settings as default_settings
from src.core.base_provider import BaseProvider
from src.core.chat_service import ChatService
from src.core.image_generator import ImageGenerator
from src.core.parameter_optimizer import ParameterOptimizer
from src.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


def configure_logging(config: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    config = config or default_settings
    logging.basicConfig(
        level=config.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # The SDK's HTTP client logs full request lines at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def create_provider(config: Optional[Settings] = None) -> OpenAIProvider:
    """Create the OpenAI provider from settings.

    Raises:
        ValueError: If required configuration is missing
    """
    config = config or default_settings
    config.validate_required_keys()

    return OpenAIProvider(
        api_key=config.openai_api_key,
        chat_model=config.openai_chat_model,
        image_model=config.openai_image_model,
        base_url=config.openai_base_url,
        max_retries=config.max_retries,
        retry_initial_delay=config.retry_initial_delay,
        retry_max_delay=config.retry_max_delay,
        timeout=config.timeout,
        default_n=config.default_n,
        output_format=config.output_format,
    )


def create_image_generator(
    provider: BaseProvider,
    config: Optional[Settings] = None
) -> ImageGenerator:
    """Create the image generator and its parameter optimizer.

    Raises:
        ValueError: If a configured default is not an allowed value
    """
    config = config or default_settings
    config.validate_defaults()

    defaults = config.default_parameters()
    generation_space = config.generation_space()

    optimizer = ParameterOptimizer(
        provider,
        space=generation_space,
        defaults=defaults,
        model=config.prompt_analysis_model,
    )
    return ImageGenerator(
        provider,
        optimizer,
        generation_space=generation_space,
        edit_space=config.edit_space(),
        defaults=defaults,
        edit_defaults=config.edit_default_parameters(),
    )


def create_chat_service(
    provider: Optional[BaseProvider] = None,
    config: Optional[Settings] = None
) -> ChatService:
    """Create the chat service, building the provider from settings when none is given.

    Args:
        provider: Provider to use; a fake one can be passed in tests
        config: Settings to use instead of the global instance

    Returns:
        Ready-to-use ChatService
    """
    config = config or default_settings
    if provider is None:
        provider = create_provider(config)

    generator = create_image_generator(provider, config)
    logger.info(f"Chat service ready with provider: {provider.name}")
    return ChatService(
        provider,
        generator,
        system_prompt=config.chat_system_prompt,
        model=config.openai_chat_model,
        max_tokens=config.chat_max_tokens,
    )
