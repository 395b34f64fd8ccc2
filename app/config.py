"""Application configuration management."""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.models import ParameterSet, ParameterSpace


PLACEHOLDER_API_KEYS = {"", "your_openai_api_key_here"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    These settings are automatically loaded from the .env file or environment variables.
    All sensitive data (API keys) should be stored in environment variables, not hardcoded.

    Attributes:
        openai_api_key: OpenAI API key used for every provider call
        openai_base_url: Optional base URL for OpenAI-compatible endpoints
        openai_image_model: Model used for image generation and editing
        openai_chat_model: Model used for text and vision chat
        prompt_analysis_model: Model used to suggest generation parameters
        default_size: Generation size used when neither caller nor optimizer supplies one
        default_edit_size: Edit size used when neither caller nor optimizer supplies one
        default_quality: Quality used when neither caller nor optimizer supplies one
        default_background: Background used when neither caller nor optimizer supplies one
        generate_sizes: Allowed sizes for image generation
        edit_sizes: Allowed sizes for image edits (kept separate from generate_sizes)
        max_retries: Maximum number of retries for transient provider failures
        timeout: Request timeout in seconds
        run_integration_tests: Whether to run integration tests
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # API Keys
    openai_api_key: str = ""
    openai_base_url: Optional[str] = None

    # Model Configuration
    openai_image_model: str = "gpt-image-1"
    openai_chat_model: str = "gpt-4.1-nano"
    prompt_analysis_model: str = "gpt-4.1-nano"
    chat_max_tokens: int = 1000
    chat_system_prompt: str = (
        "You are a helpful assistant that can analyze images and respond to questions. "
        "Provide comprehensive, helpful answers based on the user's query and any images "
        "they've shared. If the user is asking for an image to be created, explain what "
        "the image would contain."
    )

    # Generation Defaults
    default_n: int = 1
    default_size: str = "1024x1024"
    default_edit_size: str = "1024x1024"
    default_quality: str = "auto"
    default_background: str = "auto"
    output_format: str = "png"

    # Allowed Parameter Values
    generate_sizes: List[str] = ["1024x1024", "1024x1792", "1792x1024"]
    edit_sizes: List[str] = ["1024x1024", "1536x1024", "1024x1536", "auto"]
    qualities: List[str] = ["low", "medium", "high", "auto"]
    backgrounds: List[str] = ["auto", "transparent"]

    # Application Settings
    log_level: str = "INFO"
    max_retries: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 10.0
    timeout: int = 60

    # Testing
    run_integration_tests: bool = False

    def validate_required_keys(self) -> None:
        """Validate that required API keys are present and the defaults are usable.

        Raises:
            ValueError: If the OpenAI API key is missing or still a placeholder,
                or a default is not an allowed value
        """
        if self.openai_api_key.strip() in PLACEHOLDER_API_KEYS:
            raise ValueError(
                "OPENAI_API_KEY is required. "
                "Please set it in your .env file or environment variables. "
                "Get your key from: https://platform.openai.com/api-keys"
            )

        self.validate_defaults()

    def validate_defaults(self) -> None:
        """Validate each default against its own allow-list.

        Raises:
            ValueError: If a default is not an allowed value
        """
        if self.default_size not in self.generate_sizes:
            raise ValueError(
                f"DEFAULT_SIZE '{self.default_size}' is not one of {self.generate_sizes}"
            )

        if self.default_edit_size not in self.edit_sizes:
            raise ValueError(
                f"DEFAULT_EDIT_SIZE '{self.default_edit_size}' is not one of {self.edit_sizes}"
            )

        if self.default_quality not in self.qualities:
            raise ValueError(
                f"DEFAULT_QUALITY '{self.default_quality}' is not one of {self.qualities}"
            )

        if self.default_background not in self.backgrounds:
            raise ValueError(
                f"DEFAULT_BACKGROUND '{self.default_background}' is not one of {self.backgrounds}"
            )

    def generation_space(self) -> ParameterSpace:
        """Allowed parameter values for image generation."""
        return ParameterSpace(
            sizes=tuple(self.generate_sizes),
            qualities=tuple(self.qualities),
            backgrounds=tuple(self.backgrounds),
        )

    def edit_space(self) -> ParameterSpace:
        """Allowed parameter values for image edits (no background)."""
        return ParameterSpace(
            sizes=tuple(self.edit_sizes),
            qualities=tuple(self.qualities),
            backgrounds=(),
        )

    def default_parameters(self) -> ParameterSet:
        """Parameters used when neither caller nor optimizer supplies a value."""
        return ParameterSet(
            size=self.default_size,
            quality=self.default_quality,
            background=self.default_background,
        )

    def edit_default_parameters(self) -> ParameterSet:
        """Edit parameters used when neither caller nor optimizer supplies a value."""
        return ParameterSet(
            size=self.default_edit_size,
            quality=self.default_quality,
        )


# Global settings instance
settings = Settings()
