"""Abstract base class for generative AI providers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class BaseProvider(ABC):
    """Abstract interface that all AI providers must implement.

    A provider exposes three capabilities: text/vision chat completion,
    image generation and image edit. Orchestrators receive a provider as a
    constructor argument, so tests can pass a fake one.

    Attributes:
        api_key: Optional API key for cloud-based providers
    """

    def __init__(self, api_key: Optional[str] = None):
        """Initialize the provider.

        Args:
            api_key: Optional API key for authentication with cloud services
        """
        self.api_key = api_key

    @abstractmethod
    async def complete_chat(self, request: Dict[str, Any]) -> Any:
        """Run a text or vision chat completion.

        Args:
            request: Completion request with a ``messages`` list and optional
                model, response_format, temperature and max_tokens

        Returns:
            The raw provider response

        Raises:
            RequestValidationError: If the message list is malformed
            ProviderError: If the provider call fails
        """
        pass

    @abstractmethod
    async def generate_images(self, request: Dict[str, Any]) -> Any:
        """Generate images from a prompt.

        Args:
            request: Generation request with prompt, n, size, quality, background

        Returns:
            The raw provider response

        Raises:
            ProviderError: If the provider call fails
        """
        pass

    @abstractmethod
    async def edit_images(self, request: Dict[str, Any]) -> Any:
        """Edit one or more images with a prompt and optional mask.

        Args:
            request: Edit request with prompt, image list, optional mask, n, size, quality

        Returns:
            The raw provider response

        Raises:
            ProviderError: If the provider call fails
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is available and working.

        Returns:
            True if the provider is healthy, False otherwise
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the human-readable name of this provider."""
        pass

    def __repr__(self) -> str:
        """String representation of the provider."""
        return f"{self.__class__.__name__}(name='{self.name}')"
