"""OpenAI provider implementation for chat, image generation and image edit."""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import openai
from openai import AsyncOpenAI
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.base_provider import BaseProvider
from src.core.errors import ProviderError, ProviderOperation, RequestValidationError
from src.utils.image_utils import decode_image_payload
from src.utils.redaction import redact_payload

logger = logging.getLogger(__name__)


VALID_ROLES = {"system", "developer", "user", "assistant", "tool"}

# Failures worth retrying; anything else (auth, bad request, content policy) fails at once
TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def _validate_content_block(block: Any, path: str, errors: Dict[str, str]) -> None:
    if not isinstance(block, dict):
        errors[path] = "Content block must be an object"
        return

    block_type = block.get("type")
    if not block_type:
        errors[path] = "Content block is missing a type"
    elif block_type == "text":
        if block.get("text") is None:
            errors[path] = "Text block has no text"
    elif block_type == "image_url":
        image_url = block.get("image_url")
        if not isinstance(image_url, dict) or image_url.get("url") is None:
            errors[path] = "Image block has no url"
    elif block.get(block_type) is None:
        errors[path] = f"'{block_type}' block has no payload"


def validate_chat_messages(messages: Any) -> None:
    """Check that a chat message list is well formed before it is sent.

    Every message needs a known role and non-None content. List content is
    checked block by block.

    Raises:
        RequestValidationError: Describing each malformed message or block
    """
    if not isinstance(messages, list) or not messages:
        raise RequestValidationError(
            "Chat request must contain at least one message",
            "INVALID_CHAT_REQUEST",
            {"messages": "A non-empty list is required"}
        )

    errors: Dict[str, str] = {}
    for i, message in enumerate(messages):
        path = f"messages[{i}]"
        if not isinstance(message, dict):
            errors[path] = "Message must be an object"
            continue

        role = message.get("role")
        if not role:
            errors[f"{path}.role"] = "Message is missing a role"
        elif role not in VALID_ROLES:
            errors[f"{path}.role"] = f"Unknown role '{role}'"

        content = message.get("content")
        if content is None:
            errors[f"{path}.content"] = "Message content cannot be null"
        elif isinstance(content, list):
            if not content:
                errors[f"{path}.content"] = "Message content cannot be an empty list"
            for j, block in enumerate(content):
                _validate_content_block(block, f"{path}.content[{j}]", errors)
        elif not isinstance(content, str):
            errors[f"{path}.content"] = "Message content must be a string or a list of blocks"

    if errors:
        raise RequestValidationError("Invalid chat request", "INVALID_CHAT_REQUEST", errors)


class OpenAIProvider(BaseProvider):
    """Provider implementation using the OpenAI API.

    Every request gets the configured model merged in unless it names one.
    Transient failures are retried with exponential backoff; whatever still
    fails is raised as a ProviderError tagged with the operation.

    Attributes:
        api_key: OpenAI API key
        chat_model: Model used for chat completions
        image_model: Model used for image generation and edit
        client: AsyncOpenAI client instance
    """

    def __init__(
        self,
        api_key: str,
        chat_model: str = "gpt-4.1-nano",
        image_model: str = "gpt-image-1",
        base_url: Optional[str] = None,
        max_retries: int = 3,
        retry_initial_delay: float = 1.0,
        retry_max_delay: float = 10.0,
        timeout: float = 60,
        default_n: int = 1,
        output_format: Optional[str] = "png",
        client: Optional[AsyncOpenAI] = None,
    ):
        """Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key
            chat_model: Default chat model
            image_model: Default image model
            base_url: Optional base URL for OpenAI-compatible endpoints
            max_retries: Retries after the first attempt for transient failures
            retry_initial_delay: First backoff delay in seconds
            retry_max_delay: Upper bound for a single backoff delay in seconds
            timeout: Request timeout in seconds
            default_n: Number of images when a request does not say
            output_format: Image output format merged into image requests
            client: Optional preconfigured client

        Raises:
            ValueError: If API key is empty and no client is given
        """
        super().__init__(api_key)

        if not api_key and client is None:
            raise ValueError("OpenAI API key is required")

        self.chat_model = chat_model
        self.image_model = image_model
        self.max_retries = max_retries
        self.retry_initial_delay = retry_initial_delay
        self.retry_max_delay = retry_max_delay
        self.default_n = default_n
        self.output_format = output_format

        if client is None:
            client_params: Dict[str, Any] = {
                "api_key": api_key,
                "timeout": timeout,
                # Retries are applied here, uniformly for every capability
                "max_retries": 0,
            }
            if base_url:
                client_params["base_url"] = base_url
            client = AsyncOpenAI(**client_params)

        self.client = client
        logger.info(
            f"Initialized OpenAI provider with chat model: {self.chat_model}, "
            f"image model: {self.image_model}"
        )

    async def _invoke(
        self,
        operation: ProviderOperation,
        call: Callable[..., Awaitable[Any]],
        payload: Dict[str, Any],
        logged: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request with retry, translating failures into ProviderError."""
        logger.debug(f"{operation.value} request: {redact_payload(logged or payload)}")

        def _log_retry(retry_state) -> None:
            logger.warning(
                f"{operation.value} attempt {retry_state.attempt_number} failed: "
                f"{retry_state.outcome.exception()}; retrying"
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries + 1),
                wait=wait_exponential(
                    multiplier=self.retry_initial_delay,
                    min=self.retry_initial_delay,
                    max=self.retry_max_delay,
                ),
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    response = await call(**payload)
        except Exception as e:
            logger.error(f"OpenAI {operation.value} failed: {e}")
            raise ProviderError(
                str(e) or f"OpenAI {operation.value} failed", operation, e
            ) from e

        return response

    async def complete_chat(self, request: Dict[str, Any]) -> Any:
        """Run a chat completion after validating its messages.

        Raises:
            RequestValidationError: If the message list is malformed (nothing is sent)
            ProviderError: If the OpenAI call fails
        """
        validate_chat_messages(request.get("messages"))
        payload = {"model": self.chat_model, **request}
        return await self._invoke(
            ProviderOperation.CHAT_COMPLETION,
            self.client.chat.completions.create,
            payload,
        )

    async def generate_images(self, request: Dict[str, Any]) -> Any:
        """Generate images with the configured image model."""
        payload = self._image_payload(request)
        return await self._invoke(
            ProviderOperation.IMAGE_GENERATION,
            self.client.images.generate,
            payload,
        )

    async def edit_images(self, request: Dict[str, Any]) -> Any:
        """Edit images with the configured image model.

        Base64 images and mask are decoded into file uploads before sending.
        """
        images = request.get("image")
        if isinstance(images, str):
            images = [images]
        if not images:
            raise RequestValidationError(
                "Image is required", "INVALID_EDIT_REQUEST", {"image": "Image is required"}
            )

        payload = self._image_payload(request)
        payload.pop("background", None)
        payload["image"] = [
            decode_image_payload(image, f"image_{i}") for i, image in enumerate(images)
        ]
        if request.get("mask"):
            payload["mask"] = decode_image_payload(request["mask"], "mask")
        else:
            payload.pop("mask", None)

        return await self._invoke(
            ProviderOperation.IMAGE_EDIT,
            self.client.images.edit,
            payload,
            logged={**payload, "image": images, "mask": request.get("mask")},
        )

    def _image_payload(self, request: Dict[str, Any]) -> Dict[str, Any]:
        defaults: Dict[str, Any] = {"model": self.image_model, "n": self.default_n}
        if self.output_format:
            defaults["output_format"] = self.output_format
        payload = {**defaults, **request}
        # Unset parameters are left to the provider's own defaults
        return {key: value for key, value in payload.items() if value is not None}

    async def health_check(self) -> bool:
        """Check if the OpenAI API is accessible.

        Returns:
            True if the provider is healthy, False otherwise
        """
        try:
            logger.debug("Performing health check...")
            await self.client.models.list()
            logger.debug("Health check passed")
            return True
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            return False

    @property
    def name(self) -> str:
        """Get the provider name.

        Returns:
            The string "OpenAI"
        """
        return "OpenAI"
