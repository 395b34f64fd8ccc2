"""Exception types raised by the chat and image generation core."""

from enum import Enum
from typing import Any, Dict, Optional


class ProviderOperation(Enum):
    """Provider capabilities, used to tag provider failures."""
    CHAT_COMPLETION = "chat-completion"
    IMAGE_GENERATION = "image-generation"
    IMAGE_EDIT = "image-edit"


class ImageChatError(Exception):
    """Base class for errors surfaced to callers.

    Attributes:
        code: Stable machine-readable error code
        status_code: Suggested status code for a transport layer
    """

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class InputError(ImageChatError, ValueError):
    """The caller supplied missing or malformed input."""

    status_code = 400
    default_code = "BAD_REQUEST"


class RequestValidationError(InputError):
    """A request failed validation before reaching the provider.

    Attributes:
        details: Mapping of offending field to a description of the problem
    """

    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code)
        self.details = details or {}


_OPERATION_CODES = {
    ProviderOperation.CHAT_COMPLETION: "CHAT_COMPLETION_ERROR",
    ProviderOperation.IMAGE_GENERATION: "IMAGE_GENERATION_ERROR",
    ProviderOperation.IMAGE_EDIT: "IMAGE_EDIT_ERROR",
}


class ProviderError(ImageChatError, RuntimeError):
    """The external AI provider failed.

    Attributes:
        operation: Which provider capability failed
        cause: The original exception, if any
    """

    status_code = 502
    default_code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        operation: ProviderOperation,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message, _OPERATION_CODES[operation])
        self.operation = operation
        self.cause = cause

    def __str__(self) -> str:
        return f"[{self.operation.value}] {self.message}"
