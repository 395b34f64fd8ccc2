"""Chat orchestration: decides between image generation and a text reply."""

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from src.core.base_provider import BaseProvider
from src.core.errors import (
    InputError,
    ProviderError,
    ProviderOperation,
    RequestValidationError,
)
from src.core.image_generator import (
    GenerationFailure,
    GenerationSuccess,
    ImageGenerator,
)
from src.core.intent_classifier import is_image_request
from src.core.models import (
    ChatRequest,
    ChatResult,
    GenerateRequest,
    GenerationRecord,
    ImageRef,
    Message,
)
from src.utils.image_utils import to_data_url

logger = logging.getLogger(__name__)


DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that can analyze images and respond to questions. "
    "Provide comprehensive, helpful answers based on the user's query and any images "
    "they've shared."
)


def coerce_text(request: ChatRequest) -> str:
    """Turn the request text into the string the rest of the pipeline sees.

    ``None`` becomes ``"null"`` and an omitted value ``"undefined"``; booleans
    are lower-case and integral floats drop their fractional part.
    """
    if not request.text_provided:
        return "undefined"

    text = request.text
    if text is None:
        return "null"
    if isinstance(text, bool):
        return "true" if text else "false"
    if isinstance(text, float) and text.is_integer():
        return str(int(text))
    return str(text)


def build_user_content(text: str, images: List[ImageRef]) -> Any:
    """Build the user message content: plain text, or one text block plus one block per image."""
    if not images:
        return text

    content: List[Dict[str, Any]] = [{"type": "text", "text": text}]
    for image in images:
        content.append({
            "type": "image_url",
            "image_url": {"url": to_data_url(image.encoded_data)},
        })
    return content


def _completion_text(response: Any) -> Optional[str]:
    if isinstance(response, dict):
        return response["choices"][0]["message"].get("content")
    return response.choices[0].message.content


class ChatService:
    """Entry point for chat messages.

    Attached images are always interpreted by the vision model. Text that
    reads like an image request is sent to image generation first; if that
    fails, the same text is answered by a text completion instead.

    Attributes:
        provider: Provider used for text and vision completions
        generator: Image generation orchestrator
        system_prompt: System instruction for text completions
        model: Chat model override, or None for the provider default
        max_tokens: Completion token limit
    """

    def __init__(
        self,
        provider: BaseProvider,
        generator: ImageGenerator,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        model: Optional[str] = None,
        max_tokens: int = 1000
    ):
        self.provider = provider
        self.generator = generator
        self.system_prompt = system_prompt
        self.model = model
        self.max_tokens = max_tokens

    async def process_message(self, request: Union[ChatRequest, Dict[str, Any]]) -> ChatResult:
        """Process one chat message.

        Args:
            request: Message text and attached images, as a model or a plain dict

        Returns:
            ChatResult with the echoed user message and the assistant reply

        Raises:
            InputError: If there is no text and no images, or the request is malformed
            ProviderError: If the text completion fails
        """
        if not isinstance(request, ChatRequest):
            try:
                request = ChatRequest.model_validate(request)
            except ValidationError as e:
                raise RequestValidationError(
                    "Invalid chat request",
                    "INVALID_CHAT_REQUEST",
                    {".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()}
                ) from e

        if request.text is None and not request.images:
            raise InputError(
                "Message cannot be null or undefined when no images are provided",
                "INVALID_MESSAGE"
            )

        text = coerce_text(request)
        user_message = Message(role="user", content=text, images=list(request.images))

        if request.images:
            logger.info(f"Interpreting message with {len(request.images)} attached image(s)")
        elif is_image_request(text):
            image = await self._generate_image(text)
            if image is not None:
                return ChatResult(
                    user_message=user_message,
                    assistant_message=Message(role="assistant", content="", image=image),
                )

        reply = await self._complete(text, request.images)
        return ChatResult(
            user_message=user_message,
            assistant_message=Message(role="assistant", content=reply),
        )

    async def _generate_image(self, text: str) -> Optional[GenerationRecord]:
        """Try to generate one image; None means fall back to text."""
        logger.info("Message classified as image request")
        try:
            generate_request = GenerateRequest(prompt=text, n=1)
        except ValidationError as e:
            logger.warning(f"Message is not a usable image prompt, answering with text: {e}")
            return None

        outcome = await self.generator.try_generate(generate_request)

        if isinstance(outcome, GenerationSuccess):
            return outcome.result.records[0]

        if isinstance(outcome, GenerationFailure):
            logger.warning(
                f"Image generation failed, falling back to text response: {outcome.error}"
            )
        return None

    async def _complete(self, text: str, images: List[ImageRef]) -> str:
        request: Dict[str, Any] = {
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": build_user_content(text, images)},
            ],
            "max_tokens": self.max_tokens,
        }
        if self.model:
            request["model"] = self.model

        response = await self.provider.complete_chat(request)

        try:
            content = _completion_text(response)
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise ProviderError(
                "Malformed chat completion response", ProviderOperation.CHAT_COMPLETION, e
            ) from e

        if not content:
            raise ProviderError(
                "Chat completion returned no content", ProviderOperation.CHAT_COMPLETION
            )
        return content
