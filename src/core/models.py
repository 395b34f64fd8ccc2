"""Core data models for image-aware chat and image generation."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Literal, Tuple, Union
from pydantic import BaseModel, Field, field_validator


MAX_PROMPT_LENGTH = 32000
MAX_CHAT_IMAGES = 16
MAX_IMAGES_PER_REQUEST = 10

PARAMETER_FIELDS: Tuple[str, ...] = ("size", "quality", "background")
EDIT_PARAMETER_FIELDS: Tuple[str, ...] = ("size", "quality")


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ParameterSpace:
    """Closed sets of values the provider accepts for each parameter.

    Generation and edit use separate spaces because the provider accepts
    different size sets for the two operations, and edit takes no background.
    """
    sizes: Tuple[str, ...]
    qualities: Tuple[str, ...]
    backgrounds: Tuple[str, ...] = ()

    def allowed(self, field: str) -> Tuple[str, ...]:
        """Return the allowed values for a parameter field."""
        return {
            "size": self.sizes,
            "quality": self.qualities,
            "background": self.backgrounds,
        }[field]

    def is_valid(self, field: str, value: Any) -> bool:
        """Check a single value against the allow-list for its field."""
        return isinstance(value, str) and value in self.allowed(field)


class ImageRef(BaseModel):
    """An attached image, carried as an opaque base64 payload."""

    encoded_data: str = Field(
        ...,
        min_length=1,
        description="Base64 encoded image data, optionally as a data URL"
    )


class ParameterSet(BaseModel):
    """Image generation parameters.

    Fields are plain strings; membership in the allowed values is checked
    against a ParameterSpace, since the allowed sizes differ between
    generation and edit.
    """

    size: Optional[str] = None
    quality: Optional[str] = None
    background: Optional[str] = None


class GenerationRecord(BaseModel):
    """A single produced or edited image with a locally generated identifier.

    Attributes:
        id: Locally generated identifier, unique within a result set
        encoded_data: Base64 encoded image data
        created_at: When the image was captured from the provider response
    """

    id: str = Field(..., description="Locally generated image identifier")
    encoded_data: str = Field(..., description="Base64 encoded image data")
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the image was captured"
    )


class GenerationResult(BaseModel):
    """Normalized result of a generate or edit call."""

    records: List[GenerationRecord] = Field(default_factory=list)
    usage: Optional[Dict[str, Any]] = None


class Message(BaseModel):
    """A chat message as returned to the caller."""

    role: Literal["user", "assistant"]
    content: str
    image: Optional[GenerationRecord] = None
    images: List[ImageRef] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)


class ChatResult(BaseModel):
    """The echoed user message and the assistant's reply."""

    user_message: Message
    assistant_message: Message


class ChatRequest(BaseModel):
    """Inbound chat request.

    ``text`` distinguishes an explicit ``None`` from an omitted value:
    use ``text_provided`` to tell them apart.
    """

    text: Optional[Union[str, bool, int, float]] = None
    images: List[ImageRef] = Field(
        default_factory=list,
        max_length=MAX_CHAT_IMAGES,
        description="Attached images to interpret"
    )

    @property
    def text_provided(self) -> bool:
        """Whether ``text`` was passed at all, even as ``None``."""
        return "text" in self.model_fields_set


class GenerateRequest(BaseModel):
    """Request model for image generation.

    Unset parameters are filled from the optimizer or the configured defaults.
    """

    prompt: str = Field(
        ...,
        min_length=1,
        max_length=MAX_PROMPT_LENGTH,
        description="Text prompt describing the desired image"
    )
    n: int = Field(
        default=1,
        ge=1,
        le=MAX_IMAGES_PER_REQUEST,
        description="Number of images to generate"
    )
    size: Optional[str] = None
    quality: Optional[str] = None
    background: Optional[str] = None

    def explicit_parameters(self) -> ParameterSet:
        return ParameterSet(size=self.size, quality=self.quality, background=self.background)

    model_config = {
        "json_schema_extra": {
            "example": {
                "prompt": "A serene landscape with mountains and a lake at sunset",
                "n": 1,
                "size": "1792x1024",
                "quality": "high",
                "background": "auto"
            }
        }
    }


class EditRequest(BaseModel):
    """Request model for image edits."""

    prompt: str = Field(
        ...,
        min_length=1,
        max_length=MAX_PROMPT_LENGTH,
        description="Text prompt describing the edit"
    )
    image: List[str] = Field(
        ...,
        min_length=1,
        description="Base64 encoded source image(s)"
    )
    mask: Optional[str] = Field(
        default=None,
        description="Base64 encoded mask; transparent areas are edited"
    )
    n: int = Field(default=1, ge=1, le=MAX_IMAGES_PER_REQUEST)
    size: Optional[str] = None
    quality: Optional[str] = None

    @field_validator("image", mode="before")
    @classmethod
    def _wrap_single_image(cls, value: Any) -> Any:
        # A bare payload is treated as a one-image list
        if isinstance(value, str):
            return [value]
        return value

    def explicit_parameters(self) -> ParameterSet:
        return ParameterSet(size=self.size, quality=self.quality)
