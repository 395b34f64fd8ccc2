"""Image generation orchestrator with parameter optimization."""

import itertools
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from src.core.base_provider import BaseProvider
from src.core.errors import (
    ImageChatError,
    ProviderError,
    ProviderOperation,
    RequestValidationError,
)
from src.core.models import (
    EDIT_PARAMETER_FIELDS,
    PARAMETER_FIELDS,
    EditRequest,
    GenerateRequest,
    GenerationRecord,
    GenerationResult,
    ParameterSet,
    ParameterSpace,
    utc_now,
)
from src.core.parameter_optimizer import ParameterOptimizer

logger = logging.getLogger(__name__)


_record_counter = itertools.count(1)


def generate_record_id() -> str:
    """Create an image identifier from the time, a process-wide counter and random bits."""
    return f"img_{int(time.time() * 1000)}_{next(_record_counter)}_{secrets.token_hex(4)}"


def merge_parameters(
    explicit: ParameterSet,
    suggested: Optional[ParameterSet],
    defaults: ParameterSet,
    fields: Iterable[str] = PARAMETER_FIELDS
) -> ParameterSet:
    """Merge parameters field by field: explicit > suggested > default.

    Args:
        explicit: Values the caller set (None means unset)
        suggested: Optimizer output, or None if it was not consulted
        defaults: Configured defaults
        fields: Fields to merge; others stay None

    Returns:
        Merged ParameterSet
    """
    merged: Dict[str, Optional[str]] = {}
    for field in fields:
        value = getattr(explicit, field)
        if value is None and suggested is not None:
            value = getattr(suggested, field)
        if value is None:
            value = getattr(defaults, field)
        merged[field] = value
    return ParameterSet(**merged)


@dataclass(frozen=True)
class GenerationSuccess:
    """Generation produced images."""
    result: GenerationResult


@dataclass(frozen=True)
class GenerationFailure:
    """Generation failed; the error is carried instead of raised."""
    error: ImageChatError


GenerationOutcome = Union[GenerationSuccess, GenerationFailure]


class ImageGenerator:
    """Orchestrator for image generation and edits.

    Fills unset parameters from the optimizer and the configured defaults,
    calls the provider and wraps every returned payload into a
    GenerationRecord with a local identifier.

    Attributes:
        provider: Provider used for generate and edit calls
        optimizer: Suggests parameters for unset fields
        generation_space: Allowed values for generation
        edit_space: Allowed values for edits
        defaults: Configured default parameters for generation
        edit_defaults: Configured default parameters for edits
    """

    def __init__(
        self,
        provider: BaseProvider,
        optimizer: ParameterOptimizer,
        generation_space: ParameterSpace,
        edit_space: ParameterSpace,
        defaults: ParameterSet,
        edit_defaults: Optional[ParameterSet] = None
    ):
        """Initialize the image generator.

        Args:
            provider: Provider for image calls
            optimizer: Parameter optimizer
            generation_space: Allowed values for generate
            edit_space: Allowed values for edit
            defaults: Default parameters for generate
            edit_defaults: Default parameters for edit; generation defaults if omitted
        """
        self.provider = provider
        self.optimizer = optimizer
        self.generation_space = generation_space
        self.edit_space = edit_space
        self.defaults = defaults
        self.edit_defaults = edit_defaults or defaults

        logger.info(f"Initialized ImageGenerator with provider: {provider.name}")

    @staticmethod
    def _check_explicit(
        explicit: ParameterSet,
        space: ParameterSpace,
        fields: Iterable[str],
        code: str
    ) -> None:
        errors = {}
        for field in fields:
            value = getattr(explicit, field)
            if value is not None and not space.is_valid(field, value):
                errors[field] = f"{field.capitalize()} must be one of: {', '.join(space.allowed(field))}"
        if errors:
            raise RequestValidationError("Invalid image parameters", code, errors)

    async def _resolve_parameters(
        self,
        prompt: str,
        explicit: ParameterSet,
        space: ParameterSpace,
        defaults: ParameterSet,
        fields: Iterable[str]
    ) -> ParameterSet:
        fields = tuple(fields)
        suggested = None
        needs_analysis = any(getattr(explicit, field) is None for field in fields)

        if needs_analysis and prompt:
            try:
                suggested = await self.optimizer.analyze(prompt, space, defaults)
            except Exception as e:
                # analyze() should not raise; treat it as "no suggestion" if it does
                logger.warning(f"Parameter optimization failed, using defaults: {e}")
                suggested = None

        if suggested is not None:
            # Drop whatever this operation rejects, in case the optimizer ignored the space
            suggested = ParameterSet(**{
                field: getattr(suggested, field)
                for field in fields
                if space.is_valid(field, getattr(suggested, field))
            })

        return merge_parameters(explicit, suggested, defaults, fields)

    @staticmethod
    def _to_records(response: Any, operation: ProviderOperation) -> GenerationResult:
        data = response.get("data") if isinstance(response, dict) else getattr(response, "data", None)

        records: List[GenerationRecord] = []
        for item in data or []:
            encoded = item.get("b64_json") if isinstance(item, dict) else getattr(item, "b64_json", None)
            if not encoded:
                logger.warning(f"Skipping {operation.value} result without image data")
                continue
            records.append(
                GenerationRecord(
                    id=generate_record_id(),
                    encoded_data=encoded,
                    created_at=utc_now(),
                )
            )

        if not records:
            raise ProviderError("Provider returned no image data", operation)

        usage = response.get("usage") if isinstance(response, dict) else getattr(response, "usage", None)
        if usage is not None and hasattr(usage, "model_dump"):
            usage = usage.model_dump()

        return GenerationResult(records=records, usage=usage)

    async def _invoke(self, operation: ProviderOperation, call, payload: Dict[str, Any]) -> GenerationResult:
        try:
            response = await call(payload)
            return self._to_records(response, operation)
        except (ProviderError, RequestValidationError):
            raise
        except Exception as e:
            raise ProviderError(
                str(e) or f"{operation.value} failed", operation, e
            ) from e

    async def generate(self, request: GenerateRequest) -> GenerationResult:
        """Generate images for a prompt.

        Args:
            request: The generation request

        Returns:
            GenerationResult with one record per returned image

        Raises:
            RequestValidationError: If an explicit parameter is not allowed
            ProviderError: If the provider call fails (tagged image-generation)
        """
        explicit = request.explicit_parameters()
        self._check_explicit(explicit, self.generation_space, PARAMETER_FIELDS, "INVALID_GENERATE_REQUEST")

        parameters = await self._resolve_parameters(
            request.prompt, explicit, self.generation_space, self.defaults, PARAMETER_FIELDS
        )
        payload = {"prompt": request.prompt, "n": request.n, **parameters.model_dump()}

        logger.info(f"Generating {request.n} image(s) with parameters: {parameters.model_dump()}")
        result = await self._invoke(
            ProviderOperation.IMAGE_GENERATION, self.provider.generate_images, payload
        )
        logger.info(f"Successfully generated {len(result.records)} image(s)")
        return result

    async def edit(self, request: EditRequest) -> GenerationResult:
        """Edit images with a prompt and optional mask.

        Args:
            request: The edit request; a single image is already a one-item list

        Returns:
            GenerationResult with one record per returned image

        Raises:
            RequestValidationError: If an explicit parameter is not allowed
            ProviderError: If the provider call fails (tagged image-edit)
        """
        explicit = request.explicit_parameters()
        self._check_explicit(explicit, self.edit_space, EDIT_PARAMETER_FIELDS, "INVALID_EDIT_REQUEST")

        parameters = await self._resolve_parameters(
            request.prompt, explicit, self.edit_space, self.edit_defaults, EDIT_PARAMETER_FIELDS
        )
        payload: Dict[str, Any] = {
            "prompt": request.prompt,
            "image": list(request.image),
            "n": request.n,
            "size": parameters.size,
            "quality": parameters.quality,
        }
        if request.mask:
            payload["mask"] = request.mask

        logger.info(
            f"Editing {len(request.image)} image(s) with parameters: "
            f"{parameters.model_dump(exclude={'background'})}"
        )
        result = await self._invoke(
            ProviderOperation.IMAGE_EDIT, self.provider.edit_images, payload
        )
        logger.info(f"Successfully edited into {len(result.records)} image(s)")
        return result

    async def try_generate(self, request: GenerateRequest) -> GenerationOutcome:
        """Generate images, returning failures as a value instead of raising.

        Returns:
            GenerationSuccess with the result, or GenerationFailure with the error
        """
        try:
            return GenerationSuccess(await self.generate(request))
        except ImageChatError as e:
            return GenerationFailure(e)
