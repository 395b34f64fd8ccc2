"""AI-assisted selection of image generation parameters."""

import json
import logging
from typing import Any, Dict, Optional

from src.core.base_provider import BaseProvider
from src.core.models import PARAMETER_FIELDS, ParameterSet, ParameterSpace

logger = logging.getLogger(__name__)


ANALYSIS_TEMPERATURE = 0.2
ANALYSIS_MAX_TOKENS = 150


def build_analysis_instruction(space: ParameterSpace) -> str:
    """Build the system instruction asking for exactly the three parameters.

    Args:
        space: Allowed values, inlined so the model only picks from them

    Returns:
        System message text
    """
    sizes = ", ".join(space.sizes)
    qualities = ", ".join(space.qualities)
    backgrounds = ", ".join(space.backgrounds) or "auto"
    example = {
        "size": space.sizes[0] if space.sizes else "auto",
        "quality": space.qualities[0] if space.qualities else "auto",
        "background": space.backgrounds[0] if space.backgrounds else "auto",
    }
    return (
        "You are an AI assistant that analyzes image generation prompts to determine "
        "optimal parameters.\n"
        "Based on the prompt content, suggest the best parameters for:\n"
        f"1. size ({sizes}) - choose based on whether the content would benefit from "
        "portrait, landscape, or square format\n"
        f"2. quality ({qualities}) - choose higher quality for detailed images, lower "
        "for simpler ones\n"
        f"3. background ({backgrounds}) - choose transparent if the subject would "
        "benefit from being isolated\n\n"
        "Respond with a JSON object containing only these parameters and no other text.\n"
        f"Example: {json.dumps(example)}"
    )


def sanitize_parameters(
    suggested: Any,
    space: ParameterSpace,
    defaults: ParameterSet
) -> ParameterSet:
    """Keep suggested values that are in the allowed space, default the rest.

    Args:
        suggested: Decoded model output; anything that is not a dict is ignored
        space: Allowed values per field
        defaults: Values used for missing or invalid fields

    Returns:
        ParameterSet whose fields are all allowed values (or the defaults)
    """
    if not isinstance(suggested, dict):
        suggested = {}

    values: Dict[str, Optional[str]] = {}
    for field in PARAMETER_FIELDS:
        value = suggested.get(field)
        values[field] = value if space.is_valid(field, value) else getattr(defaults, field)
    return ParameterSet(**values)


def _extract_content(response: Any) -> Optional[str]:
    if isinstance(response, dict):
        return response["choices"][0]["message"]["content"]
    return response.choices[0].message.content


class ParameterOptimizer:
    """Suggests size, quality and background for a prompt.

    A secondary chat completion is asked for a JSON object; its answer is
    checked against the allowed values. ``analyze`` never raises: any failure
    yields the defaults, which is indistinguishable from the model choosing
    them.

    Attributes:
        provider: Provider used for the analysis completion
        space: Allowed parameter values
        defaults: Fallback values per field
        model: Model used for analysis
    """

    def __init__(
        self,
        provider: BaseProvider,
        space: ParameterSpace,
        defaults: ParameterSet,
        model: Optional[str] = None
    ):
        self.provider = provider
        self.space = space
        self.defaults = defaults
        self.model = model

    def default_parameters(self, defaults: Optional[ParameterSet] = None) -> ParameterSet:
        return (defaults or self.defaults).model_copy()

    async def analyze(
        self,
        prompt: str,
        space: Optional[ParameterSpace] = None,
        defaults: Optional[ParameterSet] = None
    ) -> ParameterSet:
        """Suggest generation parameters for a prompt.

        Args:
            prompt: Image prompt to analyze
            space: Allowed values to choose from, instead of the optimizer's own
            defaults: Fallback values to use with ``space``

        Returns:
            ParameterSet with every field drawn from the allowed space or the defaults
        """
        space = space or self.space
        defaults = defaults or self.defaults

        if not prompt or not str(prompt).strip():
            return self.default_parameters(defaults)

        request: Dict[str, Any] = {
            "messages": [
                {"role": "system", "content": build_analysis_instruction(space)},
                {"role": "user", "content": str(prompt)},
            ],
            "response_format": {"type": "json_object"},
            "temperature": ANALYSIS_TEMPERATURE,
            "max_tokens": ANALYSIS_MAX_TOKENS,
        }
        if self.model:
            request["model"] = self.model

        try:
            response = await self.provider.complete_chat(request)
            content = _extract_content(response)
            suggested = json.loads(content or "")
            parameters = sanitize_parameters(suggested, space, defaults)
        except Exception as e:
            logger.warning(f"Prompt analysis failed, using default parameters: {e}")
            return self.default_parameters(defaults)

        logger.info(
            f"Prompt analysis: '{str(prompt)[:30]}...' -> Parameters: {parameters.model_dump()}"
        )
        return parameters
