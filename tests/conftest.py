"""Shared test fixtures and configuration."""

import base64
import io
import json
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from src.core.base_provider import BaseProvider
from src.core.image_generator import ImageGenerator
from src.core.chat_service import ChatService
from src.core.models import ParameterSet, ParameterSpace
from src.core.parameter_optimizer import ParameterOptimizer


def chat_response(content, role="assistant"):
    """Build an object shaped like an OpenAI chat completion."""
    message = SimpleNamespace(role=role, content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def images_response(*payloads, usage=None):
    """Build an object shaped like an OpenAI images response."""
    return SimpleNamespace(
        data=[SimpleNamespace(b64_json=payload, url=None) for payload in payloads],
        usage=usage,
    )


class FakeProvider(BaseProvider):
    """Provider double whose capabilities are AsyncMocks."""

    def __init__(self):
        super().__init__(api_key="test-key")
        self.complete_chat = AsyncMock(return_value=chat_response("Hello there"))
        self.generate_images = AsyncMock(return_value=images_response("aW1hZ2U="))
        self.edit_images = AsyncMock(return_value=images_response("ZWRpdGVk"))
        self.health_check = AsyncMock(return_value=True)

    async def complete_chat(self, request):  # replaced in __init__
        raise NotImplementedError

    async def generate_images(self, request):  # replaced in __init__
        raise NotImplementedError

    async def edit_images(self, request):  # replaced in __init__
        raise NotImplementedError

    async def health_check(self):  # replaced in __init__
        raise NotImplementedError

    @property
    def name(self) -> str:
        return "Fake"


@pytest.fixture
def sample_prompt():
    """Return a sample prompt for testing."""
    return "A beautiful sunset over mountains"


@pytest.fixture
def generation_space():
    """Allowed values for generation."""
    return ParameterSpace(
        sizes=("1024x1024", "1024x1792", "1792x1024"),
        qualities=("low", "medium", "high", "auto"),
        backgrounds=("auto", "transparent"),
    )


@pytest.fixture
def edit_space():
    """Allowed values for edits."""
    return ParameterSpace(
        sizes=("1024x1024", "1536x1024", "1024x1536", "auto"),
        qualities=("low", "medium", "high", "auto"),
    )


@pytest.fixture
def default_parameters():
    """Configured default parameters."""
    return ParameterSet(size="1024x1024", quality="auto", background="auto")


@pytest.fixture
def fake_provider():
    """Return a fake provider with mocked capabilities."""
    return FakeProvider()


@pytest.fixture
def optimizer(fake_provider, generation_space, default_parameters):
    """Return a parameter optimizer backed by the fake provider."""
    return ParameterOptimizer(fake_provider, generation_space, default_parameters, model="analysis-model")


@pytest.fixture
def image_generator(fake_provider, optimizer, generation_space, edit_space, default_parameters):
    """Return an image generator backed by the fake provider."""
    return ImageGenerator(
        fake_provider,
        optimizer,
        generation_space=generation_space,
        edit_space=edit_space,
        defaults=default_parameters,
    )


@pytest.fixture
def chat_service(fake_provider, image_generator):
    """Return a chat service backed by the fake provider."""
    return ChatService(fake_provider, image_generator, system_prompt="You are helpful.")


@pytest.fixture
def make_chat_response():
    """Factory for chat completion responses."""
    return chat_response


@pytest.fixture
def make_images_response():
    """Factory for images responses."""
    return images_response


@pytest.fixture
def analysis_response():
    """Factory for optimizer completions with a JSON body."""
    def _make(**parameters):
        return chat_response(json.dumps(parameters))
    return _make


@pytest.fixture
def sample_fake_image():
    """Return a fake PIL Image for testing."""
    return Image.new('RGB', (64, 64), color='red')


@pytest.fixture
def sample_image_bytes(sample_fake_image):
    """Return sample image as PNG bytes."""
    img_byte_arr = io.BytesIO()
    sample_fake_image.save(img_byte_arr, format='PNG')
    return img_byte_arr.getvalue()


@pytest.fixture
def sample_image_b64(sample_image_bytes):
    """Return sample image as a base64 string."""
    return base64.b64encode(sample_image_bytes).decode("ascii")


# Skip integration tests unless explicitly requested
def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests unless RUN_INTEGRATION_TESTS is set."""
    skip_integration = pytest.mark.skip(reason="Integration tests disabled (set RUN_INTEGRATION_TESTS=true to enable)")

    for item in items:
        if "integration" in item.keywords:
            if not os.getenv("RUN_INTEGRATION_TESTS", "").lower() == "true":
                item.add_marker(skip_integration)
