"""Unit tests for OpenAI provider."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from src.core.errors import ProviderError, ProviderOperation, RequestValidationError
from src.providers.openai_provider import OpenAIProvider, validate_chat_messages


def _request():
    return httpx.Request("POST", "https://api.openai.com/v1/test")


def _connection_error():
    return openai.APIConnectionError(request=_request())


def _status_error(error_class, status_code, message):
    response = httpx.Response(status_code, request=_request())
    return error_class(message, response=response, body=None)


@pytest.fixture
def mock_client():
    """Return a client double with async endpoints."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value="chat-response")
    client.images.generate = AsyncMock(return_value="generate-response")
    client.images.edit = AsyncMock(return_value="edit-response")
    client.models.list = AsyncMock(return_value=[])
    return client


@pytest.fixture
def provider(mock_client):
    """Return a provider with zero retry delays."""
    return OpenAIProvider(
        api_key="test-key",
        chat_model="chat-model",
        image_model="image-model",
        max_retries=2,
        retry_initial_delay=0,
        retry_max_delay=0,
        client=mock_client,
    )


class TestValidateChatMessages:
    """Tests for validate_chat_messages."""

    def test_valid_messages(self):
        """Test that well formed messages pass."""
        validate_chat_messages([
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": [
                {"type": "text", "text": "what is this"},
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,YWJj"}},
            ]},
        ])

    @pytest.mark.parametrize("messages", [None, [], "hello"])
    def test_missing_messages(self, messages):
        """Test that an absent or empty list is rejected."""
        with pytest.raises(RequestValidationError) as exc_info:
            validate_chat_messages(messages)

        assert "messages" in exc_info.value.details

    def test_null_content(self):
        """Test that null content is reported with its path."""
        with pytest.raises(RequestValidationError) as exc_info:
            validate_chat_messages([{"role": "user", "content": None}])

        assert "messages[0].content" in exc_info.value.details

    def test_unknown_role(self):
        """Test that unknown roles are rejected."""
        with pytest.raises(RequestValidationError) as exc_info:
            validate_chat_messages([{"role": "narrator", "content": "hi"}])

        assert "messages[0].role" in exc_info.value.details

    def test_bad_blocks(self):
        """Test that malformed content blocks are reported individually."""
        with pytest.raises(RequestValidationError) as exc_info:
            validate_chat_messages([{"role": "user", "content": [
                {"type": "text"},
                {"type": "image_url", "image_url": {}},
                "plain",
            ]}])

        details = exc_info.value.details
        assert set(details) == {
            "messages[0].content[0]",
            "messages[0].content[1]",
            "messages[0].content[2]",
        }


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    def test_requires_api_key(self):
        """Test that an empty key without a client is rejected."""
        with pytest.raises(ValueError, match="API key is required"):
            OpenAIProvider(api_key="")

    def test_client_configuration(self):
        """Test that the SDK client is built without its own retries."""
        with patch("src.providers.openai_provider.AsyncOpenAI") as mock_openai:
            provider = OpenAIProvider(api_key="test-key", base_url="http://localhost:8080/v1", timeout=30)

        mock_openai.assert_called_once_with(
            api_key="test-key",
            timeout=30,
            max_retries=0,
            base_url="http://localhost:8080/v1",
        )
        assert provider.client is mock_openai.return_value

    def test_name(self, provider):
        """Test provider name."""
        assert provider.name == "OpenAI"
        assert "OpenAI" in repr(provider)

    @pytest.mark.asyncio
    async def test_complete_chat_merges_model(self, provider, mock_client):
        """Test that the configured chat model is added."""
        messages = [{"role": "user", "content": "hi"}]

        response = await provider.complete_chat({"messages": messages, "max_tokens": 10})

        assert response == "chat-response"
        mock_client.chat.completions.create.assert_awaited_once_with(
            model="chat-model", messages=messages, max_tokens=10
        )

    @pytest.mark.asyncio
    async def test_complete_chat_request_model_wins(self, provider, mock_client):
        """Test that a model named in the request is kept."""
        await provider.complete_chat({"model": "other", "messages": [{"role": "user", "content": "hi"}]})

        assert mock_client.chat.completions.create.call_args.kwargs["model"] == "other"

    @pytest.mark.asyncio
    async def test_complete_chat_validates_before_sending(self, provider, mock_client):
        """Test that malformed messages never reach the network."""
        with pytest.raises(RequestValidationError):
            await provider.complete_chat({"messages": [{"role": "user", "content": None}]})

        mock_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self, provider, mock_client):
        """Test that transient failures are retried until success."""
        mock_client.chat.completions.create.side_effect = [
            _connection_error(),
            _status_error(openai.RateLimitError, 429, "slow down"),
            "chat-response",
        ]

        response = await provider.complete_chat({"messages": [{"role": "user", "content": "hi"}]})

        assert response == "chat-response"
        assert mock_client.chat.completions.create.await_count == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, provider, mock_client):
        """Test that the last transient failure is raised as a provider error."""
        mock_client.images.generate.side_effect = _status_error(
            openai.InternalServerError, 500, "server error"
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_images({"prompt": "a cat"})

        assert mock_client.images.generate.await_count == 3
        assert exc_info.value.operation is ProviderOperation.IMAGE_GENERATION
        assert isinstance(exc_info.value.cause, openai.InternalServerError)

    @pytest.mark.asyncio
    async def test_no_retry_on_client_errors(self, provider, mock_client):
        """Test that authentication failures are not retried."""
        mock_client.chat.completions.create.side_effect = _status_error(
            openai.AuthenticationError, 401, "invalid key"
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.complete_chat({"messages": [{"role": "user", "content": "hi"}]})

        assert mock_client.chat.completions.create.await_count == 1
        assert exc_info.value.operation is ProviderOperation.CHAT_COMPLETION
        assert exc_info.value.code == "CHAT_COMPLETION_ERROR"
        assert str(exc_info.value).startswith("[chat-completion]")

    @pytest.mark.asyncio
    async def test_generate_images_payload(self, provider, mock_client):
        """Test that image defaults are merged and unset values dropped."""
        response = await provider.generate_images({
            "prompt": "a cat", "n": 2, "size": "1024x1024", "quality": None
        })

        assert response == "generate-response"
        mock_client.images.generate.assert_awaited_once_with(
            model="image-model",
            n=2,
            output_format="png",
            prompt="a cat",
            size="1024x1024",
        )

    @pytest.mark.asyncio
    async def test_generate_images_default_n(self, provider, mock_client):
        """Test that n falls back to the configured default."""
        await provider.generate_images({"prompt": "a cat"})

        assert mock_client.images.generate.call_args.kwargs["n"] == 1

    @pytest.mark.asyncio
    async def test_edit_images_decodes_uploads(self, provider, mock_client, sample_image_b64, sample_image_bytes):
        """Test that base64 images and mask become file tuples."""
        response = await provider.edit_images({
            "prompt": "add a hat",
            "image": [sample_image_b64, f"data:image/png;base64,{sample_image_b64}"],
            "mask": sample_image_b64,
            "background": "transparent",
            "size": "1024x1024",
        })

        assert response == "edit-response"
        kwargs = mock_client.images.edit.call_args.kwargs
        assert kwargs["model"] == "image-model"
        assert "background" not in kwargs
        assert kwargs["image"] == [
            ("image_0.png", sample_image_bytes, "image/png"),
            ("image_1.png", sample_image_bytes, "image/png"),
        ]
        assert kwargs["mask"] == ("mask.png", sample_image_bytes, "image/png")

    @pytest.mark.asyncio
    async def test_edit_images_single_image(self, provider, mock_client, sample_image_b64):
        """Test that a bare image string is accepted."""
        await provider.edit_images({"prompt": "edit", "image": sample_image_b64})

        kwargs = mock_client.images.edit.call_args.kwargs
        assert len(kwargs["image"]) == 1
        assert "mask" not in kwargs

    @pytest.mark.asyncio
    async def test_edit_images_requires_image(self, provider, mock_client):
        """Test that an edit without images is rejected."""
        with pytest.raises(RequestValidationError):
            await provider.edit_images({"prompt": "edit", "image": []})

        mock_client.images.edit.assert_not_called()

    @pytest.mark.asyncio
    async def test_edit_images_invalid_base64(self, provider, mock_client):
        """Test that undecodable images are rejected before sending."""
        with pytest.raises(RequestValidationError):
            await provider.edit_images({"prompt": "edit", "image": "not base64!"})

        mock_client.images.edit.assert_not_called()

    @pytest.mark.asyncio
    async def test_edit_failure_tagged(self, provider, mock_client, sample_image_b64):
        """Test that edit failures are tagged image-edit."""
        mock_client.images.edit.side_effect = _status_error(
            openai.BadRequestError, 400, "rejected"
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.edit_images({"prompt": "edit", "image": sample_image_b64})

        assert exc_info.value.operation is ProviderOperation.IMAGE_EDIT
        assert mock_client.images.edit.await_count == 1

    @pytest.mark.asyncio
    async def test_chat_debug_log_is_redacted(self, provider, mock_client, caplog):
        """Test that logged chat requests hide secrets and image data but the sent request does not."""
        caplog.set_level(logging.DEBUG, logger="src.providers.openai_provider")
        secret = "sk-abcdefghijklmnop1234"
        image_data = "QUJD" * 1000
        messages = [
            {"role": "system", "content": f"Authorization: Bearer {secret}"},
            {"role": "user", "content": [
                {"type": "text", "text": "what is this"},
                {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image_data}"}},
            ]},
        ]

        await provider.complete_chat({"messages": messages})

        assert "[REDACTED]" in caplog.text
        assert secret not in caplog.text
        assert image_data not in caplog.text
        sent = mock_client.chat.completions.create.call_args.kwargs["messages"]
        assert sent == messages
        assert sent[0]["content"] == f"Authorization: Bearer {secret}"
        assert sent[1]["content"][1]["image_url"]["url"].endswith(image_data)

    @pytest.mark.asyncio
    async def test_edit_debug_log_is_redacted(self, provider, mock_client, caplog, sample_image_b64, sample_image_bytes):
        """Test that logged edit requests show neither base64 images nor raw bytes."""
        caplog.set_level(logging.DEBUG, logger="src.providers.openai_provider")
        image = f"data:image/png;base64,{sample_image_b64}"

        await provider.edit_images({
            "prompt": "add a hat, key sk-abcdefghijklmnop1234",
            "image": image,
        })

        assert "[REDACTED]" in caplog.text
        assert "sk-abcdefghijklmnop1234" not in caplog.text
        assert sample_image_b64 not in caplog.text
        kwargs = mock_client.images.edit.call_args.kwargs
        assert kwargs["prompt"] == "add a hat, key sk-abcdefghijklmnop1234"
        assert kwargs["image"] == [("image_0.png", sample_image_bytes, "image/png")]

    @pytest.mark.asyncio
    async def test_health_check_success(self, provider, mock_client):
        """Test successful health check."""
        assert await provider.health_check() is True
        mock_client.models.list.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_health_check_failure(self, provider, mock_client):
        """Test failed health check."""
        mock_client.models.list.side_effect = _connection_error()

        assert await provider.health_check() is False


@pytest.mark.integration
class TestOpenAIProviderIntegration:
    """Integration tests that call the real API."""

    @pytest.mark.asyncio
    async def test_real_chat_completion(self):
        """Test a real chat completion."""
        from app.config import settings

        provider = OpenAIProvider(api_key=settings.openai_api_key, chat_model=settings.openai_chat_model)
        response = await provider.complete_chat({
            "messages": [{"role": "user", "content": "Reply with the word ok."}],
            "max_tokens": 5,
        })

        assert response.choices[0].message.content
