"""Tests for the HTTP model clients."""

from unittest.mock import AsyncMock

import httpx
import pytest

from roofreview.core.base_llm_client import BaseLLMClient
from roofreview.core.exceptions import APIClientError, APITimeoutError
from roofreview.core.openrouter_client import OpenRouterClient, flatten_contents


def _status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.com/v1")
    response = httpx.Response(status_code, request=request, text="error body")
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestRetryPolicy:

    @pytest.mark.parametrize("status_code,expected", [(400, False), (401, False), (429, True), (500, True), (503, True)])
    def test_status_codes(self, status_code, expected):
        assert BaseLLMClient._is_retryable(_status_error(status_code)) is expected

    def test_transport_errors_are_retried(self):
        assert BaseLLMClient._is_retryable(httpx.ConnectError("refused"))
        assert BaseLLMClient._is_retryable(httpx.ReadTimeout("slow"))

    def test_final_error_types(self):
        client = BaseLLMClient(api_key="key", base_url="https://api.example.com/v1")

        with pytest.raises(APITimeoutError):
            client._raise_final(httpx.ReadTimeout("slow"), client.base_url)
        with pytest.raises(APIClientError, match="HTTP 401"):
            client._raise_final(_status_error(401), client.base_url)


class TestOpenRouterClient:

    @pytest.fixture
    def client(self) -> OpenRouterClient:
        client = OpenRouterClient(api_key="key", model="google/gemini-2.0-flash-001")
        client.call_api = AsyncMock(return_value={"choices": [{"message": {"content": "[]"}}]})
        return client

    def test_flatten_contents(self):
        assert flatten_contents("plain") == "plain"
        assert flatten_contents(["a", {"text": "b"}, {"inline_data": "x"}]) == "ab"

    @pytest.mark.asyncio
    async def test_payload(self, client):
        result = await client.generate_content(
            contents="Extract only starter line items",
            generation_config={"temperature": 0.0, "max_output_tokens": 500},
        )

        assert result == "[]"
        payload = client.call_api.call_args.kwargs["payload"]
        assert payload["model"] == "google/gemini-2.0-flash-001"
        assert payload["max_tokens"] == 500
        assert payload["messages"] == [{"role": "user", "content": "Extract only starter line items"}]

    @pytest.mark.asyncio
    async def test_json_mime_type_becomes_system_instruction(self, client):
        await client.generate_content(
            contents="prompt",
            system_instruction="You read roofing estimates.",
            generation_config={"response_mime_type": "application/json", "model": "other/model"},
        )

        payload = client.call_api.call_args.kwargs["payload"]
        assert payload["model"] == "other/model"
        system = payload["messages"][0]
        assert system["role"] == "system"
        assert system["content"].startswith("You read roofing estimates.")
        assert system["content"].endswith("Respond with valid JSON only.")

    @pytest.mark.asyncio
    async def test_no_choices_raises(self, client):
        client.call_api.return_value = {"error": "overloaded"}

        with pytest.raises(APIClientError):
            await client.generate_content(contents="prompt")
