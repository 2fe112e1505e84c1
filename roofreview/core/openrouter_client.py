"""OpenRouter chat-completions client."""

from typing import Any, Dict, List, Optional, Union

from roofreview.core.base_llm_client import BaseLLMClient
from roofreview.core.exceptions import APIClientError
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

JSON_ONLY_INSTRUCTION = "Respond with valid JSON only."


def flatten_contents(contents: Union[str, List[Union[str, Dict[str, Any]]]]) -> str:
    """Join string parts and ``{"text": ...}`` parts into one user message."""
    if isinstance(contents, str):
        return contents
    texts = []
    for part in contents:
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, dict) and "text" in part:
            texts.append(part["text"])
    return "".join(texts)


class OpenRouterClient(BaseLLMClient):
    """OpenRouter behind the same ``generate_content`` as :class:`GeminiClient`."""

    def __init__(
        self,
        api_key: str,
        model: str = "google/gemini-2.0-flash-001",
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: int = 60,
        max_retries: int = 3,
    ):
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=max_retries)
        self.model = model

    async def generate_content(
        self,
        contents: Union[str, List[Union[str, Dict[str, Any]]]],
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Return the first choice's message text.

        ``response_mime_type="application/json"`` has no OpenRouter
        equivalent, so it becomes an instruction in the system turn.

        Raises:
            APIClientError: Request failed or the response had no choices
        """
        generation_config = generation_config or {}

        system_parts = [system_instruction] if system_instruction else []
        if generation_config.get("response_mime_type") == "application/json":
            system_parts.append(JSON_ONLY_INSTRUCTION)

        messages: List[Dict[str, str]] = []
        if system_parts:
            messages.append({"role": "system", "content": "\n\n".join(system_parts)})
        messages.append({"role": "user", "content": flatten_contents(contents)})

        payload: Dict[str, Any] = {
            "model": generation_config.get("model") or self.model,
            "messages": messages,
            "temperature": generation_config.get("temperature", 0.0),
        }
        if "max_output_tokens" in generation_config:
            payload["max_tokens"] = generation_config["max_output_tokens"]

        response = await self.call_api(payload=payload)

        choices = response.get("choices") or []
        if not choices:
            raise APIClientError(f"OpenRouter returned no choices: {str(response)[:500]}")

        content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            LOGGER.warning("Empty response from OpenRouter", extra={"model": payload["model"]})
        return content
