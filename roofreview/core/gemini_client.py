import asyncio
from typing import Any, Dict, List, Optional, Union

from google import genai
from google.genai import types

from roofreview.core.exceptions import APIClientError
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class GeminiClient:
    """Google Gemini through the ``google-genai`` async API.

    Args:
        api_key: Gemini API key
        model: Default model; ``generation_config["model"]`` overrides it per call
        timeout: Request timeout in seconds
        max_retries: Attempts per call, with 1s, 2s, 4s... between them
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: int = 60,
        max_retries: int = 3,
    ):
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

        try:
            self.client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=timeout * 1000),
            )
        except Exception as e:
            raise APIClientError(f"Failed to initialize Gemini client: {e}", original_error=e) from e

    @staticmethod
    def _build_config(
        system_instruction: Optional[str],
        generation_config: Dict[str, Any],
    ) -> types.GenerateContentConfig:
        options: Dict[str, Any] = {"temperature": generation_config.get("temperature", 0.0)}
        for key in ("max_output_tokens", "response_mime_type"):
            if key in generation_config:
                options[key] = generation_config[key]
        if system_instruction:
            options["system_instruction"] = system_instruction
        return types.GenerateContentConfig(**options)

    async def generate_content(
        self,
        contents: Union[str, List[Union[str, Dict[str, Any]]]],
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Return the response text; an empty response yields "".

        Raises:
            APIClientError: Every attempt failed
        """
        generation_config = generation_config or {}
        config = self._build_config(system_instruction, generation_config)
        model = generation_config.get("model") or self.model

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self.client.aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=config,
                )
            except Exception as e:
                last_error = e
                LOGGER.warning(
                    f"Gemini call failed (attempt {attempt}/{self.max_retries}): {e}",
                    extra={"model": model},
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(2 ** (attempt - 1))
                continue

            if not response.text:
                LOGGER.warning("Empty response from Gemini", extra={"model": model})
            return response.text or ""

        raise APIClientError(f"Gemini generation failed: {last_error}", original_error=last_error)
