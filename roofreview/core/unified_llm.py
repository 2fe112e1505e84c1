"""Provider-agnostic model client for the extraction phases.

The totals fallback, the line-item extractors and verification all talk to
a ``UnifiedLLMClient``. Phases never build one themselves: the dependency
layer calls :func:`create_llm_client_from_settings`, which returns ``None``
when no credential is configured, and that ``None`` is what makes every
model-backed phase report ``skipped``.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from roofreview.core.config import LLMSettings
from roofreview.core.exceptions import APIClientError
from roofreview.core.gemini_client import GeminiClient
from roofreview.core.openrouter_client import OpenRouterClient
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"

Contents = Union[str, List[Union[str, Dict[str, Any]]]]


class LLMProvider(str, Enum):
    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class UnifiedLLMClient:
    """One ``generate_content`` over Gemini or OpenRouter.

    With OpenRouter as the primary provider, a Gemini client can be kept as a
    fallback for calls the primary fails.

    Args:
        provider: "gemini" or "openrouter"
        api_key: Key for the primary provider
        model: Model name for the primary provider
        base_url: Chat completions URL (OpenRouter only)
        timeout: Request timeout in seconds
        max_retries: Retry attempts per provider
        fallback_to_gemini: Keep a Gemini client for failed OpenRouter calls
        gemini_api_key: Required when ``fallback_to_gemini`` is set
        gemini_model: Model for the fallback client

    Raises:
        ValueError: Unknown provider, or fallback requested without a Gemini key
    """

    def __init__(
        self,
        provider: Union[str, LLMProvider],
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: int = 60,
        max_retries: int = 3,
        fallback_to_gemini: bool = False,
        gemini_api_key: Optional[str] = None,
        gemini_model: Optional[str] = None,
    ):
        self.provider = LLMProvider(provider)
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries

        if self.provider == LLMProvider.GEMINI:
            self.client = GeminiClient(api_key=api_key, model=model, timeout=timeout, max_retries=max_retries)
        else:
            self.client = OpenRouterClient(
                api_key=api_key,
                model=model,
                base_url=base_url or DEFAULT_OPENROUTER_URL,
                timeout=timeout,
                max_retries=max_retries,
            )

        self.fallback_client: Optional[GeminiClient] = None
        if fallback_to_gemini and self.provider == LLMProvider.OPENROUTER:
            if not gemini_api_key:
                raise ValueError("gemini_api_key required when fallback_to_gemini=True")
            self.fallback_client = GeminiClient(
                api_key=gemini_api_key,
                model=gemini_model or DEFAULT_GEMINI_MODEL,
                timeout=timeout,
                max_retries=max_retries,
            )

        LOGGER.info(
            f"LLM client ready: {self.provider.value}/{model}",
            extra={"fallback": self.fallback_client is not None},
        )

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Return the model's text for ``contents``.

        Raises:
            APIClientError: The primary failed and so did the fallback
            Exception: Whatever the primary raised, when there is no fallback
        """
        request = {
            "contents": contents,
            "system_instruction": system_instruction,
            "generation_config": generation_config,
        }
        try:
            return await self.client.generate_content(**request)
        except Exception as e:
            if self.fallback_client is None:
                raise
            LOGGER.warning(f"{self.provider.value} call failed, retrying on Gemini: {e}")

        try:
            return await self.fallback_client.generate_content(**request)
        except Exception as fallback_error:
            LOGGER.error(f"Gemini fallback failed: {fallback_error}")
            raise APIClientError(
                f"Both {self.provider.value} and the Gemini fallback failed",
                original_error=fallback_error,
            ) from fallback_error


def create_llm_client_from_settings(
    llm_settings: LLMSettings,
    model_override: Optional[str] = None,
) -> Optional[UnifiedLLMClient]:
    """Build the client for the configured provider.

    Args:
        llm_settings: LLM settings group
        model_override: Model replacing the provider default (the line-item
            extractors use ``LLM_EXTRACTOR_MODEL``)

    Returns:
        The client, or None when the selected provider has no API key
    """
    if not llm_settings.has_credentials:
        LOGGER.info(
            "No LLM credential configured; model-backed phases will be skipped",
            extra={"provider": llm_settings.provider},
        )
        return None

    provider = LLMProvider(llm_settings.provider.lower())
    gemini_key = (llm_settings.gemini_api_key or "").strip()

    if provider == LLMProvider.GEMINI:
        return UnifiedLLMClient(
            provider=provider,
            api_key=gemini_key,
            model=model_override or llm_settings.gemini_model,
            timeout=llm_settings.timeout,
            max_retries=llm_settings.max_retries,
        )

    # The fallback needs its own Gemini key; without one OpenRouter runs alone
    use_fallback = llm_settings.enable_fallback and bool(gemini_key)
    return UnifiedLLMClient(
        provider=provider,
        api_key=llm_settings.openrouter_api_key.strip(),
        model=model_override or llm_settings.openrouter_model,
        base_url=llm_settings.openrouter_api_url,
        timeout=llm_settings.timeout,
        max_retries=llm_settings.max_retries,
        fallback_to_gemini=use_fallback,
        gemini_api_key=gemini_key if use_fallback else None,
        gemini_model=llm_settings.gemini_model if use_fallback else None,
    )
