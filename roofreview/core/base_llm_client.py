import asyncio
from typing import Any, Dict, NoReturn, Optional

import httpx

from roofreview.core.exceptions import APIClientError, APITimeoutError
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseLLMClient:
    """JSON-over-HTTP client shared by OpenRouter and Mistral OCR.

    Sends bearer-authenticated requests and retries timeouts, transport
    errors, 429 and 5xx with exponential backoff. Other 4xx responses fail
    immediately.

    Args:
        api_key: Bearer token
        base_url: Endpoint URL; ``call_api`` may append a path
        timeout: Per-request timeout in seconds
        max_retries: Total attempts per call
        retry_delay: Backoff base in seconds (delay doubles each attempt)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: int = 2
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.logger = LOGGER

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra or {})
        return headers

    @staticmethod
    def _is_retryable(error: httpx.HTTPError) -> bool:
        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            return status_code == 429 or status_code >= 500
        return True

    def _raise_final(self, error: httpx.HTTPError, url: str) -> NoReturn:
        if isinstance(error, httpx.TimeoutException):
            raise APITimeoutError(
                f"Timed out calling {url} after {self.max_retries} attempts", original_error=error
            ) from error
        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            body = (error.response.text or "")[:500]
            raise APIClientError(f"HTTP {status_code} from {url}: {body}", original_error=error) from error
        raise APIClientError(f"Request to {url} failed: {error}", original_error=error) from error

    async def call_api(
        self,
        endpoint: str = "",
        method: str = "POST",
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """Send one request, retrying as described on the class.

        Args:
            endpoint: Path appended to ``base_url``
            method: "POST" (JSON body) or "GET" (``payload`` as query params)
            payload: Request body or query params
            headers: Extra headers

        Returns:
            The decoded JSON body

        Raises:
            APIClientError: Non-retryable status, or retries exhausted
            APITimeoutError: Every attempt timed out
        """
        url = f"{self.base_url}{endpoint}"
        request_headers = self._headers(headers)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    if method.upper() == "GET":
                        response = await client.get(url, headers=request_headers, params=payload)
                    else:
                        response = await client.post(url, headers=request_headers, json=payload)
                    response.raise_for_status()
                    return response.json()
                except httpx.HTTPError as e:
                    retryable = self._is_retryable(e)
                    self.logger.warning(
                        f"Request failed (attempt {attempt}/{self.max_retries}): {type(e).__name__}",
                        extra={
                            "url": url,
                            "retryable": retryable,
                            "status_code": getattr(getattr(e, "response", None), "status_code", None),
                        },
                    )
                    if not retryable or attempt == self.max_retries:
                        self._raise_final(e, url)
                    await asyncio.sleep(self.retry_delay * (2 ** (attempt - 1)))

        raise APIClientError(f"Failed to call {url}")
