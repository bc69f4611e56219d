"""
Speech provider client for speech-to-text and text-to-speech.

Talks to the Deepgram REST API with httpx. Every call is independent:
the client keeps no state between calls beyond its HTTP connection pool.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from speechtask.config import (
    DEEPGRAM_API_KEY,
    DEEPGRAM_BASE_URL,
    STT_MODEL,
    PROVIDER_MAX_ATTEMPTS,
    PROVIDER_TIMEOUT_S,
    PROVIDER_BACKOFF_S,
)
from speechtask.errors import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderTransientError,
    ProviderRejectedError,
    ProviderExhaustedError,
)

logger = logging.getLogger(__name__)

# 4xx codes that signal "try again later" rather than a bad request
_RETRYABLE_CLIENT_STATUS_CODES = {408, 429}

# Longest provider error body carried into error messages
_MAX_PAYLOAD_CHARS = 500


def _is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in _RETRYABLE_CLIENT_STATUS_CODES


class SpeechProviderClient:
    """
    Performs STT and TTS calls with per-attempt timeout and retry.

    Retry policy:
        - transport errors, timeouts, 5xx, 408 and 429 are retried
        - any other non-success status (4xx, unexpected 3xx) fails immediately
          with ProviderRejectedError
        - attempt n is followed by a backoff sleep of n * backoff_s seconds
        - after max_attempts transient failures, ProviderExhaustedError

    Cancelling the calling asyncio task (including during a backoff
    sleep) raises asyncio.CancelledError, never a provider error.
    """

    def __init__(
        self,
        api_key: str = DEEPGRAM_API_KEY,
        base_url: str = DEEPGRAM_BASE_URL,
        stt_model: str = STT_MODEL,
        max_attempts: int = PROVIDER_MAX_ATTEMPTS,
        timeout_s: float = PROVIDER_TIMEOUT_S,
        backoff_s: float = PROVIDER_BACKOFF_S,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if max_attempts < 1:
            raise ValueError('max_attempts must be at least 1')
        self._api_key = api_key
        self._base_url = base_url.rstrip('/')
        self._stt_model = stt_model
        self._max_attempts = max_attempts
        self._timeout_s = timeout_s
        self._backoff_s = backoff_s
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)

    @property
    def is_configured(self) -> bool:
        """Check if provider credentials are available."""
        return bool(self._api_key)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def transcribe_from_url(self, url: str, language: str) -> Dict[str, Any]:
        """
        Transcribe audio reachable at a URL.

        Args:
            url: Publicly reachable audio/video URL
            language: Language hint (e.g. 'en-US')

        Returns:
            Raw provider response (channels -> alternatives, utterances -> words)
        """
        params = {
            'model': self._stt_model,
            'language': language,
            'smart_format': 'true',
            'punctuate': 'true',
            'diarize': 'true',
            'utterances': 'true',
        }
        response = await self._request_with_retry(
            'transcribe',
            '/listen',
            params=params,
            json={'url': url},
        )
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f'Provider returned invalid JSON: {e}') from e
        if not isinstance(payload, dict):
            raise ProviderError('Provider returned a non-object JSON response')
        return payload

    async def synthesize(self, text: str, voice: str) -> Tuple[bytes, str]:
        """
        Synthesize speech for text.

        Args:
            text: Text to synthesize
            voice: Voice/model identifier (e.g. 'aura-2-thalia-en')

        Returns:
            Tuple of (audio_bytes, content_type)
        """
        response = await self._request_with_retry(
            'synthesize',
            '/speak',
            params={'model': voice},
            json={'text': text},
        )
        audio = response.content
        if not audio:
            raise ProviderError('Provider returned empty audio')
        content_type = response.headers.get('content-type', 'application/octet-stream')
        return audio, content_type.split(';')[0].strip()

    async def aclose(self):
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _request_with_retry(
        self,
        operation: str,
        path: str,
        *,
        params: Dict[str, str],
        json: Dict[str, Any],
    ) -> httpx.Response:
        if not self.is_configured:
            raise ProviderNotConfiguredError('Speech provider API key is not configured')

        headers = {
            'Authorization': f'Token {self._api_key}',
            'Content-Type': 'application/json',
        }
        url = f'{self._base_url}{path}'
        last_error: Optional[ProviderTransientError] = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await self._send_once(url, params=params, json=json, headers=headers)
            except ProviderTransientError as e:
                last_error = e
            else:
                return response

            if attempt < self._max_attempts:
                delay = self._backoff_s * attempt
                logger.warning(
                    'Provider %s attempt %d/%d failed: %s (retrying in %.1fs)',
                    operation, attempt, self._max_attempts, last_error, delay,
                )
                await asyncio.sleep(delay)

        logger.error(
            'Provider %s failed after %d attempts: %s',
            operation, self._max_attempts, last_error,
        )
        raise ProviderExhaustedError(self._max_attempts, last_error)

    async def _send_once(
        self,
        url: str,
        *,
        params: Dict[str, str],
        json: Dict[str, Any],
        headers: Dict[str, str],
    ) -> httpx.Response:
        """One bounded attempt. Raises ProviderTransientError for anything worth retrying."""
        try:
            response = await asyncio.wait_for(
                self._client.post(url, params=params, json=json, headers=headers),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTransientError(f'Request timed out after {self._timeout_s}s') from e
        except httpx.TimeoutException as e:
            raise ProviderTransientError(f'Request timed out: {type(e).__name__}') from e
        except httpx.TransportError as e:
            raise ProviderTransientError(f'Transport error: {type(e).__name__}: {e}') from e

        if response.is_success:
            return response

        if _is_retryable_status(response.status_code):
            raise ProviderTransientError(
                f'Provider returned status {response.status_code}',
                status_code=response.status_code,
            )

        payload = response.text[:_MAX_PAYLOAD_CHARS]
        logger.error('Provider rejected request with status %d: %s', response.status_code, payload)
        raise ProviderRejectedError(response.status_code, payload)
