"""
Task Group 3: Provider Client Tests

Tests for speech provider calls, retry classification and backoff.
"""
import asyncio
import logging
from unittest.mock import AsyncMock, call, patch

import httpx
import pytest

from speechtask.errors import (
    ProviderError,
    ProviderExhaustedError,
    ProviderNotConfiguredError,
    ProviderRejectedError,
)
from speechtask.services.provider_client import SpeechProviderClient


API_KEY = 'secret-test-key'


def make_client(handler, **kwargs) -> SpeechProviderClient:
    """Provider client whose HTTP traffic goes to handler."""
    options = {
        'api_key': API_KEY,
        'base_url': 'https://provider.test/v1',
        'backoff_s': 0.0,
        'timeout_s': 5.0,
    }
    options.update(kwargs)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SpeechProviderClient(http_client=http_client, **options)


def scripted(*responses):
    """Handler that replays responses (or raises exceptions) in order, recording requests."""
    script = list(responses)
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    handler.requests = requests
    return handler


STT_BODY = {'results': {'channels': [], 'utterances': []}}


class TestTranscribe:
    """Tests for transcribe_from_url."""

    @pytest.mark.asyncio
    async def test_success_returns_payload(self):
        """Test a successful call returns the provider JSON."""
        handler = scripted(httpx.Response(200, json=STT_BODY))
        client = make_client(handler)

        payload = await client.transcribe_from_url('https://example/a.mp3', 'en-US')

        assert payload == STT_BODY
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_request_shape(self):
        """Test URL, language hint, utterances flag and auth header are sent."""
        handler = scripted(httpx.Response(200, json=STT_BODY))
        client = make_client(handler)

        await client.transcribe_from_url('https://example/a.mp3', 'fr')

        request = handler.requests[0]
        assert request.method == 'POST'
        assert request.url.path == '/v1/listen'
        assert request.url.params['language'] == 'fr'
        assert request.url.params['utterances'] == 'true'
        assert request.headers['Authorization'] == f'Token {API_KEY}'
        assert b'https://example/a.mp3' in request.content

    @pytest.mark.asyncio
    async def test_invalid_json_is_provider_error(self):
        """Test an unparseable success body is reported as a provider error."""
        handler = scripted(httpx.Response(200, content=b'not json'))
        client = make_client(handler)

        with pytest.raises(ProviderError):
            await client.transcribe_from_url('https://example/a.mp3', 'en-US')


class TestSynthesize:
    """Tests for synthesize."""

    @pytest.mark.asyncio
    async def test_returns_audio_and_content_type(self):
        """Test audio bytes and content type (without parameters) are returned."""
        handler = scripted(httpx.Response(
            200, content=b'ID3audio', headers={'content-type': 'audio/mpeg; charset=binary'},
        ))
        client = make_client(handler)

        audio, content_type = await client.synthesize('hi', 'aura-2-thalia-en')

        assert audio == b'ID3audio'
        assert content_type == 'audio/mpeg'
        request = handler.requests[0]
        assert request.url.path == '/v1/speak'
        assert request.url.params['model'] == 'aura-2-thalia-en'

    @pytest.mark.asyncio
    async def test_empty_audio_is_error(self):
        """Test an empty audio body is rejected."""
        handler = scripted(httpx.Response(200, content=b''))
        client = make_client(handler)

        with pytest.raises(ProviderError, match='empty audio'):
            await client.synthesize('hi', 'aura-2-thalia-en')


class TestRetryPolicy:
    """Tests for transient/non-transient classification and retry limits."""

    @pytest.mark.asyncio
    async def test_two_transient_failures_then_success(self):
        """Test two 5xx responses followed by success returns normally."""
        handler = scripted(
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, json=STT_BODY),
        )
        client = make_client(handler, max_attempts=3)

        payload = await client.transcribe_from_url('https://example/a.mp3', 'en-US')

        assert payload == STT_BODY
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_three_transient_failures_exhaust(self):
        """Test three consecutive 5xx responses raise ProviderExhaustedError."""
        handler = scripted(httpx.Response(500), httpx.Response(500), httpx.Response(500))
        client = make_client(handler, max_attempts=3)

        with pytest.raises(ProviderExhaustedError) as exc_info:
            await client.transcribe_from_url('https://example/a.mp3', 'en-US')

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error.status_code == 500
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_client_error_short_circuits(self):
        """Test a 4xx response fails after a single attempt with the payload surfaced."""
        handler = scripted(httpx.Response(400, json={'err_msg': 'bad url'}))
        client = make_client(handler, max_attempts=3)

        with pytest.raises(ProviderRejectedError) as exc_info:
            await client.transcribe_from_url('not-a-url', 'en-US')

        assert exc_info.value.status_code == 400
        assert 'bad url' in exc_info.value.payload
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_redirect_is_rejected_without_retry(self):
        """Test an unexpected 3xx response is a non-retryable rejection."""
        handler = scripted(httpx.Response(302, headers={'location': 'https://elsewhere.test/'}))
        client = make_client(handler, max_attempts=3)

        with pytest.raises(ProviderRejectedError) as exc_info:
            await client.synthesize('hi', 'voice')

        assert exc_info.value.status_code == 302
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_rejected_is_not_exhausted(self):
        """Test a single rejection is distinguishable from exhausted retries."""
        handler = scripted(httpx.Response(401, text='invalid credentials'))
        client = make_client(handler)

        with pytest.raises(ProviderError) as exc_info:
            await client.synthesize('hi', 'voice')

        assert not isinstance(exc_info.value, ProviderExhaustedError)

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self):
        """Test 429 responses are retried."""
        handler = scripted(httpx.Response(429), httpx.Response(200, json=STT_BODY))
        client = make_client(handler)

        await client.transcribe_from_url('https://example/a.mp3', 'en-US')

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self):
        """Test connection errors count as transient failures."""
        handler = scripted(
            httpx.ConnectError('connection refused'),
            httpx.Response(200, json=STT_BODY),
        )
        client = make_client(handler)

        await client.transcribe_from_url('https://example/a.mp3', 'en-US')

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_httpx_timeout_is_retried(self):
        """Test httpx timeouts count as transient failures."""
        handler = scripted(
            httpx.ReadTimeout('read timed out'),
            httpx.Response(200, content=b'audio', headers={'content-type': 'audio/wav'}),
        )
        client = make_client(handler)

        audio, content_type = await client.synthesize('hi', 'voice')

        assert audio == b'audio'
        assert content_type == 'audio/wav'
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_transient(self):
        """Test an attempt exceeding the per-call timeout is retried, then exhausts."""
        calls = []

        async def slow_handler(request):
            calls.append(request)
            await asyncio.sleep(5)
            return httpx.Response(200, json=STT_BODY)

        client = make_client(slow_handler, timeout_s=0.05, max_attempts=2)

        with pytest.raises(ProviderExhaustedError) as exc_info:
            await client.transcribe_from_url('https://example/a.mp3', 'en-US')

        assert len(calls) == 2
        assert 'timed out' in str(exc_info.value.last_error)

    @pytest.mark.asyncio
    async def test_linear_backoff_between_attempts(self):
        """Test backoff grows linearly with the attempt number and not after the last attempt."""
        handler = scripted(httpx.Response(500), httpx.Response(500), httpx.Response(500))
        client = make_client(handler, backoff_s=1.0, max_attempts=3)

        with patch('speechtask.services.provider_client.asyncio.sleep', new=AsyncMock()) as mock_sleep:
            with pytest.raises(ProviderExhaustedError):
                await client.transcribe_from_url('https://example/a.mp3', 'en-US')

        assert mock_sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_cancellation_during_backoff(self):
        """Test cancelling during a backoff sleep aborts with CancelledError, not a provider error."""
        handler = scripted(httpx.Response(503), httpx.Response(200, json=STT_BODY))
        client = make_client(handler, backoff_s=10.0)

        call_task = asyncio.create_task(client.transcribe_from_url('https://example/a.mp3', 'en-US'))
        await asyncio.sleep(0.05)
        call_task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await call_task

        assert len(handler.requests) == 1


class TestCredentials:
    """Tests for credential handling."""

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        """Test calls fail fast without credentials and send nothing."""
        handler = scripted()
        client = make_client(handler, api_key='')

        assert client.is_configured is False
        with pytest.raises(ProviderNotConfiguredError):
            await client.transcribe_from_url('https://example/a.mp3', 'en-US')
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_api_key_never_logged(self, caplog):
        """Test failure logging does not leak the API key."""
        caplog.set_level(logging.DEBUG)
        handler = scripted(httpx.Response(503), httpx.Response(503), httpx.Response(403, text='forbidden'))
        client = make_client(handler)

        with pytest.raises(ProviderRejectedError):
            await client.transcribe_from_url('https://example/a.mp3', 'en-US')

        assert caplog.records
        assert API_KEY not in caplog.text

    def test_invalid_max_attempts(self):
        """Test at least one attempt is required."""
        with pytest.raises(ValueError):
            SpeechProviderClient(api_key=API_KEY, max_attempts=0)
