"""
Transcript normalizers.

Each speech provider returns its own nested JSON shape. A normalizer turns
one provider's raw response into a SimpleTranscript so the orchestrator
never depends on provider structure. Normalizers are pure: no I/O.
"""
from typing import Any, Callable, Dict, List, Mapping, Protocol

from speechtask.errors import NormalizationError
from speechtask.schemas.transcript import SimpleTranscript, SimpleWord, SimpleUtterance


class TranscriptNormalizer(Protocol):
    """Converts a raw provider response into a SimpleTranscript."""

    def normalize(self, payload: Mapping[str, Any]) -> SimpleTranscript: ...


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a dict or an attribute-style response object."""
    if isinstance(obj, Mapping):
        value = obj.get(key, default)
    else:
        value = getattr(obj, key, default)
    return default if value is None else value


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ''


class DeepgramNormalizer:
    """
    Normalizer for Deepgram prerecorded responses.

    Expected shape::

        {"results": {
            "channels": [{"alternatives": [{"transcript": "...", "words": [...]}]}],
            "utterances": [{"start": 0.0, "end": 1.2, "transcript": "...",
                            "words": [{"word": "hi", "punctuated_word": "Hi,",
                                       "start": 0.0, "end": 0.3}]}]
        }}

    Only the first channel's first alternative supplies transcript_text.
    Words are flattened from utterances, not from the channel, so the
    request must be made with utterances enabled.
    """

    def normalize(self, payload: Mapping[str, Any]) -> SimpleTranscript:
        results = _get(payload, 'results')
        if results is None:
            raise NormalizationError('Provider response has no results')

        raw_utterances = _get(results, 'utterances')
        if not isinstance(raw_utterances, (list, tuple)):
            raise NormalizationError('Provider response has no utterances')
        # An empty list is not an error: it is a valid "no speech" transcript
        # and the task completes with no transcript data.

        return SimpleTranscript(
            transcript_text=self._transcript_text(results),
            words=self._words(raw_utterances),
            utterances=self._utterances(raw_utterances),
        )

    @staticmethod
    def _transcript_text(results: Any) -> str:
        channels = _as_list(_get(results, 'channels'))
        if not channels:
            return ''
        alternatives = _as_list(_get(channels[0], 'alternatives'))
        if not alternatives:
            return ''
        return _as_str(_get(alternatives[0], 'transcript', ''))

    @staticmethod
    def _words(raw_utterances: List[Any]) -> List[SimpleWord]:
        words = []
        for utterance in raw_utterances:
            for raw_word in _as_list(_get(utterance, 'words')):
                # Prefer the punctuated display form
                text = _as_str(_get(raw_word, 'punctuated_word')) or _as_str(_get(raw_word, 'word'))
                if not text:
                    continue
                words.append(SimpleWord(
                    word=text,
                    start=_as_float(_get(raw_word, 'start')),
                    end=_as_float(_get(raw_word, 'end')),
                ))
        return words

    @staticmethod
    def _utterances(raw_utterances: List[Any]) -> List[SimpleUtterance]:
        return [
            SimpleUtterance(
                start=_as_float(_get(utterance, 'start')),
                end=_as_float(_get(utterance, 'end')),
                transcript=_as_str(_get(utterance, 'transcript', '')),
            )
            for utterance in raw_utterances
            if utterance is not None
        ]


NORMALIZERS: Dict[str, Callable[[], TranscriptNormalizer]] = {
    'deepgram': DeepgramNormalizer,
}


def get_normalizer(name: str) -> TranscriptNormalizer:
    """Build the normalizer registered under a provider name."""
    try:
        factory = NORMALIZERS[name.lower()]
    except KeyError:
        raise ValueError(
            f'Unknown transcript normalizer: {name!r} (available: {", ".join(sorted(NORMALIZERS))})'
        ) from None
    return factory()
