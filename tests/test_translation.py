"""
Tests for the live translation providers and their circuit breaker.
"""

import json

import pytest
import requests

from academy.lexicon import TranslationRecord
from academy.services import translation


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON body')
        return self._payload


def openai_payload(content):
    return {'choices': [{'message': {'content': json.dumps(content)}}]}


@pytest.fixture
def openai(monkeypatch):
    """Configure the OpenAI provider and record outgoing requests."""
    monkeypatch.setattr(translation, 'TRANSLATION_SERVICE', 'openai')
    monkeypatch.setattr(translation, 'OPENAI_API_KEY', 'sk-test')
    monkeypatch.setattr(translation.time, 'sleep', lambda seconds: None)
    translation.reset_circuit()

    calls = []
    responses = []

    def fake_post(url, **kwargs):
        calls.append((url, kwargs))
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(translation.requests, 'post', fake_post)
    yield calls, responses
    translation.reset_circuit()


class TestTranslateTermText:

    def test_success(self, openai):
        calls, responses = openai
        responses.append(FakeResponse(200, openai_payload({'term': 'القيادة', 'shortDef': 'فعل توجيه الآخرين.'})))

        record = translation.translate_term_text('Leadership', 'The act of guiding others.', 'ar')

        assert record == TranslationRecord('القيادة', 'فعل توجيه الآخرين.', 'ai')
        url, kwargs = calls[0]
        assert url == translation.OPENAI_URL
        assert kwargs['headers']['Authorization'] == 'Bearer sk-test'
        assert 'Arabic' in kwargs['json']['messages'][1]['content']
        assert kwargs['timeout'] == translation.TRANSLATION_TIMEOUT

    def test_disabled_without_key(self, openai, monkeypatch):
        calls, responses = openai
        monkeypatch.setattr(translation, 'OPENAI_API_KEY', '')

        assert translation.translate_term_text('Leadership', 'Guiding.', 'ar') is None
        assert calls == []

    def test_empty_text(self, openai):
        calls, _ = openai

        assert translation.translate_term_text('  ', 'Guiding.', 'ar') is None
        assert calls == []

    def test_missing_fields_return_none(self, openai):
        _, responses = openai
        responses.append(FakeResponse(200, openai_payload({'term': 'القيادة'})))

        assert translation.translate_term_text('Leadership', 'Guiding.', 'ar') is None

    def test_malformed_body(self, openai):
        _, responses = openai
        responses.append(FakeResponse(200, {'choices': []}))

        assert translation.translate_term_text('Leadership', 'Guiding.', 'ar') is None
        assert translation.circuit_state()['consecutive_failures'] == 1

    def test_errors_raised_on_request(self, openai):
        _, responses = openai
        responses.append(requests.ConnectionError('network down'))

        with pytest.raises(translation.TranslationProviderError):
            translation.translate_term_text('Leadership', 'Guiding.', 'ar', raise_errors=True)

    def test_timeout_is_a_timeout_error(self, openai):
        _, responses = openai
        responses.append(requests.Timeout())

        with pytest.raises(TimeoutError):
            translation.translate_term_text('Leadership', 'Guiding.', 'ar', raise_errors=True)

    def test_retries_on_rate_limit(self, openai):
        calls, responses = openai
        responses.extend([
            FakeResponse(429),
            FakeResponse(200, openai_payload({'term': 'رهبری', 'shortDef': 'هدایت دیگران.'})),
        ])

        record = translation.translate_term_text('Leadership', 'Guiding.', 'fa')

        assert record.text == 'رهبری'
        assert len(calls) == 2

    def test_gives_up_after_repeated_rate_limits(self, openai):
        calls, responses = openai
        responses.append(FakeResponse(429))

        assert translation.translate_term_text('Leadership', 'Guiding.', 'fa') is None
        assert len(calls) == 3


class TestCircuitBreaker:

    def test_opens_after_consecutive_failures(self, openai):
        calls, responses = openai
        responses.append(FakeResponse(500))

        for _ in range(3):
            translation.translate_term_text('Leadership', 'Guiding.', 'ar')
        assert translation.circuit_state()['open'] is True

        calls.clear()
        assert translation.translate_term_text('Leadership', 'Guiding.', 'ar') is None
        assert calls == []

    def test_open_circuit_raises_on_request(self, openai):
        _, responses = openai
        responses.append(FakeResponse(503))
        for _ in range(3):
            translation.translate_term_text('Leadership', 'Guiding.', 'ar')

        with pytest.raises(translation.TranslationProviderError):
            translation.translate_term_text('Leadership', 'Guiding.', 'ar', raise_errors=True)

    def test_invalid_key_disables_translation(self, openai):
        calls, responses = openai
        responses.append(FakeResponse(401))

        assert translation.translate_term_text('Leadership', 'Guiding.', 'ar') is None
        assert translation.circuit_state()['api_key_invalid'] is True

        calls.clear()
        translation.translate_term_text('Leadership', 'Guiding.', 'ar')
        assert calls == []

    def test_success_resets_failure_count(self, openai):
        _, responses = openai
        responses.extend([
            FakeResponse(500),
            FakeResponse(200, openai_payload({'term': 'القيادة', 'shortDef': 'توجيه.'})),
        ])

        translation.translate_term_text('Leadership', 'Guiding.', 'ar')
        translation.translate_term_text('Leadership', 'Guiding.', 'ar')

        assert translation.circuit_state()['consecutive_failures'] == 0

    def test_reset(self, openai):
        _, responses = openai
        responses.append(FakeResponse(403))
        translation.translate_term_text('Leadership', 'Guiding.', 'ar')

        translation.reset_circuit()

        assert translation.circuit_state()['open'] is False


class TestDeepL:

    def test_both_texts_in_one_call(self, openai, monkeypatch):
        calls, responses = openai
        monkeypatch.setattr(translation, 'TRANSLATION_SERVICE', 'deepl')
        monkeypatch.setattr(translation, 'DEEPL_API_KEY', 'deepl-key')
        responses.append(FakeResponse(200, {'translations': [
            {'text': 'Liderazgo'},
            {'text': 'El acto de guiar a otros.'},
        ]}))

        record = translation.translate_term_text('Leadership', 'The act of guiding others.', 'es')

        assert record == TranslationRecord('Liderazgo', 'El acto de guiar a otros.', 'ai')
        url, kwargs = calls[0]
        assert url == translation.DEEPL_URL
        assert kwargs['data']['text'] == ['Leadership', 'The act of guiding others.']
        assert kwargs['data']['target_lang'] == 'ES'
