"""
Tests for the term resolver and the latest-request gate.
"""

import asyncio
import logging

import pytest

from academy.lexicon import (
    LatestRequestGate,
    ResolutionRequest,
    TermResolver,
    TermView,
    TranslationRecord,
)
from academy.lexicon import resolver as resolver_module

LEADERSHIP = TermView(
    id=1,
    slug='leadership',
    canonical_text='Leadership',
    canonical_definition='The act of guiding others.',
    cached_translations={},
)

ARABIC = {'text': 'القيادة', 'definition': 'فعل توجيه الآخرين.'}


class Spy:
    """translate_fn stand-in that records its calls."""

    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def __call__(self, slug, language):
        self.calls.append((slug, language))
        if self.error is not None:
            raise self.error
        return self.result


class AsyncSpy(Spy):
    async def __call__(self, slug, language):
        return super().__call__(slug, language)


@pytest.fixture
def resolver():
    return TermResolver(source_language='en', supported=('ar', 'fa'))


def _with_cache(term, **cache):
    return TermView(
        id=term.id,
        slug=term.slug,
        canonical_text=term.canonical_text,
        canonical_definition=term.canonical_definition,
        cached_translations={lang: TranslationRecord.from_raw(raw) for lang, raw in cache.items()},
        status=term.status,
    )


class TestResolveScenarios:
    """Walkthroughs of the five reference scenarios."""

    def test_source_language(self, resolver):
        spy = Spy(result=ARABIC)
        result = resolver.resolve(ResolutionRequest('leadership', 'en'), LEADERSHIP, spy)

        assert result.to_dict() == {
            'display_text': 'Leadership',
            'display_definition': 'The act of guiding others.',
            'language_actually_used': 'en',
            'was_live_translated': False,
        }
        assert spy.calls == []

    def test_live_translation(self, resolver):
        spy = Spy(result=ARABIC)
        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), LEADERSHIP, spy)

        assert result.to_dict() == {
            'display_text': 'القيادة',
            'display_definition': 'فعل توجيه الآخرين.',
            'language_actually_used': 'ar',
            'was_live_translated': True,
        }
        assert spy.calls == [('leadership', 'ar')]

    def test_network_error_falls_back(self, resolver):
        spy = Spy(error=ConnectionError('network down'))
        result = resolver.resolve(ResolutionRequest('leadership', 'fa'), LEADERSHIP, spy)

        assert result.to_dict() == {
            'display_text': 'Leadership',
            'display_definition': 'The act of guiding others.',
            'language_actually_used': 'en',
            'was_live_translated': False,
        }
        assert result.fallback_reason == resolver_module.ERROR

    def test_cached_translation_skips_translate_fn(self, resolver):
        term = _with_cache(LEADERSHIP, ar={'text': 'القيادة', 'definition': '...'})
        spy = Spy(result={'text': 'other', 'definition': 'other'})

        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), term, spy)

        assert result.display_text == 'القيادة'
        assert result.display_definition == '...'
        assert result.language_actually_used == 'ar'
        assert result.was_live_translated is False
        assert spy.calls == []

    def test_cached_translation_is_returned_as_stored(self, resolver):
        term = _with_cache(LEADERSHIP, ar={'text': ' القيادة', 'definition': 'فعل توجيه الآخرين. '})

        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), term, Spy(result=ARABIC))

        assert result.display_text == ' القيادة'
        assert result.display_definition == 'فعل توجيه الآخرين. '

    def test_repeated_call_is_identical(self, resolver):
        first = resolver.resolve(ResolutionRequest('leadership', 'ar'), LEADERSHIP, Spy(result=ARABIC))
        second = resolver.resolve(ResolutionRequest('leadership', 'ar'), LEADERSHIP, Spy(result=ARABIC))

        assert first == second


class TestResolveRules:

    @pytest.mark.parametrize('language', ['en', 'EN', 'en-GB', None, ''])
    def test_source_requests_never_translate(self, resolver, language):
        spy = Spy(result=ARABIC)
        result = resolver.resolve(ResolutionRequest('leadership', language), LEADERSHIP, spy)

        assert result.language_actually_used == 'en'
        assert result.display_text == 'Leadership'
        assert spy.calls == []

    def test_region_subtag_uses_primary_language(self, resolver):
        term = _with_cache(LEADERSHIP, fa={'text': 'رهبری', 'definition': 'هدایت دیگران.'})
        result = resolver.resolve(ResolutionRequest('leadership', 'fa-IR'), term, Spy())

        assert result.language_actually_used == 'fa'
        assert result.display_text == 'رهبری'

    def test_cache_returned_unchanged(self, resolver):
        record = TranslationRecord('القيادة', 'تعريف', source='human', updated_at='2026-01-01T00:00:00')
        term = TermView(1, 'leadership', 'Leadership', 'The act of guiding others.', {'ar': record})

        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), term, Spy())

        assert (result.display_text, result.display_definition) == (record.text, record.definition)

    @pytest.mark.parametrize('outcome', [None, {}, {'text': 'القيادة'}, {'text': '  ', 'definition': 'x'}, 'القيادة'])
    def test_unusable_result_falls_back(self, resolver, outcome):
        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), LEADERSHIP, Spy(result=outcome))

        assert result.language_actually_used == 'en'
        assert result.was_live_translated is False
        assert result.fallback_reason == resolver_module.NO_RESULT

    @pytest.mark.parametrize('error', [
        ValueError('bad'),
        RuntimeError(),
        KeyError('text'),
        Exception('anything'),
    ])
    def test_exceptions_never_escape(self, resolver, error):
        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), LEADERSHIP, Spy(error=error))

        assert result.language_actually_used == 'en'
        assert result.fallback_reason == resolver_module.ERROR

    def test_timeout_error_reported_as_timeout(self, resolver):
        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), LEADERSHIP, Spy(error=TimeoutError('slow')))

        assert result.fallback_reason == resolver_module.TIMEOUT

    def test_provider_record_is_accepted(self, resolver):
        record = TranslationRecord('القيادة', 'فعل توجيه الآخرين.')
        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), LEADERSHIP, Spy(result=record))

        assert result.was_live_translated is True
        assert result.display_text == 'القيادة'

    def test_legacy_field_names_are_accepted(self, resolver):
        outcome = {'translated_term': 'القيادة', 'shortDef': 'فعل توجيه الآخرين.'}
        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), LEADERSHIP, Spy(result=outcome))

        assert result.display_definition == 'فعل توجيه الآخرين.'

    def test_unsupported_language_never_translates(self, resolver):
        spy = Spy(result=ARABIC)
        result = resolver.resolve(ResolutionRequest('leadership', 'xx'), LEADERSHIP, spy)

        assert result.language_actually_used == 'en'
        assert result.fallback_reason == resolver_module.UNSUPPORTED_LANGUAGE
        assert spy.calls == []

    def test_any_language_allowed_without_supported_set(self):
        resolver = TermResolver(source_language='en')
        result = resolver.resolve(ResolutionRequest('leadership', 'de'), LEADERSHIP, Spy(result=ARABIC))

        assert result.language_actually_used == 'de'

    def test_unpublished_term_never_translates(self, resolver):
        draft = TermView(1, 'leadership', 'Leadership', 'The act of guiding others.', {}, status='draft')
        spy = Spy(result=ARABIC)

        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), draft, spy)

        assert result.language_actually_used == 'en'
        assert result.fallback_reason == resolver_module.UNPUBLISHED
        assert spy.calls == []

    def test_coroutine_passed_to_sync_resolve(self, resolver):
        result = resolver.resolve(ResolutionRequest('leadership', 'ar'), LEADERSHIP, AsyncSpy(result=ARABIC))

        assert result.language_actually_used == 'en'
        assert result.fallback_reason == resolver_module.ERROR

    def test_fallback_is_logged(self, resolver, caplog):
        with caplog.at_level(logging.WARNING, logger='academy.lexicon.resolver'):
            resolver.resolve(ResolutionRequest('leadership', 'fa'), LEADERSHIP, Spy(error=ConnectionError('down')))

        assert 'leadership -> fa' in caplog.text


class TestResolveAsync:

    def test_live_translation(self, resolver):
        spy = AsyncSpy(result=ARABIC)
        result = asyncio.run(resolver.resolve_async(ResolutionRequest('leadership', 'ar'), LEADERSHIP, spy))

        assert result.was_live_translated is True
        assert result.display_text == 'القيادة'

    def test_rejection_falls_back(self, resolver):
        spy = AsyncSpy(error=OSError('connection reset'))
        result = asyncio.run(resolver.resolve_async(ResolutionRequest('leadership', 'fa'), LEADERSHIP, spy))

        assert result.language_actually_used == 'en'
        assert result.fallback_reason == resolver_module.ERROR

    def test_plain_function_is_accepted(self, resolver):
        result = asyncio.run(resolver.resolve_async(ResolutionRequest('leadership', 'ar'), LEADERSHIP, Spy(result=ARABIC)))

        assert result.language_actually_used == 'ar'

    def test_source_and_cache_never_await(self, resolver):
        spy = AsyncSpy(result=ARABIC)
        term = _with_cache(LEADERSHIP, ar=ARABIC)

        source = asyncio.run(resolver.resolve_async(ResolutionRequest('leadership', 'en'), term, spy))
        cached = asyncio.run(resolver.resolve_async(ResolutionRequest('leadership', 'ar'), term, spy))

        assert source.language_actually_used == 'en'
        assert cached.was_live_translated is False
        assert spy.calls == []

    def test_timeout(self):
        resolver = TermResolver(source_language='en', supported=('ar',), timeout=0.01)

        async def slow(slug, language):
            await asyncio.sleep(1)
            return ARABIC

        result = asyncio.run(resolver.resolve_async(ResolutionRequest('leadership', 'ar'), LEADERSHIP, slow))

        assert result.language_actually_used == 'en'
        assert result.fallback_reason == resolver_module.TIMEOUT


class TestPublicPayload:

    def test_suppressed_by_default(self, resolver):
        result = resolver.resolve(ResolutionRequest('leadership', 'fa'), LEADERSHIP, Spy(error=ConnectionError()))
        payload = resolver.public_payload(result, 'fa')

        assert 'translation_unavailable' not in payload
        assert 'fallback_reason' not in payload
        assert payload['requested_language'] == 'fa'

    def test_flagged_when_not_suppressed(self):
        resolver = TermResolver(source_language='en', supported=('ar', 'fa'), suppress_translation_errors=False)
        result = resolver.resolve(ResolutionRequest('leadership', 'fa'), LEADERSHIP, Spy())
        payload = resolver.public_payload(result, 'fa')

        assert payload['translation_unavailable'] is True
        assert payload['language_actually_used'] == 'en'

    def test_unsupported_language_is_not_a_translation_failure(self):
        resolver = TermResolver(source_language='en', supported=('ar',), suppress_translation_errors=False)
        result = resolver.resolve(ResolutionRequest('leadership', 'xx'), LEADERSHIP, Spy())

        assert 'translation_unavailable' not in resolver.public_payload(result, 'xx')

    def test_missing_language_reports_source(self, resolver):
        result = resolver.resolve(ResolutionRequest('leadership', None), LEADERSHIP, Spy())

        assert resolver.public_payload(result, None)['requested_language'] == 'en'


class TestLatestRequestGate:

    def test_newer_ticket_supersedes_older(self):
        gate = LatestRequestGate()
        first = gate.begin(('client', 'leadership'))
        second = gate.begin(('client', 'leadership'))

        assert not gate.is_current(first)
        assert gate.is_current(second)

    def test_keys_are_independent(self):
        gate = LatestRequestGate()
        a = gate.begin(('client-a', 'leadership'))
        b = gate.begin(('client-b', 'leadership'))

        assert gate.is_current(a)
        assert gate.is_current(b)

    def test_finish_releases_current_ticket(self):
        gate = LatestRequestGate()
        ticket = gate.begin('k')

        assert gate.finish(ticket) is True
        assert len(gate) == 0

    def test_finish_keeps_newer_ticket(self):
        gate = LatestRequestGate()
        stale = gate.begin('k')
        latest = gate.begin('k')

        assert gate.finish(stale) is False
        assert len(gate) == 1
        assert gate.finish(latest) is True

    def test_async_last_request_wins(self, resolver):
        gate = LatestRequestGate()
        adopted = []

        async def translate(slug, language):
            await asyncio.sleep(0.05 if language == 'ar' else 0)
            return {'text': f'{slug}-{language}', 'definition': 'd'}

        async def select(language):
            ticket = gate.begin(('client', 'leadership'))
            result = await resolver.resolve_async(ResolutionRequest('leadership', language), LEADERSHIP, translate)
            if gate.finish(ticket):
                adopted.append(result)

        async def main():
            # The slow Arabic request is issued first and finishes last
            await asyncio.gather(select('ar'), select('fa'))

        asyncio.run(main())

        assert [r.language_actually_used for r in adopted] == ['fa']
