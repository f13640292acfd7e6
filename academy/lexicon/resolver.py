"""Term resolver: pick the best available rendering of a term in a language.

Order of preference, which must not be reordered:
  1. source language requested -> canonical text, no I/O
  2. cached translation present -> cached record, no I/O
  3. live translation via the injected translate_fn
  4. anything else -> canonical text in the source language

Failures of step 3 collapse into a single TranslationUnavailable that is
logged and recovered here. resolve() and resolve_async() never raise.
"""

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from academy.constants.languages import SOURCE_LANGUAGE, normalize_language
from academy.lexicon.records import (
    ResolutionRequest,
    ResolutionResult,
    TermView,
    TranslationRecord,
)

logger = logging.getLogger(__name__)

# Fallback reasons
NO_RESULT = 'no_result'
ERROR = 'error'
TIMEOUT = 'timeout'
UNSUPPORTED_LANGUAGE = 'unsupported_language'
UNPUBLISHED = 'unpublished'

TRANSLATION_FAILURES = (NO_RESULT, ERROR, TIMEOUT)

TranslateFn = Callable[[str, str], Any]


class TranslationUnavailable(Exception):
    """No cached entry and the live call gave nothing usable."""

    def __init__(self, reason: str, detail: Optional[str] = None):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


def is_source_request(language: str, source_language: str) -> bool:
    return language == source_language


def cached_record(term: TermView, language: str) -> Optional[TranslationRecord]:
    cache = term.cached_translations or {}
    return TranslationRecord.from_raw(cache.get(language))


def source_result(term: TermView, source_language: str, reason: Optional[str] = None) -> ResolutionResult:
    return ResolutionResult(
        display_text=term.canonical_text,
        display_definition=term.canonical_definition,
        language_actually_used=source_language,
        was_live_translated=False,
        fallback_reason=reason,
    )


def translated_result(record: TranslationRecord, language: str, live: bool) -> ResolutionResult:
    return ResolutionResult(
        display_text=record.text,
        display_definition=record.definition,
        language_actually_used=language,
        was_live_translated=live,
    )


class TermResolver:
    """Resolve terms into display text with silent fallback to the source language.

    Args:
        source_language: language of canonical term text
        supported: non-source languages a request may ask for; None allows any
        suppress_translation_errors: when False, public payloads flag fallbacks
            caused by a failed live translation
        timeout: seconds to wait for an async translate_fn (resolve_async only)
    """

    def __init__(self, source_language: str = SOURCE_LANGUAGE, supported=None,
                 suppress_translation_errors: bool = True, timeout: Optional[float] = None):
        self.source_language = source_language
        self.supported = tuple(supported) if supported is not None else None
        self.suppress_translation_errors = suppress_translation_errors
        self.timeout = timeout

    def _local_result(self, request: ResolutionRequest, term: TermView, language: Optional[str]):
        """Steps 1 and 2, plus requests that can never be translated. Never suspends."""
        if language is None or is_source_request(language, self.source_language):
            return source_result(term, self.source_language)

        if self.supported is not None and language not in self.supported:
            logger.debug(f"Unsupported language {request.requested_language!r} for {term.slug}")
            return source_result(term, self.source_language, UNSUPPORTED_LANGUAGE)

        if term.status != 'published':
            return source_result(term, self.source_language, UNPUBLISHED)

        cached = cached_record(term, language)
        if cached is not None:
            return translated_result(cached, language, live=False)

        return None

    def _adopt(self, outcome: Any, language: str) -> ResolutionResult:
        if outcome is None:
            raise TranslationUnavailable(NO_RESULT)
        record = TranslationRecord.from_raw(outcome)
        if record is None:
            raise TranslationUnavailable(NO_RESULT, 'unusable translation payload')
        return translated_result(record, language, live=True)

    def _fallback(self, term: TermView, language: str, exc: TranslationUnavailable) -> ResolutionResult:
        logger.warning(
            f"Translation unavailable for {term.slug} -> {language} ({exc}); "
            f"falling back to {self.source_language}"
        )
        return source_result(term, self.source_language, exc.reason)

    def resolve(self, request: ResolutionRequest, term: TermView, translate_fn: TranslateFn) -> ResolutionResult:
        """Resolve with a blocking translate_fn."""
        language = normalize_language(request.requested_language)
        try:
            local = self._local_result(request, term, language)
            if local is not None:
                return local

            try:
                outcome = translate_fn(term.slug, language)
            except TimeoutError as e:
                raise TranslationUnavailable(TIMEOUT, str(e)) from e
            except Exception as e:
                raise TranslationUnavailable(ERROR, f"{type(e).__name__}: {e}") from e

            if inspect.isawaitable(outcome):
                if inspect.iscoroutine(outcome):
                    outcome.close()
                raise TranslationUnavailable(ERROR, 'async translate_fn passed to resolve(); use resolve_async()')

            return self._adopt(outcome, language)
        except TranslationUnavailable as e:
            return self._fallback(term, language, e)
        except Exception as e:
            logger.exception(f"Unexpected error resolving {getattr(term, 'slug', '?')}: {e}")
            return source_result(term, self.source_language, ERROR)

    async def resolve_async(self, request: ResolutionRequest, term: TermView,
                            translate_fn: TranslateFn) -> ResolutionResult:
        """Resolve with a coroutine (or plain) translate_fn; the live call is the only await."""
        language = normalize_language(request.requested_language)
        try:
            local = self._local_result(request, term, language)
            if local is not None:
                return local

            try:
                outcome = translate_fn(term.slug, language)
                if inspect.isawaitable(outcome):
                    if self.timeout:
                        outcome = await asyncio.wait_for(outcome, self.timeout)
                    else:
                        outcome = await outcome
            except (asyncio.TimeoutError, TimeoutError) as e:
                raise TranslationUnavailable(TIMEOUT, str(e) or 'timed out') from e
            except Exception as e:
                raise TranslationUnavailable(ERROR, f"{type(e).__name__}: {e}") from e

            return self._adopt(outcome, language)
        except TranslationUnavailable as e:
            return self._fallback(term, language, e)
        except Exception as e:
            logger.exception(f"Unexpected error resolving {getattr(term, 'slug', '?')}: {e}")
            return source_result(term, self.source_language, ERROR)

    def public_payload(self, result: ResolutionResult, requested_language: str) -> dict:
        """Serialise a result for clients, honouring the error suppression policy."""
        payload = result.to_dict()
        payload['requested_language'] = normalize_language(requested_language) or self.source_language
        if not self.suppress_translation_errors and result.fallback_reason in TRANSLATION_FAILURES:
            payload['translation_unavailable'] = True
        return payload


@dataclass(frozen=True)
class Ticket:
    key: Hashable
    generation: int


class LatestRequestGate:
    """Last request wins: only the newest resolution per key may be adopted.

    Keys are usually (client_id, slug). A caller takes a ticket before the
    live call and checks is_current() before using the result; anything
    issued earlier for the same key is stale once a newer ticket exists.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._generations = {}
        self._counter = 0

    def begin(self, key: Hashable) -> Ticket:
        with self._lock:
            self._counter += 1
            self._generations[key] = self._counter
            return Ticket(key, self._counter)

    def is_current(self, ticket: Ticket) -> bool:
        with self._lock:
            return self._generations.get(ticket.key) == ticket.generation

    def finish(self, ticket: Ticket) -> bool:
        """Release a ticket. Returns whether it was still the latest for its key."""
        with self._lock:
            current = self._generations.get(ticket.key) == ticket.generation
            if current:
                del self._generations[ticket.key]
            return current

    def __len__(self):
        with self._lock:
            return len(self._generations)
