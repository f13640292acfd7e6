"""Live term translation with swappable providers and a circuit breaker."""
import os
import json
import requests
import logging
import time

from academy.constants.languages import language_name
from academy.lexicon.records import TranslationRecord

logger = logging.getLogger(__name__)

# Configuration - change this to switch providers
TRANSLATION_SERVICE = os.environ.get('TRANSLATION_SERVICE', 'openai')
OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY', '')
OPENAI_MODEL = os.environ.get('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_URL = 'https://api.openai.com/v1/chat/completions'
DEEPL_API_KEY = os.environ.get('DEEPL_API_KEY', '')
DEEPL_URL = os.environ.get('DEEPL_URL', 'https://api-free.deepl.com/v2/translate')
TRANSLATION_TIMEOUT = float(os.environ.get('TRANSLATION_TIMEOUT', 8))

# Retries on HTTP 429 with exponential backoff
_MAX_ATTEMPTS = 3
_BACKOFF_SECONDS = 1.0

# Once the provider rejects the key, stop calling it until reset_circuit()
_api_key_invalid = False

# Circuit breaker: after N consecutive failures, pause for a cooldown
_consecutive_failures = 0
_MAX_CONSECUTIVE_FAILURES = 3
_failure_cooldown_until = 0  # timestamp when we can retry
_COOLDOWN_SECONDS = 300      # 5 minutes

SYSTEM_PROMPT = (
    'You are an expert educational translator specializing in teenager leadership '
    'and psychology terms. Always return valid JSON only.'
)


class TranslationProviderError(Exception):
    """The provider could not be reached or answered with an error."""


class TranslationTimeout(TranslationProviderError, TimeoutError):
    """The provider did not answer within TRANSLATION_TIMEOUT."""


class InvalidCredentials(TranslationProviderError):
    """The provider rejected our API key."""


def is_translation_enabled() -> bool:
    """Check if the configured provider has credentials."""
    if TRANSLATION_SERVICE == 'openai':
        return bool(OPENAI_API_KEY and OPENAI_API_KEY.strip())
    if TRANSLATION_SERVICE == 'deepl':
        return bool(DEEPL_API_KEY and DEEPL_API_KEY.strip())
    return False


def _is_circuit_open() -> bool:
    """Check if we should skip translation due to too many failures."""
    global _consecutive_failures, _failure_cooldown_until

    # Key is permanently invalid
    if _api_key_invalid:
        return True

    if _consecutive_failures >= _MAX_CONSECUTIVE_FAILURES:
        if time.time() < _failure_cooldown_until:
            return True
        # Cooldown expired, reset and allow retry
        _consecutive_failures = 0
        _failure_cooldown_until = 0
        logger.info("Translation circuit breaker reset, retrying")
    return False


def _record_success():
    global _consecutive_failures
    _consecutive_failures = 0


def _record_failure(permanent: bool = False):
    global _consecutive_failures, _failure_cooldown_until, _api_key_invalid

    if permanent:
        _api_key_invalid = True
        logger.error(
            f"{TRANSLATION_SERVICE} API key is INVALID. Live translation is now DISABLED."
        )
        return

    _consecutive_failures += 1
    if _consecutive_failures >= _MAX_CONSECUTIVE_FAILURES:
        _failure_cooldown_until = time.time() + _COOLDOWN_SECONDS
        logger.warning(
            f"Translation failed {_consecutive_failures} times in a row. "
            f"Pausing for {_COOLDOWN_SECONDS}s."
        )


def reset_circuit():
    """Close the circuit and forget a previously rejected key."""
    global _consecutive_failures, _failure_cooldown_until, _api_key_invalid
    _consecutive_failures = 0
    _failure_cooldown_until = 0
    _api_key_invalid = False


def circuit_state() -> dict:
    return {
        'service': TRANSLATION_SERVICE,
        'enabled': is_translation_enabled(),
        'open': _is_circuit_open(),
        'consecutive_failures': _consecutive_failures,
        'api_key_invalid': _api_key_invalid,
    }


def _post_with_retry(url, **kwargs):
    """POST, retrying on 429. Transport errors become TranslationProviderError."""
    for attempt in range(1, _MAX_ATTEMPTS + 1):
        try:
            response = requests.post(url, timeout=TRANSLATION_TIMEOUT, **kwargs)
        except requests.Timeout as e:
            raise TranslationTimeout(f"{url} timed out after {TRANSLATION_TIMEOUT}s") from e
        except requests.RequestException as e:
            raise TranslationProviderError(str(e)) from e

        if response.status_code == 429 and attempt < _MAX_ATTEMPTS:
            wait = _BACKOFF_SECONDS * (2 ** (attempt - 1))
            logger.info(f"Rate limited by translation provider, retrying in {wait}s")
            time.sleep(wait)
            continue

        if response.status_code in (401, 403):
            raise InvalidCredentials(f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise TranslationProviderError(f"HTTP {response.status_code}")
        return response

    raise TranslationProviderError('rate limited')


def _translation_prompt(text: str, definition: str, target_lang: str) -> str:
    return (
        f"Translate to {language_name(target_lang)} for teenagers and young adults.\n"
        "Use clear, educational language appropriate for 13-18 year olds.\n"
        "Keep the definition clear, neutral, and 1-2 sentences maximum.\n\n"
        "Return ONLY valid JSON in this exact format:\n"
        '{"term":"translated term","shortDef":"translated definition"}\n\n'
        f"Text to translate:\n{text}\n---\n{definition}"
    )


def openai_translate(text: str, definition: str, target_lang: str) -> TranslationRecord | None:
    """Translate a term and its definition with the OpenAI chat completions API."""
    if not OPENAI_API_KEY:
        return None

    response = _post_with_retry(
        OPENAI_URL,
        headers={'Authorization': f'Bearer {OPENAI_API_KEY}'},
        json={
            'model': OPENAI_MODEL,
            'messages': [
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': _translation_prompt(text, definition, target_lang)},
            ],
            'response_format': {'type': 'json_object'},
            'max_tokens': 300,
        },
    )

    try:
        content = response.json()['choices'][0]['message']['content'].strip()
        payload = json.loads(content)
    except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
        raise TranslationProviderError(f"Unexpected OpenAI response: {e}") from e

    record = TranslationRecord.from_raw(payload)
    if record is None:
        logger.warning(f"OpenAI translation missing required fields for {target_lang}")
    return record


def deepl_translate(text: str, definition: str, target_lang: str) -> TranslationRecord | None:
    """Translate a term and its definition using DeepL (both texts in one call)."""
    if not DEEPL_API_KEY:
        return None

    response = _post_with_retry(
        DEEPL_URL,
        headers={'Authorization': f'DeepL-Auth-Key {DEEPL_API_KEY}'},
        data={
            'text': [text, definition],
            'source_lang': 'EN',
            'target_lang': target_lang.upper(),
        },
    )

    try:
        translations = response.json()['translations']
        return TranslationRecord.from_raw({
            'text': translations[0]['text'],
            'definition': translations[1]['text'],
        })
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise TranslationProviderError(f"Unexpected DeepL response: {e}") from e


PROVIDERS = {
    'openai': openai_translate,
    'deepl': deepl_translate,
}


def translate_term_text(text: str, definition: str, target_lang: str,
                        raise_errors: bool = False) -> TranslationRecord | None:
    """
    Translate a term name and definition into target_lang.

    FAST PATHS (no API call, returns None):
    - Empty text
    - Translation disabled (no provider or API key)
    - API key known to be invalid, or circuit breaker open

    Args:
        text: Term name in the source language
        definition: Short definition in the source language
        target_lang: Target language code
        raise_errors: Re-raise provider failures instead of returning None

    Returns:
        TranslationRecord, or None when nothing could be produced
    """
    if not text or not text.strip():
        return None

    if not is_translation_enabled():
        return None

    if _is_circuit_open():
        if raise_errors:
            raise TranslationProviderError('translation circuit open')
        return None

    provider = PROVIDERS.get(TRANSLATION_SERVICE)
    if provider is None:
        return None

    try:
        record = provider(text, definition or text, target_lang)
    except InvalidCredentials:
        _record_failure(permanent=True)
        if raise_errors:
            raise
        return None
    except TranslationProviderError as e:
        logger.warning(f"{TRANSLATION_SERVICE} translation error for {target_lang}: {e}")
        _record_failure()
        if raise_errors:
            raise
        return None

    _record_success()
    if record is not None:
        record = TranslationRecord(
            text=record.text.strip(),
            definition=record.definition.strip(),
            source='ai',
            updated_at=record.updated_at,
        )
    return record
