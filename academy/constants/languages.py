"""Language constants for the lexicon.

English is the source language of every term. The set of non-source
languages is a deployment option: the minimal deployment ships Arabic and
Persian, the extended one adds five more. Set SUPPORTED_LANGUAGES to a
comma list of codes, or to 'extended'.
"""

from flask import current_app, has_app_context

SOURCE_LANGUAGE = 'en'

MINIMAL_LANGUAGES = ('ar', 'fa')
EXTENDED_LANGUAGES = ('ar', 'fa', 'es', 'fr', 'de', 'tr', 'ur')

# code -> (English name, native name, text direction)
LANGUAGES = {
    'en': ('English', 'English', 'ltr'),
    'ar': ('Arabic', 'العربية', 'rtl'),
    'fa': ('Persian', 'فارسی', 'rtl'),
    'es': ('Spanish', 'Español', 'ltr'),
    'fr': ('French', 'Français', 'ltr'),
    'de': ('German', 'Deutsch', 'ltr'),
    'tr': ('Turkish', 'Türkçe', 'ltr'),
    'ur': ('Urdu', 'اردو', 'rtl'),
    'zh': ('Chinese', '中文', 'ltr'),
    'hi': ('Hindi', 'हिन्दी', 'ltr'),
}


def normalize_language(code):
    """Lower-case a language tag and cut it to its primary subtag ('fa-IR' -> 'fa')."""
    if not code or not isinstance(code, str):
        return None
    code = code.strip().lower().replace('_', '-').split('-')[0]
    return code or None


def _source_language():
    if has_app_context():
        return current_app.config.get('SOURCE_LANGUAGE', SOURCE_LANGUAGE)
    return SOURCE_LANGUAGE


def parse_language_setting(value, source=SOURCE_LANGUAGE):
    """Turn a SUPPORTED_LANGUAGES setting into a tuple of non-source codes."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return MINIMAL_LANGUAGES
    if isinstance(value, str):
        if value.strip().lower() == 'extended':
            return EXTENDED_LANGUAGES
        if value.strip().lower() == 'minimal':
            return MINIMAL_LANGUAGES
        value = value.split(',')

    codes = []
    for raw in value:
        code = normalize_language(raw)
        if code and code != source and code in LANGUAGES and code not in codes:
            codes.append(code)
    return tuple(codes)


def supported_languages():
    """Configured non-source language codes."""
    source = _source_language()
    if has_app_context():
        return parse_language_setting(current_app.config.get('SUPPORTED_LANGUAGES'), source)
    return MINIMAL_LANGUAGES


def all_languages():
    """Source language first, then every configured non-source language."""
    return (_source_language(),) + supported_languages()


def is_supported(code):
    return normalize_language(code) in all_languages()


def is_rtl(code):
    entry = LANGUAGES.get(normalize_language(code))
    return bool(entry and entry[2] == 'rtl')


def language_name(code):
    entry = LANGUAGES.get(normalize_language(code))
    return entry[0] if entry else 'English'
