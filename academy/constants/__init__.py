"""Shared constants for the application."""

from academy.constants.languages import (
    SOURCE_LANGUAGE,
    MINIMAL_LANGUAGES,
    EXTENDED_LANGUAGES,
    LANGUAGES,
    supported_languages,
    all_languages,
    normalize_language,
    is_supported,
    is_rtl,
    language_name,
)

__all__ = [
    'SOURCE_LANGUAGE',
    'MINIMAL_LANGUAGES',
    'EXTENDED_LANGUAGES',
    'LANGUAGES',
    'supported_languages',
    'all_languages',
    'normalize_language',
    'is_supported',
    'is_rtl',
    'language_name',
]
