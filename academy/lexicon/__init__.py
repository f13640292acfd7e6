"""Lexicon core: translation records and the term resolver."""

from academy.lexicon.records import (
    TranslationRecord,
    ResolutionRequest,
    ResolutionResult,
    TermView,
    normalize_translations,
)
from academy.lexicon.resolver import (
    TermResolver,
    LatestRequestGate,
    TranslationUnavailable,
)

__all__ = [
    'TranslationRecord',
    'ResolutionRequest',
    'ResolutionResult',
    'TermView',
    'normalize_translations',
    'TermResolver',
    'LatestRequestGate',
    'TranslationUnavailable',
]
