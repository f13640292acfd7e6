"""Value objects passed between the lexicon store and the term resolver.

Cached translations arrive from the database as loose JSON blobs written by
several generations of tooling ('term'/'shortDef', 'translated_term',
'short_def', 'definition', ...). They are normalised here, once, into
TranslationRecord so nothing downstream branches on field names.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

TEXT_KEYS = ('text', 'term', 'translated_term')
DEFINITION_KEYS = ('definition', 'shortDef', 'short_def', 'translated_definition')

TERM_STATUSES = ('draft', 'needs_review', 'published')


def _first_text(raw: Mapping[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


@dataclass(frozen=True)
class TranslationRecord:
    """A term name and definition in one language."""
    text: str
    definition: str
    source: str = 'ai'  # 'ai' or 'human'
    updated_at: Optional[str] = None
    approved: bool = False

    @classmethod
    def from_raw(cls, raw: Any) -> Optional['TranslationRecord']:
        """Build a record from a cache blob or a provider payload, or None if unusable."""
        if isinstance(raw, TranslationRecord):
            return raw
        if not isinstance(raw, Mapping):
            return None

        text = _first_text(raw, TEXT_KEYS)
        definition = _first_text(raw, DEFINITION_KEYS)
        if not text or not definition:
            return None

        source = raw.get('source')
        if source not in ('ai', 'human'):
            source = 'ai'
        updated_at = raw.get('updated_at') or raw.get('updatedAt')
        return cls(text=text, definition=definition, source=source,
                   updated_at=updated_at if isinstance(updated_at, str) else None,
                   approved=raw.get('approved') is True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'definition': self.definition,
            'source': self.source,
            'updated_at': self.updated_at,
            'approved': self.approved,
        }


def normalize_translations(raw: Any, source_language: str, supported) -> Dict[str, TranslationRecord]:
    """Normalise a stored translations blob into {language: TranslationRecord}.

    The source language is never a cache key, and codes outside the
    supported set are dropped along with blobs missing a name or definition.
    """
    if not isinstance(raw, Mapping):
        return {}

    records = {}
    for lang, blob in raw.items():
        if not isinstance(lang, str):
            continue
        code = lang.strip().lower()
        if code == source_language or code not in supported:
            continue
        record = TranslationRecord.from_raw(blob)
        if record is not None:
            records[code] = record
    return records


@dataclass(frozen=True)
class TermView:
    """Read-only shape of a term as the resolver sees it."""
    id: Any
    slug: str
    canonical_text: str
    canonical_definition: str
    cached_translations: Mapping[str, TranslationRecord] = field(default_factory=dict)
    status: str = 'published'


@dataclass(frozen=True)
class ResolutionRequest:
    term_slug: str
    requested_language: str


@dataclass(frozen=True)
class ResolutionResult:
    display_text: str
    display_definition: str
    language_actually_used: str
    was_live_translated: bool = False
    # Why the source language was used instead of the requested one; never shown to end users
    fallback_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'display_text': self.display_text,
            'display_definition': self.display_definition,
            'language_actually_used': self.language_actually_used,
            'was_live_translated': self.was_live_translated,
        }
