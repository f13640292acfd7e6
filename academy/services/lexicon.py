"""Lexicon content management.

Owns every write to dictionary terms: status changes, spreadsheet imports,
manual and batch translations with their approval, and persisting live
translations produced for readers. The term resolver only reads;
whatever it gets from live_translator() is saved back here.
"""

import json
import logging
import re
import unicodedata
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from academy import db
from academy.constants.languages import supported_languages, normalize_language
from academy.lexicon.records import TERM_STATUSES, TranslationRecord
from academy.lexicon.resolver import TermResolver
from academy.models import Term, TermEvent
from academy.services import translation

logger = logging.getLogger(__name__)

# new status -> statuses it may be reached from
STATUS_TRANSITIONS = {
    'draft': {'needs_review', 'published'},
    'needs_review': {'draft'},
    'published': {'needs_review'},
}

DIFFICULTY_BANDS = {
    '1-3': (1, 3),
    '4-6': (4, 6),
    '7-10': (7, 10),
}
DEFAULT_DIFFICULTY = 5


class LexiconError(ValueError):
    """Base class for rejected lexicon operations."""


class InvalidTransition(LexiconError):
    pass


class UnsupportedLanguage(LexiconError):
    pass


def source_language():
    return current_app.config.get('SOURCE_LANGUAGE', 'en')


def build_resolver():
    """Term resolver configured from the current app."""
    return TermResolver(
        source_language=source_language(),
        supported=supported_languages(),
        suppress_translation_errors=current_app.config.get('SUPPRESS_TRANSLATION_ERRORS', True),
    )


def slugify(text):
    """'Growth Mindset!' -> 'growth-mindset'."""
    text = unicodedata.normalize('NFKD', text or '').encode('ascii', 'ignore').decode('ascii')
    text = re.sub(r'[^a-zA-Z0-9]+', '-', text).strip('-').lower()
    return text[:200]


def get_published_term(slug):
    return Term.query.filter_by(slug=slug, status='published').first()


def term_view(term):
    return term.to_view(supported_languages(), source_language())


def require_language(language):
    code = normalize_language(language)
    if code == source_language():
        raise UnsupportedLanguage('The source language has no translation entry')
    if code not in supported_languages():
        raise UnsupportedLanguage(f"Unsupported language: {language}")
    return code


def record_event(term, event_type, language=None, details=None, commit=True):
    """Store an analytics event. Analytics must never break the caller."""
    try:
        db.session.add(TermEvent(
            term_id=term.id,
            event_type=event_type,
            language=language,
            details=details or {},
        ))
        if commit:
            db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning(f"Could not record {event_type} event for {term.slug}: {e}")


def save_live_translation(term, language, record):
    """Write a freshly generated translation into the term's cache."""
    try:
        term.set_translation(language, record, source_language())
        db.session.add(TermEvent(
            term_id=term.id,
            event_type='translation_generated',
            language=language,
            details={'source': record.source, 'cached': False},
        ))
        db.session.commit()
        return True
    except (SQLAlchemyError, ValueError) as e:
        db.session.rollback()
        logger.error(f"Failed to cache translation for {term.slug} -> {language}: {e}")
        return False


def live_translator():
    """The translate_fn handed to the resolver: translate, then persist on success."""

    def translate(slug, language):
        term = get_published_term(slug)
        if term is None:
            return None
        record = translation.translate_term_text(
            term.canonical_text,
            term.canonical_definition,
            language,
            raise_errors=True,
        )
        if record is not None:
            save_live_translation(term, language, record)
        return record

    return translate


def add_manual_translation(term, language, text, definition):
    """Store a human translation, replacing any cached one for the language."""
    code = require_language(language)
    record = TranslationRecord.from_raw({'text': text, 'definition': definition, 'source': 'human'})
    if record is None:
        raise LexiconError('Both text and definition are required')
    record = TranslationRecord(
        text=record.text.strip(),
        definition=record.definition.strip(),
        source='human',
        updated_at=_now_iso(),
        approved=True,
    )
    term.set_translation(code, record, source_language())
    db.session.commit()
    logger.info(f"Manual {code} translation saved for {term.slug}")
    return record


def remove_translation(term, language):
    code = normalize_language(language)
    removed = term.drop_translation(code)
    if removed:
        db.session.commit()
    return removed


def approve_translation(term, language):
    """Mark a cached translation as reviewed. Returns the record, or None if the language has none."""
    code = require_language(language)
    record = term.cached_translations(supported_languages(), source_language()).get(code)
    if record is None:
        return None
    record = replace(record, approved=True, updated_at=_now_iso())
    term.set_translation(code, record, source_language())
    db.session.commit()
    logger.info(f"{code} translation approved for {term.slug}")
    return record


def reject_translation(term, language):
    """Throw away a cached translation so it is generated or entered again."""
    code = require_language(language)
    removed = remove_translation(term, code)
    if removed:
        logger.info(f"{code} translation rejected for {term.slug}")
    return removed


def pending_translations(terms):
    """(term, language, record) for every cached translation still awaiting approval."""
    languages = supported_languages()
    pending = []
    for term in terms:
        for lang, record in sorted(term.cached_translations(languages, source_language()).items()):
            if not record.approved:
                pending.append((term, lang, record))
    return pending


def translate_missing(terms, languages=None):
    """Fill in every missing translation for the given terms.

    Returns progress counters: processed, translated (terms that gained at
    least one language), skipped (nothing missing), errors (terms where
    every attempted language failed).
    """
    languages = tuple(languages or supported_languages())
    progress = {
        'processed': 0,
        'translated': 0,
        'skipped': 0,
        'errors': 0,
        'languages': list(languages),
    }

    for term in terms:
        progress['processed'] += 1
        existing = term.cached_translations(languages, source_language())
        missing = [lang for lang in languages if lang not in existing]
        if not missing:
            progress['skipped'] += 1
            continue

        added = 0
        for lang in missing:
            record = translation.translate_term_text(term.canonical_text, term.canonical_definition, lang)
            if record is None:
                logger.warning(f"Batch translation failed for {term.slug} -> {lang}")
                continue
            record = TranslationRecord(record.text, record.definition, 'ai', _now_iso())
            term.set_translation(lang, record, source_language())
            added += 1

        if added:
            try:
                db.session.commit()
                progress['translated'] += 1
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Failed to save batch translations for {term.slug}: {e}")
                progress['errors'] += 1
        else:
            progress['errors'] += 1

    logger.info(
        f"Batch translation: processed={progress['processed']} translated={progress['translated']} "
        f"skipped={progress['skipped']} errors={progress['errors']}"
    )
    return progress


def change_status(term, new_status):
    """Move a term through draft -> needs_review -> published."""
    if new_status not in TERM_STATUSES:
        raise InvalidTransition(f"Invalid status: {new_status}")
    if new_status == term.status:
        return term
    if term.status not in STATUS_TRANSITIONS[new_status]:
        raise InvalidTransition(f"Cannot move a term from {term.status} to {new_status}")
    term.status = new_status
    if new_status == 'published' and term.first_published_at is None:
        term.first_published_at = datetime.utcnow()
    db.session.commit()
    logger.info(f"Term {term.slug} is now {new_status}")
    return term


def search_terms(query=None, category=None, discipline_tag=None, difficulty=None, verified=False):
    """Published terms matching the public lexicon filters, most used first."""
    q = Term.query.filter_by(status='published')
    if category and category != 'all':
        q = q.filter(Term.category == category)
    if verified:
        q = q.filter(Term.verification_status == 'verified')
    terms = q.order_by(Term.usage_count.desc(), Term.term).all()

    if discipline_tag and discipline_tag != 'all':
        terms = [t for t in terms if discipline_tag in (t.discipline_tags or [])]

    if difficulty and difficulty != 'all':
        band = DIFFICULTY_BANDS.get(difficulty)
        if band is None:
            raise LexiconError(f"Invalid difficulty band: {difficulty}")
        low, high = band
        terms = [t for t in terms if low <= (t.difficulty_score or DEFAULT_DIFFICULTY) <= high]

    if query:
        needle = query.strip().lower()
        terms = [
            t for t in terms
            if needle in t.term.lower()
            or needle in (t.short_def or '').lower()
            or any(needle in tag.lower() for tag in (t.discipline_tags or []))
        ]

    return terms


IMPORT_LIST_FIELDS = {
    'discipline_tags': ('discipline_tags', 'tags'),
    'examples': ('examples',),
    'synonyms': ('synonyms',),
    'related': ('related',),
}


def _import_text(value):
    if value is None:
        return ''
    return str(value).strip()


def _import_list(value):
    """A list column: a real list, a JSON array string, or comma separated text."""
    if isinstance(value, list):
        return [_import_text(v) for v in value if _import_text(v)]
    value = _import_text(value)
    if not value:
        return []
    if value.startswith('[') and value.endswith(']'):
        try:
            parsed = json.loads(value)
        except ValueError:
            logger.warning(f"Import list is not valid JSON, splitting on commas: {value[:50]}")
        else:
            if isinstance(parsed, list):
                return [_import_text(v) for v in parsed if _import_text(v)]
    return [item.strip() for item in value.split(',') if item.strip()]


def _import_fields(row):
    """Map one import row onto Term columns. Raises LexiconError when the row is unusable."""
    name = _import_text(row.get('term'))
    if len(name) > 200:
        raise LexiconError(f'Term "{name[:30]}..." is longer than 200 characters')

    short_def = _import_text(row.get('definition')) or _import_text(row.get('short_def'))
    long_def = _import_text(row.get('long_definition')) or _import_text(row.get('long_def'))
    if not short_def and not long_def:
        raise LexiconError(f'Term "{name}" missing definition')

    slug = _import_text(row.get('slug')) or slugify(name)
    if not slug or slugify(slug) != slug:
        raise LexiconError(f'Term "{name}" has no usable slug')

    difficulty = row.get('difficulty_score')
    if difficulty is None or difficulty == '':
        difficulty = DEFAULT_DIFFICULTY
    elif isinstance(difficulty, str) and difficulty.strip().isdigit():
        difficulty = int(difficulty)
    if not isinstance(difficulty, int) or isinstance(difficulty, bool) or not 1 <= difficulty <= 10:
        raise LexiconError(f'Term "{name}" difficulty_score must be a whole number between 1 and 10')

    fields = {
        'slug': slug,
        'term': name,
        'short_def': short_def or None,
        'long_def': long_def or None,
        'category': _import_text(row.get('category')) or 'General',
        'difficulty_score': difficulty,
    }
    for field, keys in IMPORT_LIST_FIELDS.items():
        fields[field] = _import_list(next((row[k] for k in keys if row.get(k)), None))
    return fields


def bulk_import_terms(rows, overwrite=False, first_line=1):
    """Create terms from spreadsheet rows, matching existing ones by slug.

    New terms start as drafts. Existing terms are updated in place when
    overwrite is set and skipped otherwise; slugs and statuses are never
    touched. Returns counters plus one error line per rejected row.
    """
    summary = {'total': 0, 'created': 0, 'updated': 0, 'skipped': 0, 'errors': []}

    for line, row in enumerate(rows, start=first_line):
        if not isinstance(row, Mapping):
            summary['errors'].append(f"Line {line}: Row must be an object")
            continue
        row = {_import_text(k).lower(): v for k, v in row.items() if k is not None}
        if not _import_text(row.get('term')):
            continue

        summary['total'] += 1
        try:
            fields = _import_fields(row)
        except LexiconError as e:
            summary['errors'].append(f"Line {line}: {e}")
            continue

        slug = fields.pop('slug')
        existing = Term.query.filter_by(slug=slug).first()
        if existing is None:
            db.session.add(Term(slug=slug, status='draft', translations={}, **fields))
            summary['created'] += 1
        elif overwrite:
            for field, value in fields.items():
                setattr(existing, field, value)
            summary['updated'] += 1
        else:
            summary['errors'].append(f'Line {line}: Term "{fields["term"]}" already exists (skipped)')
            summary['skipped'] += 1

    db.session.commit()
    logger.info(
        f"Lexicon import: {summary['created']} created, {summary['updated']} updated, "
        f"{summary['skipped']} skipped, {len(summary['errors'])} errors"
    )
    return summary


def _now_iso():
    return datetime.utcnow().isoformat()
