"""Lexicon models: dictionary terms, reader feedback and analytics events."""

from datetime import datetime
from academy import db
from academy.constants.languages import SOURCE_LANGUAGE
from academy.lexicon.records import TranslationRecord, TermView, normalize_translations

FEEDBACK_TYPES = ('incorrect', 'unclear', 'suggestion', 'other')
FEEDBACK_STATUSES = ('pending', 'reviewed', 'resolved')


class Term(db.Model):
    """A glossary entry. Canonical text is English; translations are cached per language."""

    __tablename__ = 'dictionary'

    id = db.Column(db.Integer, primary_key=True)
    term = db.Column(db.String(200), nullable=False, index=True)
    slug = db.Column(db.String(200), unique=True, nullable=False, index=True)
    short_def = db.Column(db.Text, nullable=True)
    long_def = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True, index=True)
    synonyms = db.Column(db.JSON, default=list, nullable=False)
    related = db.Column(db.JSON, default=list, nullable=False)
    discipline_tags = db.Column(db.JSON, default=list, nullable=False)
    examples = db.Column(db.JSON, default=list, nullable=False)
    difficulty_score = db.Column(db.Integer, nullable=True)  # 1-10
    verification_status = db.Column(db.String(20), default='unverified', nullable=False)
    usage_count = db.Column(db.Integer, default=0, nullable=False)
    status = db.Column(db.String(20), default='draft', nullable=False, index=True)  # draft, needs_review, published
    # {lang: {text, definition, source, updated_at}}; never holds the source language
    translations = db.Column(db.JSON, default=dict, nullable=False)
    translation_updated_at = db.Column(db.DateTime, nullable=True)
    # set the first time the term goes live; the slug is frozen from then on
    first_published_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    feedback = db.relationship('TermFeedback', backref='term', lazy=True, cascade='all, delete-orphan')
    events = db.relationship('TermEvent', backref='term', lazy=True, cascade='all, delete-orphan')

    @property
    def canonical_text(self):
        return self.term

    @property
    def canonical_definition(self):
        return self.short_def or self.long_def or ''

    @property
    def is_published(self):
        return self.status == 'published'

    def cached_translations(self, supported, source_language=SOURCE_LANGUAGE):
        """Normalised cache limited to the supported languages."""
        return normalize_translations(self.translations or {}, source_language, supported)

    def set_translation(self, language, record: TranslationRecord, source_language=SOURCE_LANGUAGE):
        """Store one translation. The JSON column is replaced wholesale so the change is tracked."""
        if language == source_language:
            raise ValueError('The source language cannot be stored as a translation')
        updated = dict(self.translations or {})
        updated[language] = record.to_dict()
        self.translations = updated
        self.translation_updated_at = datetime.utcnow()

    def drop_translation(self, language):
        updated = dict(self.translations or {})
        removed = updated.pop(language, None)
        self.translations = updated
        if removed is not None:
            self.translation_updated_at = datetime.utcnow()
        return removed is not None

    def to_view(self, supported, source_language=SOURCE_LANGUAGE):
        return TermView(
            id=self.id,
            slug=self.slug,
            canonical_text=self.canonical_text,
            canonical_definition=self.canonical_definition,
            cached_translations=self.cached_translations(supported, source_language),
            status=self.status,
        )

    def to_dict(self, include_translations=True):
        """Convert term to dictionary."""
        data = {
            'id': self.id,
            'term': self.term,
            'slug': self.slug,
            'short_def': self.short_def,
            'long_def': self.long_def,
            'category': self.category,
            'synonyms': self.synonyms or [],
            'related': self.related or [],
            'discipline_tags': self.discipline_tags or [],
            'examples': self.examples or [],
            'difficulty_score': self.difficulty_score,
            'verification_status': self.verification_status,
            'usage_count': self.usage_count,
            'status': self.status,
            'first_published_at': self.first_published_at.isoformat() if self.first_published_at else None,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }
        if include_translations:
            data['translations'] = self.translations or {}
            data['translation_updated_at'] = (
                self.translation_updated_at.isoformat() if self.translation_updated_at else None
            )
        return data

    def __repr__(self):
        return f'<Term {self.slug} [{self.status}]>'


class TermFeedback(db.Model):
    """Reader report about a term or one of its translations."""

    __tablename__ = 'term_feedback'

    id = db.Column(db.Integer, primary_key=True)
    term_id = db.Column(db.Integer, db.ForeignKey('dictionary.id', ondelete='CASCADE'), nullable=False, index=True)
    feedback_type = db.Column(db.String(20), nullable=False)
    message = db.Column(db.Text, nullable=False)
    user_email = db.Column(db.String(120), nullable=True)
    language = db.Column(db.String(5), default='en', nullable=False)
    status = db.Column(db.String(20), default='pending', nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'term_id': self.term_id,
            'term_slug': self.term.slug if self.term else None,
            'feedback_type': self.feedback_type,
            'message': self.message,
            'user_email': self.user_email,
            'language': self.language,
            'status': self.status,
            'created_at': self.created_at.isoformat()
        }


class TermEvent(db.Model):
    """Lexicon analytics event (views, language switches, generated translations)."""

    __tablename__ = 'dictionary_analytics'

    id = db.Column(db.Integer, primary_key=True)
    term_id = db.Column(db.Integer, db.ForeignKey('dictionary.id', ondelete='CASCADE'), nullable=False, index=True)
    event_type = db.Column(db.String(50), nullable=False, index=True)
    language = db.Column(db.String(5), nullable=True)
    details = db.Column(db.JSON, default=dict, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'term_id': self.term_id,
            'event_type': self.event_type,
            'language': self.language,
            'details': self.details or {},
            'created_at': self.created_at.isoformat()
        }
