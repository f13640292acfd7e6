"""Public lexicon routes: browse, search and read terms in any supported language."""

from flask import Blueprint, request, jsonify
from academy import db, limiter
from academy.constants.languages import (
    LANGUAGES,
    all_languages,
    is_rtl,
    is_supported,
    normalize_language,
)
from academy.lexicon import LatestRequestGate, ResolutionRequest
from academy.lexicon.resolver import cached_record, source_result, translated_result
from academy.models import Term, TermFeedback
from academy.models.term import FEEDBACK_TYPES
from academy.services import lexicon
from academy.routes.auth import EMAIL_REGEX
import logging

lexicon_bp = Blueprint('lexicon', __name__)
logger = logging.getLogger(__name__)

# Last request wins per (client, term) when the client sends X-Client-Id
request_gate = LatestRequestGate()

MAX_PER_PAGE = 100
MAX_FEEDBACK_LENGTH = 2000


def _requested_language():
    return normalize_language(request.args.get('lang')) or lexicon.source_language()


def _display_from_cache(term, language):
    """List views never call the live translator: cache or source text only."""
    view = lexicon.term_view(term)
    source = lexicon.source_language()
    if language != source and language in all_languages():
        record = cached_record(view, language)
        if record is not None:
            return translated_result(record, language, live=False).to_dict()
    return source_result(view, source).to_dict()


@lexicon_bp.route('/languages', methods=['GET'])
def list_languages():
    """Languages a reader can pick, source language first."""
    source = lexicon.source_language()
    languages = []
    for code in all_languages():
        name, native_name, direction = LANGUAGES[code]
        languages.append({
            'code': code,
            'name': name,
            'native_name': native_name,
            'direction': direction,
            'is_source': code == source,
        })
    return jsonify({'languages': languages, 'source_language': source}), 200


@lexicon_bp.route('/categories', methods=['GET'])
def list_categories():
    rows = db.session.query(Term.category).filter(
        Term.status == 'published',
        Term.category.isnot(None)
    ).distinct().order_by(Term.category).all()
    return jsonify({'categories': [row[0] for row in rows]}), 200


@lexicon_bp.route('/terms', methods=['GET'])
def list_terms():
    """Search and filter published terms.

    Query params:
    - q: text matched against name, short definition and discipline tags
    - category, discipline_tag: exact filters ('all' disables)
    - difficulty: '1-3', '4-6' or '7-10'
    - verified: 'true' to only show verified terms
    - lang: display language (cached translations only)
    - page, per_page: pagination (default 1, 24)
    """
    page = max(request.args.get('page', 1, type=int), 1)
    per_page = min(max(request.args.get('per_page', 24, type=int), 1), MAX_PER_PAGE)
    language = _requested_language()

    try:
        terms = lexicon.search_terms(
            query=request.args.get('q', '').strip() or None,
            category=request.args.get('category'),
            discipline_tag=request.args.get('discipline_tag'),
            difficulty=request.args.get('difficulty'),
            verified=request.args.get('verified', '').lower() in ('1', 'true', 'yes'),
        )
    except lexicon.LexiconError as e:
        return jsonify({'error': str(e)}), 400

    total = len(terms)
    page_terms = terms[(page - 1) * per_page:page * per_page]

    results = []
    for term in page_terms:
        item = term.to_dict(include_translations=False)
        item['display'] = _display_from_cache(term, language)
        results.append(item)

    return jsonify({
        'terms': results,
        'total': total,
        'page': page,
        'per_page': per_page,
        'pages': (total + per_page - 1) // per_page,
        'language': language,
    }), 200


@lexicon_bp.route('/terms/<slug>', methods=['GET'])
def get_term(slug):
    """Read one published term in the requested language.

    Falls back silently to the source language when no translation can be
    produced. With an X-Client-Id header, an answer for a request that has
    since been superseded by a newer one for the same term is 409.
    """
    term = lexicon.get_published_term(slug)
    if term is None:
        return jsonify({'error': 'Term not found'}), 404

    language = _requested_language()
    resolver = lexicon.build_resolver()
    view = lexicon.term_view(term)

    client_id = request.headers.get('X-Client-Id', '').strip()
    ticket = request_gate.begin((client_id, slug)) if client_id else None

    result = resolver.resolve(
        ResolutionRequest(term_slug=slug, requested_language=language),
        view,
        lexicon.live_translator(),
    )

    if ticket is not None and not request_gate.finish(ticket):
        logger.debug(f"Discarding superseded resolution for {slug} ({client_id})")
        return jsonify({'superseded': True, 'slug': slug}), 409

    term.usage_count = (term.usage_count or 0) + 1
    lexicon.record_event(term, 'term_view', language=result.language_actually_used, details={
        'requested_language': language,
        'live': result.was_live_translated,
    })

    data = term.to_dict(include_translations=False)
    data['display'] = resolver.public_payload(result, language)
    data['display']['direction'] = 'rtl' if is_rtl(result.language_actually_used) else 'ltr'
    data['available_languages'] = [lexicon.source_language()] + sorted(lexicon.term_view(term).cached_translations)
    return jsonify(data), 200


@lexicon_bp.route('/terms/<slug>/feedback', methods=['POST'])
@limiter.limit("5 per minute")
def submit_feedback(slug):
    """Report a problem with a term or one of its translations."""
    try:
        term = lexicon.get_published_term(slug)
        if term is None:
            return jsonify({'error': 'Term not found'}), 404

        data = request.get_json(silent=True) or {}
        feedback_type = data.get('feedback_type')
        message = (data.get('message') or '').strip()
        email = (data.get('email') or '').strip().lower() or None
        language = normalize_language(data.get('language')) or lexicon.source_language()

        if feedback_type not in FEEDBACK_TYPES:
            return jsonify({'error': f'feedback_type must be one of: {", ".join(FEEDBACK_TYPES)}'}), 400
        if not message:
            return jsonify({'error': 'message is required'}), 400
        if len(message) > MAX_FEEDBACK_LENGTH:
            return jsonify({'error': f'message must be less than {MAX_FEEDBACK_LENGTH} characters'}), 400
        if email and not EMAIL_REGEX.match(email):
            return jsonify({'error': 'Invalid email format'}), 400
        if not is_supported(language):
            return jsonify({'error': 'Unsupported language'}), 400

        feedback = TermFeedback(
            term_id=term.id,
            feedback_type=feedback_type,
            message=message,
            user_email=email,
            language=language,
            status='pending'
        )
        db.session.add(feedback)
        db.session.commit()

        return jsonify({
            'message': 'Thank you for your feedback! Our team will review it soon.',
            'feedback': feedback.to_dict()
        }), 201
    except Exception:
        db.session.rollback()
        raise
