"""Admin review of reader feedback, plus lexicon analytics."""

from flask import request, jsonify
from sqlalchemy import func
from datetime import datetime, timedelta
from academy import db
from academy.constants.languages import supported_languages
from academy.models import Term, TermFeedback, TermEvent
from academy.models.term import FEEDBACK_STATUSES
from academy.lexicon.records import TERM_STATUSES
from academy.routes.admin import admin_bp
from academy.services import lexicon
from academy.utils import admin_required


@admin_bp.route('/feedback', methods=['GET'])
@admin_required
def list_feedback(current_user_id):
    page = max(request.args.get('page', 1, type=int), 1)
    per_page = min(max(request.args.get('per_page', 20, type=int), 1), 100)
    status = request.args.get('status', 'pending')

    query = TermFeedback.query
    if status != 'all':
        if status not in FEEDBACK_STATUSES:
            return jsonify({'error': f'Invalid status filter: {status}'}), 400
        query = query.filter_by(status=status)

    total = query.count()
    items = query.order_by(TermFeedback.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()

    return jsonify({
        'feedback': [f.to_dict() for f in items],
        'total': total,
        'page': page,
        'per_page': per_page,
    }), 200


@admin_bp.route('/feedback/<int:feedback_id>', methods=['PUT'])
@admin_required
def update_feedback(current_user_id, feedback_id):
    feedback = db.session.get(TermFeedback, feedback_id)
    if feedback is None:
        return jsonify({'error': 'Feedback not found'}), 404

    data = request.get_json(silent=True) or {}
    if data.get('status') not in FEEDBACK_STATUSES:
        return jsonify({'error': f'status must be one of: {", ".join(FEEDBACK_STATUSES)}'}), 400

    feedback.status = data['status']
    db.session.commit()
    return jsonify({'message': 'Feedback updated', 'feedback': feedback.to_dict()}), 200


@admin_bp.route('/lexicon/analytics', methods=['GET'])
@admin_required
def lexicon_analytics(current_user_id):
    """Term counts, translation coverage, recent events and most viewed terms."""
    days = min(max(request.args.get('days', 30, type=int), 1), 365)
    since = datetime.utcnow() - timedelta(days=days)

    status_counts = dict(
        db.session.query(Term.status, func.count(Term.id)).group_by(Term.status).all()
    )

    published = Term.query.filter_by(status='published').all()
    languages = supported_languages()
    coverage = {lang: 0 for lang in languages}
    for term in published:
        for lang in term.cached_translations(languages, lexicon.source_language()):
            coverage[lang] += 1

    event_counts = dict(
        db.session.query(TermEvent.event_type, func.count(TermEvent.id))
        .filter(TermEvent.created_at >= since)
        .group_by(TermEvent.event_type).all()
    )

    language_views = dict(
        db.session.query(TermEvent.language, func.count(TermEvent.id))
        .filter(TermEvent.created_at >= since, TermEvent.event_type == 'term_view')
        .group_by(TermEvent.language).all()
    )

    top_terms = Term.query.filter_by(status='published').order_by(
        Term.usage_count.desc()
    ).limit(10).all()

    return jsonify({
        'terms_by_status': {s: status_counts.get(s, 0) for s in TERM_STATUSES},
        'published_total': len(published),
        'translation_coverage': coverage,
        'events': event_counts,
        'views_by_language': language_views,
        'pending_feedback': TermFeedback.query.filter_by(status='pending').count(),
        'top_terms': [
            {'slug': t.slug, 'term': t.term, 'usage_count': t.usage_count} for t in top_terms
        ],
        'days': days,
    }), 200
