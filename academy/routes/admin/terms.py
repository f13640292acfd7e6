"""Admin lexicon management: term CRUD, spreadsheet import, status workflow and translations."""

from flask import request, jsonify
from sqlalchemy import or_
import csv
import io
from academy import db
from academy.models import Term
from academy.lexicon.records import TERM_STATUSES
from academy.routes.admin import admin_bp
from academy.services import lexicon, translation
from academy.utils import admin_required
import logging

logger = logging.getLogger(__name__)

TERM_TEXT_FIELDS = {
    'term': 200,
    'slug': 200,
    'short_def': 1000,
    'long_def': 10000,
    'category': 100,
}
TERM_LIST_FIELDS = ('synonyms', 'related', 'discipline_tags', 'examples')
TERM_ALLOWED_FIELDS = set(TERM_TEXT_FIELDS) | set(TERM_LIST_FIELDS) | {
    'difficulty_score', 'verification_status'
}
VERIFICATION_STATUSES = ('unverified', 'verified')
IMPORT_REQUIRED_HEADERS = ('term', 'category')
IMPORT_MAX_SIZE = 2 * 1024 * 1024  # 2MB


def _validate_term_data(data, creating=False):
    """Validate term fields. Returns error message or None."""
    unknown = set(data.keys()) - TERM_ALLOWED_FIELDS
    if unknown:
        return f"Unknown fields: {', '.join(sorted(unknown))}"

    if creating and not (data.get('term') or '').strip():
        return "term is required"

    for field, max_len in TERM_TEXT_FIELDS.items():
        if field in data and data[field] is not None:
            if not isinstance(data[field], str):
                return f"{field} must be a string"
            if len(data[field]) > max_len:
                return f"{field} must be less than {max_len} characters"

    if 'term' in data and not (data['term'] or '').strip():
        return "term cannot be empty"

    if data.get('slug') is not None and lexicon.slugify(data['slug']) != data['slug']:
        return "slug may only contain lowercase letters, numbers and hyphens"

    for field in TERM_LIST_FIELDS:
        if field in data and data[field] is not None:
            value = data[field]
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                return f"{field} must be a list of strings"
            if len(value) > 50:
                return f"{field} can have at most 50 items"

    if data.get('difficulty_score') is not None:
        score = data['difficulty_score']
        if not isinstance(score, int) or isinstance(score, bool) or not 1 <= score <= 10:
            return "difficulty_score must be an integer between 1 and 10"

    if 'verification_status' in data and data['verification_status'] not in VERIFICATION_STATUSES:
        return f"verification_status must be one of: {', '.join(VERIFICATION_STATUSES)}"

    return None


def _get_term_or_404(term_id):
    term = db.session.get(Term, term_id)
    if term is None:
        return None, (jsonify({'error': 'Term not found'}), 404)
    return term, None


@admin_bp.route('/terms', methods=['GET'])
@admin_required
def list_terms_admin(current_user_id):
    """List terms in every status with search and pagination."""
    page = max(request.args.get('page', 1, type=int), 1)
    per_page = min(max(request.args.get('per_page', 20, type=int), 1), 100)
    search = request.args.get('search', '').strip()
    status = request.args.get('status', 'all')

    query = Term.query
    if search:
        search_term = f'%{search}%'
        query = query.filter(or_(Term.term.ilike(search_term), Term.slug.ilike(search_term)))
    if status != 'all':
        if status not in TERM_STATUSES:
            return jsonify({'error': f'Invalid status filter: {status}'}), 400
        query = query.filter_by(status=status)

    total = query.count()
    terms = query.order_by(Term.updated_at.desc()).offset((page - 1) * per_page).limit(per_page).all()

    return jsonify({
        'terms': [t.to_dict() for t in terms],
        'total': total,
        'page': page,
        'per_page': per_page,
    }), 200


@admin_bp.route('/terms', methods=['POST'])
@admin_required
def create_term(current_user_id):
    try:
        data = request.get_json(silent=True) or {}
        error = _validate_term_data(data, creating=True)
        if error:
            return jsonify({'error': error}), 400

        slug = data.get('slug') or lexicon.slugify(data['term'])
        if not slug:
            return jsonify({'error': 'Could not derive a slug from term; provide one'}), 400
        if Term.query.filter_by(slug=slug).first():
            return jsonify({'error': 'Slug already exists'}), 409

        fields = {k: v for k, v in data.items() if k != 'slug'}
        fields['term'] = fields['term'].strip()
        term = Term(slug=slug, status='draft', translations={}, **fields)
        db.session.add(term)
        db.session.commit()
        logger.info(f"Admin {current_user_id} created term {slug}")

        return jsonify({'message': 'Term created', 'term': term.to_dict()}), 201
    except Exception:
        db.session.rollback()
        raise


def _parse_import_csv(text):
    """Rows of a lexicon spreadsheet, or an error message."""
    reader = csv.DictReader(io.StringIO(text))
    headers = [(h or '').strip().lower() for h in (reader.fieldnames or [])]
    missing = [h for h in IMPORT_REQUIRED_HEADERS if h not in headers]
    if not ({'definition', 'short_def'} & set(headers)):
        missing.append('definition')
    if missing:
        return None, f"Missing required headers: {', '.join(missing)}"
    rows = list(reader)
    if not rows:
        return None, 'CSV must contain at least a header row and one data row'
    return rows, None


@admin_bp.route('/terms/import', methods=['POST'])
@admin_required
def import_terms(current_user_id):
    """Bulk-create terms from a spreadsheet.

    Multipart with a 'file' part holding CSV, or JSON with either "csv" (the
    file's text) or "terms" (a list of row objects). Set overwrite_existing
    to update terms whose slug already exists instead of skipping them.
    """
    try:
        is_upload = bool(request.content_type and request.content_type.startswith('multipart/form-data'))
        if is_upload:
            upload = request.files.get('file')
            if upload is None or not upload.filename:
                return jsonify({'error': 'No file provided'}), 400
            if not upload.filename.lower().endswith('.csv'):
                return jsonify({'error': 'Only .csv files can be imported'}), 400
            file_data = upload.read()
            if len(file_data) > IMPORT_MAX_SIZE:
                return jsonify({'error': 'File must be smaller than 2MB'}), 400
            try:
                csv_text = file_data.decode('utf-8-sig')
            except UnicodeDecodeError:
                return jsonify({'error': 'CSV must be UTF-8 encoded'}), 400
            overwrite = request.form.get('overwrite_existing', '').lower() in ('1', 'true', 'yes', 'on')
            rows = None
        else:
            data = request.get_json(silent=True) or {}
            csv_text = data.get('csv')
            rows = data.get('terms')
            overwrite = data.get('overwrite_existing') is True
            if rows is not None and not isinstance(rows, list):
                return jsonify({'error': 'terms must be a list'}), 400
            if rows is None and not isinstance(csv_text, str):
                return jsonify({'error': 'Either csv or terms must be provided'}), 400

        if rows is None:
            rows, message = _parse_import_csv(csv_text)
            if message:
                return jsonify({'error': message}), 400
            first_line = 2
        else:
            first_line = 1

        summary = lexicon.bulk_import_terms(rows, overwrite=overwrite, first_line=first_line)
        logger.info(f"Admin {current_user_id} imported lexicon terms: {summary['created']} created")
        return jsonify(summary), 200
    except Exception:
        db.session.rollback()
        raise


@admin_bp.route('/terms/<int:term_id>', methods=['GET'])
@admin_required
def get_term_admin(current_user_id, term_id):
    term, error = _get_term_or_404(term_id)
    if error:
        return error
    return jsonify(term.to_dict()), 200


@admin_bp.route('/terms/<int:term_id>', methods=['PUT'])
@admin_required
def update_term(current_user_id, term_id):
    try:
        term, error = _get_term_or_404(term_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        message = _validate_term_data(data)
        if message:
            return jsonify({'error': message}), 400

        new_slug = data.get('slug')
        if new_slug and new_slug != term.slug:
            if term.is_published or term.first_published_at is not None:
                return jsonify({'error': 'Slug cannot change once a term is published'}), 409
            if Term.query.filter_by(slug=new_slug).first():
                return jsonify({'error': 'Slug already exists'}), 409

        for field, value in data.items():
            if field == 'slug' and not value:
                continue
            setattr(term, field, value.strip() if field == 'term' else value)

        db.session.commit()
        return jsonify({'message': 'Term updated', 'term': term.to_dict()}), 200
    except Exception:
        db.session.rollback()
        raise


@admin_bp.route('/terms/<int:term_id>', methods=['DELETE'])
@admin_required
def delete_term(current_user_id, term_id):
    term, error = _get_term_or_404(term_id)
    if error:
        return error
    slug = term.slug
    db.session.delete(term)
    db.session.commit()
    logger.info(f"Admin {current_user_id} deleted term {slug}")
    return jsonify({'message': 'Term deleted'}), 200


@admin_bp.route('/terms/<int:term_id>/status', methods=['POST'])
@admin_required
def change_term_status(current_user_id, term_id):
    """Move a term along draft -> needs_review -> published."""
    term, error = _get_term_or_404(term_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        lexicon.change_status(term, data.get('status'))
    except lexicon.InvalidTransition as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'message': f'Term is now {term.status}', 'term': term.to_dict()}), 200


@admin_bp.route('/terms/<int:term_id>/translations/<lang>', methods=['PUT'])
@admin_required
def put_translation(current_user_id, term_id, lang):
    """Add or replace a human translation."""
    term, error = _get_term_or_404(term_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        record = lexicon.add_manual_translation(term, lang, data.get('text'), data.get('definition'))
    except lexicon.LexiconError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'message': 'Translation saved', 'translation': record.to_dict()}), 200


@admin_bp.route('/terms/<int:term_id>/translations/<lang>', methods=['DELETE'])
@admin_required
def delete_translation(current_user_id, term_id, lang):
    term, error = _get_term_or_404(term_id)
    if error:
        return error

    if not lexicon.remove_translation(term, lang):
        return jsonify({'error': 'No translation for that language'}), 404
    return jsonify({'message': 'Translation removed'}), 200


@admin_bp.route('/terms/<int:term_id>/translations/<lang>/approve', methods=['POST'])
@admin_required
def approve_translation(current_user_id, term_id, lang):
    term, error = _get_term_or_404(term_id)
    if error:
        return error

    try:
        record = lexicon.approve_translation(term, lang)
    except lexicon.LexiconError as e:
        return jsonify({'error': str(e)}), 400
    if record is None:
        return jsonify({'error': 'No translation for that language'}), 404

    logger.info(f"Admin {current_user_id} approved {lang} for term {term.slug}")
    return jsonify({'message': 'Translation approved', 'translation': record.to_dict()}), 200


@admin_bp.route('/terms/<int:term_id>/translations/<lang>/reject', methods=['POST'])
@admin_required
def reject_translation(current_user_id, term_id, lang):
    """Discard a translation; the next reader request or batch run generates a fresh one."""
    term, error = _get_term_or_404(term_id)
    if error:
        return error

    try:
        removed = lexicon.reject_translation(term, lang)
    except lexicon.LexiconError as e:
        return jsonify({'error': str(e)}), 400
    if not removed:
        return jsonify({'error': 'No translation for that language'}), 404
    return jsonify({'message': 'Translation rejected'}), 200


@admin_bp.route('/translations/pending', methods=['GET'])
@admin_required
def list_pending_translations(current_user_id):
    """Translations not yet approved, one row per term and language."""
    terms = Term.query.order_by(Term.term).all()
    pending = [
        {
            'term_id': term.id,
            'slug': term.slug,
            'term': term.term,
            'language': lang,
            'translation': record.to_dict(),
        }
        for term, lang, record in lexicon.pending_translations(terms)
    ]
    return jsonify({'translations': pending, 'total': len(pending)}), 200


@admin_bp.route('/terms/translate', methods=['POST'])
@admin_required
def batch_translate(current_user_id):
    """Generate missing translations for one term or every published term.

    Body: {"term_id": 12} or {"translate_all": true}
    """
    data = request.get_json(silent=True) or {}

    if data.get('translate_all'):
        terms = Term.query.filter_by(status='published').all()
    elif data.get('term_id') is not None:
        term, error = _get_term_or_404(data['term_id'])
        if error:
            return error
        terms = [term]
    else:
        return jsonify({'error': 'Either term_id or translate_all must be provided'}), 400

    if not translation.is_translation_enabled():
        return jsonify({'error': 'Translation service is not configured'}), 503

    progress = lexicon.translate_missing(terms)
    return jsonify(progress), 200


@admin_bp.route('/translation/status', methods=['GET'])
@admin_required
def translation_status(current_user_id):
    return jsonify(translation.circuit_state()), 200


@admin_bp.route('/translation/reset', methods=['POST'])
@admin_required
def reset_translation_circuit(current_user_id):
    translation.reset_circuit()
    logger.info(f"Admin {current_user_id} reset the translation circuit")
    return jsonify(translation.circuit_state()), 200
