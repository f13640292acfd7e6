"""Public sign-up forms: challengers (students) and teacher applications."""

from flask import Blueprint, request, jsonify
import logging

from academy import db, limiter
from academy.models import Challenger, TeacherApplication
from academy.routes.auth import EMAIL_REGEX
from academy.services.email import email_service
from academy.services.storage import upload_cv, is_storage_configured
from academy.utils import token_optional

applications_bp = Blueprint('applications', __name__)
logger = logging.getLogger(__name__)

CV_MAX_SIZE = 5 * 1024 * 1024  # 5MB

# Magic bytes for accepted CV formats: (signature, extensions, mime type)
DOCUMENT_SIGNATURES = [
    (b'%PDF-', {'pdf'}, 'application/pdf'),
    (b'PK\x03\x04', {'docx'}, 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'),
    (b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1', {'doc'}, 'application/msword'),
]

CHALLENGER_LEVELS = ('beginner', 'intermediate', 'advanced')
MIN_CHALLENGER_AGE = 10
MAX_CHALLENGER_AGE = 19
GUARDIAN_REQUIRED_UNDER = 16


def detect_document_type(file_data: bytes, filename: str):
    """Match magic bytes against the file extension. Returns mime type or None."""
    ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    for signature, exts, mime in DOCUMENT_SIGNATURES:
        if file_data[:len(signature)] == signature and ext in exts:
            return mime
    return None


def _text(data, field, max_len, required=False):
    """Fetch a stripped string field. Returns (value, error)."""
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, (f"{field} is required" if required else None)
    if not isinstance(value, str):
        return None, f"{field} must be a string"
    value = value.strip()
    if len(value) > max_len:
        return None, f"{field} must be less than {max_len} characters"
    return value, None


def _int(data, field, low, high):
    value = data.get(field)
    if value is None or value == '':
        return None, None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    elif isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or isinstance(value, bool):
        return None, f"{field} must be a whole number"
    if value < low or value > high:
        return None, f"{field} must be between {low} and {high}"
    return value, None


@applications_bp.route('/challengers', methods=['POST'])
@limiter.limit("5 per minute")
@token_optional
def create_challenger(current_user_id):
    """Student sign-up. Under-16s must give a guardian email."""
    try:
        data = request.get_json(silent=True) or {}
        fields = {}
        for field, max_len, required in (
            ('full_name', 120, True), ('email', 120, True), ('gender', 20, False),
            ('phone_number', 30, False), ('city', 80, False), ('country', 80, False),
            ('level', 30, False), ('guardian_email', 120, False), ('referral_source', 100, False),
        ):
            value, error = _text(data, field, max_len, required)
            if error:
                return jsonify({'error': error}), 400
            fields[field] = value

        age, error = _int(data, 'age', MIN_CHALLENGER_AGE, MAX_CHALLENGER_AGE)
        if error:
            return jsonify({'error': error}), 400
        fields['age'] = age

        fields['email'] = fields['email'].lower()
        if not EMAIL_REGEX.match(fields['email']):
            return jsonify({'error': 'Invalid email format'}), 400
        if fields['level'] and fields['level'] not in CHALLENGER_LEVELS:
            return jsonify({'error': f'level must be one of: {", ".join(CHALLENGER_LEVELS)}'}), 400
        if fields['guardian_email'] and not EMAIL_REGEX.match(fields['guardian_email'].lower()):
            return jsonify({'error': 'Invalid guardian email format'}), 400
        if age is not None and age < GUARDIAN_REQUIRED_UNDER and not fields['guardian_email']:
            return jsonify({'error': f'guardian_email is required for challengers under {GUARDIAN_REQUIRED_UNDER}'}), 400

        challenger = Challenger(user_id=current_user_id, **fields)
        db.session.add(challenger)
        db.session.commit()

        email_service.send_challenger_confirmation(challenger.email, challenger.full_name)
        logger.info(f"New challenger sign-up {challenger.id}")

        return jsonify({'message': 'Sign-up received', 'challenger': challenger.to_dict()}), 201
    except Exception:
        db.session.rollback()
        raise


@applications_bp.route('/teachers', methods=['POST'])
@limiter.limit("3 per minute")
@token_optional
def create_teacher_application(current_user_id):
    """Apply to teach. Accepts JSON, or multipart form data with an optional 'cv' file."""
    try:
        if request.content_type and request.content_type.startswith('multipart/form-data'):
            data = request.form.to_dict()
            cv_file = request.files.get('cv')
        else:
            data = request.get_json(silent=True) or {}
            cv_file = None

        fields = {}
        for field, max_len, required in (
            ('full_name', 120, True), ('email', 120, True), ('phone_number', 30, False),
            ('specialization', 120, False), ('education', 2000, False), ('cover_letter', 5000, False),
        ):
            value, error = _text(data, field, max_len, required)
            if error:
                return jsonify({'error': error}), 400
            fields[field] = value

        years, error = _int(data, 'experience_years', 0, 60)
        if error:
            return jsonify({'error': error}), 400
        fields['experience_years'] = years

        fields['email'] = fields['email'].lower()
        if not EMAIL_REGEX.match(fields['email']):
            return jsonify({'error': 'Invalid email format'}), 400

        if TeacherApplication.query.filter_by(email=fields['email'], status='pending').first():
            return jsonify({'error': 'An application for this email is already pending'}), 409

        if cv_file and cv_file.filename:
            file_data = cv_file.read()
            if len(file_data) > CV_MAX_SIZE:
                return jsonify({'error': 'CV must be smaller than 5MB'}), 400
            mime = detect_document_type(file_data, cv_file.filename)
            if mime is None:
                return jsonify({'error': 'CV must be a PDF or Word document'}), 400
            if not is_storage_configured():
                return jsonify({'error': 'File uploads are not available right now'}), 503
            path, error = upload_cv(file_data, cv_file.filename, mime)
            if error:
                return jsonify({'error': f'CV upload failed: {error}'}), 502
            fields['cv_url'] = path

        application = TeacherApplication(user_id=current_user_id, status='pending', **fields)
        db.session.add(application)
        db.session.commit()

        email_service.send_teacher_application_received(application.email, application.full_name)
        logger.info(f"New teacher application {application.id}")

        return jsonify({'message': 'Application received', 'application': application.to_dict()}), 201
    except Exception:
        db.session.rollback()
        raise
