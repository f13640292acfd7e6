"""Admin management of users, teacher applications and challenger sign-ups."""

from flask import request, jsonify, Response
from sqlalchemy import or_
import csv
import io
import logging

from academy import db
from academy.models import User, Challenger, TeacherApplication
from academy.models.user import ROLES
from academy.models.application import APPLICATION_STATUSES
from academy.routes.admin import admin_bp
from academy.services.email import email_service
from academy.services.storage import CV_BUCKET, create_download_url
from academy.utils import admin_required

logger = logging.getLogger(__name__)

FORMULA_PREFIXES = ('=', '+', '-', '@', '\t', '\r')


def _csv_cell(value):
    """Render a value for the export; text a spreadsheet would evaluate is quoted with a leading apostrophe."""
    if value is None:
        return ''
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


@admin_bp.route('/users', methods=['GET'])
@admin_required
def list_users_admin(current_user_id):
    """List users with pagination, search and role filter."""
    page = max(request.args.get('page', 1, type=int), 1)
    per_page = min(max(request.args.get('per_page', 20, type=int), 1), 100)
    search = request.args.get('search', '').strip()
    role = request.args.get('role', 'all')

    query = User.query
    if search:
        search_term = f'%{search}%'
        query = query.filter(or_(
            User.username.ilike(search_term),
            User.email.ilike(search_term),
            User.full_name.ilike(search_term),
        ))
    if role != 'all':
        query = query.filter_by(role=role)

    total = query.count()
    users = query.order_by(User.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()

    return jsonify({
        'users': [u.to_dict() for u in users],
        'total': total,
        'page': page,
        'per_page': per_page,
    }), 200


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@admin_required
def update_user_admin(current_user_id, user_id):
    """Change a user's role or active flag."""
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({'error': 'User not found'}), 404

    data = request.get_json(silent=True) or {}
    if user_id == current_user_id and ('role' in data or data.get('is_active') is False):
        return jsonify({'error': 'You cannot change your own role or disable yourself'}), 400

    if 'role' in data:
        if data['role'] not in ROLES:
            return jsonify({'error': f'role must be one of: {", ".join(ROLES)}'}), 400
        user.role = data['role']
    if 'is_active' in data:
        if not isinstance(data['is_active'], bool):
            return jsonify({'error': 'is_active must be a boolean'}), 400
        user.is_active = data['is_active']

    db.session.commit()
    logger.info(f"Admin {current_user_id} updated user {user_id}: {data}")
    return jsonify({'message': 'User updated', 'user': user.to_dict()}), 200


@admin_bp.route('/applications/teachers', methods=['GET'])
@admin_required
def list_teacher_applications(current_user_id):
    status = request.args.get('status', 'all')
    query = TeacherApplication.query
    if status != 'all':
        if status not in APPLICATION_STATUSES:
            return jsonify({'error': f'Invalid status filter: {status}'}), 400
        query = query.filter_by(status=status)

    applications = query.order_by(TeacherApplication.created_at.desc()).all()
    return jsonify({
        'applications': [a.to_dict() for a in applications],
        'total': len(applications),
    }), 200


@admin_bp.route('/applications/teachers/<int:application_id>', methods=['PUT'])
@admin_required
def review_teacher_application(current_user_id, application_id):
    """Approve or reject a teacher application.

    Approving promotes the applicant's linked account to teacher.
    """
    application = db.session.get(TeacherApplication, application_id)
    if application is None:
        return jsonify({'error': 'Application not found'}), 404

    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if status not in ('approved', 'rejected'):
        return jsonify({'error': 'status must be approved or rejected'}), 400
    if application.status != 'pending':
        return jsonify({'error': f'Application already {application.status}'}), 409

    application.status = status
    if status == 'approved' and application.user_id:
        user = db.session.get(User, application.user_id)
        if user and user.role == 'challenger':
            user.role = 'teacher'

    db.session.commit()
    email_service.send_application_decision(application.email, application.full_name, status)

    return jsonify({'message': f'Application {status}', 'application': application.to_dict()}), 200


@admin_bp.route('/applications/teachers/<int:application_id>/cv', methods=['GET'])
@admin_required
def teacher_application_cv(current_user_id, application_id):
    application = db.session.get(TeacherApplication, application_id)
    if application is None or not application.cv_url:
        return jsonify({'error': 'CV not found'}), 404

    url, error = create_download_url(CV_BUCKET, application.cv_url)
    if error:
        return jsonify({'error': error}), 503
    return jsonify({'url': url}), 200


@admin_bp.route('/challengers', methods=['GET'])
@admin_required
def list_challengers(current_user_id):
    page = max(request.args.get('page', 1, type=int), 1)
    per_page = min(max(request.args.get('per_page', 50, type=int), 1), 200)
    query = Challenger.query.order_by(Challenger.created_at.desc())
    total = query.count()
    challengers = query.offset((page - 1) * per_page).limit(per_page).all()
    return jsonify({
        'challengers': [c.to_dict() for c in challengers],
        'total': total,
        'page': page,
        'per_page': per_page,
    }), 200


@admin_bp.route('/challengers/export', methods=['GET'])
@admin_required
def export_challengers(current_user_id):
    """Download every challenger sign-up as CSV."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(Challenger.EXPORT_FIELDS)
    for challenger in Challenger.query.order_by(Challenger.created_at).all():
        row = challenger.to_dict()
        writer.writerow([_csv_cell(row[field]) for field in Challenger.EXPORT_FIELDS])

    return Response(
        buffer.getvalue(),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=challengers.csv'}
    )
