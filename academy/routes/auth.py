"""Authentication routes: registration, login and profile."""

from flask import Blueprint, request, jsonify
from academy import db, limiter
from academy.constants.languages import all_languages, normalize_language
from academy.models import User
from academy.utils import issue_token, token_required
import logging
import re

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

# Email validation regex
EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

# Username validation: 3-30 chars, alphanumeric + underscores
USERNAME_REGEX = re.compile(r'^[a-zA-Z0-9_]{3,30}$')

# Allowed fields for profile update (prevent mass assignment)
PROFILE_ALLOWED_FIELDS = {'full_name', 'age', 'avatar_url', 'preferred_language'}

MIN_AGE = 10
MAX_AGE = 120


def _validate_profile_data(data):
    """Validate profile update fields. Returns error message or None."""
    unknown = set(data.keys()) - PROFILE_ALLOWED_FIELDS
    if unknown:
        return f"Unknown fields: {', '.join(sorted(unknown))}"

    length_limits = {'full_name': 120, 'avatar_url': 500}
    for field, max_len in length_limits.items():
        if field in data and data[field] is not None:
            if not isinstance(data[field], str):
                return f"{field} must be a string"
            if len(data[field]) > max_len:
                return f"{field} must be less than {max_len} characters"

    if 'age' in data and data['age'] is not None:
        if not isinstance(data['age'], int) or isinstance(data['age'], bool):
            return "age must be an integer"
        if data['age'] < MIN_AGE or data['age'] > MAX_AGE:
            return f"age must be between {MIN_AGE} and {MAX_AGE}"

    if 'preferred_language' in data:
        if normalize_language(data['preferred_language']) not in all_languages():
            return "preferred_language is not supported"

    return None


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute")
def register():
    """Register a new challenger account."""
    try:
        data = request.get_json(silent=True)

        if not data or not all(k in data for k in ['username', 'email', 'password']):
            return jsonify({'error': 'Missing required fields'}), 400

        username = str(data['username']).strip()
        email = str(data['email']).strip().lower()
        password = str(data['password'])

        if not USERNAME_REGEX.match(username):
            return jsonify({'error': 'Username must be 3-30 characters and contain only letters, numbers, and underscores'}), 400

        if not EMAIL_REGEX.match(email) or len(email) > 254:
            return jsonify({'error': 'Invalid email format'}), 400

        if len(password) < 8:
            return jsonify({'error': 'Password must be at least 8 characters'}), 400

        if len(password) > 128:
            return jsonify({'error': 'Password must be less than 128 characters'}), 400

        profile = {k: data[k] for k in ('full_name', 'age') if k in data}
        error = _validate_profile_data(profile)
        if error:
            return jsonify({'error': error}), 400

        if User.query.filter_by(username=username).first():
            return jsonify({'error': 'Username already exists'}), 409

        if User.query.filter_by(email=email).first():
            return jsonify({'error': 'Email already exists'}), 409

        # Teachers and admins are promoted by an admin, never self-registered
        user = User(username=username, email=email, role='challenger', **profile)
        user.set_password(password)

        db.session.add(user)
        db.session.commit()
        logger.info(f"Registered user {user.id}")

        return jsonify({
            'message': 'User registered successfully',
            'token': issue_token(user),
            'user': user.to_dict()
        }), 201
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """Authenticate user and return JWT token."""
    data = request.get_json(silent=True)

    if not data or not all(k in data for k in ['email', 'password']):
        return jsonify({'error': 'Missing email or password'}), 400

    user = User.query.filter_by(email=str(data['email']).strip().lower()).first()

    if not user or not user.check_password(data['password']):
        return jsonify({'error': 'Invalid email or password'}), 401

    if not user.is_active:
        return jsonify({'error': 'Account is disabled'}), 403

    return jsonify({
        'message': 'Login successful',
        'token': issue_token(user),
        'user': user.to_dict()
    }), 200


@auth_bp.route('/profile', methods=['GET'])
@token_required
def get_profile(current_user_id):
    user = db.session.get(User, current_user_id)
    return jsonify(user.to_dict()), 200


@auth_bp.route('/profile', methods=['PUT'])
@token_required
def update_profile(current_user_id):
    try:
        user = db.session.get(User, current_user_id)
        data = request.get_json(silent=True) or {}

        error = _validate_profile_data(data)
        if error:
            return jsonify({'error': error}), 400

        for field, value in data.items():
            if field == 'preferred_language':
                value = normalize_language(value)
            setattr(user, field, value)

        db.session.commit()
        return jsonify({'message': 'Profile updated', 'user': user.to_dict()}), 200
    except Exception:
        db.session.rollback()
        raise
