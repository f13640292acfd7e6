"""
Pytest configuration and fixtures for testing the Academy API.
"""

import os
import sys
import pytest
from datetime import datetime
from faker import Faker

# Add the parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from academy import create_app, db
from academy.models import User, Term, Course, CourseSession, Enrollment
from academy.services import translation

fake = Faker()

LEADERSHIP = {
    'term': 'Leadership',
    'slug': 'leadership',
    'short_def': 'The act of guiding others.',
    'category': 'leadership',
    'discipline_tags': ['leadership'],
    'difficulty_score': 4,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'
    os.environ['JWT_SECRET_KEY'] = 'test-secret-key-for-testing'
    os.environ['ADMIN_EMAILS'] = 'director@academy.test'
    os.environ['SUPPORTED_LANGUAGES'] = 'ar,fa,es'

    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for each test function."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create a fresh database session for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        yield db.session
        db.session.rollback()


@pytest.fixture(autouse=True)
def no_live_translation(monkeypatch):
    """Never reach a real provider; tests opt in by patching translate_term_text."""
    monkeypatch.setattr(translation, 'OPENAI_API_KEY', '')
    monkeypatch.setattr(translation, 'DEEPL_API_KEY', '')
    translation.reset_circuit()


def _create_user(password='testpassword123', **overrides):
    """Helper to create a user with sensible defaults."""
    data = {
        'username': fake.user_name()[:20] + fake.pystr(min_chars=4, max_chars=6),
        'email': fake.unique.email(),
        'full_name': fake.name(),
        'role': 'challenger',
    }
    data.update(overrides)
    user = User(**data)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'role': user.role,
        'password': password,
    }


def _get_token(client, email, password):
    """Login and return JWT token."""
    resp = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    data = resp.get_json()
    if not data or not data.get('token'):
        raise RuntimeError(f"Login failed: status={resp.status_code}, body={data}")
    return data['token']


def _headers(client, user):
    token = _get_token(client, user['email'], user['password'])
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def test_user(app, db_session):
    """A challenger (student) account."""
    with app.app_context():
        return _create_user()


@pytest.fixture
def second_user(app, db_session):
    with app.app_context():
        return _create_user(password='testpassword456')


@pytest.fixture
def teacher_user(app, db_session):
    with app.app_context():
        return _create_user(role='teacher')


@pytest.fixture
def admin_user(app, db_session):
    with app.app_context():
        return _create_user(role='admin')


@pytest.fixture
def auth_headers(client, test_user):
    """Get authentication headers for the challenger."""
    return _headers(client, test_user)


@pytest.fixture
def second_auth_headers(client, second_user):
    return _headers(client, second_user)


@pytest.fixture
def teacher_headers(client, teacher_user):
    return _headers(client, teacher_user)


@pytest.fixture
def admin_headers(client, admin_user):
    return _headers(client, admin_user)


def _create_term(**overrides):
    data = dict(LEADERSHIP, status='published', translations={})
    data.update(overrides)
    if data['status'] == 'published':
        data.setdefault('first_published_at', datetime.utcnow())
    term = Term(**data)
    db.session.add(term)
    db.session.commit()
    return {'id': term.id, 'slug': term.slug, 'status': term.status}


@pytest.fixture
def published_term(app, db_session):
    """'leadership', published, with an empty translation cache."""
    with app.app_context():
        return _create_term()


@pytest.fixture
def cached_term(app, db_session):
    """'leadership', published, with a cached Arabic translation."""
    with app.app_context():
        return _create_term(translations={
            'ar': {'text': 'القيادة', 'definition': 'فعل توجيه الآخرين.', 'source': 'human'},
        })


@pytest.fixture
def draft_term(app, db_session):
    with app.app_context():
        return _create_term(term='Delegation', slug='delegation',
                            short_def='Handing work to others.', status='draft')


@pytest.fixture
def course(app, db_session, teacher_user):
    """A course taught by teacher_user with two published sessions and one draft."""
    with app.app_context():
        course = Course(title='Foundations of Leadership', term_name='Foundations',
                        term_number=1, teacher_id=teacher_user['id'])
        db.session.add(course)
        db.session.flush()
        sessions = [
            CourseSession(course_id=course.id, session_number=1, title='Who is a leader?', is_published=True),
            CourseSession(course_id=course.id, session_number=2, title='Listening', is_published=True),
            CourseSession(course_id=course.id, session_number=3, title='Coming soon', is_published=False),
        ]
        db.session.add_all(sessions)
        db.session.commit()
        return {
            'id': course.id,
            'teacher_id': teacher_user['id'],
            'session_ids': [s.id for s in sessions],
        }


@pytest.fixture
def enrollment(app, db_session, course, test_user):
    with app.app_context():
        enrollment = Enrollment(student_id=test_user['id'], course_id=course['id'])
        db.session.add(enrollment)
        db.session.commit()
        return {'id': enrollment.id, 'course_id': course['id'], 'student_id': test_user['id']}


@pytest.fixture
def director_headers(app, client, db_session):
    """A challenger account whose email is on the ADMIN_EMAILS list."""
    with app.app_context():
        director = _create_user(email='director@academy.test')
    return _headers(client, director)


@pytest.fixture
def second_teacher_headers(app, client, db_session):
    with app.app_context():
        other = _create_user(role='teacher')
    return _headers(client, other)
