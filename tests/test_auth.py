"""
Tests for authentication endpoints and role checks.
"""

import jwt
from datetime import datetime, timedelta
from faker import Faker

fake = Faker()


def _registration(**overrides):
    data = {
        'username': 'user_' + fake.pystr(min_chars=6, max_chars=8),
        'email': fake.unique.email(),
        'password': 'securepassword123',
    }
    data.update(overrides)
    return data


class TestRegistration:
    """Tests for POST /api/auth/register"""

    def test_register_success(self, client, db_session):
        response = client.post('/api/auth/register', json=_registration(full_name='Sara Ahmadi', age=15))

        assert response.status_code == 201
        assert response.json['token']
        assert response.json['user']['role'] == 'challenger'
        assert response.json['user']['age'] == 15

    def test_register_cannot_choose_role(self, client, db_session):
        response = client.post('/api/auth/register', json=_registration(role='admin'))

        assert response.status_code == 201
        assert response.json['user']['role'] == 'challenger'

    def test_register_missing_fields(self, client, db_session):
        data = _registration()
        del data['password']

        response = client.post('/api/auth/register', json=data)

        assert response.status_code == 400

    def test_register_invalid_email(self, client, db_session):
        response = client.post('/api/auth/register', json=_registration(email='not-an-email'))

        assert response.status_code == 400

    def test_register_invalid_username(self, client, db_session):
        response = client.post('/api/auth/register', json=_registration(username='a b'))

        assert response.status_code == 400

    def test_register_duplicate_email(self, client, db_session, test_user):
        response = client.post('/api/auth/register', json=_registration(email=test_user['email']))

        assert response.status_code == 409

    def test_register_short_password(self, client, db_session):
        response = client.post('/api/auth/register', json=_registration(password='123'))

        assert response.status_code == 400

    def test_register_age_out_of_range(self, client, db_session):
        response = client.post('/api/auth/register', json=_registration(age=7))

        assert response.status_code == 400


class TestLogin:
    """Tests for POST /api/auth/login"""

    def test_login_success(self, client, test_user):
        response = client.post('/api/auth/login', json={
            'email': test_user['email'].upper(),
            'password': test_user['password'],
        })

        assert response.status_code == 200
        payload = jwt.decode(response.json['token'], 'test-secret-key-for-testing', algorithms=['HS256'])
        assert payload['user_id'] == test_user['id']
        assert payload['role'] == 'challenger'

    def test_login_wrong_password(self, client, test_user):
        response = client.post('/api/auth/login', json={
            'email': test_user['email'],
            'password': 'wrongpassword',
        })

        assert response.status_code == 401

    def test_login_unknown_email(self, client, db_session):
        response = client.post('/api/auth/login', json={
            'email': 'nobody@example.com',
            'password': 'whatever123',
        })

        assert response.status_code == 401

    def test_login_disabled_account(self, client, admin_headers, test_user):
        client.put(f"/api/admin/users/{test_user['id']}", json={'is_active': False}, headers=admin_headers)

        response = client.post('/api/auth/login', json={
            'email': test_user['email'],
            'password': test_user['password'],
        })

        assert response.status_code == 403


class TestProfile:
    """Tests for GET/PUT /api/auth/profile"""

    def test_get_profile(self, client, auth_headers, test_user):
        response = client.get('/api/auth/profile', headers=auth_headers)

        assert response.status_code == 200
        assert response.json['id'] == test_user['id']

    def test_profile_requires_token(self, client, db_session):
        response = client.get('/api/auth/profile')

        assert response.status_code == 401

    def test_expired_token(self, client, test_user):
        token = jwt.encode(
            {'user_id': test_user['id'], 'role': 'challenger', 'exp': datetime.utcnow() - timedelta(minutes=1)},
            'test-secret-key-for-testing',
            algorithm='HS256',
        )

        response = client.get('/api/auth/profile', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 401
        assert response.json['error'] == 'Token has expired'

    def test_garbage_token(self, client, db_session):
        response = client.get('/api/auth/profile', headers={'Authorization': 'Bearer nonsense'})

        assert response.status_code == 401

    def test_update_preferred_language(self, client, auth_headers):
        response = client.put('/api/auth/profile', json={'preferred_language': 'fa-IR'}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json['user']['preferred_language'] == 'fa'

    def test_update_unsupported_language(self, client, auth_headers):
        response = client.put('/api/auth/profile', json={'preferred_language': 'xx'}, headers=auth_headers)

        assert response.status_code == 400

    def test_update_rejects_unknown_fields(self, client, auth_headers):
        response = client.put('/api/auth/profile', json={'role': 'admin'}, headers=auth_headers)

        assert response.status_code == 400


class TestRoles:

    def test_challenger_cannot_reach_admin(self, client, auth_headers):
        response = client.get('/api/admin/terms', headers=auth_headers)

        assert response.status_code == 403

    def test_teacher_cannot_reach_admin(self, client, teacher_headers):
        response = client.get('/api/admin/terms', headers=teacher_headers)

        assert response.status_code == 403

    def test_admin_email_whitelist(self, client, director_headers):
        response = client.get('/api/admin/terms', headers=director_headers)

        assert response.status_code == 200

    def test_health(self, client):
        assert client.get('/health').status_code == 200
        assert client.get('/api/health').status_code == 200
