"""
Test Configuration and Fixtures
"""
import threading
import uuid
from urllib.parse import urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from radnotebook import create_app, db
from radnotebook.models import AppRole, UserRole
from radnotebook.workspace.gateway import TABLES, GatewayError

PASSWORD = 'Rad!ology2026'
BASE_URL = 'http://notebook.local'


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing (fresh file-backed SQLite per test)"""
    app = create_app('testing', test_config={
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
        'SECRET_KEY': 'test-secret-key',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def register(client):
    """Sign up and log in an account, returning ids, tokens and auth headers"""
    def _register(email, password=PASSWORD, display_name=None):
        payload = {'email': email, 'password': password}
        if display_name:
            payload['display_name'] = display_name
        res = client.post('/api-users', json=payload)
        assert res.status_code == 201, res.get_json()

        res = client.post('/api-users/login', json={'email': email, 'password': password})
        assert res.status_code == 200, res.get_json()
        body = res.get_json()
        return {
            'id': body['user']['id'],
            'email': email,
            'access_token': body['access_token'],
            'refresh_token': body['refresh_token'],
            'headers': {'Authorization': f"Bearer {body['access_token']}"},
        }
    return _register


@pytest.fixture(scope='function')
def test_user(register):
    """Create test user"""
    return register('reader@radiology-lab.org', display_name='Dr. Reader')


@pytest.fixture(scope='function')
def other_user(register):
    return register('other@radiology-lab.org')


@pytest.fixture(scope='function')
def auth_headers(test_user):
    return test_user['headers']


@pytest.fixture(scope='function')
def admin_user(app, register):
    """Create a user holding the admin role"""
    admin = register('admin@radiology-lab.org')
    with app.app_context():
        db.session.add(UserRole(user_id=admin['id'], role=AppRole.ADMIN))
        db.session.commit()
    return admin


@pytest.fixture(scope='function')
def project(client, auth_headers):
    res = client.post('/api-projects', json={'name': 'Chest CT cohort'}, headers=auth_headers)
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture(scope='function')
def analysis(client, auth_headers, project):
    res = client.post('/api-analyses', json={'project_id': project['id'], 'name': 'Nodules'},
                      headers=auth_headers)
    assert res.status_code == 201
    return res.get_json()


# ============ HTTP plumbing for the client-side workspace ============

class FlaskClientAdapter(BaseAdapter):
    """requests transport that hands every request to a Flask test client"""

    def __init__(self, flask_client):
        super().__init__()
        self.flask_client = flask_client
        self._lock = threading.Lock()

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        parts = urlsplit(request.url)
        path = parts.path + (f'?{parts.query}' if parts.query else '')
        headers = {k: v for k, v in request.headers.items() if k.lower() != 'content-length'}
        body = request.body
        if isinstance(body, str):
            body = body.encode('utf-8')

        with self._lock:
            res = self.flask_client.open(path, method=request.method, headers=headers, data=body)

        response = requests.Response()
        response.status_code = res.status_code
        response.reason = res.status.partition(' ')[2]
        response.headers = CaseInsensitiveDict(res.headers.items())
        response._content = res.get_data()
        response._content_consumed = True
        response.encoding = 'utf-8'
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


@pytest.fixture(scope='function')
def make_session(client):
    """Factory for requests sessions whose traffic goes to the test app"""
    adapter = FlaskClientAdapter(client)
    sessions = []

    def _make():
        session = requests.Session()
        session.mount(BASE_URL, adapter)
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.close()


@pytest.fixture(scope='function')
def http_session(make_session):
    return make_session()


# ============ In-memory gateway for workspace unit tests ============

class FakeGateway:
    """Same surface as PersistenceGateway, backed by dicts; failures are injected per call"""

    def __init__(self):
        self.rows = {table: {} for table in TABLES}
        self.calls = []
        self.fail = {}
        self.fail_ids = set()
        self._seq = 0
        self._lock = threading.Lock()

    def _check(self, method, table, record_id=None):
        self.calls.append((method, table, record_id))
        message = self.fail.get((method, table))
        if message:
            raise GatewayError(message, status_code=400)
        if record_id is not None and record_id in self.fail_ids:
            raise GatewayError(f'{table} {record_id} rejected', status_code=400)

    def _stamp(self):
        self._seq += 1
        return f'2026-01-01T00:00:00.{self._seq:06d}'

    def seed(self, table, **values):
        with self._lock:
            row = {'id': str(uuid.uuid4()), 'created_at': self._stamp(), **values}
            self.rows[table][row['id']] = row
            return dict(row)

    def list(self, table, **filters):
        with self._lock:
            self._check('list', table)
            return [
                dict(row) for row in self.rows[table].values()
                if all(row.get(k) == v for k, v in filters.items())
            ]

    def create(self, table, values):
        with self._lock:
            self._check('create', table)
            row = {**values, 'id': str(uuid.uuid4()), 'created_at': self._stamp()}
            self.rows[table][row['id']] = row
            return dict(row)

    def update(self, table, record_id, values):
        with self._lock:
            self._check('update', table, record_id)
            if record_id not in self.rows[table]:
                raise GatewayError(f'{table} {record_id} not found', status_code=404)
            self.rows[table][record_id].update(values)
            return dict(self.rows[table][record_id])

    def delete(self, table, record_id):
        with self._lock:
            self._check('delete', table, record_id)
            self.rows[table].pop(record_id, None)

    def updates(self, table):
        return [call for call in self.calls if call[0] == 'update' and call[1] == table]


@pytest.fixture(scope='function')
def fake_gateway():
    return FakeGateway()
