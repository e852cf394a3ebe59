import pytest

from app import create_app
from config import TestingConfig
from models import db


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signup(app):
    """Register a user on a fresh test client; returns (client, user, token)"""

    def _signup(name='Ada', email='ada@x.com', password='secret1', **extra):
        user_client = app.test_client()
        payload = {'name': name, 'email': email, 'password': password}
        payload.update(extra)
        resp = user_client.post('/auth/register', json=payload)
        assert resp.status_code == 201, resp.get_json()
        body = resp.get_json()
        return user_client, body['user'], body['token']

    return _signup


@pytest.fixture
def project_for(signup):
    """Create a project with the given client; returns the project dict"""

    def _project_for(user_client, title='Launch', **extra):
        payload = {'title': title}
        payload.update(extra)
        resp = user_client.post('/projects', json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()

    return _project_for


@pytest.fixture
def task_for():
    """Create a task with the given client; returns the task dict"""

    def _task_for(user_client, project_id, title='Write spec', **extra):
        payload = {'title': title, 'projectId': project_id}
        payload.update(extra)
        resp = user_client.post('/task', json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()

    return _task_for
