import os
import sys
import pytest

# Ensure the backend root (containing the `namegame` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from namegame import create_app, db
from namegame.store import SessionStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:3000']
    LOG_LEVEL = 'DEBUG'
    MIN_PLAYERS = 2
    SESSION_CODE_LENGTH = 4
    CODE_MAX_ATTEMPTS = 10
    REVEAL_STEP_CAS = False
    REVEAL_STEP_MAX_ATTEMPTS = 5
    SESSION_MAX_AGE_HOURS = 24


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import namegame.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def store(flask_app):
    return SessionStore(db.session)


@pytest.fixture()
def lobby(client):
    """A fresh session with its code, id and host token."""
    return client.post('/api/game/create').get_json()


def join(client, code, name, client_id=None):
    res = client.post('/api/game/join', json={
        'code': code,
        'display_name': name,
        'client_id': client_id or f'device-{name.lower()}',
    })
    assert res.status_code == 200, res.get_json()
    return res.get_json()


def submit(client, session_id, member_id, text):
    return client.post('/api/game/submit', json={
        'session_id': session_id,
        'member_id': member_id,
        'text': text,
    })


def host(client, action, lobby, **extra):
    body = {'session_id': lobby['session_id'], 'host_token': lobby['host_token']}
    body.update(extra)
    return client.post(f'/api/game/{action}', json=body)


def state(client, code):
    return client.get(f'/api/game/state?code={code}').get_json()
