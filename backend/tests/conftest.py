import os
import sys
import pytest

# Ensure the backend root (containing the `election_room` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from election_room import create_app, db, socketio


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    STARTING_BALANCE = 1000
    DEFAULT_ENTRY_BONUS = 200
    DEFAULT_VOTE_COST = 50
    DEFAULT_VOTE_THRESHOLD = 100
    SYSTEM_USERNAME = 'SYSTEM'
    PAYOUT_STRATEGY = 'equilibrium'


def _build_app(config_class):
    application = create_app(config_class)
    ctx = application.app_context()
    ctx.push()
    # Ensure models are imported so tables are created
    import election_room.models  # noqa: F401
    db.create_all()
    return application, ctx


def _teardown_app(ctx):
    db.session.remove()
    db.drop_all()
    db.engine.dispose()
    ctx.pop()


@pytest.fixture()
def flask_app():
    application, ctx = _build_app(TestConfig)
    yield application
    _teardown_app(ctx)


@pytest.fixture()
def threaded_app(tmp_path):
    """App backed by a file database so worker threads get their own connections."""
    file_config = type('FileTestConfig', (TestConfig,), {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'elections.db'}",
    })
    application, ctx = _build_app(file_config)
    yield application
    _teardown_app(ctx)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app, client):
    test_client = socketio.test_client(flask_app, flask_test_client=client)
    yield test_client
    if test_client.is_connected():
        test_client.disconnect()


@pytest.fixture()
def make_election():
    from election_room.services.elections.lifecycle import create_election

    def _make(**kwargs):
        kwargs.setdefault('title', 'Test Election')
        kwargs.setdefault('candidates', ['A', 'B'])
        kwargs.setdefault('vote_threshold', 2)
        kwargs.setdefault('entry_bonus', 200)
        kwargs.setdefault('vote_cost', 50)
        return create_election(**kwargs)

    return _make
