import os
import sys
import pytest

# Ensure the backend root (containing the `scoreboard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from scoreboard import create_app, db, socketio
from scoreboard.services.notifications import Notifier
from scoreboard.services.tracker import TeamTracker, TrackerSettings


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    DEFAULT_COUNTDOWN_SEC = 10
    CELEBRATION_MS = 3000
    HISTORY_PAGE_SIZE = 20
    GAME_HISTORY_LIMIT = 10
    DEFAULT_TEAM_EMOJI = '⚽'


class RecordingNotifier(Notifier):
    """Keeps emitted events in memory instead of sending them."""

    def __init__(self, operator_id):
        super().__init__(operator_id)
        self.events = []

    def emit(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [name for name, _ in self.events]

    def titles(self):
        return [payload['title'] for name, payload in self.events if name == 'notification']


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        import scoreboard.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def operator(flask_app):
    from scoreboard.models import User
    user = User(username='host')
    user.set_password('password')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture()
def auth_client(flask_app, operator):
    test_client = flask_app.test_client()
    res = test_client.post('/login', json={'username': 'host', 'password': 'password'})
    assert res.status_code == 200
    return test_client


@pytest.fixture()
def tracker(flask_app, operator):
    instance = TeamTracker(
        operator.id,
        TrackerSettings.from_config(flask_app.config),
        flask_app.logger,
        notifier=RecordingNotifier(operator.id),
    )
    instance.load()
    return instance


@pytest.fixture()
def sio_client(flask_app, auth_client):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=auth_client,
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def live_tracker(flask_app, operator):
    """A tracker whose countdown runs on a real background worker."""
    settings = TrackerSettings(default_countdown_sec=2, countdown_poll_sec=0.05, background_timer=True)
    instance = TeamTracker(operator.id, settings, flask_app.logger, notifier=RecordingNotifier(operator.id))
    yield instance
    instance.pause_timer()
