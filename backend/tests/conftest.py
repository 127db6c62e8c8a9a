import os
import sys

import pytest

# Ensure the backend root (containing the `alpharush` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from alpharush.config import Config
from alpharush.game import service
from alpharush.server import create_app


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    LOG_LEVEL = 'WARNING'
    MAX_PLAYERS = 3
    SERVER_GRACE_TIMER = False
    ROUND_ADVANCE_DELAY_SEC = 0


@pytest.fixture(autouse=True)
def clean_registry():
    service.reset()
    yield
    service.reset()


@pytest.fixture()
def app_and_socketio():
    return create_app(TestConfig)


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def socketio(app_and_socketio):
    return app_and_socketio[1]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def connect(flask_app, socketio):
    clients = []

    def _connect():
        c = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(c)
        return c

    yield _connect

    for c in clients:
        try:
            if c.is_connected():
                c.disconnect()
        except Exception:
            pass
