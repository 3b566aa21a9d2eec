# -*- coding: utf-8 -*-
"""
Fixtures compartidas: repositorio en carpeta temporal, store, backends y
respuestas HTTP falsas, temporizador manual para el debounce.
"""
import os
import sys

import pytest

# ensure project root is on sys.path when running from tests/ folder
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from meat_depot.backends import SyncBackend
from meat_depot.repositories import LocalStateRepository
from meat_depot.services import AppStore

ADMIN_PASSWORD = 'clave-admin-123'


# ═══════════════════════════════════════════════════════════════════════════
# DOBLES DE PRUEBA
# ═══════════════════════════════════════════════════════════════════════════

class FakeTimer:
    """Temporizador manual: solo corre cuando el test llama fire()."""

    created = []

    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.cancelled = False
        self.started = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.fn()


class FakeResponse:
    """Respuesta mínima compatible con requests.Response."""

    def __init__(self, status_code=200, json_data=None, text=None, headers=None):
        self.status_code = status_code
        self._json = json_data
        self.text = text if text is not None else ('' if json_data is None else str(json_data))
        self.headers = headers if headers is not None else {'Content-Type': 'application/json'}

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError('no json')
        return self._json


class FakeSession:
    """
    Sesión HTTP programable: cada llamada consume la siguiente respuesta
    (o excepción) de la cola y queda registrada en `calls`.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if not self.responses:
            return FakeResponse(404, {})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url, **kwargs):
        return self.request('POST', url, **kwargs)


class FakeBackend(SyncBackend):
    """Backend en memoria con comportamiento configurable."""

    def __init__(self, name, configured=True, load_result=None, save_error=None, load_error=None):
        super().__init__(session=FakeSession())
        self.name = name
        self.configured = configured
        self.load_result = load_result
        self.save_error = save_error
        self.load_error = load_error
        self.saved = []
        self.load_calls = 0

    def is_configured(self, config):
        return self.configured

    def save(self, snapshot, config):
        if self.save_error is not None:
            raise self.save_error
        self.saved.append(snapshot)
        return True

    def load(self, config):
        self.load_calls += 1
        if self.load_error is not None:
            raise self.load_error
        return self.load_result


# ═══════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def _reset_timers():
    FakeTimer.created = []
    yield


@pytest.fixture(autouse=True)
def _quiet_sync_log(tmp_path):
    from meat_depot import sync_logger
    sync_logger.configure(logs_dir=str(tmp_path / 'logs'), enabled=False)
    sync_logger.reset_stats()
    yield


@pytest.fixture
def repo(tmp_path):
    return LocalStateRepository(str(tmp_path / 'data'))


@pytest.fixture
def store(repo):
    return AppStore(repo, admin_password=ADMIN_PASSWORD)

