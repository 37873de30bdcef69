# tests/conftest.py
import threading
import time

import pytest
from authlib.jose import jwt

from resume_export import create_app
from resume_export.errors import RenderFailure
from resume_export.renderer import Renderer
from resume_export.resumes import ResumeStore

SECRET = 'test-secret'
PDF = b'%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\n%%EOF\n'

RESUME = {
    'title': 'Backend Engineer',
    'personalInfo': {
        'firstName': 'Ada',
        'lastName': 'Lovelace',
        'email': 'ada@example.com',
        'jobTitle': 'Engineer',
    },
    'experience': [
        {'position': 'Analyst', 'company': 'Engines Ltd', 'startDate': '2020-01-15', 'endDate': None},
    ],
    'education': [],
    'skills': [{'name': 'Python', 'level': 'Expert'}],
}


class FakeRenderer(Renderer):
    """Renderer double: optional gate to hold renders open, optional error."""

    def __init__(self, pdf=PDF, error=None, steps=(25, 50, 75), gate=None):
        self.pdf = pdf
        self.error = error
        self.steps = steps
        self.gate = gate
        self.calls = []
        self.finished = threading.Event()
        self._lock = threading.Lock()

    def render(self, payload, progress=None):
        with self._lock:
            self.calls.append(payload)
        try:
            if self.gate is not None:
                self.gate.wait(10)
            for step in self.steps:
                if progress:
                    progress(step)
            if self.error:
                raise RenderFailure(self.error)
            return self.pdf
        finally:
            self.finished.set()


def make_token(user_id, secret=SECRET, expires_in=3600):
    now = int(time.time())
    payload = {'id': user_id, 'iat': now, 'exp': now + expires_in}
    return jwt.encode({'alg': 'HS256'}, payload, secret).decode('ascii')


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def resume_store():
    store = ResumeStore()
    store.add_resume('R1', 'U1', RESUME)
    store.add_resume('R2', 'U2', dict(RESUME, title='Public resume'), is_public=True)
    store.add_resume('R3', 'U2', dict(RESUME, title='Private resume'))
    store.add_template('T1', name='modern')
    store.add_template('modern')
    return store


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def app(tmp_path, renderer, resume_store):
    app = create_app(
        config={
            'TESTING': True,
            'JWT_SECRET': SECRET,
            'ARTIFACT_FOLDER': str(tmp_path / 'artifacts'),
            'START_WORKER_POOL': False,
            'JOB_WORKERS': 2,
            'RENDER_TIMEOUT': 2,
            'WORKER_IDLE_TIMEOUT': 0.05,
            'JOB_SWEEP_INTERVAL': 0,
        },
        renderer=renderer,
        resume_store=resume_store,
    )
    yield app
    app.extensions['worker_pool'].stop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_header():
    def build(user_id):
        return {'Authorization': f'Bearer {make_token(user_id)}'}
    return build


@pytest.fixture
def run_next_job(app):
    """Claim the oldest pending job and process it on the calling thread."""
    store = app.extensions['job_store']
    pool = app.extensions['worker_pool']

    def run():
        claimed = store.claim_next(timeout=0)
        if claimed is None:
            return None
        return pool.process(*claimed)

    return run
