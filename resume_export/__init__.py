# resume_export/__init__.py
import logging
import os

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

load_dotenv()

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _configure_logging(level):
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    logging.getLogger('resume_export').setLevel(level)


def create_app(config=None, renderer=None, resume_store=None):
    """Build the export service.

    Args:
        config: mapping applied on top of the environment settings
        renderer: Renderer used by the worker pool; built from RENDERER if omitted
        resume_store: resume/template collaborator; an empty ResumeStore if omitted
    """
    app = Flask(__name__)
    CORS(app)

    app.secret_key = os.getenv('APP_SECRET_KEY')
    app.config.update(
        JWT_SECRET=os.getenv('JWT_SECRET', os.getenv('APP_SECRET_KEY')),
        ARTIFACT_FOLDER=os.getenv('ARTIFACT_FOLDER', os.path.join(BASE_DIR, 'artifacts')),
        JOB_WORKERS=int(os.getenv('JOB_WORKERS', '2')),
        RENDER_TIMEOUT=float(os.getenv('RENDER_TIMEOUT', '60')),
        WORKER_IDLE_TIMEOUT=float(os.getenv('WORKER_IDLE_TIMEOUT', '1')),
        JOB_SWEEP_INTERVAL=float(os.getenv('JOB_SWEEP_INTERVAL', '300')),
        ARTIFACT_TTL=int(os.getenv('ARTIFACT_TTL', str(24 * 3600))),
        FAILED_JOB_TTL=int(os.getenv('FAILED_JOB_TTL', str(7 * 24 * 3600))),
        DEFAULT_TEMPLATE=os.getenv('DEFAULT_TEMPLATE', 'modern'),
        RENDERER=os.getenv('RENDERER', 'playwright'),
        START_WORKER_POOL=_env_bool('START_WORKER_POOL', True),
        LOG_LEVEL=os.getenv('LOG_LEVEL', 'INFO').upper(),
        CELERY_BROKER_URL=os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0'),
        CELERY_RESULT_BACKEND=os.getenv('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0'),
    )
    if config:
        app.config.update(config)

    _configure_logging(app.config['LOG_LEVEL'])
    # Storage and file serving share one absolute folder.
    app.config['ARTIFACT_FOLDER'] = os.path.abspath(app.config['ARTIFACT_FOLDER'])
    os.makedirs(app.config['ARTIFACT_FOLDER'], exist_ok=True)

    from resume_export.celery_worker import init_celery
    init_celery(app)

    from resume_export.renderer import CeleryRenderer, PlaywrightRenderer
    from resume_export.resumes import ResumeStore
    from resume_export.services import JobService
    from resume_export.storage import ArtifactStorage
    from resume_export.store import JobStore
    from resume_export.worker import WorkerPool

    if renderer is None:
        if app.config['RENDERER'] == 'celery':
            # Outlive the pool's own timeout so it stays the authoritative one.
            renderer = CeleryRenderer(timeout=app.config['RENDER_TIMEOUT'] * 2)
        else:
            renderer = PlaywrightRenderer()
    if resume_store is None:
        resume_store = ResumeStore()

    store = JobStore(resolver=resume_store.resolve_input)
    storage = ArtifactStorage(app.config['ARTIFACT_FOLDER'])
    pool = WorkerPool(
        store, renderer, storage,
        size=app.config['JOB_WORKERS'],
        render_timeout=app.config['RENDER_TIMEOUT'],
        idle_timeout=app.config['WORKER_IDLE_TIMEOUT'],
        sweep_interval=app.config['JOB_SWEEP_INTERVAL'],
        completed_ttl=app.config['ARTIFACT_TTL'],
        failed_ttl=app.config['FAILED_JOB_TTL'],
    )

    app.extensions['resumes'] = resume_store
    app.extensions['job_store'] = store
    app.extensions['worker_pool'] = pool
    app.extensions['jobs'] = JobService(store, storage, default_template=app.config['DEFAULT_TEMPLATE'])

    from resume_export.views import main as main_blueprint
    app.register_blueprint(main_blueprint)

    if app.config['START_WORKER_POOL']:
        pool.start()

    return app
