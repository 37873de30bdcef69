# resume_export/celery_worker.py
import logging

from celery import Celery

logger = logging.getLogger(__name__)

# Task modules are imported by the worker once the instance is configured.
celery = Celery(__name__, include=['resume_export.renderer'])


def init_celery(app):
    celery.conf.broker_url = app.config['CELERY_BROKER_URL']
    celery.conf.result_backend = app.config['CELERY_RESULT_BACKEND']
    celery.conf.update(
        task_serializer='json',
        result_serializer='json',
        accept_content=['json'],
    )
    celery.conf.update(app.config.get('CELERY', {}))

    logger.info('Celery broker URL: %s', celery.conf.broker_url)
    logger.info('Celery result backend: %s', celery.conf.result_backend)

    class ContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return super().__call__(*args, **kwargs)

    celery.Task = ContextTask
    app.extensions['celery'] = celery
    return celery
