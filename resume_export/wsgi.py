# resume_export/wsgi.py
#
#   gunicorn resume_export.wsgi:app
#   START_WORKER_POOL=false RENDERER=playwright celery -A resume_export.wsgi:celery worker
from resume_export import create_app

app = create_app()
celery = app.extensions['celery']
