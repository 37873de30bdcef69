# resume_export/views.py
import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from .auth import current_user_id, requires_auth
from .errors import ApiError, InvalidTransition, NotAccessible, NotFound, Unauthorized
from .models import PDF_CONTENT_TYPE

logger = logging.getLogger(__name__)

main = Blueprint('main', __name__)


def jobs():
    return current_app.extensions['jobs']


@main.route('/api/resumes/<resume_id>/pdf', methods=['POST'])
@requires_auth
def export_resume(resume_id):
    body = request.get_json(silent=True) or {}
    template_id = body.get('templateId') or request.args.get('template')
    job = jobs().submit(current_user_id(), resume_id, template_id)
    return jsonify({'jobId': job.id}), 202


@main.route('/api/jobs', methods=['POST'])
@requires_auth
def submit_job():
    body = request.get_json(silent=True) or {}
    job = jobs().submit(current_user_id(), body.get('resumeId'), body.get('templateId'))
    return jsonify({'jobId': job.id}), 202


@main.route('/api/jobs/<job_id>', methods=['GET'])
@requires_auth
def job_status(job_id):
    return jsonify(jobs().status(job_id, current_user_id())), 200


@main.route('/api/files/<file_name>', methods=['GET'])
@requires_auth
def download(file_name):
    path = jobs().open_artifact(file_name, current_user_id())
    try:
        response = send_file(path, mimetype=PDF_CONTENT_TYPE, max_age=0)
    except FileNotFoundError:
        # Purged between the ownership check and the read.
        raise NotFound()
    response.headers['Content-Disposition'] = f'inline; filename="{file_name}"'
    return response


@main.app_errorhandler(ApiError)
def handle_api_error(e):
    if isinstance(e, NotAccessible):
        logger.info("%s %s denied: %s", request.method, request.path, type(e).__name__)
    elif isinstance(e, InvalidTransition):
        logger.critical("Invalid job transition on %s %s: %s", request.method, request.path, e.message)
        return jsonify({'error': 'Internal server error'}), 500

    response = jsonify({'error': e.message})
    response.status_code = e.status_code
    if isinstance(e, Unauthorized):
        response.headers['WWW-Authenticate'] = 'Bearer'
    return response
