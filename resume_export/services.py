# resume_export/services.py
import logging

from .errors import Forbidden, InvalidInput, NotFound
from .models import JobInput

logger = logging.getLogger(__name__)


class JobService:
    """Submission, status and file lookups for PDF export jobs.

    Every call is short and non-blocking: submitting only records a pending
    job, the worker pool does the rendering.
    """

    def __init__(self, store, storage, default_template='modern'):
        self.store = store
        self.storage = storage
        self.default_template = default_template

    def submit(self, owner_id, resume_id, template_id=None):
        if not resume_id:
            raise InvalidInput("Resume ID is required")
        job_input = JobInput(resume_id, template_id or self.default_template)
        # Duplicate submissions are independent jobs.
        job = self.store.create(owner_id, job_input)
        logger.info("Queued job %s for resume %s, template %s, user %s",
                    job.id, resume_id, job_input.template_id, owner_id)
        return job

    def status(self, job_id, requester_id):
        return self.store.get(job_id, requester_id).to_dict()

    def open_artifact(self, file_name, requester_id):
        """Return the on-disk path of a finished PDF the requester owns."""
        job = self.store.find_by_file(file_name)
        if job is None:
            raise NotFound()
        if job.owner_id != requester_id:
            raise Forbidden()
        if not self.storage.exists(file_name):
            # Missing artifacts are never regenerated; submit a new job.
            raise NotFound()
        return self.storage.path(file_name)
