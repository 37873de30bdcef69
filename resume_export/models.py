# resume_export/models.py
import copy
from datetime import datetime, timezone
from uuid import uuid4

PENDING = 'pending'
PROCESSING = 'processing'
COMPLETED = 'completed'
FAILED = 'failed'

STATUSES = (PENDING, PROCESSING, COMPLETED, FAILED)
TERMINAL_STATUSES = (COMPLETED, FAILED)

PDF_CONTENT_TYPE = 'application/pdf'


def utcnow():
    return datetime.now(timezone.utc)


class JobInput:
    """Reference to the resume and template a job renders."""

    def __init__(self, resume_id, template_id):
        self.resume_id = resume_id
        self.template_id = template_id

    def to_dict(self):
        return {'resumeId': self.resume_id, 'templateId': self.template_id}


class JobResult:
    def __init__(self, file_name, content_type=PDF_CONTENT_TYPE):
        self.file_name = file_name
        self.content_type = content_type

    def to_dict(self):
        return {'fileName': self.file_name}


class RenderableInput:
    """Resolved resume content plus template record, as handed to a renderer."""

    def __init__(self, resume, template):
        self.resume = resume
        self.template = template

    @property
    def template_name(self):
        return self.template.get('name') or 'modern'

    def to_dict(self):
        return {'resume': self.resume, 'template': self.template}

    @classmethod
    def from_dict(cls, data):
        return cls(data['resume'], data['template'])


class Job:
    def __init__(self, owner_id, job_input):
        self.id = str(uuid4())
        self.owner_id = owner_id
        self.input = job_input
        self.status = PENDING  # Possible statuses: pending, processing, completed, failed
        self.progress = 0
        self.result = None
        self.error = None
        self.created_at = utcnow()
        self.updated_at = self.created_at
        self.finished_at = None

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def copy(self):
        return copy.copy(self)

    def to_dict(self):
        data = {
            'jobId': self.id,
            'status': self.status,
            'progress': self.progress,
        }
        if self.status == COMPLETED:
            data['result'] = self.result.to_dict()
        elif self.status == FAILED:
            data['error'] = self.error
        return data

    def __repr__(self):
        return f'<Job {self.id} {self.status}>'
