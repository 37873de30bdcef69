# resume_export/resumes.py
import threading

from .errors import Forbidden, NotFound
from .models import RenderableInput


class ResumeStore:
    """In-memory resume and template records.

    Stands in for the application's resume database; the export jobs only
    need `resolve_input`.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._resumes = {}
        self._templates = {}

    def add_resume(self, resume_id, owner_id, content, is_public=False):
        with self._lock:
            self._resumes[resume_id] = {
                'id': resume_id,
                'owner_id': owner_id,
                'is_public': is_public,
                'content': content,
            }

    def add_template(self, template_id, name=None, **attrs):
        with self._lock:
            self._templates[template_id] = dict(attrs, id=template_id, name=name or template_id)

    def resolve_input(self, resume_id, template_id, owner_id):
        with self._lock:
            resume = self._resumes.get(resume_id)
            template = self._templates.get(template_id)
        if resume is None or template is None:
            raise NotFound()
        # Public resumes can be exported by anyone, as they can be viewed.
        if resume['owner_id'] != owner_id and not resume['is_public']:
            raise Forbidden()
        return RenderableInput(dict(resume['content']), dict(template))
