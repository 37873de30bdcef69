# resume_export/storage.py
import logging
import os

from werkzeug.utils import secure_filename

from .errors import NotFound

logger = logging.getLogger(__name__)


class ArtifactStorage:
    """Generated PDFs on local disk, addressed by file name."""

    def __init__(self, folder):
        self.folder = os.path.abspath(folder)
        os.makedirs(self.folder, exist_ok=True)

    def file_name_for(self, job):
        return secure_filename(f"{job.input.resume_id}_{job.id}.pdf")

    def path(self, file_name):
        safe_name = secure_filename(file_name)
        if not safe_name or safe_name != file_name:
            raise NotFound()
        return os.path.join(self.folder, safe_name)

    def save(self, job, data):
        file_name = self.file_name_for(job)
        path = os.path.join(self.folder, file_name)
        # Write then rename so readers never see a half-written file.
        tmp_path = path + '.part'
        with open(tmp_path, 'wb') as f:
            f.write(data)
        os.replace(tmp_path, path)
        logger.info("Saved artifact %s (%d bytes)", file_name, len(data))
        return file_name

    def exists(self, file_name):
        try:
            return os.path.isfile(self.path(file_name))
        except NotFound:
            return False

    def delete(self, file_name):
        try:
            os.remove(self.path(file_name))
        except (FileNotFoundError, NotFound):
            return False
        logger.info("Deleted artifact %s", file_name)
        return True
