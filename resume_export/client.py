# resume_export/client.py
"""HTTP client that submits an export job, polls it and fetches the PDF."""
import logging
import time

import requests

from .errors import JobFailed, PollingTimeout
from .models import COMPLETED, PDF_CONTENT_TYPE, TERMINAL_STATUSES

logger = logging.getLogger(__name__)


class PollingClient:
    def __init__(self, base_url, token, session=None, interval=2.0, max_polls=150,
                 timeout=10.0, sleep=time.sleep):
        """
        Args:
            base_url: root URL of the export service
            token: bearer token for the caller
            interval: seconds between status polls
            max_polls: give up after this many status requests
            timeout: per-request transport timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.session = session or requests.Session()
        self.interval = interval
        self.max_polls = max_polls
        self.timeout = timeout
        self.sleep = sleep

    def _url(self, path):
        return f'{self.base_url}{path}'

    def _headers(self):
        return {'Authorization': f'Bearer {self.token}'}

    def submit(self, resume_id, template_id=None):
        body = {'resumeId': resume_id}
        if template_id:
            body['templateId'] = template_id
        response = self.session.post(
            self._url('/api/jobs'), json=body, headers=self._headers(), timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()['jobId']

    def check(self, job_id):
        response = self.session.get(
            self._url(f'/api/jobs/{job_id}'), headers=self._headers(), timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def poll(self, job_id):
        """Poll until the job is terminal and return its last status.

        The first check is immediate, then one every `interval` seconds.
        Transport errors and 5xx responses are logged and retried on the next
        tick; any other HTTP error is raised.
        """
        for attempt in range(self.max_polls):
            if attempt:
                self.sleep(self.interval)
            try:
                status = self.check(job_id)
            except requests.HTTPError as e:
                if e.response is not None and e.response.status_code >= 500:
                    logger.warning("Status check for job %s failed: %s", job_id, e)
                    continue
                raise
            except requests.RequestException as e:
                logger.warning("Status check for job %s failed: %s", job_id, e)
                continue

            logger.debug("Job %s is %s (%s%%)", job_id, status['status'], status.get('progress', 0))
            if status['status'] in TERMINAL_STATUSES:
                return status

        raise PollingTimeout(f"Job {job_id} not finished after {self.max_polls} checks")

    def download(self, file_name):
        response = self.session.get(
            self._url(f'/api/files/{file_name}'), headers=self._headers(), timeout=self.timeout,
        )
        response.raise_for_status()
        content_type = response.headers.get('Content-Type', '')
        if not content_type.startswith(PDF_CONTENT_TYPE):
            raise ValueError(f"Expected a PDF, got {content_type!r}")
        return response.content

    def export(self, resume_id, template_id=None):
        """Submit, wait and download. Returns ``(file_name, pdf_bytes)``."""
        job_id = self.submit(resume_id, template_id)
        status = self.poll(job_id)
        if status['status'] != COMPLETED:
            raise JobFailed(job_id, status.get('error') or 'Unknown error')
        file_name = status['result']['fileName']
        return file_name, self.download(file_name)
