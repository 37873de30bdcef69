# resume_export/store.py
"""In-process job store.

Every read and write goes through one condition variable, so a transition is
atomic and `get` only ever returns a consistent copy of a job. Claiming a job
is the pending -> processing transition itself; two workers racing on the
same job can't both win it.
"""
import logging
import threading
from collections import deque
from datetime import timedelta

from .errors import Forbidden, InvalidInput, InvalidTransition, NotAccessible, NotFound
from .models import (
    COMPLETED, FAILED, PENDING, PROCESSING, STATUSES, TERMINAL_STATUSES, Job, utcnow,
)

logger = logging.getLogger(__name__)

# Allowed status edges; terminal states have none.
TRANSITIONS = {
    PENDING: (PROCESSING,),
    PROCESSING: (COMPLETED, FAILED),
    COMPLETED: (),
    FAILED: (),
}


class JobStore:
    def __init__(self, resolver=None):
        """
        Args:
            resolver: callable ``(resume_id, template_id, owner_id)`` returning
                the RenderableInput for a job, raising NotAccessible when the
                owner can't read the resume or template.
        """
        self._resolver = resolver
        self._cond = threading.Condition()
        self._jobs = {}
        self._payloads = {}
        self._pending = deque()
        self._files = {}

    def create(self, owner_id, job_input):
        payload = None
        if self._resolver is not None:
            try:
                payload = self._resolver(job_input.resume_id, job_input.template_id, owner_id)
            except NotAccessible as e:
                logger.info("Rejecting job for resume %s / template %s from %s: %s",
                            job_input.resume_id, job_input.template_id, owner_id,
                            type(e).__name__)
                raise InvalidInput("Resume or template not found") from e

        job = Job(owner_id, job_input)
        with self._cond:
            self._jobs[job.id] = job
            self._payloads[job.id] = payload
            self._pending.append(job.id)
            self._cond.notify()
            return job.copy()

    def get(self, job_id, requester_id):
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFound()
            if job.owner_id != requester_id:
                raise Forbidden()
            return job.copy()

    def find_by_file(self, file_name):
        with self._cond:
            job_id = self._files.get(file_name)
            if job_id is None:
                return None
            return self._jobs[job_id].copy()

    def payload(self, job_id):
        with self._cond:
            return self._payloads.get(job_id)

    def transition(self, job_id, status, result=None, error=None):
        if status not in STATUSES:
            raise InvalidTransition(f"Unknown status {status!r}")
        if status == COMPLETED and result is None:
            raise InvalidTransition("A completed job needs a result")
        if status == FAILED and not error:
            raise InvalidTransition("A failed job needs an error")

        with self._cond:
            job = self._jobs.get(job_id)
            if job is None:
                raise InvalidTransition(f"Job {job_id} does not exist")
            if status not in TRANSITIONS[job.status]:
                raise InvalidTransition(f"Job {job_id} cannot move from {job.status} to {status}")

            job.status = status
            job.updated_at = utcnow()
            if status == COMPLETED:
                job.result = result
                self._files[result.file_name] = job.id
            elif status == FAILED:
                job.error = error
            if status in TERMINAL_STATUSES:
                job.finished_at = job.updated_at
                self._payloads.pop(job_id, None)
            return job.copy()

    def claim(self, job_id):
        return self.transition(job_id, PROCESSING)

    def claim_next(self, timeout=None):
        """Claim the oldest pending job, waiting up to `timeout` seconds for one.

        Returns a ``(job, payload)`` pair, or None when nothing was claimed,
        including when `wake` interrupts the wait.
        """
        with self._cond:
            claimed = self._claim_oldest()
            if claimed is None:
                self._cond.wait(timeout)
                claimed = self._claim_oldest()
            return claimed

    def _claim_oldest(self):
        while self._pending:
            job_id = self._pending.popleft()
            job = self._jobs.get(job_id)
            # Skip ids already claimed directly or purged.
            if job is None or job.status != PENDING:
                continue
            job = self.claim(job_id)
            return job, self._payloads.get(job_id)
        return None

    def update_progress(self, job_id, progress):
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None or job.status != PROCESSING:
                raise InvalidTransition(f"Job {job_id} is not processing")
            progress = max(0, min(100, int(progress)))
            if progress > job.progress:
                job.progress = progress
                job.updated_at = utcnow()
            return job.copy()

    def wake(self):
        """Wake every thread blocked in claim_next."""
        with self._cond:
            self._cond.notify_all()

    def counts(self):
        with self._cond:
            counts = dict.fromkeys(STATUSES, 0)
            for job in self._jobs.values():
                counts[job.status] += 1
            return counts

    def purge_expired(self, completed_ttl, failed_ttl, now=None):
        """Drop terminal jobs past their retention window and return them.

        Args:
            completed_ttl: seconds a completed job (and its file) stays fetchable
            failed_ttl: seconds a failed job stays visible
        """
        now = now or utcnow()
        ttl = {
            COMPLETED: timedelta(seconds=completed_ttl),
            FAILED: timedelta(seconds=failed_ttl),
        }
        purged = []
        with self._cond:
            for job in list(self._jobs.values()):
                if not job.is_terminal or now - job.finished_at < ttl[job.status]:
                    continue
                del self._jobs[job.id]
                if job.result is not None:
                    self._files.pop(job.result.file_name, None)
                purged.append(job)
        return purged

    def __len__(self):
        with self._cond:
            return len(self._jobs)
