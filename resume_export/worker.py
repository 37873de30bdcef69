# resume_export/worker.py
"""Worker pool that claims pending jobs and renders them off the request path.

`size` threads each claim the oldest pending job, so at most `size` jobs are
processing at once. A render runs on its own daemon thread and the worker
waits for it up to `render_timeout`; a render that overruns is abandoned and
the job fails with "render timeout". Whatever the abandoned render does
afterwards is discarded: the job is already terminal.
"""
import logging
import threading
import time

from .errors import InvalidTransition, RenderTimeout
from .models import COMPLETED, FAILED, JobResult

logger = logging.getLogger(__name__)

INVALID_OUTPUT = 'renderer returned invalid PDF output'


class RenderCall:
    """One detached renderer invocation."""

    def __init__(self, renderer, payload, progress):
        self.done = threading.Event()
        self.pdf = None
        self.error = None
        self._thread = threading.Thread(
            target=self._run, args=(renderer, payload, progress), daemon=True,
        )

    def _run(self, renderer, payload, progress):
        try:
            self.pdf = renderer.render(payload, progress)
        except Exception as e:
            self.error = e
        finally:
            self.done.set()

    def start(self):
        self._thread.start()
        return self

    def wait(self, timeout):
        return self.done.wait(timeout)


class WorkerPool:
    def __init__(self, store, renderer, storage, size=2, render_timeout=60.0,
                 idle_timeout=1.0, sweep_interval=0, completed_ttl=24 * 3600,
                 failed_ttl=7 * 24 * 3600):
        if size < 1:
            raise ValueError("Worker pool needs at least one worker")
        self.store = store
        self.renderer = renderer
        self.storage = storage
        self.size = size
        self.render_timeout = render_timeout
        self.idle_timeout = idle_timeout
        self.sweep_interval = sweep_interval
        self.completed_ttl = completed_ttl
        self.failed_ttl = failed_ttl
        self._stopping = threading.Event()
        self._threads = []

    @property
    def running(self):
        return any(t.is_alive() for t in self._threads)

    def start(self):
        if self.running:
            return
        self._stopping.clear()
        self._threads = [
            threading.Thread(target=self._work, name=f'render-worker-{i}', daemon=True)
            for i in range(self.size)
        ]
        if self.sweep_interval:
            self._threads.append(
                threading.Thread(target=self._sweep_loop, name='artifact-sweeper', daemon=True)
            )
        for thread in self._threads:
            thread.start()
        logger.info("Started %d render workers (timeout %ss)", self.size, self.render_timeout)

    def stop(self, timeout=5.0):
        """Stop claiming new jobs and join the workers.

        Abandoned renders are daemon threads and are never joined.
        """
        self._stopping.set()
        deadline = time.monotonic() + timeout
        for thread in self._threads:
            while thread.is_alive() and time.monotonic() < deadline:
                # A worker may check _stopping just before it starts waiting.
                self.store.wake()
                thread.join(0.05)
        self._threads = []
        logger.info("Render workers stopped")

    def _work(self):
        while not self._stopping.is_set():
            claimed = self.store.claim_next(timeout=self.idle_timeout)
            if claimed is None:
                continue
            job, payload = claimed
            try:
                self.process(job, payload)
            except Exception:
                logger.exception("Worker crashed while processing job %s", job.id)

    def process(self, job, payload):
        """Render a job already claimed by this worker and record the outcome."""
        logger.info("Processing job %s for resume %s, user %s",
                    job.id, job.input.resume_id, job.owner_id)

        def report_progress(value):
            try:
                self.store.update_progress(job.id, value)
            except InvalidTransition:
                logger.debug("Dropping progress %s for job %s", value, job.id)

        call = RenderCall(self.renderer, payload, report_progress).start()
        if not call.wait(self.render_timeout):
            logger.warning("Job %s exceeded render timeout of %ss", job.id, self.render_timeout)
            return self._finish(job, FAILED, error=str(RenderTimeout()))

        if call.error is not None:
            logger.error("Job %s failed: %s", job.id, call.error)
            return self._finish(job, FAILED, error=str(call.error) or type(call.error).__name__)

        pdf = call.pdf
        if not isinstance(pdf, (bytes, bytearray)) or not pdf.startswith(b'%PDF'):
            logger.error("Job %s: %s", job.id, INVALID_OUTPUT)
            return self._finish(job, FAILED, error=INVALID_OUTPUT)

        try:
            file_name = self.storage.save(job, bytes(pdf))
        except OSError as e:
            logger.error("Job %s: could not store artifact: %s", job.id, e)
            return self._finish(job, FAILED, error=f"Could not store PDF: {e}")

        report_progress(100)
        return self._finish(job, COMPLETED, result=JobResult(file_name))

    def _finish(self, job, status, result=None, error=None):
        try:
            finished = self.store.transition(job.id, status, result=result, error=error)
        except InvalidTransition as e:
            logger.critical("State machine violated finishing job %s: %s", job.id, e)
            return None
        logger.info("Job %s %s", job.id, status)
        return finished

    def sweep(self, now=None):
        """Drop expired jobs and delete their artifacts."""
        purged = self.store.purge_expired(self.completed_ttl, self.failed_ttl, now=now)
        for job in purged:
            if job.result is not None:
                self.storage.delete(job.result.file_name)
        if purged:
            logger.info("Purged %d expired jobs", len(purged))
        return purged

    def _sweep_loop(self):
        while not self._stopping.wait(self.sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Artifact sweep failed")
