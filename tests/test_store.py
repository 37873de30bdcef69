# tests/test_store.py
import threading
import time
from datetime import timedelta

import pytest

from resume_export.errors import Forbidden, InvalidInput, InvalidTransition, NotAccessible, NotFound
from resume_export.models import COMPLETED, FAILED, PENDING, PROCESSING, JobInput, JobResult, utcnow
from resume_export.store import JobStore


@pytest.fixture
def store(resume_store):
    return JobStore(resolver=resume_store.resolve_input)


def test_create_starts_pending(store):
    job = store.create('U1', JobInput('R1', 'T1'))
    assert job.status == PENDING
    assert job.progress == 0
    assert job.result is None and job.error is None
    assert job.created_at == job.updated_at
    assert job.to_dict() == {'jobId': job.id, 'status': 'pending', 'progress': 0}


def test_create_keeps_resolved_payload(store):
    job = store.create('U1', JobInput('R1', 'T1'))
    payload = store.payload(job.id)
    assert payload.resume['title'] == 'Backend Engineer'
    assert payload.template_name == 'modern'


@pytest.mark.parametrize('owner, resume_id, template_id', [
    ('U1', 'missing', 'T1'),
    ('U1', 'R1', 'missing'),
    ('U1', 'R3', 'T1'),  # private resume of another user
])
def test_create_rejects_unresolvable_input(store, owner, resume_id, template_id):
    with pytest.raises(InvalidInput):
        store.create(owner, JobInput(resume_id, template_id))
    assert len(store) == 0


def test_public_resume_can_be_exported_by_others(store):
    job = store.create('U1', JobInput('R2', 'T1'))
    assert job.owner_id == 'U1'


def test_get_hides_other_owners_jobs(store):
    job = store.create('U1', JobInput('R1', 'T1'))
    assert store.get(job.id, 'U1').id == job.id

    with pytest.raises(NotAccessible) as forbidden:
        store.get(job.id, 'U2')
    with pytest.raises(NotAccessible) as missing:
        store.get('no-such-job', 'U1')

    assert isinstance(forbidden.value, Forbidden)
    assert isinstance(missing.value, NotFound)
    assert str(forbidden.value) == str(missing.value)
    assert forbidden.value.status_code == missing.value.status_code


def test_get_returns_a_snapshot(store):
    job = store.create('U1', JobInput('R1', 'T1'))
    snapshot = store.get(job.id, 'U1')
    snapshot.status = COMPLETED
    assert store.get(job.id, 'U1').status == PENDING


def test_transition_follows_state_machine(store):
    job = store.create('U1', JobInput('R1', 'T1'))

    with pytest.raises(InvalidTransition):
        store.transition(job.id, COMPLETED, result=JobResult('x.pdf'))

    claimed = store.claim(job.id)
    assert claimed.status == PROCESSING
    assert claimed.updated_at >= job.updated_at

    done = store.transition(job.id, COMPLETED, result=JobResult('x.pdf'))
    assert done.status == COMPLETED
    assert done.to_dict()['result'] == {'fileName': 'x.pdf'}
    assert 'error' not in done.to_dict()

    for status in (PENDING, PROCESSING, FAILED, COMPLETED):
        with pytest.raises(InvalidTransition):
            store.transition(job.id, status, result=JobResult('y.pdf'), error='late')
    assert store.get(job.id, 'U1').result.file_name == 'x.pdf'


def test_terminal_transitions_need_outcome(store):
    job = store.create('U1', JobInput('R1', 'T1'))
    store.claim(job.id)
    with pytest.raises(InvalidTransition):
        store.transition(job.id, COMPLETED)
    with pytest.raises(InvalidTransition):
        store.transition(job.id, FAILED)

    failed = store.transition(job.id, FAILED, error='template corrupt')
    assert failed.to_dict() == {
        'jobId': job.id, 'status': 'failed', 'progress': 0, 'error': 'template corrupt',
    }
    with pytest.raises(InvalidTransition):
        store.claim(job.id)


def test_unknown_job_cannot_transition(store):
    with pytest.raises(InvalidTransition):
        store.claim('no-such-job')


def test_only_one_of_many_racing_claims_wins(store):
    job = store.create('U1', JobInput('R1', 'T1'))
    racers = 16
    barrier = threading.Barrier(racers)
    wins, losses = [], []

    def race():
        barrier.wait()
        try:
            wins.append(store.claim(job.id))
        except InvalidTransition:
            losses.append(1)

    threads = [threading.Thread(target=race) for _ in range(racers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(wins) == 1
    assert len(losses) == racers - 1
    assert store.get(job.id, 'U1').status == PROCESSING


def test_claim_next_is_fifo(store):
    ids = [store.create('U1', JobInput('R1', 'T1')).id for _ in range(3)]
    claimed = [store.claim_next(timeout=0)[0].id for _ in range(3)]
    assert claimed == ids
    assert store.claim_next(timeout=0) is None


def test_claim_next_skips_jobs_claimed_directly(store):
    first = store.create('U1', JobInput('R1', 'T1'))
    second = store.create('U1', JobInput('R1', 'T1'))
    store.claim(first.id)
    job, payload = store.claim_next(timeout=0)
    assert job.id == second.id
    assert payload is not None


def test_claim_next_wakes_on_create(store):
    result = []
    waiter = threading.Thread(target=lambda: result.append(store.claim_next(timeout=5)))
    waiter.start()
    job = store.create('U1', JobInput('R1', 'T1'))
    waiter.join(5)
    assert result and result[0][0].id == job.id


def test_wake_interrupts_claim_next(store):
    result = []
    waiter = threading.Thread(target=lambda: result.append(store.claim_next(timeout=30)))
    waiter.start()
    deadline = time.monotonic() + 2
    while waiter.is_alive() and time.monotonic() < deadline:
        store.wake()
        waiter.join(0.05)

    assert not waiter.is_alive()
    assert result == [None]


def test_progress_is_monotonic_and_clamped(store):
    job = store.create('U1', JobInput('R1', 'T1'))
    with pytest.raises(InvalidTransition):
        store.update_progress(job.id, 10)

    store.claim(job.id)
    assert store.update_progress(job.id, 40).progress == 40
    assert store.update_progress(job.id, 20).progress == 40
    assert store.update_progress(job.id, 250).progress == 100
    assert store.get(job.id, 'U1').status == PROCESSING

    store.transition(job.id, FAILED, error='boom')
    with pytest.raises(InvalidTransition):
        store.update_progress(job.id, 100)


def test_counts(store):
    first = store.create('U1', JobInput('R1', 'T1'))
    store.create('U1', JobInput('R1', 'T1'))
    store.claim(first.id)
    assert store.counts() == {PENDING: 1, PROCESSING: 1, COMPLETED: 0, FAILED: 0}


def test_purge_expired_respects_retention(store):
    completed = store.create('U1', JobInput('R1', 'T1'))
    store.claim(completed.id)
    store.transition(completed.id, COMPLETED, result=JobResult('done.pdf'))
    failed = store.create('U1', JobInput('R1', 'T1'))
    store.claim(failed.id)
    store.transition(failed.id, FAILED, error='boom')
    running = store.create('U1', JobInput('R1', 'T1'))
    store.claim(running.id)

    later = utcnow() + timedelta(hours=25)
    purged = store.purge_expired(completed_ttl=24 * 3600, failed_ttl=7 * 24 * 3600, now=later)

    assert [job.id for job in purged] == [completed.id]
    assert store.find_by_file('done.pdf') is None
    with pytest.raises(NotFound):
        store.get(completed.id, 'U1')
    assert store.get(failed.id, 'U1').status == FAILED
    assert store.get(running.id, 'U1').status == PROCESSING
