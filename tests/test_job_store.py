from datetime import timedelta

import pytest

from kataru.models.job import (
    Done,
    Failed,
    GenerationJob,
    JobKind,
    JobState,
    Processing,
    Queued,
    allowed_sources,
    utcnow,
)


async def _new(store, job_id="job-1"):
    return await store.insert(job_id, JobKind.LIPSYNC, {"avatar_image": "a.png"}, {"script_text": "hi"})


async def test_insert_and_get(store):
    await _new(store)

    job = await store.get("job-1")

    assert job.state is JobState.QUEUED
    assert job.phase() == Queued()
    assert job.input_refs == {"avatar_image": "a.png"}
    assert await store.get("missing") is None


async def test_mark_processing_only_once(store):
    await _new(store)

    assert await store.mark_processing("job-1", "tlk_1")
    assert not await store.mark_processing("job-1", "tlk_2")

    job = await store.get("job-1")
    assert job.phase() == Processing("tlk_1")


async def test_terminal_states_are_never_overwritten(store):
    await _new(store)
    await store.mark_processing("job-1", "tlk_1")

    assert await store.mark_done("job-1", "job-1.mp4")
    assert not await store.mark_error("job-1", "late failure")
    assert not await store.mark_status("job-1", JobState.PROCESSING)
    assert not await store.mark_done("job-1", "other.mp4")

    job = await store.get("job-1")
    assert job.phase() == Done("job-1.mp4")
    assert job.error_message is None


async def test_error_is_terminal_too(store):
    await _new(store)
    await store.mark_processing("job-1", "tlk_1")

    assert await store.mark_error("job-1", "x" * 3000, code="provider_failed")
    assert not await store.mark_done("job-1", "job-1.mp4")

    job = await store.get("job-1")
    assert isinstance(job.phase(), Failed)
    assert len(job.error_message) == 2000
    assert job.error_code == "provider_failed"


async def test_mark_status_refuses_terminal_targets(store):
    await _new(store)
    with pytest.raises(ValueError):
        await store.mark_status("job-1", JobState.DONE)


async def test_materialization_lease(store):
    await _new(store)
    await store.mark_processing("job-1", "tlk_1")
    lease = timedelta(minutes=5)

    assert await store.claim_materialization("job-1", lease)
    assert not await store.claim_materialization("job-1", lease)

    assert await store.release_materialization("job-1")
    assert await store.claim_materialization("job-1", lease)
    # a stale lease can be taken over
    assert await store.claim_materialization("job-1", timedelta(seconds=-1))


async def test_discard_only_removes_queued_jobs(store):
    await _new(store, "queued")
    await _new(store, "started")
    await store.mark_processing("started", "tlk_1")

    assert await store.discard("queued")
    assert not await store.discard("started")
    assert await store.get("queued") is None
    assert await store.get("started") is not None


async def test_list_expired_and_delete_many(store, session_factory):
    await _new(store, "old")
    await _new(store, "new")
    async with session_factory() as session:
        job = await session.get(GenerationJob, "old")
        job.created_at = utcnow() - timedelta(days=10)
        await session.commit()

    expired = await store.list_expired(utcnow() - timedelta(days=7), limit=10)

    assert [j.id for j in expired] == ["old"]
    assert await store.delete_many(["old"]) == 1
    assert await store.delete_many([]) == 0


def test_valid_transitions_are_forward_only():
    job = GenerationJob(id="j", kind="lipsync", status="processing")
    assert job.can_transition_to(JobState.DONE)
    assert not job.can_transition_to(JobState.QUEUED)

    job.status = "done"
    assert job.is_terminal
    assert not job.can_transition_to(JobState.ERROR)


def test_update_guards_follow_transition_table():
    assert allowed_sources(JobState.PROCESSING) == ["processing", "queued"]
    assert allowed_sources(JobState.DONE) == ["processing"]
    assert allowed_sources(JobState.ERROR) == ["processing", "queued"]
    assert allowed_sources(JobState.QUEUED) == []


async def test_queued_job_cannot_jump_to_done(store):
    await _new(store)

    assert not await store.mark_done("job-1", "job-1.mp4")
    assert not await store.claim_materialization("job-1", timedelta(minutes=5))
    assert not await store.mark_status("job-1", JobState.QUEUED)
    assert (await store.get("job-1")).state is JobState.QUEUED

    # a rejected submission still goes straight to error
    assert await store.mark_error("job-1", "rejected", code="provider_rejected")
