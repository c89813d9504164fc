"""Tests for running generations on a background executor."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from stringart.generator import StringArtConfig, generate_string_art
from stringart.worker import ErrorMessage, GenerationJob, ProgressMessage, ResultMessage


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True, cancel_futures=True)


def config(**overrides):
    values = dict(pegs_per_side=4, iterations=30, line_opacity=0.3, frame_size=100)
    values.update(overrides)
    return StringArtConfig(**values)


def test_job_streams_progress_then_result(executor, gray_bitmap):
    job = GenerationJob.submit(executor, gray_bitmap, config())
    messages = list(job.events(timeout=30))

    assert isinstance(messages[-1], ResultMessage)
    progress = [m for m in messages if isinstance(m, ProgressMessage)]
    assert [m.iteration for m in progress] == [10, 20, 30]
    assert [m.done for m in progress] == [False, False, True]
    assert all(m.total == 30 for m in progress)
    assert progress[-1].current_peg == messages[-1].result.connections[-1]
    assert job.latest_progress == progress[-1]

    direct = generate_string_art(gray_bitmap, config())
    assert messages[-1].result.connections == direct.connections
    assert job.result(timeout=5).connections == direct.connections
    assert job.done()


def test_concurrent_jobs_do_not_share_state(executor, gradient):
    jobs = [GenerationJob.submit(executor, gradient, config(iterations=40)) for _ in range(2)]
    results = [job.result(timeout=30) for job in jobs]
    assert results[0].connections == results[1].connections
    assert results[0] is not results[1]


def test_job_failure_becomes_error_message(executor):
    job = GenerationJob.submit(executor, np.zeros(5), config())
    messages = list(job.events(timeout=30))
    assert len(messages) == 1
    assert isinstance(messages[0], ErrorMessage)
    assert messages[0].error
    assert job.result(timeout=5) is None


def test_cancel_ends_with_error_message(executor, black_bitmap):
    cfg = config(pegs_per_side=20, iterations=5000, line_opacity=0.01)
    job = GenerationJob.submit(executor, black_bitmap, cfg)
    job.cancel()

    messages = list(job.events(timeout=60))
    assert isinstance(messages[-1], ErrorMessage)
    assert messages[-1].error == "Generation cancelled"
    assert job.cancelled
    assert job.result(timeout=60) is None


def test_early_stop_stream_has_single_terminal_progress(executor, ten_line_bitmap):
    job = GenerationJob.submit(executor, ten_line_bitmap, config(iterations=50, line_opacity=1.0))
    messages = list(job.events(timeout=30))

    assert isinstance(messages[-1], ResultMessage)
    assert messages[-1].result.line_count == 10
    progress = [m for m in messages if isinstance(m, ProgressMessage)]
    counts = [m.iteration for m in progress]
    assert counts == sorted(counts)
    assert [m for m in progress if m.done] == [progress[-1]]
    assert progress == [ProgressMessage(10, 50, 3, done=True)]
    assert job.latest_progress.done


def test_unsubmitted_job_has_no_result(gray_bitmap):
    job = GenerationJob(gray_bitmap, config())
    with pytest.raises(RuntimeError):
        job.result()


def test_async_event_stream(executor, gray_bitmap):
    async def collect():
        job = GenerationJob.submit(executor, gray_bitmap, config(iterations=12))
        return [msg async for msg in job.aevents()]

    messages = asyncio.run(collect())
    assert isinstance(messages[-1], ResultMessage)
    assert [m.iteration for m in messages if isinstance(m, ProgressMessage)] == [10, 12]
