import asyncio

import pytest

from rulekit.sequencer import IngestionQueue, iterate_source


@pytest.mark.anyio
async def test_tasks_run_in_submission_order():
    queue = IngestionQueue()
    events = []

    async def slow():
        events.append('slow:start')
        await asyncio.sleep(0.05)
        events.append('slow:end')

    async def fast():
        events.append('fast')

    queue.submit(slow)
    queue.submit(fast)
    assert queue.pending
    await queue.join()

    assert events == ['slow:start', 'slow:end', 'fast']
    assert not queue.pending


@pytest.mark.anyio
async def test_tasks_submitted_while_draining_are_run():
    queue = IngestionQueue()
    events = []

    async def first():
        queue.submit(second)
        events.append(1)

    async def second():
        events.append(2)

    queue.submit(first)
    await queue.join()
    assert events == [1, 2]


@pytest.mark.anyio
async def test_concurrent_joins_do_not_interleave():
    queue = IngestionQueue()
    running = []
    overlap = []

    def make(i):
        async def task():
            if running:
                overlap.append(i)
            running.append(i)
            await asyncio.sleep(0.01)
            running.remove(i)
        return task

    for i in range(5):
        queue.submit(make(i))
    await asyncio.gather(queue.join(), queue.join())
    assert overlap == []


@pytest.mark.anyio
async def test_failure_drops_remaining_tasks():
    queue = IngestionQueue()
    events = []

    async def boom():
        raise OSError('source unavailable')

    async def after():
        events.append('after')

    queue.submit(boom)
    queue.submit(after)
    with pytest.raises(OSError):
        await queue.join()

    assert events == []
    assert len(queue) == 0
    assert not queue.pending


@pytest.mark.anyio
async def test_iterate_source_accepts_all_shapes():
    async def agen():
        yield 'a'
        yield 'b'

    async def awaitable():
        return ['c']

    assert [x async for x in iterate_source(['x', 'y'])] == ['x', 'y']
    assert [x async for x in iterate_source(agen())] == ['a', 'b']
    assert [x async for x in iterate_source(awaitable())] == ['c']
